"""TLS handshake testing via `openssl s_client`."""

import logging
import re
from typing import Any, Dict, Optional

from keybook.models.artifact import ArtifactKind
from keybook.models.certificate import CertificateSummary
from keybook.models.tls import TLSProbeRequest, TLSProbeResponse
from keybook.services.openssl_service import OpenSSLService
from keybook.services.parser_service import CertificateParser
from keybook.services.workspace_service import WorkspaceService
from keybook.utils.validators import validate_hostname

logger = logging.getLogger("keybook")

_SESSION_PROTOCOL = re.compile(r"^\s*Protocol\s*:\s*(\S+)", re.MULTILINE)
_SESSION_CIPHER = re.compile(r"^\s*Cipher\s*:\s*(\S+)", re.MULTILINE)
_NEW_SESSION = re.compile(r"^New, (\S+), Cipher is (\S+)", re.MULTILINE)
_VERIFY = re.compile(r"Verify return code: (\d+) \(([^)]*)\)")

# s_client prints this cipher name when no session was negotiated
_NO_CIPHER = {"0000", "(NONE)"}


def parse_s_client_output(text: str) -> Dict[str, Any]:
    """
    Pull the handshake summary out of `openssl s_client` output.

    Args:
        text: Combined stdout of s_client (with -showcerts)

    Returns:
        Dictionary with connected, protocol, cipher, verify_code,
        verify_message and the PEM certificates of the peer chain
    """
    protocol: Optional[str] = None
    cipher: Optional[str] = None

    new_session = _NEW_SESSION.search(text)
    if new_session:
        protocol, cipher = new_session.group(1), new_session.group(2)

    session_protocol = _SESSION_PROTOCOL.search(text)
    if session_protocol:
        protocol = session_protocol.group(1)
    session_cipher = _SESSION_CIPHER.search(text)
    if session_cipher:
        cipher = session_cipher.group(1)

    if cipher in _NO_CIPHER:
        cipher = None
    if protocol in _NO_CIPHER:
        protocol = None

    verify_code = verify_message = None
    verify_matches = _VERIFY.findall(text)
    if verify_matches:
        code, message = verify_matches[-1]
        verify_code, verify_message = int(code), message

    return {
        "connected": "CONNECTED(" in text,
        "protocol": protocol,
        "cipher": cipher,
        "verify_code": verify_code,
        "verify_message": verify_message,
        "certificates": CertificateParser.split_pem_bundle(text),
    }


class TLSService:
    """Service for TLS handshake tests."""

    def __init__(self, workspace: WorkspaceService, openssl_service: OpenSSLService, timeout: int = 15):
        """
        Initialize TLS service.

        Args:
            workspace: Workspace (for CA bundles used in verification)
            openssl_service: OpenSSL service instance
            timeout: Seconds before s_client is killed
        """
        self.workspace = workspace
        self.openssl_service = openssl_service
        self.timeout = timeout

    def probe(self, request: TLSProbeRequest) -> TLSProbeResponse:
        """
        Connect to a TLS server and report the negotiated session and peer chain.

        Connection failures are reported with connected=False rather than raised.

        Raises:
            ValueError: If the host, servername or CA file is invalid
        """
        host = validate_hostname(request.host.strip("[]"))
        servername = validate_hostname(request.servername or host)

        ca_file = None
        if request.ca_name:
            ca_file = self.workspace.require(request.ca_name)
            kind, _ = CertificateParser.detect_kind(ca_file)
            if kind != ArtifactKind.CERTIFICATE:
                raise ValueError(f"'{request.ca_name}' is not a certificate bundle")

        command = self.openssl_service.build_s_client_command(host, request.port, servername, ca_file)
        response = TLSProbeResponse(
            host=host, port=request.port, servername=servername, connected=False, openssl_command=command
        )

        try:
            result = self.openssl_service.run(command, timeout=self.timeout)
        except RuntimeError as e:
            logger.warning(f"TLS probe of {host}:{request.port} failed: {e}")
            response.output = str(e)
            return response

        parsed = parse_s_client_output(result.stdout)
        response.connected = parsed["connected"] and parsed["cipher"] is not None
        response.protocol = parsed["protocol"]
        response.cipher = parsed["cipher"]
        response.verify_code = parsed["verify_code"]
        response.verify_message = parsed["verify_message"]
        response.output = (result.stdout + result.stderr).strip()

        for pem in parsed["certificates"]:
            try:
                response.peer_certificates.append(CertificateSummary(**CertificateParser.parse_certificate_pem(pem)))
            except ValueError as e:
                logger.warning(f"Skipping unparseable peer certificate: {e}")

        logger.info(
            f"TLS probe {host}:{request.port} (SNI {servername}): "
            f"{response.protocol or 'no session'}, verify={response.verify_code}"
        )
        return response
