"""Certificate service: self-signed certificates, CSR signing, inspection."""

import logging
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

from keybook.models.artifact import ArtifactEncoding, ArtifactKind, VerifyResponse
from keybook.models.certificate import (
    CertResponse,
    CSRSignRequest,
    ExpiryResponse,
    KeySource,
    MatchKeyRequest,
    MatchKeyResponse,
    SelfSignedCertRequest,
    VerifyChainRequest,
)
from keybook.models.key import KeyConfig
from keybook.services.key_service import KeyService
from keybook.services.openssl_service import PASSIN_ENV, OpenSSLService
from keybook.services.parser_service import CertificateParser
from keybook.services.workspace_service import WorkspaceService
from keybook.utils import permissions
from keybook.utils.validators import validate_country_code, validate_san

logger = logging.getLogger("keybook")


class CertificateService:
    """Service for certificate operations."""

    def __init__(
        self,
        workspace: WorkspaceService,
        openssl_service: OpenSSLService,
        key_service: KeyService,
        default_key: Optional[KeyConfig] = None,
    ):
        """
        Initialize certificate service.

        Args:
            workspace: Workspace holding the artifacts
            openssl_service: OpenSSL service instance
            key_service: Key service, used when a request needs a new key
            default_key: Key configuration for requests that name no key
        """
        self.workspace = workspace
        self.openssl_service = openssl_service
        self.key_service = key_service
        self.default_key = default_key or KeyConfig()

    def create_self_signed(self, request: SelfSignedCertRequest) -> CertResponse:
        """
        Create a self-signed certificate, generating a key unless one is named.

        Args:
            request: Self-signed certificate request

        Returns:
            Certificate response

        Raises:
            ValueError: If inputs are invalid, files exist, or openssl fails
        """
        self.validate_subject_and_sans(request.subject, request.sans)
        cert_name = f"{request.name}.crt"
        cert_path = self.workspace.ensure_absent(cert_name, request.overwrite)

        key_name, key_command, created_key = self.prepare_key(request, request.name, request.overwrite)
        encrypted = self.key_service.is_encrypted(key_name)
        if encrypted and not request.key_passphrase:
            raise ValueError(f"Key '{key_name}' is encrypted, a passphrase is required")

        command = self.openssl_service.build_self_signed_command(
            key_name, cert_name, request.subject, request.sans, request.validity_days, encrypted
        )
        secrets = {PASSIN_ENV: request.key_passphrase} if encrypted else None
        outputs = [cert_path, self.workspace.resolve(key_name)] if created_key else [cert_path]
        self.openssl_service.execute_or_raise(command, self.workspace.workspace_dir, outputs, secrets)
        cert_path.chmod(permissions.PUBLIC_MODE)

        logger.info(f"Created self-signed certificate '{cert_name}' for CN={request.subject.common_name}")
        full_command = "\n".join(filter(None, [key_command, command]))
        return self._build_cert_response(cert_name, key_name, full_command)

    def prepare_key(self, source: KeySource, base_name: str, overwrite: bool = False) -> Tuple[str, str, bool]:
        """
        Resolve the key for a certificate or CSR request.

        Returns:
            Tuple of (key file name, key generation command or "", whether the key was created)
        """
        if source.key_name:
            self.key_service.is_encrypted(source.key_name)  # validates it is a private key
            return source.key_name, "", False

        key_name = f"{base_name}.key"
        key_config = source.key or self.default_key
        command = self.key_service.create_key(key_config, key_name, source.key_passphrase, overwrite)
        return key_name, command, True

    def sign_csr(self, request: CSRSignRequest) -> CertResponse:
        """
        Sign a CSR with a CA certificate and key.

        The CSR and the CA certificate must be PEM encoded. DER inputs are
        refused, convert them with `ConversionService.to_pem` first.

        Args:
            request: CSR signing request

        Returns:
            Certificate response

        Raises:
            ValueError: If inputs are invalid, the CA key does not match, or openssl fails
        """
        csr_info = CertificateParser.parse_csr(self.workspace.read_bytes(request.csr_name))
        if not csr_info["signature_valid"]:
            raise ValueError(f"CSR '{request.csr_name}' has an invalid signature")

        ca_cert = CertificateParser.load_certificate(self.workspace.read_bytes(request.ca_cert_name))
        ca_key = self.key_service.load_private_key(request.ca_key_name, request.ca_key_passphrase)
        if not CertificateParser.keys_match(ca_cert.public_key(), ca_key):
            raise ValueError(f"CA key '{request.ca_key_name}' does not match certificate '{request.ca_cert_name}'")
        if not CertificateParser._is_ca(ca_cert):
            logger.warning(f"Signing with '{request.ca_cert_name}', which is not marked CA:TRUE")

        sans = request.sans if request.sans is not None else csr_info["sans"]
        for san in sans:
            validate_san(san)

        cert_path = self.workspace.ensure_absent(request.output, request.overwrite)
        encrypted = self.key_service.is_encrypted(request.ca_key_name)
        for name in (request.csr_name, request.ca_cert_name):
            if self._encoding(name) == ArtifactEncoding.DER:
                raise ValueError(f"'{name}' must be PEM encoded for signing, convert it first")

        serial_number = self.openssl_service.generate_serial_number()
        with tempfile.TemporaryDirectory(prefix="keybook-ext-") as tmp:
            extfile = Path(tmp) / "v3_req.cnf"
            self.openssl_service.generate_extfile(extfile, sans, request.key_usage, request.extended_key_usage)
            command = self.openssl_service.build_sign_csr_command(
                request.csr_name,
                request.ca_cert_name,
                request.ca_key_name,
                request.output,
                serial_number,
                request.validity_days,
                extfile,
                encrypted,
            )
            secrets = {PASSIN_ENV: request.ca_key_passphrase} if encrypted else None
            self.openssl_service.execute_or_raise(command, self.workspace.workspace_dir, [cert_path], secrets)

        cert_path.chmod(permissions.PUBLIC_MODE)
        logger.info(f"Signed CSR '{request.csr_name}' with '{request.ca_cert_name}' -> '{request.output}'")
        return self._build_cert_response(request.output, None, command)

    def inspect(self, name: str) -> CertResponse:
        """
        Parse a certificate (PEM or DER).

        Raises:
            ValueError: If the file is missing or not a certificate
        """
        self._require_certificate(name)
        return self._build_cert_response(name, None, "")

    def to_text(self, name: str) -> str:
        """
        Human-readable dump via `openssl x509 -text`.

        Raises:
            ValueError: If the file is missing, not a certificate, or openssl fails
        """
        self._require_certificate(name)
        command = self.openssl_service.build_text_command(name, self._encoding(name))
        return self.openssl_service.execute_or_raise(command, self.workspace.workspace_dir)

    def check_expiry(self, name: str, days: int) -> ExpiryResponse:
        """
        Check whether a certificate expires within `days` days (`openssl x509 -checkend`).

        Raises:
            ValueError: If the file is missing, not a certificate, or days is negative
        """
        if days < 0:
            raise ValueError("days must not be negative")
        path = self._require_certificate(name)

        command = self.openssl_service.build_checkend_command(name, days * 86400, self._encoding(name))
        result = self.openssl_service.run(command, cwd=self.workspace.workspace_dir)
        # Exit status 1 means "will expire"; anything else is a failure
        if result.returncode not in (0, 1):
            raise ValueError(f"OpenSSL command failed: {result.stderr.strip()}")

        not_after = CertificateParser.load_certificate(path.read_bytes()).not_valid_after_utc
        days_remaining = (not_after - datetime.now(timezone.utc)).days
        return ExpiryResponse(
            name=name,
            days=days,
            expires_within=result.returncode == 1,
            not_after=not_after,
            days_remaining=days_remaining,
            openssl_command=command,
        )

    def verify_chain(self, request: VerifyChainRequest) -> VerifyResponse:
        """
        Verify a certificate against a trusted CA file (`openssl verify`).

        Raises:
            ValueError: If any named file is missing or not a certificate
        """
        self._require_certificate(request.name)
        self._require_certificate(request.ca_name)
        if request.untrusted_name:
            self._require_certificate(request.untrusted_name)

        command = self.openssl_service.build_verify_command(request.name, request.ca_name, request.untrusted_name)
        result = self.openssl_service.run(command, cwd=self.workspace.workspace_dir)
        output = (result.stdout + result.stderr).strip()
        logger.info(f"Verification of '{request.name}' against '{request.ca_name}': {'OK' if result.ok else 'FAILED'}")
        return VerifyResponse(valid=result.ok, output=output, openssl_command=command)

    def match_key(self, request: MatchKeyRequest) -> MatchKeyResponse:
        """
        Check that a certificate and private key form a pair.

        Raises:
            ValueError: If files are missing, of the wrong kind, or the passphrase is wrong
        """
        path = self._require_certificate(request.cert_name)
        cert = CertificateParser.load_certificate(path.read_bytes())
        private_key = self.key_service.load_private_key(request.key_name, request.passphrase)
        return MatchKeyResponse(
            cert_name=request.cert_name,
            key_name=request.key_name,
            matches=CertificateParser.keys_match(cert.public_key(), private_key),
        )

    def _require_certificate(self, name: str) -> Path:
        path = self.workspace.require(name)
        kind, _ = CertificateParser.detect_kind(path)
        if kind != ArtifactKind.CERTIFICATE:
            raise ValueError(f"'{name}' is not a certificate (detected: {kind.value})")
        return path

    def _encoding(self, name: str) -> ArtifactEncoding:
        _, encoding = self.workspace.detect(name)
        return encoding or ArtifactEncoding.PEM

    @staticmethod
    def validate_subject_and_sans(subject, sans: list[str]) -> None:
        if subject.country:
            validate_country_code(subject.country)
        for san in sans:
            validate_san(san)

    def _build_cert_response(self, name: str, key_name: Optional[str], command: str) -> CertResponse:
        path = self.workspace.require(name)
        try:
            info = CertificateParser.certificate_to_dict(CertificateParser.load_certificate(path.read_bytes()))
        except ValueError as e:
            raise ValueError(f"Failed to parse certificate '{name}': {e}")
        return CertResponse(name=name, key_name=key_name, openssl_command=command, **info)
