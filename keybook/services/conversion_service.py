"""Format conversion service: PEM/DER re-encoding and PKCS#12 bundles."""

import logging

from keybook.models.artifact import ArtifactEncoding, ArtifactKind
from keybook.models.conversion import ConversionResponse, ConvertRequest, PKCS12ExportRequest, PKCS12ExtractRequest
from keybook.services.key_service import KeyService
from keybook.services.openssl_service import PASSIN_ENV, PASSOUT_ENV, OpenSSLService
from keybook.services.parser_service import CertificateParser
from keybook.services.workspace_service import WorkspaceService
from keybook.utils import permissions

logger = logging.getLogger("keybook")

CONVERTIBLE_KINDS = {
    ArtifactKind.CERTIFICATE,
    ArtifactKind.CSR,
    ArtifactKind.PRIVATE_KEY,
    ArtifactKind.ENCRYPTED_PRIVATE_KEY,
    ArtifactKind.PUBLIC_KEY,
}


class ConversionService:
    """Service for converting artifacts between encodings and containers."""

    def __init__(self, workspace: WorkspaceService, openssl_service: OpenSSLService, key_service: KeyService):
        """
        Initialize conversion service.

        Args:
            workspace: Workspace holding the artifacts
            openssl_service: OpenSSL service instance
            key_service: Key service (encryption checks)
        """
        self.workspace = workspace
        self.openssl_service = openssl_service
        self.key_service = key_service

    def to_der(self, request: ConvertRequest) -> ConversionResponse:
        """Re-encode a PEM artifact as DER."""
        return self._convert(request, ArtifactEncoding.PEM, ArtifactEncoding.DER)

    def to_pem(self, request: ConvertRequest) -> ConversionResponse:
        """Re-encode a DER artifact as PEM."""
        return self._convert(request, ArtifactEncoding.DER, ArtifactEncoding.PEM)

    def _convert(
        self, request: ConvertRequest, inform: ArtifactEncoding, outform: ArtifactEncoding
    ) -> ConversionResponse:
        """
        Convert between PEM and DER.

        Raises:
            ValueError: If the source has the wrong encoding or kind, or openssl fails
        """
        kind, encoding = self.workspace.detect(request.name)
        if kind not in CONVERTIBLE_KINDS:
            raise ValueError(f"Cannot convert {kind.value} files between PEM and DER")
        if encoding != inform:
            raise ValueError(f"'{request.name}' is not {inform.value} encoded")

        encrypted = kind == ArtifactKind.ENCRYPTED_PRIVATE_KEY or (
            kind == ArtifactKind.PRIVATE_KEY and self.key_service.is_encrypted(request.name)
        )
        if encrypted and not request.passphrase:
            raise ValueError(f"Key '{request.name}' is encrypted, a passphrase is required")

        out_path = self.workspace.ensure_absent(request.output, request.overwrite)
        command = self.openssl_service.build_convert_command(
            kind, request.name, request.output, inform, outform, encrypted
        )
        secrets = {PASSIN_ENV: request.passphrase} if encrypted else None
        self.openssl_service.execute_or_raise(command, self.workspace.workspace_dir, [out_path], secrets)
        self.workspace.secure(out_path)

        # openssl pkey writes encrypted inputs out unencrypted
        out_kind, out_encoding = CertificateParser.detect_kind(out_path)
        logger.info(f"Converted '{request.name}' ({kind.value}) to {outform.value}: '{request.output}'")
        return ConversionResponse(
            source=request.name,
            outputs=[request.output],
            kind=out_kind,
            encoding=out_encoding,
            openssl_command=command,
        )

    def export_pkcs12(self, request: PKCS12ExportRequest) -> ConversionResponse:
        """
        Bundle a certificate, its key and an optional chain into a PKCS#12 file.

        Raises:
            ValueError: If the key does not match the certificate, or openssl fails
        """
        cert_kind, _ = self.workspace.detect(request.cert_name)
        if cert_kind != ArtifactKind.CERTIFICATE:
            raise ValueError(f"'{request.cert_name}' is not a certificate (detected: {cert_kind.value})")
        if request.chain_name:
            chain_kind, _ = self.workspace.detect(request.chain_name)
            if chain_kind != ArtifactKind.CERTIFICATE:
                raise ValueError(f"'{request.chain_name}' is not a certificate bundle")

        cert = CertificateParser.load_certificate(self.workspace.read_bytes(request.cert_name))
        private_key = self.key_service.load_private_key(request.key_name, request.key_passphrase)
        if not CertificateParser.keys_match(cert.public_key(), private_key):
            raise ValueError(f"Key '{request.key_name}' does not match certificate '{request.cert_name}'")

        encrypted = self.key_service.is_encrypted(request.key_name)
        out_path = self.workspace.ensure_absent(request.output, request.overwrite)
        command = self.openssl_service.build_pkcs12_export_command(
            request.cert_name,
            request.key_name,
            request.output,
            chain_file=request.chain_name,
            friendly_name=request.friendly_name,
            key_encrypted=encrypted,
        )
        secrets = {PASSOUT_ENV: request.export_passphrase}
        if encrypted:
            secrets[PASSIN_ENV] = request.key_passphrase
        self.openssl_service.execute_or_raise(command, self.workspace.workspace_dir, [out_path], secrets)
        out_path.chmod(permissions.PRIVATE_MODE)

        logger.info(f"Exported PKCS#12 bundle '{request.output}'")
        return ConversionResponse(
            source=request.cert_name,
            outputs=[request.output],
            kind=ArtifactKind.PKCS12,
            encoding=ArtifactEncoding.DER,
            openssl_command=command,
        )

    def extract_pkcs12(self, request: PKCS12ExtractRequest) -> ConversionResponse:
        """
        Unpack the certificates and/or private key of a PKCS#12 bundle.

        The key is written unencrypted unless key_passphrase is given.

        Raises:
            ValueError: If no output is requested, the passphrase is wrong, or openssl fails
        """
        if not request.cert_output and not request.key_output:
            raise ValueError("Specify cert_output, key_output or both")
        if request.cert_output and request.cert_output == request.key_output:
            raise ValueError("cert_output and key_output must differ")

        kind, _ = self.workspace.detect(request.name)
        if kind != ArtifactKind.PKCS12:
            raise ValueError(f"'{request.name}' is not a PKCS#12 bundle (expected .p12 or .pfx)")

        outputs = []
        if request.cert_output:
            outputs.append(self.workspace.ensure_absent(request.cert_output, request.overwrite))
        if request.key_output:
            outputs.append(self.workspace.ensure_absent(request.key_output, request.overwrite))

        command = self.openssl_service.build_pkcs12_extract_commands(
            request.name,
            cert_output=request.cert_output,
            key_output=request.key_output,
            encrypt_key=bool(request.key_passphrase),
        )
        secrets = {PASSIN_ENV: request.passphrase}
        if request.key_passphrase:
            secrets[PASSOUT_ENV] = request.key_passphrase
        self.openssl_service.execute_or_raise(command, self.workspace.workspace_dir, outputs, secrets)

        for path in outputs:
            self.workspace.secure(path)

        logger.info(f"Extracted PKCS#12 bundle '{request.name}' -> {', '.join(p.name for p in outputs)}")
        return ConversionResponse(
            source=request.name,
            outputs=[p.name for p in outputs],
            kind=ArtifactKind.PKCS12,
            encoding=ArtifactEncoding.DER,
            openssl_command=command,
        )
