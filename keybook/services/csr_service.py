"""CSR (Certificate Signing Request) service."""

import logging

from keybook.models.artifact import ArtifactEncoding, ArtifactKind, VerifyResponse
from keybook.models.csr import CSRCreateRequest, CSRResponse
from keybook.services.cert_service import CertificateService
from keybook.services.openssl_service import PASSIN_ENV, OpenSSLService
from keybook.services.parser_service import CertificateParser
from keybook.services.workspace_service import WorkspaceService
from keybook.utils import permissions

logger = logging.getLogger("keybook")


class CSRService:
    """Service for CSR operations."""

    def __init__(
        self,
        workspace: WorkspaceService,
        openssl_service: OpenSSLService,
        cert_service: CertificateService,
    ):
        """
        Initialize CSR service.

        Args:
            workspace: Workspace holding the artifacts
            openssl_service: OpenSSL service instance
            cert_service: Certificate service (shared key preparation and validation)
        """
        self.workspace = workspace
        self.openssl_service = openssl_service
        self.cert_service = cert_service

    def create_csr(self, request: CSRCreateRequest) -> CSRResponse:
        """
        Create a CSR, generating a key unless one is named.

        Args:
            request: CSR creation request

        Returns:
            CSR response

        Raises:
            ValueError: If inputs are invalid, files exist, or openssl fails
        """
        self.cert_service.validate_subject_and_sans(request.subject, request.sans)
        csr_name = f"{request.name}.csr"
        csr_path = self.workspace.ensure_absent(csr_name, request.overwrite)

        key_name, key_command, created_key = self.cert_service.prepare_key(request, request.name, request.overwrite)
        encrypted = self.cert_service.key_service.is_encrypted(key_name)
        if encrypted and not request.key_passphrase:
            raise ValueError(f"Key '{key_name}' is encrypted, a passphrase is required")

        command = self.openssl_service.build_csr_command(key_name, csr_name, request.subject, request.sans, encrypted)
        secrets = {PASSIN_ENV: request.key_passphrase} if encrypted else None
        outputs = [csr_path, self.workspace.resolve(key_name)] if created_key else [csr_path]
        self.openssl_service.execute_or_raise(command, self.workspace.workspace_dir, outputs, secrets)
        csr_path.chmod(permissions.PUBLIC_MODE)

        logger.info(f"CSR created successfully: {csr_name}")
        response = self.inspect(csr_name)
        response.key_name = key_name
        response.openssl_command = "\n".join(filter(None, [key_command, command]))
        return response

    def inspect(self, name: str) -> CSRResponse:
        """
        Parse a CSR (PEM or DER).

        Raises:
            ValueError: If the file is missing or not a CSR
        """
        self._require_csr(name)
        info = CertificateParser.parse_csr(self.workspace.read_bytes(name))
        return CSRResponse(name=name, **info)

    def verify(self, name: str) -> VerifyResponse:
        """
        Check the CSR self-signature with `openssl req -verify`.

        Raises:
            ValueError: If the file is missing or not a CSR
        """
        encoding = self._require_csr(name)
        command = self.openssl_service.build_csr_verify_command(name, encoding)
        result = self.openssl_service.run(command, cwd=self.workspace.workspace_dir)
        return VerifyResponse(
            valid=result.ok,
            output=(result.stdout + result.stderr).strip(),
            openssl_command=command,
        )

    def _require_csr(self, name: str) -> ArtifactEncoding:
        kind, encoding = self.workspace.detect(name)
        if kind != ArtifactKind.CSR:
            raise ValueError(f"'{name}' is not a CSR (detected: {kind.value})")
        return encoding
