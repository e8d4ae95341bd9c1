"""Private and public key service."""

import logging
import os
from pathlib import Path
from typing import List, Optional

from cryptography.exceptions import UnsupportedAlgorithm

from keybook.models.artifact import ArtifactKind
from keybook.models.key import (
    DecryptKeyRequest,
    KeyConfig,
    KeyGenerateRequest,
    KeyResponse,
    PKCS8Request,
    PublicKeyRequest,
)
from keybook.services.openssl_service import PASSIN_ENV, PASSOUT_ENV, OpenSSLService
from keybook.services.parser_service import CertificateParser
from keybook.services.workspace_service import WorkspaceService
from keybook.utils import permissions
from keybook.utils.file_utils import FileUtils

logger = logging.getLogger("keybook")

PRIVATE_KEY_KINDS = (ArtifactKind.PRIVATE_KEY, ArtifactKind.ENCRYPTED_PRIVATE_KEY)


class KeyService:
    """Service for key generation, extraction and conversion."""

    def __init__(self, workspace: WorkspaceService, openssl_service: OpenSSLService):
        """
        Initialize key service.

        Args:
            workspace: Workspace holding the key files
            openssl_service: OpenSSL service instance
        """
        self.workspace = workspace
        self.openssl_service = openssl_service

    def generate_key(self, request: KeyGenerateRequest) -> KeyResponse:
        """
        Generate a new private key.

        Args:
            request: Key generation request

        Returns:
            Key response with parsed key details

        Raises:
            ValueError: If the file exists or openssl fails
        """
        key_config = KeyConfig(algorithm=request.algorithm, key_size=request.key_size, curve=request.curve)
        command = self.create_key(key_config, request.name, request.passphrase, request.overwrite)
        response = self.inspect_key(request.name, request.passphrase)
        response.openssl_command = command
        logger.info(f"Generated {key_config.algorithm.value} key '{request.name}'")
        return response

    def create_key(
        self, key_config: KeyConfig, name: str, passphrase: Optional[str] = None, overwrite: bool = False
    ) -> str:
        """
        Run key generation and lock the file down to mode 600.

        Also used by the certificate and CSR services when a request asks
        for a new key. The key is written under a temporary name and only
        replaces an existing file once openssl has succeeded.

        Returns:
            The masked openssl command
        """
        key_path = self.workspace.ensure_absent(name, overwrite)
        partial_name = f"{name}.partial"
        partial_path = self.workspace.workspace_dir / partial_name
        FileUtils.remove_quietly(partial_path)

        encrypt = bool(passphrase)
        secrets = {PASSOUT_ENV: passphrase} if passphrase else None
        self.openssl_service.execute_or_raise(
            self.openssl_service.build_key_gen_command(key_config, partial_name, encrypt=encrypt),
            self.workspace.workspace_dir,
            [partial_path],
            secrets,
        )

        partial_path.chmod(permissions.PRIVATE_MODE)
        os.replace(partial_path, key_path)
        command = self.openssl_service.build_key_gen_command(key_config, name, encrypt=encrypt)
        return self.openssl_service.mask_secrets(command)

    def extract_public_key(self, name: str, request: PublicKeyRequest) -> KeyResponse:
        """
        Write the public half of a private key as a PEM SubjectPublicKeyInfo.

        Raises:
            ValueError: If the key is missing, encrypted without passphrase, or openssl fails
        """
        self._require_private_key(name)
        encrypted = self._is_encrypted(name)
        if encrypted and not request.passphrase:
            raise ValueError(f"Key '{name}' is encrypted, a passphrase is required")

        out_path = self.workspace.ensure_absent(request.output, request.overwrite)
        command = self.openssl_service.build_public_key_command(name, request.output, encrypted)
        secrets = {PASSIN_ENV: request.passphrase} if encrypted else None
        self.openssl_service.execute_or_raise(command, self.workspace.workspace_dir, [out_path], secrets)
        out_path.chmod(permissions.PUBLIC_MODE)

        public_key = CertificateParser.load_public_key(out_path.read_bytes())
        key_info = CertificateParser._extract_key_info(public_key)
        logger.info(f"Extracted public key of '{name}' to '{request.output}'")
        return KeyResponse(
            name=request.output,
            algorithm=key_info["algorithm"],
            key_size=key_info["key_size"],
            curve=key_info["curve"],
            public_key_fingerprint_sha256=CertificateParser.public_key_fingerprint(public_key),
            mode=permissions.format_mode(permissions.PUBLIC_MODE),
            openssl_command=command,
        )

    def to_pkcs8(self, name: str, request: PKCS8Request) -> KeyResponse:
        """
        Convert a private key to PKCS#8, encrypted when new_passphrase is given.

        Raises:
            ValueError: If the key is missing, encrypted without passphrase, or openssl fails
        """
        self._require_private_key(name)
        encrypted = self._is_encrypted(name)
        if encrypted and not request.passphrase:
            raise ValueError(f"Key '{name}' is encrypted, a passphrase is required")

        out_path = self.workspace.ensure_absent(request.output, request.overwrite)
        command = self.openssl_service.build_pkcs8_command(
            name, request.output, encrypted=encrypted, encrypt_output=bool(request.new_passphrase)
        )
        secrets = {}
        if encrypted:
            secrets[PASSIN_ENV] = request.passphrase
        if request.new_passphrase:
            secrets[PASSOUT_ENV] = request.new_passphrase
        self.openssl_service.execute_or_raise(command, self.workspace.workspace_dir, [out_path], secrets)
        out_path.chmod(permissions.PRIVATE_MODE)

        response = self.inspect_key(request.output, request.new_passphrase)
        response.openssl_command = command
        return response

    def remove_passphrase(self, name: str, request: DecryptKeyRequest) -> KeyResponse:
        """
        Write an unencrypted copy of an encrypted key.

        Raises:
            ValueError: If the key is not encrypted, the passphrase is wrong, or openssl fails
        """
        self._require_private_key(name)
        if not self._is_encrypted(name):
            raise ValueError(f"Key '{name}' is not encrypted")

        out_path = self.workspace.ensure_absent(request.output, request.overwrite)
        command = self.openssl_service.build_decrypt_key_command(name, request.output)
        secrets = {PASSIN_ENV: request.passphrase}
        self.openssl_service.execute_or_raise(command, self.workspace.workspace_dir, [out_path], secrets)
        out_path.chmod(permissions.PRIVATE_MODE)

        logger.warning(f"Wrote unencrypted copy of '{name}' to '{request.output}'")
        response = self.inspect_key(request.output)
        response.openssl_command = command
        return response

    def inspect_key(self, name: str, passphrase: Optional[str] = None) -> KeyResponse:
        """
        Parse a private key file.

        An encrypted key without a passphrase is reported as encrypted,
        without algorithm details.

        Raises:
            ValueError: If the file is not a private key or the passphrase is wrong
        """
        path = self._require_private_key(name)
        encrypted = self._is_encrypted(name)
        mode = permissions.format_mode(FileUtils.file_mode(path))

        if encrypted and not passphrase:
            return KeyResponse(name=name, encrypted=True, mode=mode)

        try:
            private_key = CertificateParser.load_private_key(path.read_bytes(), passphrase if encrypted else None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            logger.error(f"Failed to load key '{name}': {e}")
            raise ValueError(f"Failed to load private key '{name}': incorrect passphrase or unsupported key")

        info = CertificateParser.describe_key(private_key)
        return KeyResponse(
            name=name,
            algorithm=info["algorithm"],
            key_size=info["key_size"],
            curve=info["curve"],
            encrypted=encrypted,
            public_key_fingerprint_sha256=info["public_key_fingerprint_sha256"],
            mode=mode,
        )

    def list_keys(self) -> List[KeyResponse]:
        """List every private key in the workspace (encrypted keys without details)."""
        keys = []
        for workspace_file in self.workspace.list_files():
            if workspace_file.kind in PRIVATE_KEY_KINDS:
                try:
                    keys.append(self.inspect_key(workspace_file.name))
                except ValueError as e:
                    logger.warning(f"Skipping unreadable key '{workspace_file.name}': {e}")
        return keys

    def load_private_key(self, name: str, passphrase: Optional[str] = None):
        """
        Load a workspace private key as a cryptography object.

        Raises:
            ValueError: If the key is missing, encrypted without passphrase, or the passphrase is wrong
        """
        path = self._require_private_key(name)
        if self._is_encrypted(name) and not passphrase:
            raise ValueError(f"Key '{name}' is encrypted, a passphrase is required")
        try:
            return CertificateParser.load_private_key(path.read_bytes(), passphrase)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            logger.error(f"Failed to load key '{name}': {e}")
            raise ValueError(f"Failed to load private key '{name}': incorrect passphrase or unsupported key")

    def is_encrypted(self, name: str) -> bool:
        """True if the named workspace key is passphrase protected."""
        self._require_private_key(name)
        return self._is_encrypted(name)

    def _require_private_key(self, name: str) -> Path:
        path = self.workspace.require(name)
        kind, _ = CertificateParser.detect_kind(path)
        if kind not in PRIVATE_KEY_KINDS:
            raise ValueError(f"'{name}' is not a private key (detected: {kind.value})")
        return path

    def _is_encrypted(self, name: str) -> bool:
        path = self.workspace.require(name)
        kind, _ = CertificateParser.detect_kind(path)
        if kind == ArtifactKind.ENCRYPTED_PRIVATE_KEY:
            return True
        # Traditional PEM keys carry encryption in a header rather than the label
        return b"Proc-Type: 4,ENCRYPTED" in path.read_bytes()

