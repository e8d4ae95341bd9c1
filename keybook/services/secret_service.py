"""Random secret generation service."""

import logging

from keybook.models.secret import RandomSecretRequest, RandomSecretResponse
from keybook.services.openssl_service import OpenSSLService
from keybook.services.workspace_service import WorkspaceService
from keybook.utils import permissions

logger = logging.getLogger("keybook")


class SecretService:
    """Random bytes via `openssl rand`, returned inline or written to the workspace."""

    def __init__(self, workspace: WorkspaceService, openssl_service: OpenSSLService):
        self.workspace = workspace
        self.openssl_service = openssl_service

    def generate(self, request: RandomSecretRequest) -> RandomSecretResponse:
        """
        Generate a random secret.

        With an output name the secret is written to the workspace (mode 600)
        and not echoed back.

        Raises:
            ValueError: If the output exists or openssl fails
        """
        cwd = self.workspace.workspace_dir

        if request.output is None:
            command = self.openssl_service.build_rand_command(request.num_bytes, request.encoding)
            stdout = self.openssl_service.execute_or_raise(command, cwd)
            # base64 output wraps at 64 columns
            secret = "".join(stdout.split())
            return RandomSecretResponse(
                num_bytes=request.num_bytes,
                encoding=request.encoding,
                secret=secret,
                openssl_command=command,
            )

        out_path = self.workspace.ensure_absent(request.output, request.overwrite)
        command = self.openssl_service.build_rand_command(request.num_bytes, request.encoding, request.output)
        self.openssl_service.execute_or_raise(command, cwd, [out_path])
        out_path.chmod(permissions.PRIVATE_MODE)

        logger.info(f"Wrote {request.num_bytes} random bytes ({request.encoding.value}) to '{request.output}'")
        return RandomSecretResponse(
            num_bytes=request.num_bytes,
            encoding=request.encoding,
            output=request.output,
            openssl_command=command,
        )
