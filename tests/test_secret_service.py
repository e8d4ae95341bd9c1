"""Tests for random secret generation."""

import base64
import string

import pytest

from keybook.models.artifact import ArtifactKind
from keybook.models.secret import RandomSecretRequest, SecretEncoding
from keybook.utils.file_utils import FileUtils


@pytest.mark.unit
class TestRandomSecretRequest:
    """Test request limits."""

    @pytest.mark.parametrize("num_bytes", [0, 1025])
    def test_size_limits(self, num_bytes):
        """Test the byte count is bounded."""
        with pytest.raises(ValueError):
            RandomSecretRequest(num_bytes=num_bytes)

    @pytest.mark.parametrize("output", ["api-token.txt", "secret", "token.secret.txt"])
    def test_output_needs_secret_extension(self, output):
        """Test secret files must be named so they are recognised as secrets."""
        with pytest.raises(ValueError, match="Secret files must end in"):
            RandomSecretRequest(output=output)

    def test_secret_extensions_accepted(self):
        """Test both secret extensions are accepted, case-insensitively."""
        assert RandomSecretRequest(output="api.SECRET").output == "api.SECRET"
        assert RandomSecretRequest(output="seed.rand").output == "seed.rand"


@pytest.mark.integration
@pytest.mark.requires_openssl
class TestSecretService:
    """Test `openssl rand` output handling."""

    def test_inline_hex(self, secret_service):
        """Test hex secrets are returned inline."""
        response = secret_service.generate(RandomSecretRequest(num_bytes=16))

        assert len(response.secret) == 32
        assert set(response.secret) <= set(string.hexdigits)
        assert response.output is None
        assert response.openssl_command == "openssl rand -hex 16"

    def test_inline_base64_is_unwrapped(self, secret_service):
        """Test base64 output longer than one line is joined."""
        response = secret_service.generate(RandomSecretRequest(num_bytes=96, encoding=SecretEncoding.BASE64))

        assert "\n" not in response.secret
        assert len(base64.b64decode(response.secret)) == 96

    def test_secret_written_to_file(self, secret_service, workspace):
        """Test secrets written to a file are private and not echoed."""
        request = RandomSecretRequest(num_bytes=32, output="api.secret")

        response = secret_service.generate(request)

        assert response.secret is None
        assert response.output == "api.secret"
        assert FileUtils.file_mode(workspace.resolve("api.secret")) == 0o600
        assert len(workspace.read_text("api.secret").strip()) == 64
        assert workspace.detect("api.secret")[0] == ArtifactKind.SECRET

        with pytest.raises(ValueError, match="File already exists"):
            secret_service.generate(request)

    def test_written_secret_is_audited_as_private(self, secret_service, workspace):
        """Test a written secret is listed as a secret with mode 600 and can be re-secured."""
        secret_service.generate(RandomSecretRequest(output="db.rand"))

        listed = workspace.describe("db.rand")
        assert listed.kind == ArtifactKind.SECRET
        assert listed.mode == "600"
        assert listed.recommended_mode == "600"
        assert listed.permissions_ok is True

        workspace.resolve("db.rand").chmod(0o644)
        assert workspace.describe("db.rand").permissions_ok is False
        assert workspace.apply_permissions("db.rand").mode == "600"

    def test_secrets_differ(self, secret_service):
        """Test consecutive secrets are distinct."""
        first = secret_service.generate(RandomSecretRequest()).secret
        second = secret_service.generate(RandomSecretRequest()).secret
        assert first != second
