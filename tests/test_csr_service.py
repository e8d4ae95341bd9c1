"""Tests for CSR service."""

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import NameOID

from keybook.models.csr import CSRCreateRequest
from keybook.models.key import KeyGenerateRequest
from keybook.utils.file_utils import FileUtils


@pytest.mark.integration
@pytest.mark.requires_openssl
class TestCSRService:
    """Test CSR creation, inspection and verification."""

    def test_create_csr_with_new_key(self, csr_service, workspace, sample_subject):
        """Test a key is generated alongside the CSR."""
        request = CSRCreateRequest(name="app", subject=sample_subject, sans=["www.example.com", "example.com"])

        csr = csr_service.create_csr(request)

        assert csr.name == "app.csr"
        assert csr.key_name == "app.key"
        assert csr.subject["CN"] == "www.example.com"
        assert csr.subject["C"] == "US"
        assert csr.sans == ["www.example.com", "example.com"]
        assert csr.signature_valid is True
        assert len(csr.openssl_command.split("\n")) == 2
        assert FileUtils.file_mode(workspace.resolve("app.csr")) == 0o644
        assert FileUtils.file_mode(workspace.resolve("app.key")) == 0o600

    def test_create_csr_for_existing_key(self, csr_service, key_service, sample_subject, ec_key_config):
        """Test the CSR public key is the named key's."""
        key = key_service.generate_key(KeyGenerateRequest(name="existing.key", **ec_key_config.model_dump()))
        request = CSRCreateRequest(name="app", subject=sample_subject, key_name="existing.key")

        csr = csr_service.create_csr(request)

        assert csr.key_name == "existing.key"
        assert csr.public_key_fingerprint_sha256 == key.public_key_fingerprint_sha256
        assert csr.openssl_command == (
            "openssl req -new -key existing.key -out app.csr -subj '/C=US/O=Example Inc/CN=www.example.com'"
        )

    def test_create_csr_with_encrypted_key(self, csr_service, key_service, sample_subject, ec_key_config):
        """Test the key passphrase is passed through the environment."""
        key_service.create_key(ec_key_config, "enc.key", passphrase="secret123")
        request = CSRCreateRequest(
            name="app", subject=sample_subject, key_name="enc.key", key_passphrase="secret123"
        )

        csr = csr_service.create_csr(request)

        assert "-passin env:KEYBOOK_PASSIN" in csr.openssl_command
        assert "secret123" not in csr.openssl_command

    def test_existing_csr_is_not_replaced(self, csr_service, workspace, sample_subject):
        """Test an existing CSR blocks creation."""
        workspace.write_text("app.csr", "placeholder")
        with pytest.raises(ValueError, match="File already exists: app.csr"):
            csr_service.create_csr(CSRCreateRequest(name="app", subject=sample_subject))

    def test_inspect_der_csr(self, csr_service, write_artifact, ec_private_key):
        """Test DER CSRs are parsed and verified."""
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "der.example.com")]))
            .sign(ec_private_key, hashes.SHA256())
        )
        write_artifact("request.der", csr, encoding=serialization.Encoding.DER)

        response = csr_service.inspect("request.der")
        assert response.subject["CN"] == "der.example.com"
        assert response.sans == []

        result = csr_service.verify("request.der")
        assert result.valid is True
        assert result.openssl_command == "openssl req -inform DER -in request.der -noout -verify"

    def test_verify_csr(self, csr_service, sample_subject):
        """Test verifying a freshly created CSR."""
        csr_service.create_csr(CSRCreateRequest(name="app", subject=sample_subject))

        result = csr_service.verify("app.csr")

        assert result.valid is True
        assert result.openssl_command == "openssl req -inform PEM -in app.csr -noout -verify"

    def test_inspect_non_csr_fails(self, csr_service, write_artifact, ec_private_key):
        """Test keys are not accepted as CSRs."""
        write_artifact("a.key", ec_private_key, mode=0o600)
        with pytest.raises(ValueError, match="is not a CSR"):
            csr_service.inspect("a.key")
