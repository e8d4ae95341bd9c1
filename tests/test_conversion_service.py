"""Tests for format conversion and PKCS#12 bundles."""

import pytest
from cryptography.hazmat.primitives.serialization import Encoding, pkcs12

from keybook.models.artifact import ArtifactEncoding, ArtifactKind
from keybook.models.conversion import ConvertRequest, PKCS12ExportRequest, PKCS12ExtractRequest
from keybook.services.parser_service import CertificateParser
from keybook.utils.file_utils import FileUtils


@pytest.fixture
def server_files(write_artifact, rsa_private_key, make_certificate):
    """A certificate and its key in the workspace."""
    write_artifact("server.crt", make_certificate(rsa_private_key, common_name="server"))
    write_artifact("server.key", rsa_private_key, mode=0o600)
    return "server.crt", "server.key"


@pytest.mark.unit
class TestPKCS12Models:
    """Test PKCS#12 request validation."""

    def test_friendly_name_rejects_control_characters(self):
        """Test the friendly name cannot split the export command."""
        with pytest.raises(ValueError):
            PKCS12ExportRequest(
                cert_name="server.crt",
                key_name="server.key",
                output="server.p12",
                friendly_name="server\nopenssl rand 8",
                export_passphrase="changeit",
            )


@pytest.mark.integration
@pytest.mark.requires_openssl
class TestPEMDERConversion:
    """Test PEM <-> DER re-encoding."""

    def test_certificate_round_trip(self, conversion_service, workspace, server_files):
        """Test a certificate survives PEM -> DER -> PEM."""
        der = conversion_service.to_der(ConvertRequest(name="server.crt", output="server.der"))
        assert der.kind == ArtifactKind.CERTIFICATE
        assert der.encoding == ArtifactEncoding.DER
        assert FileUtils.file_mode(workspace.resolve("server.der")) == 0o644

        pem = conversion_service.to_pem(ConvertRequest(name="server.der", output="copy.crt"))
        assert pem.encoding == ArtifactEncoding.PEM

        original = CertificateParser.load_certificate(workspace.read_bytes("server.crt"))
        copy = CertificateParser.load_certificate(workspace.read_bytes("copy.crt"))
        assert copy == original

    def test_wrong_source_encoding(self, conversion_service, write_artifact, ec_private_key, make_certificate):
        """Test a DER file cannot be converted to DER."""
        write_artifact("c.der", make_certificate(ec_private_key), encoding=Encoding.DER)
        with pytest.raises(ValueError, match="is not PEM encoded"):
            conversion_service.to_der(ConvertRequest(name="c.der", output="c2.der"))

    def test_private_key_stays_private(self, conversion_service, workspace, server_files):
        """Test converted keys get mode 600."""
        response = conversion_service.to_der(ConvertRequest(name="server.key", output="server.key.der"))

        assert response.kind == ArtifactKind.PRIVATE_KEY
        assert FileUtils.file_mode(workspace.resolve("server.key.der")) == 0o600

    def test_encrypted_key_needs_passphrase(self, conversion_service, write_artifact, ec_private_key):
        """Test encrypted keys need their passphrase and come out unencrypted."""
        write_artifact("enc.key", ec_private_key, passphrase="secret123", mode=0o600)

        with pytest.raises(ValueError, match="a passphrase is required"):
            conversion_service.to_der(ConvertRequest(name="enc.key", output="enc.der"))

        response = conversion_service.to_der(ConvertRequest(name="enc.key", output="enc.der", passphrase="secret123"))
        assert response.kind == ArtifactKind.PRIVATE_KEY
        assert "env:KEYBOOK_PASSIN" in response.openssl_command

    def test_public_key(self, conversion_service, write_artifact, ec_private_key):
        """Test public keys convert with -pubin."""
        write_artifact("ec.pub", ec_private_key.public_key())

        response = conversion_service.to_der(ConvertRequest(name="ec.pub", output="ec.pub.der"))

        assert response.kind == ArtifactKind.PUBLIC_KEY
        assert response.encoding == ArtifactEncoding.DER

    def test_unknown_file_cannot_be_converted(self, conversion_service, workspace):
        """Test files of unknown kind are rejected."""
        workspace.write_text("notes.txt", "hello")
        with pytest.raises(ValueError, match="Cannot convert unknown files"):
            conversion_service.to_der(ConvertRequest(name="notes.txt", output="notes.der"))


@pytest.mark.integration
@pytest.mark.requires_openssl
class TestPKCS12:
    """Test PKCS#12 export and extraction."""

    def _export(self, conversion_service, **overrides):
        fields = dict(
            cert_name="server.crt",
            key_name="server.key",
            output="server.p12",
            friendly_name="server",
            export_passphrase="changeit",
        )
        fields.update(overrides)
        return conversion_service.export_pkcs12(PKCS12ExportRequest(**fields))

    def test_export(self, conversion_service, workspace, server_files, rsa_private_key):
        """Test the bundle holds the certificate and key."""
        response = self._export(conversion_service)

        assert response.outputs == ["server.p12"]
        assert "changeit" not in response.openssl_command
        assert FileUtils.file_mode(workspace.resolve("server.p12")) == 0o600

        bundle = pkcs12.load_pkcs12(workspace.read_bytes("server.p12"), b"changeit")
        assert bundle.cert.friendly_name == b"server"
        assert CertificateParser.keys_match(bundle.cert.certificate.public_key(), rsa_private_key)

    def test_export_with_chain(
        self, conversion_service, workspace, write_artifact, server_files, ec_private_key, make_certificate
    ):
        """Test chain certificates are added to the bundle."""
        write_artifact("chain.pem", make_certificate(ec_private_key, common_name="Intermediate", sans=None, ca=True))

        self._export(conversion_service, chain_name="chain.pem")

        bundle = pkcs12.load_pkcs12(workspace.read_bytes("server.p12"), b"changeit")
        assert len(bundle.additional_certs) == 1

    def test_export_mismatched_key(self, conversion_service, write_artifact, server_files, ec_private_key):
        """Test a key that does not belong to the certificate is rejected."""
        write_artifact("other.key", ec_private_key, mode=0o600)
        with pytest.raises(ValueError, match="does not match certificate"):
            self._export(conversion_service, key_name="other.key")

    def test_extract(self, conversion_service, workspace, server_files):
        """Test unpacking certificate and key."""
        self._export(conversion_service)
        request = PKCS12ExtractRequest(
            name="server.p12", passphrase="changeit", cert_output="out.crt", key_output="out.key"
        )

        response = conversion_service.extract_pkcs12(request)

        assert response.outputs == ["out.crt", "out.key"]
        assert workspace.detect("out.crt")[0] == ArtifactKind.CERTIFICATE
        assert workspace.detect("out.key")[0] == ArtifactKind.PRIVATE_KEY
        assert FileUtils.file_mode(workspace.resolve("out.crt")) == 0o644
        assert FileUtils.file_mode(workspace.resolve("out.key")) == 0o600

    def test_extract_encrypted_key(self, conversion_service, workspace, server_files):
        """Test the extracted key can be re-encrypted."""
        self._export(conversion_service)
        request = PKCS12ExtractRequest(
            name="server.p12", passphrase="changeit", key_output="out.key", key_passphrase="secret123"
        )

        conversion_service.extract_pkcs12(request)

        assert workspace.detect("out.key")[0] == ArtifactKind.ENCRYPTED_PRIVATE_KEY

    def test_extract_wrong_passphrase(self, conversion_service, workspace, server_files):
        """Test a wrong passphrase leaves no outputs."""
        self._export(conversion_service)
        request = PKCS12ExtractRequest(name="server.p12", passphrase="wrong", cert_output="out.crt")

        with pytest.raises(ValueError, match="OpenSSL command failed"):
            conversion_service.extract_pkcs12(request)

        assert not workspace.resolve("out.crt").exists()

    def test_extract_needs_an_output(self, conversion_service):
        """Test at least one output must be named."""
        with pytest.raises(ValueError, match="Specify cert_output, key_output or both"):
            conversion_service.extract_pkcs12(PKCS12ExtractRequest(name="server.p12", passphrase="x"))

    def test_extract_outputs_must_differ(self, conversion_service):
        """Test certificate and key outputs cannot collide."""
        request = PKCS12ExtractRequest(name="server.p12", passphrase="x", cert_output="a.pem", key_output="a.pem")
        with pytest.raises(ValueError, match="must differ"):
            conversion_service.extract_pkcs12(request)

    def test_extract_non_bundle(self, conversion_service, server_files):
        """Test only .p12/.pfx files are unpacked."""
        request = PKCS12ExtractRequest(name="server.crt", passphrase="x", cert_output="a.pem")
        with pytest.raises(ValueError, match="is not a PKCS#12 bundle"):
            conversion_service.extract_pkcs12(request)
