"""Tests for Parser service."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ed25519
from cryptography.x509.oid import NameOID

from keybook.models.artifact import ArtifactEncoding, ArtifactKind
from keybook.services.parser_service import CertificateParser

PEM = serialization.Encoding.PEM
DER = serialization.Encoding.DER


def _csr(key, common_name="www.example.com", sans=("www.example.com",)):
    builder = x509.CertificateSigningRequestBuilder().subject_name(
        x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    )
    if sans:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(san) for san in sans]), critical=False
        )
    return builder.sign(key, hashes.SHA256())


def _private_bytes(key, encoding, passphrase=None, fmt=serialization.PrivateFormat.PKCS8):
    if passphrase:
        protection = serialization.BestAvailableEncryption(passphrase)
    else:
        protection = serialization.NoEncryption()
    return key.private_bytes(encoding, fmt, protection)


@pytest.mark.unit
class TestDetectKind:
    """Test artifact kind detection."""

    def _detect(self, tmp_path: Path, name: str, data: bytes):
        path = tmp_path / name
        path.write_bytes(data)
        return CertificateParser.detect_kind(path)

    def test_certificate_pem_and_der(self, tmp_path, ec_private_key, make_certificate):
        """Test certificates in both encodings."""
        cert = make_certificate(ec_private_key)
        assert self._detect(tmp_path, "c.crt", cert.public_bytes(PEM)) == (
            ArtifactKind.CERTIFICATE,
            ArtifactEncoding.PEM,
        )
        assert self._detect(tmp_path, "c.der", cert.public_bytes(DER)) == (
            ArtifactKind.CERTIFICATE,
            ArtifactEncoding.DER,
        )

    def test_csr_pem_and_der(self, tmp_path, ec_private_key):
        """Test CSRs in both encodings."""
        csr = _csr(ec_private_key)
        assert self._detect(tmp_path, "r.csr", csr.public_bytes(PEM)) == (ArtifactKind.CSR, ArtifactEncoding.PEM)
        assert self._detect(tmp_path, "r.der", csr.public_bytes(DER)) == (ArtifactKind.CSR, ArtifactEncoding.DER)

    def test_private_keys(self, tmp_path, ec_private_key):
        """Test PKCS#8 and traditional private keys."""
        pkcs8 = _private_bytes(ec_private_key, PEM)
        traditional = _private_bytes(ec_private_key, PEM, fmt=serialization.PrivateFormat.TraditionalOpenSSL)
        der = _private_bytes(ec_private_key, DER)

        assert self._detect(tmp_path, "a.key", pkcs8) == (ArtifactKind.PRIVATE_KEY, ArtifactEncoding.PEM)
        assert self._detect(tmp_path, "b.key", traditional) == (ArtifactKind.PRIVATE_KEY, ArtifactEncoding.PEM)
        assert self._detect(tmp_path, "c.der", der) == (ArtifactKind.PRIVATE_KEY, ArtifactEncoding.DER)

    def test_encrypted_private_keys(self, tmp_path, ec_private_key):
        """Test encrypted PKCS#8 keys in both encodings."""
        pem = _private_bytes(ec_private_key, PEM, passphrase=b"secret")
        der = _private_bytes(ec_private_key, DER, passphrase=b"secret")

        assert self._detect(tmp_path, "a.key", pem) == (ArtifactKind.ENCRYPTED_PRIVATE_KEY, ArtifactEncoding.PEM)
        assert self._detect(tmp_path, "a.der", der) == (ArtifactKind.ENCRYPTED_PRIVATE_KEY, ArtifactEncoding.DER)

    def test_public_keys(self, tmp_path, rsa_private_key):
        """Test SubjectPublicKeyInfo in both encodings."""
        public_key = rsa_private_key.public_key()
        spki = serialization.PublicFormat.SubjectPublicKeyInfo
        assert self._detect(tmp_path, "a.pub", public_key.public_bytes(PEM, spki)) == (
            ArtifactKind.PUBLIC_KEY,
            ArtifactEncoding.PEM,
        )
        assert self._detect(tmp_path, "a.der", public_key.public_bytes(DER, spki)) == (
            ArtifactKind.PUBLIC_KEY,
            ArtifactEncoding.DER,
        )

    def test_pkcs12_and_secret_by_extension(self, tmp_path):
        """Test containers recognized by file extension."""
        assert self._detect(tmp_path, "bundle.p12", b"\x30\x82") == (ArtifactKind.PKCS12, ArtifactEncoding.DER)
        assert self._detect(tmp_path, "bundle.PFX", b"\x30\x82") == (ArtifactKind.PKCS12, ArtifactEncoding.DER)
        assert self._detect(tmp_path, "token.secret", b"0123abcd") == (ArtifactKind.SECRET, None)

    def test_unknown_files(self, tmp_path):
        """Test empty and unrecognized files."""
        assert self._detect(tmp_path, "empty.pem", b"") == (ArtifactKind.UNKNOWN, None)
        assert self._detect(tmp_path, "notes.txt", b"not a certificate") == (
            ArtifactKind.UNKNOWN,
            ArtifactEncoding.BINARY,
        )
        assert self._detect(tmp_path, "odd.pem", b"-----BEGIN DH PARAMETERS-----\n") == (
            ArtifactKind.UNKNOWN,
            ArtifactEncoding.PEM,
        )


@pytest.mark.unit
class TestCertificateParser:
    """Test certificate parser functionality."""

    def test_certificate_to_dict(self, rsa_private_key, make_certificate):
        """Test the displayed certificate fields."""
        cert = make_certificate(rsa_private_key, common_name="www.example.com")

        info = CertificateParser.certificate_to_dict(cert)

        assert info["subject"]["CN"] == "www.example.com"
        assert info["subject"]["O"] is None
        assert info["sans"] == ["www.example.com", "10.0.0.1"]
        assert info["public_key_algorithm"] == "RSA"
        assert info["public_key_size"] == 2048
        assert info["is_ca"] is False
        assert info["self_signed"] is True
        assert info["key_usage"] == ["digitalSignature", "keyEncipherment"]
        assert info["extended_key_usage"] == ["serverAuth"]
        assert info["validity_status"] == "success"
        assert info["serial_number"] == format(cert.serial_number, "X")

    def test_fingerprint_format(self, ec_private_key, make_certificate):
        """Test the SHA-256 fingerprint is upper-case colon hex."""
        cert = make_certificate(ec_private_key)
        fingerprint = CertificateParser.certificate_to_dict(cert)["fingerprint_sha256"]

        assert fingerprint == cert.fingerprint(hashes.SHA256()).hex(":").upper()
        assert len(fingerprint.split(":")) == 32

    def test_ca_certificate(self, ec_private_key, make_certificate):
        """Test CA flag and curve name."""
        cert = make_certificate(ec_private_key, common_name="Root", sans=None, ca=True)

        info = CertificateParser.certificate_to_dict(cert)

        assert info["is_ca"] is True
        assert info["sans"] == []
        assert info["public_key_curve"] == "P-256"

    def test_parse_certificate_file(self, tmp_path, ec_private_key, make_certificate):
        """Test parsing a DER certificate from disk."""
        path = tmp_path / "c.der"
        path.write_bytes(make_certificate(ec_private_key).public_bytes(DER))

        info = CertificateParser.parse_certificate(path)

        assert info["subject"]["CN"] == "www.example.com"

    def test_parse_nonexistent_certificate_fails(self):
        """Test parsing nonexistent certificate fails."""
        with pytest.raises(FileNotFoundError):
            CertificateParser.parse_certificate(Path("/nonexistent/cert.crt"))

    def test_parse_invalid_pem_fails(self):
        """Test invalid PEM content is rejected."""
        with pytest.raises(ValueError, match="Failed to parse certificate"):
            CertificateParser.parse_certificate_pem("-----BEGIN CERTIFICATE-----\nnope\n-----END CERTIFICATE-----\n")

    def test_parse_csr(self, ec_private_key):
        """Test CSR parsing."""
        csr = _csr(ec_private_key, sans=("www.example.com", "example.com"))

        info = CertificateParser.parse_csr(csr.public_bytes(PEM))

        assert info["subject"]["CN"] == "www.example.com"
        assert info["sans"] == ["www.example.com", "example.com"]
        assert info["public_key_algorithm"] == "ECDSA"
        assert info["signature_valid"] is True
        assert info["public_key_fingerprint_sha256"] == CertificateParser.public_key_fingerprint(
            ec_private_key.public_key()
        )

    def test_describe_ed25519_key(self):
        """Test Ed25519 keys have no size or curve."""
        info = CertificateParser.describe_key(ed25519.Ed25519PrivateKey.generate())
        assert info["algorithm"] == "Ed25519"
        assert info["key_size"] is None
        assert info["curve"] is None

    def test_keys_match(self, rsa_private_key, ec_private_key, make_certificate):
        """Test certificate/key pairing."""
        cert = make_certificate(rsa_private_key)
        assert CertificateParser.keys_match(cert.public_key(), rsa_private_key)
        assert not CertificateParser.keys_match(cert.public_key(), ec_private_key)

    def test_split_pem_bundle(self, ec_private_key, rsa_private_key, make_certificate):
        """Test splitting a bundle into individual certificates."""
        first = make_certificate(ec_private_key).public_bytes(PEM).decode()
        second = make_certificate(rsa_private_key).public_bytes(PEM).decode()

        parts = CertificateParser.split_pem_bundle("noise\n" + first + "more noise\n" + second)

        assert len(parts) == 2
        assert parts[0] == first.strip()

    def test_get_validity_status_valid(self):
        """Test validity status for valid certificate."""
        now = datetime.now()
        status_class, status_text = CertificateParser.get_validity_status(
            now - timedelta(days=1), now + timedelta(days=100)
        )
        assert status_class == "success"
        assert status_text == "Valid"

    def test_get_validity_status_expiring_soon(self):
        """Test validity status for expiring certificate."""
        now = datetime.now()
        status_class, status_text = CertificateParser.get_validity_status(
            now - timedelta(days=1), now + timedelta(days=15, hours=1)
        )
        assert status_class == "warning"
        assert status_text == "Expires in 15 days"

    def test_get_validity_status_expired(self):
        """Test validity status for expired certificate."""
        now = datetime.now()
        status_class, status_text = CertificateParser.get_validity_status(
            now - timedelta(days=100), now - timedelta(days=1)
        )
        assert status_class == "danger"
        assert status_text == "Expired"

    def test_get_validity_status_not_yet_valid(self):
        """Test validity status for a certificate from the future."""
        now = datetime.now()
        status_class, status_text = CertificateParser.get_validity_status(
            now + timedelta(days=1), now + timedelta(days=100)
        )
        assert status_class == "warning"
        assert status_text == "Not yet valid"
