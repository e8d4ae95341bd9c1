"""Pytest configuration and shared fixtures."""

import ipaddress
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from fastapi.testclient import TestClient

from keybook.models.certificate import Subject
from keybook.models.config import AuthSettings
from keybook.models.key import ECDSACurve, KeyAlgorithm, KeyConfig
from keybook.services.auth_service import AuthService
from keybook.services.cert_service import CertificateService
from keybook.services.conversion_service import ConversionService
from keybook.services.csr_service import CSRService
from keybook.services.key_service import KeyService
from keybook.services.openssl_service import OpenSSLService
from keybook.services.secret_service import SecretService
from keybook.services.tls_service import TLSService
from keybook.services.workspace_service import WorkspaceService


@pytest.fixture(scope="session")
def test_data_dir():
    """Create a temporary directory for test data."""
    temp_dir = tempfile.mkdtemp(prefix="keybook_test_")
    yield Path(temp_dir)
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def workspace_dir(test_data_dir):
    """Create a fresh workspace directory for each test."""
    ws_dir = test_data_dir / f"workspace_{datetime.now().timestamp()}"
    yield ws_dir
    if ws_dir.exists():
        shutil.rmtree(ws_dir, ignore_errors=True)


@pytest.fixture
def config_path(workspace_dir):
    """config.yaml location outside the workspace, for the auth service."""
    return workspace_dir.parent / f"{workspace_dir.name}_config.yaml"


@pytest.fixture
def workspace(workspace_dir):
    """Create workspace service for the test directory."""
    return WorkspaceService(workspace_dir)


@pytest.fixture
def openssl_service():
    """Create OpenSSL service instance."""
    return OpenSSLService()


@pytest.fixture
def key_service(workspace, openssl_service):
    """Create key service instance."""
    return KeyService(workspace, openssl_service)


@pytest.fixture
def cert_service(workspace, openssl_service, key_service):
    """Create certificate service instance. New keys default to ECDSA P-256 for speed."""
    return CertificateService(
        workspace, openssl_service, key_service, default_key=KeyConfig(algorithm=KeyAlgorithm.ECDSA)
    )


@pytest.fixture
def csr_service(workspace, openssl_service, cert_service):
    """Create CSR service instance."""
    return CSRService(workspace, openssl_service, cert_service)


@pytest.fixture
def secret_service(workspace, openssl_service):
    """Create secret service instance."""
    return SecretService(workspace, openssl_service)


@pytest.fixture
def conversion_service(workspace, openssl_service, key_service):
    """Create conversion service instance."""
    return ConversionService(workspace, openssl_service, key_service)


@pytest.fixture
def tls_service(workspace, openssl_service):
    """Create TLS service instance."""
    return TLSService(workspace, openssl_service, timeout=5)


@pytest.fixture
def sample_subject():
    """Create a sample certificate subject."""
    return Subject(common_name="www.example.com", organization="Example Inc", country="US")


@pytest.fixture
def ec_key_config():
    """ECDSA P-256 key configuration."""
    return KeyConfig(algorithm=KeyAlgorithm.ECDSA, curve=ECDSACurve.P256)


# ---------------------------------------------------------------------------
# In-memory keys and certificates (no openssl needed)
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_private_key():
    """RSA 2048 private key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ec_private_key():
    """ECDSA P-256 private key."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def make_certificate():
    """Factory building certificates with the cryptography builder."""

    def _make(
        key,
        common_name="www.example.com",
        sans=("www.example.com", "10.0.0.1"),
        ca=False,
        days=365,
        issuer_key=None,
        issuer_name=None,
    ):
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
        now = datetime.now(timezone.utc)
        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer_name or subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(now + timedelta(days=days))
            .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        )
        if sans:
            names = []
            for san in sans:
                try:
                    names.append(x509.IPAddress(ipaddress.ip_address(san)))
                except ValueError:
                    names.append(x509.DNSName(san))
            builder = builder.add_extension(x509.SubjectAlternativeName(names), critical=False)
        if not ca:
            builder = builder.add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=True,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            builder = builder.add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        return builder.sign(issuer_key or key, hashes.SHA256())

    return _make


@pytest.fixture
def write_artifact(workspace):
    """Factory writing certificates, CSRs, keys or raw bytes into the workspace."""

    def _write(name, obj, encoding=serialization.Encoding.PEM, passphrase=None, mode=0o644):
        if isinstance(obj, bytes):
            data = obj
        elif isinstance(obj, (x509.Certificate, x509.CertificateSigningRequest)):
            data = obj.public_bytes(encoding)
        elif hasattr(obj, "private_bytes"):
            if passphrase:
                protection = serialization.BestAvailableEncryption(passphrase.encode("utf-8"))
            else:
                protection = serialization.NoEncryption()
            data = obj.private_bytes(encoding, serialization.PrivateFormat.PKCS8, protection)
        else:
            data = obj.public_bytes(encoding, serialization.PublicFormat.SubjectPublicKeyInfo)

        path = workspace.workspace_dir / name
        path.write_bytes(data)
        path.chmod(mode)
        return path

    return _write


@pytest.fixture
def ca_files(write_artifact, ec_private_key, make_certificate):
    """A CA certificate and key in the workspace, as (cert name, key name)."""
    ca_cert = make_certificate(ec_private_key, common_name="Test Root CA", sans=None, ca=True, days=3650)
    write_artifact("ca.crt", ca_cert)
    write_artifact("ca.key", ec_private_key, mode=0o600)
    return "ca.crt", "ca.key"


# ---------------------------------------------------------------------------
# Authentication and API clients
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_service(config_path):
    """Create auth service instance with auth enabled for testing."""
    auth_settings = AuthSettings(enabled=True, session_expiry_hours=24)
    return AuthService(auth_settings, config_path=config_path)


@pytest.fixture
def auth_token(auth_service):
    """Get a valid auth token for testing."""
    return auth_service.create_session().token


@pytest.fixture
def auth_headers(auth_token):
    """Get auth headers for API requests."""
    return {"Authorization": f"Bearer {auth_token}"}


def _override_services(app, workspace_dir, auth_service):
    from keybook.api.dependencies import get_auth_service, get_workspace_dir

    app.dependency_overrides[get_workspace_dir] = lambda: workspace_dir
    app.dependency_overrides[get_auth_service] = lambda: auth_service


@pytest.fixture
def client(workspace_dir, config_path):
    """Create FastAPI test client with an isolated workspace and auth disabled."""
    from keybook.api.dependencies import reset_auth_service
    from main import app

    reset_auth_service()
    disabled_auth_service = AuthService(AuthSettings(enabled=False), config_path=config_path)
    _override_services(app, workspace_dir, disabled_auth_service)

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
    reset_auth_service()


@pytest.fixture
def client_with_auth(workspace_dir, auth_service):
    """Create FastAPI test client with authentication enabled."""
    from keybook.api.dependencies import reset_auth_service
    from main import app

    reset_auth_service()
    _override_services(app, workspace_dir, auth_service)

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
    reset_auth_service()
