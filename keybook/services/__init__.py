"""Service layer for business logic."""

from .auth_service import AuthService
from .catalog_service import CatalogService
from .cert_service import CertificateService
from .conversion_service import ConversionService
from .csr_service import CSRService
from .key_service import KeyService
from .openssl_service import OpenSSLService
from .parser_service import CertificateParser
from .secret_service import SecretService
from .tls_service import TLSService
from .workspace_service import WorkspaceService
from .yaml_service import YAMLService

__all__ = [
    "YAMLService",
    "OpenSSLService",
    "CertificateParser",
    "WorkspaceService",
    "CatalogService",
    "KeyService",
    "CertificateService",
    "CSRService",
    "SecretService",
    "ConversionService",
    "TLSService",
    "AuthService",
]
