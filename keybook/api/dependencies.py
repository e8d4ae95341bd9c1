"""FastAPI dependencies."""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from keybook.models.auth import Session
from keybook.models.config import AppConfig
from keybook.services.auth_service import AuthService
from keybook.services.catalog_service import CatalogService
from keybook.services.cert_service import CertificateService
from keybook.services.conversion_service import ConversionService
from keybook.services.csr_service import CSRService
from keybook.services.key_service import KeyService
from keybook.services.openssl_service import OpenSSLService
from keybook.services.secret_service import SecretService
from keybook.services.tls_service import TLSService
from keybook.services.workspace_service import WorkspaceService
from keybook.services.yaml_service import YAMLService

logger = logging.getLogger("keybook")

CONFIG_ENV = "KEYBOOK_CONFIG"
SESSION_COOKIE = "session_token"


def get_config_path() -> Path:
    """Location of config.yaml (KEYBOOK_CONFIG overrides the default)."""
    return Path(os.environ.get(CONFIG_ENV, "config.yaml"))


def get_config() -> AppConfig:
    """
    Get application configuration.

    Returns:
        Application configuration, built-in defaults when no config file exists
    """
    config_path = get_config_path()
    if not config_path.exists():
        return AppConfig()

    config_data = YAMLService.load_yaml(config_path)
    return AppConfig(**config_data)


def get_workspace_dir(config: AppConfig = Depends(get_config)) -> Path:
    """
    Get workspace directory path.

    Returns:
        Path to the artifact workspace
    """
    return Path(config.paths.workspace)


def get_workspace(workspace_dir: Path = Depends(get_workspace_dir)) -> WorkspaceService:
    """Get workspace service for the configured directory."""
    return WorkspaceService(workspace_dir)


def get_openssl_service(config: AppConfig = Depends(get_config)) -> OpenSSLService:
    """
    Get OpenSSL service instance.

    Returns:
        OpenSSL service

    Raises:
        HTTPException: 503 if the openssl binary cannot be found
    """
    try:
        return OpenSSLService(openssl_path=config.paths.openssl, timeout=config.openssl.timeout_seconds)
    except RuntimeError as e:
        logger.error(f"OpenSSL unavailable: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"OpenSSL unavailable: {e}")


@lru_cache(maxsize=1)
def get_catalog_service() -> CatalogService:
    """Get the catalog service. The packaged catalog is parsed once."""
    return CatalogService()


def get_key_service(
    workspace: WorkspaceService = Depends(get_workspace),
    openssl_service: OpenSSLService = Depends(get_openssl_service),
) -> KeyService:
    """Get key service instance."""
    return KeyService(workspace, openssl_service)


def get_cert_service(
    workspace: WorkspaceService = Depends(get_workspace),
    openssl_service: OpenSSLService = Depends(get_openssl_service),
    key_service: KeyService = Depends(get_key_service),
    config: AppConfig = Depends(get_config),
) -> CertificateService:
    """Get certificate service instance."""
    return CertificateService(workspace, openssl_service, key_service, default_key=config.defaults.key_config())


def get_csr_service(
    workspace: WorkspaceService = Depends(get_workspace),
    openssl_service: OpenSSLService = Depends(get_openssl_service),
    cert_service: CertificateService = Depends(get_cert_service),
) -> CSRService:
    """Get CSR service instance."""
    return CSRService(workspace, openssl_service, cert_service)


def get_secret_service(
    workspace: WorkspaceService = Depends(get_workspace),
    openssl_service: OpenSSLService = Depends(get_openssl_service),
) -> SecretService:
    """Get secret service instance."""
    return SecretService(workspace, openssl_service)


def get_conversion_service(
    workspace: WorkspaceService = Depends(get_workspace),
    openssl_service: OpenSSLService = Depends(get_openssl_service),
    key_service: KeyService = Depends(get_key_service),
) -> ConversionService:
    """Get conversion service instance."""
    return ConversionService(workspace, openssl_service, key_service)


def get_tls_service(
    workspace: WorkspaceService = Depends(get_workspace),
    openssl_service: OpenSSLService = Depends(get_openssl_service),
    config: AppConfig = Depends(get_config),
) -> TLSService:
    """Get TLS probe service instance."""
    return TLSService(workspace, openssl_service, timeout=config.openssl.tls_timeout_seconds)


# Sessions live in memory, so the auth service is a process-wide singleton
_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    """
    Get the shared auth service.

    Returns:
        Auth service, created from config on first use
    """
    global _auth_service
    if _auth_service is None:
        config = get_config()
        _auth_service = AuthService(config.auth, config_path=get_config_path())
    return _auth_service


def reset_auth_service() -> None:
    """Drop the shared auth service (tests, config reload)."""
    global _auth_service
    _auth_service = None


def _request_token(request: Request) -> Optional[str]:
    """Session token from the Authorization header, else the session cookie."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get(SESSION_COOKIE)


def require_auth(request: Request, auth_service: AuthService = Depends(get_auth_service)) -> Session:
    """
    Require a valid session.

    With authentication disabled every request gets an anonymous session.

    Returns:
        The caller's session

    Raises:
        HTTPException: 401 if no valid session token is presented
    """
    if not auth_service.is_enabled:
        return Session.open("", auth_service.settings.session_expiry_hours, anonymous=True)

    token = _request_token(request)
    session = auth_service.validate_session(token) if token else None
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session
