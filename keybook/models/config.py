"""Application configuration models."""

from typing import Optional

from pydantic import BaseModel, Field

from .key import ECDSACurve, KeyAlgorithm, KeyConfig


class AppSettings(BaseModel):
    """Application settings."""

    title: str = "KeyBook"
    version: str = "1.0.0"
    debug: bool = False


class PathSettings(BaseModel):
    """Path settings."""

    workspace: str = "./workspace"
    logs: str = "./logs"
    openssl: Optional[str] = None


class OpenSSLSettings(BaseModel):
    """Settings for running the openssl binary."""

    timeout_seconds: int = Field(30, gt=0)
    tls_timeout_seconds: int = Field(15, gt=0)


class KeyDefaults(BaseModel):
    """Key used when a request asks for a new key without configuring it."""

    algorithm: KeyAlgorithm = KeyAlgorithm.RSA
    rsa_key_size: int = 2048
    ec_curve: ECDSACurve = ECDSACurve.P256

    def key_config(self) -> KeyConfig:
        """Build the default key configuration."""
        if self.algorithm == KeyAlgorithm.RSA:
            return KeyConfig(algorithm=self.algorithm, key_size=self.rsa_key_size)
        if self.algorithm == KeyAlgorithm.ECDSA:
            return KeyConfig(algorithm=self.algorithm, curve=self.ec_curve)
        return KeyConfig(algorithm=self.algorithm)


class SecuritySettings(BaseModel):
    """Security settings."""

    warn_on_key_download: bool = True


class LoggingSettings(BaseModel):
    """Logging settings."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = "./logs/keybook.log"


class AuthSettings(BaseModel):
    """Authentication settings."""

    enabled: bool = True
    password_hash: Optional[str] = None  # bcrypt hash, auto-set on first run
    session_expiry_hours: int = 24


class AppConfig(BaseModel):
    """Main application configuration."""

    app: AppSettings = AppSettings()
    paths: PathSettings = PathSettings()
    openssl: OpenSSLSettings = OpenSSLSettings()
    defaults: KeyDefaults = KeyDefaults()
    security: SecuritySettings = SecuritySettings()
    logging: LoggingSettings = LoggingSettings()
    auth: AuthSettings = AuthSettings()
