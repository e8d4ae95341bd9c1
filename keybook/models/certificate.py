"""Certificate data models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .artifact import ARTIFACT_NAME_PATTERN, PRINTABLE_PATTERN
from .key import KeyConfig


class Subject(BaseModel):
    """Certificate subject information."""

    common_name: str = Field(..., min_length=1, max_length=64, pattern=PRINTABLE_PATTERN)
    organization: Optional[str] = Field(None, max_length=64, pattern=PRINTABLE_PATTERN)
    organizational_unit: Optional[str] = Field(None, max_length=64, pattern=PRINTABLE_PATTERN)
    country: Optional[str] = Field(None, min_length=2, max_length=2)
    state: Optional[str] = Field(None, max_length=128, pattern=PRINTABLE_PATTERN)
    locality: Optional[str] = Field(None, max_length=128, pattern=PRINTABLE_PATTERN)

    class Config:
        """Pydantic config."""

        json_schema_extra = {
            "example": {
                "common_name": "www.example.com",
                "organization": "ACME Corp",
                "country": "DE",
            }
        }


# Forbidden Key Usage values for end-entity certificates (CA-only)
FORBIDDEN_KEY_USAGE = {"keyCertSign", "cRLSign"}

# Forbidden Extended Key Usage values
FORBIDDEN_EKU = {"anyExtendedKeyUsage"}

# openssl names accepted in a leaf certificate's extension file
ALLOWED_KEY_USAGE = {
    "digitalSignature",
    "nonRepudiation",
    "keyEncipherment",
    "dataEncipherment",
    "keyAgreement",
    "encipherOnly",
    "decipherOnly",
}
ALLOWED_EKU = {"serverAuth", "clientAuth", "codeSigning", "emailProtection", "timeStamping", "OCSPSigning"}

# Default extensions for TLS Server certificates
DEFAULT_KEY_USAGE = ["digitalSignature", "keyEncipherment"]
DEFAULT_EXTENDED_KEY_USAGE = ["serverAuth"]


def _sans_to_strings(v):
    """Convert IP addresses or other types in SANs to strings."""
    if v is None:
        return []
    if isinstance(v, list):
        return [str(item).strip() for item in v if str(item).strip()]
    return v


def _check_usages(values, label, allowed, forbidden, forbidden_note=""):
    """Strip each usage name and accept it only if openssl knows it for a leaf certificate."""
    if not isinstance(values, list):
        return values
    cleaned = []
    for value in values:
        name = str(value).strip()
        if name in forbidden:
            raise ValueError(f"{label} '{name}' is forbidden{forbidden_note}")
        if name not in allowed:
            raise ValueError(f"Unknown {label} '{name}', expected one of: {', '.join(sorted(allowed))}")
        cleaned.append(name)
    return cleaned


class KeySource(BaseModel):
    """Either an existing workspace key or the configuration of a new one."""

    key_name: Optional[str] = Field(None, pattern=ARTIFACT_NAME_PATTERN)
    key: Optional[KeyConfig] = None
    key_passphrase: Optional[str] = None

    @model_validator(mode="after")
    def check_key_source(self):
        """Reject requests naming both an existing key and a new key config."""
        if self.key_name and self.key:
            raise ValueError("Specify either key_name or key, not both")
        return self


class SelfSignedCertRequest(KeySource):
    """Request model for creating a self-signed certificate."""

    name: str = Field(..., pattern=r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")
    subject: Subject
    sans: list[str] = Field(default_factory=list)
    validity_days: int = Field(365, gt=0, le=36500)
    overwrite: bool = False

    @field_validator("sans", mode="before")
    @classmethod
    def convert_sans_to_strings(cls, v):
        """Convert IP addresses or other types in SANs to strings."""
        return _sans_to_strings(v)

    class Config:
        """Pydantic config."""

        json_schema_extra = {
            "example": {
                "name": "dev-server",
                "subject": {"common_name": "localhost"},
                "sans": ["localhost", "127.0.0.1"],
                "validity_days": 365,
                "key": {"algorithm": "ECDSA", "curve": "P-256"},
            }
        }


class CSRSignRequest(BaseModel):
    """Request model for signing a CSR with a CA certificate and key."""

    csr_name: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    ca_cert_name: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    ca_key_name: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    ca_key_passphrase: Optional[str] = None
    output: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    validity_days: int = Field(365, gt=0, le=36500)
    sans: Optional[list[str]] = None  # None: copy SANs from the CSR
    key_usage: list[str] = Field(default_factory=lambda: DEFAULT_KEY_USAGE.copy())
    extended_key_usage: list[str] = Field(default_factory=lambda: DEFAULT_EXTENDED_KEY_USAGE.copy())
    overwrite: bool = False

    @field_validator("sans", mode="before")
    @classmethod
    def convert_sans_to_strings(cls, v):
        """Convert IP addresses or other types in SANs to strings."""
        if v is None:
            return None
        return _sans_to_strings(v)

    @field_validator("key_usage", mode="before")
    @classmethod
    def validate_key_usage(cls, v):
        """Normalise key usage values, reject CA-only and unknown ones."""
        if v is None:
            return DEFAULT_KEY_USAGE.copy()
        note = " for end-entity certificates (CA-only)"
        return _check_usages(v, "Key Usage", ALLOWED_KEY_USAGE, FORBIDDEN_KEY_USAGE, note)

    @field_validator("extended_key_usage", mode="before")
    @classmethod
    def validate_extended_key_usage(cls, v):
        """Normalise extended key usage values, reject forbidden and unknown ones."""
        if v is None:
            return DEFAULT_EXTENDED_KEY_USAGE.copy()
        return _check_usages(v, "Extended Key Usage", ALLOWED_EKU, FORBIDDEN_EKU)


class VerifyChainRequest(BaseModel):
    """Request model for verifying a certificate against a CA bundle."""

    name: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    ca_name: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    untrusted_name: Optional[str] = Field(None, pattern=ARTIFACT_NAME_PATTERN)


class MatchKeyRequest(BaseModel):
    """Request model for checking that a certificate and a key belong together."""

    cert_name: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    key_name: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    passphrase: Optional[str] = None


class MatchKeyResponse(BaseModel):
    """Result of a certificate/key match check."""

    cert_name: str
    key_name: str
    matches: bool


class CertificateSummary(BaseModel):
    """Parsed certificate fields."""

    subject: dict[str, Optional[str]]
    issuer: dict[str, Optional[str]]
    not_before: datetime
    not_after: datetime
    serial_number: str
    public_key_algorithm: Optional[str] = None
    public_key_size: Optional[int] = None
    public_key_curve: Optional[str] = None
    fingerprint_sha256: str
    sans: list[str] = Field(default_factory=list)
    is_ca: bool = False
    self_signed: bool = False
    key_usage: list[str] = Field(default_factory=list)
    extended_key_usage: list[str] = Field(default_factory=list)
    validity_status: str = ""
    validity_text: str = ""


class CertResponse(CertificateSummary):
    """Response model for certificate operations."""

    name: str
    key_name: Optional[str] = None
    openssl_command: str = ""


class ExpiryResponse(BaseModel):
    """Result of an expiry check."""

    name: str
    days: int
    expires_within: bool
    not_after: datetime
    days_remaining: int
    openssl_command: str = ""
