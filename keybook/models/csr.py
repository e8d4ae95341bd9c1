"""CSR data models."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .certificate import KeySource, Subject, _sans_to_strings


class CSRCreateRequest(KeySource):
    """Request model for creating a CSR."""

    name: str = Field(..., pattern=r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")
    subject: Subject
    sans: list[str] = Field(default_factory=list)
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
                "name": "www-example-com",
                "subject": {"common_name": "www.example.com", "organization": "Example Inc", "country": "US"},
                "sans": ["www.example.com", "example.com"],
                "key": {"algorithm": "RSA", "key_size": 2048},
            }
        }


class CSRResponse(BaseModel):
    """Response model for CSR operations."""

    name: str
    key_name: Optional[str] = None
    subject: dict[str, Optional[str]]
    sans: list[str] = Field(default_factory=list)
    public_key_algorithm: Optional[str] = None
    public_key_size: Optional[int] = None
    public_key_curve: Optional[str] = None
    public_key_fingerprint_sha256: str
    signature_valid: bool
    openssl_command: str = ""
