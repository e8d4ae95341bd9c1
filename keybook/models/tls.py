"""TLS handshake test models."""

from typing import Optional

from pydantic import BaseModel, Field

from .artifact import ARTIFACT_NAME_PATTERN
from .certificate import CertificateSummary


class TLSProbeRequest(BaseModel):
    """Request model for a TLS handshake test."""

    host: str = Field(..., min_length=1, max_length=253)
    port: int = Field(443, ge=1, le=65535)
    servername: Optional[str] = Field(None, max_length=253)  # SNI, defaults to host
    ca_name: Optional[str] = Field(None, pattern=ARTIFACT_NAME_PATTERN)

    class Config:
        """Pydantic config."""

        json_schema_extra = {"example": {"host": "example.com", "port": 443}}


class TLSProbeResponse(BaseModel):
    """Handshake summary and peer chain."""

    host: str
    port: int
    servername: str
    connected: bool
    protocol: Optional[str] = None
    cipher: Optional[str] = None
    verify_code: Optional[int] = None
    verify_message: Optional[str] = None
    peer_certificates: list[CertificateSummary] = Field(default_factory=list)
    output: str = ""
    openssl_command: str = ""
