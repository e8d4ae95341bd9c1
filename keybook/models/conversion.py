"""Format conversion models."""

from typing import Optional

from pydantic import BaseModel, Field

from .artifact import ARTIFACT_NAME_PATTERN, PRINTABLE_PATTERN, ArtifactEncoding, ArtifactKind


class ConvertRequest(BaseModel):
    """Request model for PEM <-> DER conversion."""

    name: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    output: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    passphrase: Optional[str] = None  # for encrypted keys
    overwrite: bool = False


class PKCS12ExportRequest(BaseModel):
    """Request model for bundling a certificate and key into PKCS#12."""

    cert_name: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    key_name: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    key_passphrase: Optional[str] = None
    chain_name: Optional[str] = Field(None, pattern=ARTIFACT_NAME_PATTERN)
    output: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    friendly_name: Optional[str] = Field(None, max_length=64, pattern=PRINTABLE_PATTERN)
    export_passphrase: str = Field(..., min_length=4)
    overwrite: bool = False

    class Config:
        """Pydantic config."""

        json_schema_extra = {
            "example": {
                "cert_name": "server.crt",
                "key_name": "server.key",
                "chain_name": "chain.pem",
                "output": "server.p12",
                "friendly_name": "server",
                "export_passphrase": "changeit",
            }
        }


class PKCS12ExtractRequest(BaseModel):
    """Request model for unpacking a PKCS#12 bundle."""

    name: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    passphrase: str
    cert_output: Optional[str] = Field(None, pattern=ARTIFACT_NAME_PATTERN)
    key_output: Optional[str] = Field(None, pattern=ARTIFACT_NAME_PATTERN)
    key_passphrase: Optional[str] = Field(None, min_length=4)  # encrypt the extracted key
    overwrite: bool = False


class ConversionResponse(BaseModel):
    """Response model for conversion operations."""

    source: str
    outputs: list[str]
    kind: ArtifactKind
    encoding: Optional[ArtifactEncoding] = None
    openssl_command: str = ""
