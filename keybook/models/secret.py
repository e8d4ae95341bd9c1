"""Random secret models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .artifact import ARTIFACT_NAME_PATTERN, SECRET_EXTENSIONS


class SecretEncoding(str, Enum):
    """Output encodings supported by `openssl rand`."""

    HEX = "hex"
    BASE64 = "base64"


class RandomSecretRequest(BaseModel):
    """Request model for generating random bytes."""

    num_bytes: int = Field(32, ge=1, le=1024)
    encoding: SecretEncoding = SecretEncoding.HEX
    output: Optional[str] = Field(None, pattern=ARTIFACT_NAME_PATTERN)
    overwrite: bool = False

    @field_validator("output")
    @classmethod
    def validate_output_extension(cls, v):
        """Secret files must be recognisable as secrets, so they are audited as private."""
        if v is not None and not v.lower().endswith(SECRET_EXTENSIONS):
            raise ValueError(f"Secret files must end in {' or '.join(SECRET_EXTENSIONS)}")
        return v


class RandomSecretResponse(BaseModel):
    """Response model for random secrets.

    `secret` is only set when no output file was requested.
    """

    num_bytes: int
    encoding: SecretEncoding
    secret: Optional[str] = None
    output: Optional[str] = None
    openssl_command: str = ""
