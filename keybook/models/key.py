"""Key data models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .artifact import ARTIFACT_NAME_PATTERN


class KeyAlgorithm(str, Enum):
    """Supported key algorithms."""

    RSA = "RSA"
    ECDSA = "ECDSA"
    ED25519 = "Ed25519"


class ECDSACurve(str, Enum):
    """Supported ECDSA curves."""

    P256 = "P-256"
    P384 = "P-384"
    P521 = "P-521"


# Curve names as understood by openssl
OPENSSL_CURVE_NAMES = {
    ECDSACurve.P256: "prime256v1",
    ECDSACurve.P384: "secp384r1",
    ECDSACurve.P521: "secp521r1",
}

RSA_KEY_SIZES = (2048, 3072, 4096)


class KeyConfig(BaseModel):
    """Key configuration."""

    algorithm: KeyAlgorithm = KeyAlgorithm.RSA
    key_size: Optional[int] = Field(None, ge=2048)  # for RSA
    curve: Optional[ECDSACurve] = None  # for ECDSA

    @model_validator(mode="after")
    def fill_algorithm_defaults(self):
        """Apply per-algorithm defaults and drop fields that do not apply."""
        if self.algorithm == KeyAlgorithm.RSA:
            if self.key_size is None:
                self.key_size = 2048
            if self.key_size not in RSA_KEY_SIZES:
                raise ValueError(f"RSA key size must be one of {', '.join(map(str, RSA_KEY_SIZES))}")
            self.curve = None
        elif self.algorithm == KeyAlgorithm.ECDSA:
            if self.curve is None:
                self.curve = ECDSACurve.P256
            self.key_size = None
        else:
            self.key_size = None
            self.curve = None
        return self

    class Config:
        """Pydantic config."""

        json_schema_extra = {"example": {"algorithm": "RSA", "key_size": 4096}}


class KeyGenerateRequest(KeyConfig):
    """Request model for generating a private key."""

    name: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    passphrase: Optional[str] = Field(None, min_length=4)
    overwrite: bool = False

    class Config:
        """Pydantic config."""

        json_schema_extra = {
            "example": {
                "name": "server.key",
                "algorithm": "ECDSA",
                "curve": "P-384",
                "passphrase": "correct horse battery staple",
            }
        }


class PublicKeyRequest(BaseModel):
    """Request model for extracting a public key."""

    output: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    passphrase: Optional[str] = None
    overwrite: bool = False


class PKCS8Request(BaseModel):
    """Request model for converting a key to PKCS#8."""

    output: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    passphrase: Optional[str] = None  # current passphrase, if the key is encrypted
    new_passphrase: Optional[str] = Field(None, min_length=4)  # encrypts the PKCS#8 output
    overwrite: bool = False


class DecryptKeyRequest(BaseModel):
    """Request model for writing an unencrypted copy of a key."""

    output: str = Field(..., pattern=ARTIFACT_NAME_PATTERN)
    passphrase: str = Field(..., min_length=1)
    overwrite: bool = False


class KeyResponse(BaseModel):
    """Response model for key operations."""

    name: str
    algorithm: Optional[str] = None
    key_size: Optional[int] = None
    curve: Optional[str] = None
    encrypted: bool = False
    public_key_fingerprint_sha256: Optional[str] = None
    mode: Optional[str] = None
    openssl_command: str = ""
