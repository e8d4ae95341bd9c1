"""Workspace artifact models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

# File names only: no directories, no traversal
ARTIFACT_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$"

# Free text that ends up in an openssl argument: no control characters
PRINTABLE_PATTERN = r"^[^\x00-\x1f\x7f]*$"

# Random secrets are recognised by these extensions
SECRET_EXTENSIONS = (".secret", ".rand")


class ArtifactKind(str, Enum):
    """Kinds of files the workspace can hold."""

    CERTIFICATE = "certificate"
    CSR = "csr"
    PRIVATE_KEY = "private_key"  # PKCS#8 or traditional, unencrypted
    ENCRYPTED_PRIVATE_KEY = "encrypted_private_key"
    PUBLIC_KEY = "public_key"
    PKCS12 = "pkcs12"
    SECRET = "secret"
    UNKNOWN = "unknown"


class ArtifactEncoding(str, Enum):
    """On-disk encoding of an artifact."""

    PEM = "PEM"
    DER = "DER"
    BINARY = "binary"


PRIVATE_KINDS = {
    ArtifactKind.PRIVATE_KEY,
    ArtifactKind.ENCRYPTED_PRIVATE_KEY,
    ArtifactKind.PKCS12,
    ArtifactKind.SECRET,
}


class WorkspaceFile(BaseModel):
    """A file in the workspace, with its permission audit."""

    name: str
    size: int
    kind: ArtifactKind
    encoding: Optional[ArtifactEncoding] = None
    mode: str
    recommended_mode: Optional[str] = None
    permissions_ok: bool = True


class PermissionsResponse(BaseModel):
    """Result of applying recommended permissions to a file."""

    name: str
    kind: ArtifactKind
    previous_mode: str
    mode: str


class VerifyResponse(BaseModel):
    """Result of an openssl verification command."""

    valid: bool
    output: str = ""
    openssl_command: str = ""
