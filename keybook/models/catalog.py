"""Command catalog models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .artifact import ArtifactKind


class CatalogCategory(str, Enum):
    """Catalog sections, in document order."""

    RSA_KEYS = "rsa_keys"
    EC_KEYS = "ec_keys"
    CERTIFICATES = "certificates"
    CSRS = "csrs"
    RANDOM_SECRETS = "random_secrets"
    FORMAT_CONVERSION = "format_conversion"
    INSPECTION = "inspection"
    TLS_TESTING = "tls_testing"
    FILE_PERMISSIONS = "file_permissions"


class CatalogEntry(BaseModel):
    """A single documented invocation."""

    id: str = Field(..., pattern=r"^[a-z0-9][a-z0-9-]*$")
    category: CatalogCategory
    title: str
    description: str = ""
    command: str
    defaults: dict[str, str] = Field(default_factory=dict)
    produces: Optional[ArtifactKind] = None


class CategorySummary(BaseModel):
    """Category with its entry count."""

    category: CatalogCategory
    title: str
    entry_count: int


class FileExtensionInfo(BaseModel):
    """Conventional file extension."""

    extension: str
    format: str
    contents: str


class PermissionInfo(BaseModel):
    """Recommended file mode for an artifact type."""

    artifact: str
    kind: Optional[ArtifactKind] = None
    mode: str = Field(..., pattern=r"^[0-7]{3}$")
    reason: str = ""


class RenderRequest(BaseModel):
    """Placeholder values for rendering a catalog entry."""

    params: dict[str, str] = Field(default_factory=dict)


class RenderResponse(BaseModel):
    """A rendered catalog command."""

    id: str
    command: str
    params: dict[str, str]
