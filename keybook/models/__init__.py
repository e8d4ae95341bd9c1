"""Data models for KeyBook."""

from .artifact import ArtifactEncoding, ArtifactKind, VerifyResponse, WorkspaceFile
from .catalog import CatalogCategory, CatalogEntry, FileExtensionInfo, PermissionInfo
from .certificate import CertificateSummary, CertResponse, Subject
from .config import AppConfig
from .key import ECDSACurve, KeyAlgorithm, KeyConfig

__all__ = [
    "ArtifactEncoding",
    "ArtifactKind",
    "VerifyResponse",
    "WorkspaceFile",
    "CatalogCategory",
    "CatalogEntry",
    "FileExtensionInfo",
    "PermissionInfo",
    "CertificateSummary",
    "CertResponse",
    "Subject",
    "AppConfig",
    "ECDSACurve",
    "KeyAlgorithm",
    "KeyConfig",
]
