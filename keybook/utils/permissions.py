"""Recommended file permissions for key material."""

import logging
from pathlib import Path
from typing import Optional

from keybook.models.artifact import ArtifactKind
from keybook.utils.file_utils import FileUtils

logger = logging.getLogger("keybook")

PRIVATE_MODE = 0o600
PUBLIC_MODE = 0o644
DIRECTORY_MODE = 0o700

RECOMMENDED_MODES = {
    ArtifactKind.PRIVATE_KEY: PRIVATE_MODE,
    ArtifactKind.ENCRYPTED_PRIVATE_KEY: PRIVATE_MODE,
    ArtifactKind.PKCS12: PRIVATE_MODE,
    ArtifactKind.SECRET: PRIVATE_MODE,
    ArtifactKind.CERTIFICATE: PUBLIC_MODE,
    ArtifactKind.CSR: PUBLIC_MODE,
    ArtifactKind.PUBLIC_KEY: PUBLIC_MODE,
}


def format_mode(mode: Optional[int]) -> Optional[str]:
    """Format permission bits the way chmod takes them ("600")."""
    if mode is None:
        return None
    return format(mode, "03o")


def recommended_mode(kind: ArtifactKind) -> Optional[int]:
    """Recommended permission bits for an artifact kind, None when unknown."""
    return RECOMMENDED_MODES.get(kind)


def audit(path: Path, kind: ArtifactKind) -> tuple[int, Optional[int], bool]:
    """
    Compare a file's mode with the recommendation for its kind.

    A file passes when it grants nothing beyond the recommended bits.

    Returns:
        Tuple of (current_mode, recommended_mode, ok)
    """
    current = FileUtils.file_mode(path)
    recommended = recommended_mode(kind)
    if recommended is None:
        return current, None, True
    return current, recommended, (current & ~recommended) == 0


def apply(path: Path, kind: ArtifactKind) -> int:
    """
    Set a file to the recommended mode for its kind.

    Raises:
        ValueError: If there is no recommendation for the kind
    """
    mode = recommended_mode(kind)
    if mode is None:
        raise ValueError(f"No recommended permissions for {kind.value} files")
    path.chmod(mode)
    logger.info(f"Set permissions {format_mode(mode)} on {path.name}")
    return mode
