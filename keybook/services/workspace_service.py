"""Workspace (artifact directory) service."""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from keybook.models.artifact import ArtifactEncoding, ArtifactKind, PermissionsResponse, WorkspaceFile
from keybook.services.parser_service import CertificateParser
from keybook.utils import permissions
from keybook.utils.file_utils import FileUtils
from keybook.utils.validators import validate_workspace_path

logger = logging.getLogger("keybook")


class WorkspaceService:
    """Flat directory holding every key, certificate, CSR and bundle."""

    def __init__(self, workspace_dir: Path):
        """
        Initialize workspace service.

        Args:
            workspace_dir: Directory for generated artifacts (created with mode 700)
        """
        self.workspace_dir = workspace_dir
        FileUtils.ensure_directory(workspace_dir, mode=permissions.DIRECTORY_MODE)

    def resolve(self, name: str) -> Path:
        """
        Validate a file name and return its path in the workspace.

        Raises:
            ValueError: If the name is invalid or escapes the workspace
        """
        return validate_workspace_path(self.workspace_dir, name)

    def require(self, name: str) -> Path:
        """
        Like resolve(), but the file must exist.

        Raises:
            ValueError: If the name is invalid or the file does not exist
        """
        path = self.resolve(name)
        if not path.is_file():
            raise ValueError(f"File not found: {name}")
        return path

    def ensure_absent(self, name: str, overwrite: bool = False) -> Path:
        """
        Resolve an output name, refusing to clobber an existing file.

        Raises:
            ValueError: If the file exists and overwrite is False
        """
        path = self.resolve(name)
        if path.exists() and not overwrite:
            raise ValueError(f"File already exists: {name}")
        return path

    def detect(self, name: str) -> Tuple[ArtifactKind, Optional[ArtifactEncoding]]:
        """Detect the artifact kind and encoding of a workspace file."""
        return CertificateParser.detect_kind(self.require(name))

    def describe(self, name: str) -> WorkspaceFile:
        """Build the listing entry of a single file."""
        path = self.require(name)
        kind, encoding = CertificateParser.detect_kind(path)
        current, recommended, ok = permissions.audit(path, kind)
        return WorkspaceFile(
            name=path.name,
            size=path.stat().st_size,
            kind=kind,
            encoding=encoding,
            mode=permissions.format_mode(current),
            recommended_mode=permissions.format_mode(recommended),
            permissions_ok=ok,
        )

    def list_files(self, kind: Optional[ArtifactKind] = None) -> List[WorkspaceFile]:
        """
        List workspace files with their detected kind and permission audit.

        Args:
            kind: Only return files of this kind

        Returns:
            List of workspace files, sorted by name
        """
        files = [self.describe(path.name) for path in FileUtils.list_files(self.workspace_dir)]
        if kind is not None:
            files = [f for f in files if f.kind == kind]
        return files

    def read_bytes(self, name: str) -> bytes:
        """Read a workspace file."""
        return FileUtils.read_binary_file(self.require(name))

    def read_text(self, name: str) -> str:
        """Read a workspace file as text."""
        return FileUtils.read_file(self.require(name))

    def write_text(self, name: str, content: str, mode: int = permissions.PUBLIC_MODE, overwrite: bool = False) -> Path:
        """Write a text artifact with the given permission bits."""
        path = self.ensure_absent(name, overwrite)
        FileUtils.write_file(path, content, mode=mode)
        return path

    def delete(self, name: str) -> Path:
        """
        Move a file to the workspace's _trash folder.

        Returns:
            Path of the trashed file
        """
        return FileUtils.move_to_trash(self.require(name))

    def secure(self, path: Path) -> int:
        """
        Apply the recommended mode to a freshly written artifact.

        Unknown kinds are treated as private.
        """
        kind, _ = CertificateParser.detect_kind(path)
        mode = permissions.recommended_mode(kind) or permissions.PRIVATE_MODE
        path.chmod(mode)
        return mode

    def apply_permissions(self, name: str) -> PermissionsResponse:
        """
        Set a file to the recommended mode for its kind.

        Raises:
            ValueError: If the file is missing or has no recommendation
        """
        path = self.require(name)
        kind, _ = CertificateParser.detect_kind(path)
        previous = FileUtils.file_mode(path)
        mode = permissions.apply(path, kind)
        return PermissionsResponse(
            name=name,
            kind=kind,
            previous_mode=permissions.format_mode(previous),
            mode=permissions.format_mode(mode),
        )
