"""File system utilities."""

import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger("keybook")


class FileUtils:
    """Utility class for file operations."""

    @staticmethod
    def ensure_directory(path: Path, mode: Optional[int] = None) -> None:
        """
        Ensure directory exists, create if not.

        Args:
            path: Directory path to ensure
            mode: Permission bits to apply after creation
        """
        path.mkdir(parents=True, exist_ok=True)
        if mode is not None:
            path.chmod(mode)
        logger.debug(f"Ensured directory exists: {path}")

    @staticmethod
    def move_to_trash(path: Path) -> Path:
        """
        Move a file to the _trash folder at the same level with timestamp.

        Args:
            path: File path to move to trash

        Returns:
            Path to the trashed file

        Raises:
            ValueError: If path does not exist
        """
        if not path.exists():
            raise ValueError(f"Path not found: {path}")

        trash_dir = path.parent / "_trash"
        trash_dir.mkdir(mode=0o700, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        dest = trash_dir / f"{path.name}_{timestamp}"
        shutil.move(str(path), str(dest))
        logger.info(f"Moved to trash: {path} -> {dest}")
        return dest

    @staticmethod
    def remove_quietly(*paths: Path) -> None:
        """Delete files left behind by a failed operation."""
        for path in paths:
            try:
                path.unlink()
                logger.debug(f"Removed partial output: {path}")
            except FileNotFoundError:
                pass

    @staticmethod
    def read_file(path: Path) -> str:
        """
        Read file contents as string.

        Args:
            path: File path to read

        Returns:
            File contents as string
        """
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    @staticmethod
    def read_binary_file(path: Path) -> bytes:
        """
        Read file contents as bytes.

        Args:
            path: File path to read

        Returns:
            File contents as bytes
        """
        with open(path, "rb") as f:
            return f.read()

    @staticmethod
    def write_file(path: Path, content: str, mode: int = 0o644) -> None:
        """
        Write string content to file.

        The file is created with `mode` so secrets are never world-readable,
        not even briefly.

        Args:
            path: File path to write
            content: Content to write
            mode: Permission bits for the file
        """
        FileUtils.ensure_directory(path.parent)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        path.chmod(mode)
        logger.debug(f"Wrote file: {path}")

    @staticmethod
    def file_mode(path: Path) -> int:
        """Return the permission bits of a file."""
        return path.stat().st_mode & 0o777

    @staticmethod
    def list_files(path: Path) -> list[Path]:
        """
        List regular files in a directory, excluding the _trash folder.

        Args:
            path: Directory to list

        Returns:
            Sorted list of file paths
        """
        if not path.exists():
            return []
        return sorted(p for p in path.iterdir() if p.is_file())
