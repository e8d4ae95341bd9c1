"""Utility modules."""

from .file_utils import FileUtils
from .logger import setup_logger
from .validators import validate_artifact_name, validate_hostname, validate_workspace_path

__all__ = [
    "FileUtils",
    "setup_logger",
    "validate_artifact_name",
    "validate_hostname",
    "validate_workspace_path",
]
