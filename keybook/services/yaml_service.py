"""YAML file operations service."""

import logging
from enum import Enum
from importlib import resources
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger("keybook")


class YAMLService:
    """Service for YAML file operations."""

    @staticmethod
    def load_yaml(file_path: Path) -> Dict[str, Any]:
        """
        Load YAML file and return as dictionary.

        Args:
            file_path: Path to YAML file

        Returns:
            Parsed YAML content as dictionary

        Raises:
            FileNotFoundError: If file doesn't exist
            yaml.YAMLError: If file is not valid YAML
        """
        if not file_path.exists():
            raise FileNotFoundError(f"YAML file not found: {file_path}")

        with open(file_path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
                logger.debug(f"Loaded YAML from: {file_path}")
                return data or {}
            except yaml.YAMLError as e:
                logger.error(f"Error parsing YAML file {file_path}: {e}")
                raise

    @staticmethod
    def load_package_yaml(resource: str) -> Dict[str, Any]:
        """
        Load a YAML file shipped inside the keybook.data package.

        Args:
            resource: File name under keybook/data

        Returns:
            Parsed YAML content as dictionary
        """
        text = resources.files("keybook.data").joinpath(resource).read_text(encoding="utf-8")
        try:
            return yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            logger.error(f"Error parsing packaged YAML {resource}: {e}")
            raise

    @staticmethod
    def save_yaml(file_path: Path, data: Dict[str, Any]) -> None:
        """
        Save dictionary to YAML file.

        Args:
            file_path: Path to save YAML file
            data: Data to save

        Raises:
            yaml.YAMLError: If data cannot be serialized to YAML
        """
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding="utf-8") as f:
            try:
                yaml.safe_dump(
                    YAMLService._plain(data),
                    f,
                    default_flow_style=False,
                    allow_unicode=True,
                    sort_keys=False,
                )
                logger.debug(f"Saved YAML to: {file_path}")
            except yaml.YAMLError as e:
                logger.error(f"Error saving YAML file {file_path}: {e}")
                raise

    @staticmethod
    def _plain(value: Any) -> Any:
        """Recursively convert Enum members to their values for safe_dump."""
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, dict):
            return {key: YAMLService._plain(item) for key, item in value.items()}
        if isinstance(value, list):
            return [YAMLService._plain(item) for item in value]
        return value
