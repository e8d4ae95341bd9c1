"""Command catalog service."""

import logging
import re
import shlex
from typing import Any, Dict, List, Optional

from keybook.models.catalog import (
    CatalogCategory,
    CatalogEntry,
    CategorySummary,
    FileExtensionInfo,
    PermissionInfo,
    RenderResponse,
)
from keybook.services.yaml_service import YAMLService

logger = logging.getLogger("keybook")

PLACEHOLDER_PATTERN = re.compile(r"\{([a-z_][a-z0-9_]*)\}")


class CatalogService:
    """Service for browsing and rendering the OpenSSL command catalog."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        """
        Initialize catalog service.

        Args:
            data: Parsed catalog document. Defaults to the packaged catalog.yaml.

        Raises:
            ValueError: If the catalog is malformed (duplicate ids, unknown categories)
        """
        if data is None:
            data = YAMLService.load_package_yaml("catalog.yaml")

        self._titles: Dict[CatalogCategory, str] = {}
        for item in data.get("categories", []):
            self._titles[CatalogCategory(item["id"])] = item["title"]

        self._entries: Dict[str, CatalogEntry] = {}
        for item in data.get("entries", []):
            entry = CatalogEntry(**item)
            if entry.id in self._entries:
                raise ValueError(f"Duplicate catalog entry id: {entry.id}")
            if entry.category not in self._titles:
                raise ValueError(f"Catalog entry '{entry.id}' uses undeclared category {entry.category.value}")
            self._entries[entry.id] = entry

        self._extensions = [FileExtensionInfo(**item) for item in data.get("file_extensions", [])]
        self._permissions = [PermissionInfo(**item) for item in data.get("permissions", [])]
        logger.debug(f"Loaded catalog with {len(self._entries)} entries")

    def list_categories(self) -> List[CategorySummary]:
        """List categories in document order with their entry counts."""
        counts: Dict[CatalogCategory, int] = {}
        for entry in self._entries.values():
            counts[entry.category] = counts.get(entry.category, 0) + 1
        return [
            CategorySummary(category=category, title=title, entry_count=counts.get(category, 0))
            for category, title in self._titles.items()
        ]

    def list_entries(self, category: Optional[CatalogCategory] = None) -> List[CatalogEntry]:
        """
        List catalog entries.

        Args:
            category: Optional category filter

        Returns:
            Entries in document order
        """
        entries = list(self._entries.values())
        if category is not None:
            entries = [e for e in entries if e.category == category]
        return entries

    def get_entry(self, entry_id: str) -> CatalogEntry:
        """
        Get a single entry.

        Raises:
            ValueError: If the entry does not exist
        """
        entry = self._entries.get(entry_id)
        if entry is None:
            raise ValueError(f"Catalog entry not found: {entry_id}")
        return entry

    def placeholders(self, entry_id: str) -> List[str]:
        """Placeholder names used by an entry's template, in order of first use."""
        names: List[str] = []
        for name in PLACEHOLDER_PATTERN.findall(self.get_entry(entry_id).command):
            if name not in names:
                names.append(name)
        return names

    def render(self, entry_id: str, params: Optional[Dict[str, str]] = None) -> RenderResponse:
        """
        Substitute placeholder values into an entry's command.

        Values missing from params fall back to the entry defaults. Every
        value is shell-quoted.

        Args:
            entry_id: Catalog entry id
            params: Placeholder values

        Returns:
            Rendered command with the values actually used

        Raises:
            ValueError: If the entry is unknown, a parameter is unknown, or a
                placeholder has no value
        """
        entry = self.get_entry(entry_id)
        params = params or {}
        names = self.placeholders(entry_id)

        unknown = sorted(set(params) - set(names))
        if unknown:
            raise ValueError(f"Unknown parameters for '{entry_id}': {', '.join(unknown)}")

        values: Dict[str, str] = {}
        missing = []
        for name in names:
            value = params.get(name, entry.defaults.get(name))
            if value is None or value == "":
                missing.append(name)
            else:
                values[name] = str(value)
        if missing:
            raise ValueError(f"Missing parameters for '{entry_id}': {', '.join(missing)}")

        command = PLACEHOLDER_PATTERN.sub(lambda m: shlex.quote(values[m.group(1)]), entry.command)
        return RenderResponse(id=entry_id, command=command, params=values)

    def file_extensions(self) -> List[FileExtensionInfo]:
        """Conventional file extensions and what they hold."""
        return list(self._extensions)

    def permissions(self) -> List[PermissionInfo]:
        """Recommended file modes per artifact type."""
        return list(self._permissions)
