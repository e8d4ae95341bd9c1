"""Input validation utilities."""

import ipaddress
import re
from pathlib import Path

from keybook.models.artifact import ARTIFACT_NAME_PATTERN

_HOSTNAME_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")


def validate_artifact_name(name: str) -> str:
    """
    Validate a workspace file name.

    Args:
        name: File name (no directories)

    Returns:
        The name, unchanged

    Raises:
        ValueError: If the name is not a plain file name

    Example:
        >>> validate_artifact_name("server.key")
        'server.key'
    """
    if not name or ".." in name or "/" in name or "\\" in name:
        raise ValueError(f"Invalid file name: {name!r}")
    if not re.match(ARTIFACT_NAME_PATTERN, name):
        raise ValueError(f"Invalid file name: {name!r}")
    return name


def validate_workspace_path(workspace_dir: Path, name: str) -> Path:
    """
    Validate and construct a path inside the workspace.

    Args:
        workspace_dir: Base workspace directory
        name: File name

    Returns:
        Full path of the file (which may not exist yet)

    Raises:
        ValueError: If the path escapes the workspace
    """
    validate_artifact_name(name)
    path = workspace_dir / name

    try:
        path.resolve().relative_to(workspace_dir.resolve())
    except ValueError:
        raise ValueError(f"Invalid file path: {name}")

    return path


def is_ip_address(value: str) -> bool:
    """Return True if value is an IPv4 or IPv6 literal."""
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def validate_hostname(host: str) -> str:
    """
    Validate a host name or IP literal for network probes.

    Raises:
        ValueError: If host is not a valid hostname or IP address
    """
    if is_ip_address(host):
        return host

    candidate = host[:-1] if host.endswith(".") else host
    if not candidate or len(candidate) > 253:
        raise ValueError(f"Invalid host: {host}")
    if not all(_HOSTNAME_LABEL.match(label) for label in candidate.split(".")):
        raise ValueError(f"Invalid host: {host}")
    return host


def validate_country_code(country: str) -> None:
    """
    Validate ISO 3166-1 alpha-2 country code.

    Raises:
        ValueError: If country code is invalid
    """
    if not re.match(r"^[A-Z]{2}$", country):
        raise ValueError("Country code must be 2 uppercase letters (ISO 3166-1 alpha-2)")


def validate_san(san: str) -> None:
    """
    Validate a Subject Alternative Name entry (DNS name, wildcard or IP).

    Raises:
        ValueError: If the entry is neither
    """
    if is_ip_address(san):
        return

    label = r"[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    domain_pattern = rf"^(\*\.)?({label}\.)*{label}$"
    if not re.match(domain_pattern, san):
        raise ValueError(f"Invalid SAN entry: {san}")
