"""
Database platforms supported by dbcontainers.
"""

from typing import Dict, Type

from .base import Platform, ResourceProvisioner
from .mysql import MySqlPlatform
from .postgres import PostgresPlatform
from .sqlserver import SqlServerPlatform

PLATFORMS: Dict[str, Type[Platform]] = {
    PostgresPlatform.tag: PostgresPlatform,
    MySqlPlatform.tag: MySqlPlatform,
    SqlServerPlatform.tag: SqlServerPlatform,
}


def get_platform(tag: str) -> Platform:
    """
    Return the platform implementation for a platform tag.

    Raises:
        ValueError: If the platform is not supported
    """
    key = (tag or "").strip().lower()
    if key not in PLATFORMS:
        raise ValueError(
            f"Unknown database platform '{tag}', expected one of: {', '.join(PLATFORMS)}"
        )
    return PLATFORMS[key]()


__all__ = [
    "PLATFORMS",
    "Platform",
    "ResourceProvisioner",
    "MySqlPlatform",
    "PostgresPlatform",
    "SqlServerPlatform",
    "get_platform",
]
