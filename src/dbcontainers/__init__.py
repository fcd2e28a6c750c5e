"""
dbcontainers: disposable database containers for tests

Runs PostgreSQL, MySQL and SQL Server in docker or podman containers and
provisions the database, user and extensions a test suite needs.
"""

__version__ = "0.1.0"

from .config import ContainerSettings, DbContainersConfig
from .container import DbContainer
from .factory import ContainerFactory, create_container
from .logging_config import setup_logging
from .models import ContainerStartError, StartMode, StopMode

__all__ = [
    "ContainerFactory",
    "ContainerSettings",
    "ContainerStartError",
    "DbContainer",
    "DbContainersConfig",
    "StartMode",
    "StopMode",
    "create_container",
    "setup_logging",
]
