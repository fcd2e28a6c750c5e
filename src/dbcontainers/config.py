"""
Configuration management for dbcontainers

Global settings are loaded from environment variables and an optional .env
file using Pydantic settings. Per-container settings are read from flat
key/value properties (``postgres.dbName=...``), which can come from a
``.properties`` or YAML file.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import ContainerDescriptor, DatabaseResourceSpec, StartMode, StopMode
from .platforms import Platform, get_platform

logger = logging.getLogger(__name__)


class DbContainersConfig(BaseSettings):
    """
    Main configuration class for dbcontainers.

    Configuration is loaded from:
    1. Environment variables (highest priority)
    2. .env file
    3. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_prefix="DBCONTAINERS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_dir: str = Field(
        default="logs",
        description="Directory for log files",
    )
    verbose: bool = Field(
        default=False,
        description="Enable verbose console output",
    )
    command_log: bool = Field(
        default=False,
        description="Write runtime commands and their output to per-container log files",
    )

    # Container configuration
    container_runtime: str = Field(
        default="docker",
        description="Container runtime (docker or podman)",
    )
    host: str = Field(
        default="localhost",
        description="Host that published container ports are reachable on",
    )
    command_timeout: Optional[float] = Field(
        default=None,
        description="Timeout in seconds for each runtime command (none waits until exit)",
    )

    # Readiness polling
    ready_delay: float = Field(
        default=0.1,
        description="Seconds between engine readiness attempts",
    )
    connectivity_attempts: int = Field(
        default=120,
        description="Maximum client connection attempts",
    )
    connectivity_delay: float = Field(
        default=0.2,
        description="Seconds between client connection attempts",
    )
    connect_timeout: int = Field(
        default=5,
        description="Client connection timeout in seconds",
    )

    @validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @validator("container_runtime")
    def validate_container_runtime(cls, v: str) -> str:
        """Validate container runtime is supported."""
        valid_runtimes = ["docker", "podman"]
        if v.lower() not in valid_runtimes:
            raise ValueError(
                f"container_runtime must be one of: {', '.join(valid_runtimes)}"
            )
        return v.lower()

    @validator("connectivity_attempts")
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("connectivity_attempts must be at least 1")
        return v


class ContainerSettings(BaseModel):
    """
    Settings for one database container, keyed by platform.

    Field aliases are the property keys, read with the platform as prefix,
    e.g. ``postgres.containerName``. Unset values, passwords included, use the
    platform defaults.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    platform: str = Field("postgres", description="Database platform tag")
    version: Optional[str] = Field(None, description="Image version/tag")
    image: Optional[str] = Field(None, description="Full image reference, overrides version")
    container_name: Optional[str] = Field(None, alias="containerName")
    port: Optional[int] = Field(None, description="Published host port")
    internal_port: Optional[int] = Field(None, alias="internalPort")
    db_name: Optional[str] = Field(None, alias="dbName")
    db_user: Optional[str] = Field(None, alias="dbUser")
    db_password: Optional[str] = Field(None, alias="dbPassword")
    admin_password: Optional[str] = Field(None, alias="dbAdminPassword")
    extensions: str = Field("", alias="dbExtensions")
    extra_db: Optional[str] = Field(None, alias="dbExtra")
    extra_db_user: Optional[str] = Field(None, alias="dbExtraUser")
    extra_db_password: str = Field("", alias="dbExtraPassword")
    collation: Optional[str] = Field(None, alias="dbCollation")
    start_mode: str = Field("create", alias="startMode")
    stop_mode: str = Field("stop", alias="stopMode")
    in_memory: bool = Field(False, alias="inMemory")
    tmpfs: Optional[str] = Field(None, description="tmpfs mount used when inMemory is set")
    max_ready_attempts: int = Field(300, alias="maxReadyAttempts")

    @validator("platform")
    def validate_platform(cls, v: str) -> str:
        """Ensure the platform is supported."""
        get_platform(v)
        return v.strip().lower()

    @validator("max_ready_attempts")
    def validate_max_ready_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("maxReadyAttempts must be at least 1")
        return v

    @classmethod
    def from_properties(
        cls, platform: str, properties: Mapping[str, Any]
    ) -> "ContainerSettings":
        """
        Create settings from ``<platform>.<key>`` properties.

        Args:
            platform: Platform tag used as the key prefix
            properties: Flat key/value properties

        Returns:
            ContainerSettings for the platform
        """
        prefix = f"{platform}."
        values = {
            key[len(prefix):]: value
            for key, value in properties.items()
            if key.startswith(prefix) and value is not None and str(value) != ""
        }
        return cls.model_validate({"platform": platform, **values})

    def get_platform(self) -> Platform:
        return get_platform(self.platform)

    def get_start_mode(self) -> StartMode:
        return StartMode.parse(self.start_mode)

    def get_stop_mode(self) -> StopMode:
        return StopMode.parse(self.stop_mode)

    def resource_spec(self) -> DatabaseResourceSpec:
        """Build the immutable resource spec for this container."""
        platform = self.get_platform()
        return DatabaseResourceSpec(
            db_name=self.db_name,
            db_user=self.db_user,
            db_password=self.db_password or platform.default_password,
            admin_user=platform.admin_user,
            admin_password=self.admin_password or platform.default_admin_password,
            extensions=self.extensions,
            extra_db=self.extra_db,
            extra_db_user=self.extra_db_user,
            extra_db_password=self.extra_db_password,
            collation=self.collation,
        )

    def descriptor(self, spec: Optional[DatabaseResourceSpec] = None) -> ContainerDescriptor:
        """Build the immutable container descriptor for this container."""
        platform = self.get_platform()
        spec = spec or self.resource_spec()
        tmpfs = (self.tmpfs or platform.default_tmpfs) if self.in_memory else None
        return ContainerDescriptor(
            name=self.container_name or platform.default_container_name,
            image=self.image or platform.image(self.version),
            port=self.port or platform.default_port,
            internal_port=self.internal_port or platform.internal_port,
            platform=platform.tag,
            tmpfs=tmpfs,
            environment=platform.environment(spec),
        )


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, str]:
    flat: Dict[str, str] = {}
    for key, value in data.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, f"{full_key}."))
        elif value is not None:
            flat[full_key] = str(value).lower() if isinstance(value, bool) else str(value)
    return flat


def load_properties(path: str) -> Dict[str, str]:
    """
    Load flat key/value properties from a file.

    ``.yml``/``.yaml`` files are parsed as YAML with nested mappings flattened
    using dots; anything else is read as ``key=value`` lines with ``#`` and
    ``!`` comments.

    Args:
        path: Properties file path

    Returns:
        Dictionary of property keys to string values

    Raises:
        ValueError: If the file cannot be parsed
    """
    file_path = Path(path)
    text = file_path.read_text(encoding="utf-8")

    if file_path.suffix.lower() in (".yml", ".yaml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML properties in {path}: {e}") from e
        if not data:
            logger.warning(f"Empty properties file: {path}")
            return {}
        if not isinstance(data, Mapping):
            raise ValueError(f"Properties file {path} must contain a mapping")
        return _flatten(data)

    properties: Dict[str, str] = {}
    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith(("#", "!")):
            continue
        if "=" in line:
            key, value = line.split("=", 1)
        elif ":" in line:
            key, value = line.split(":", 1)
        else:
            raise ValueError(f"Invalid property on line {line_no} of {path}: {raw}")
        properties[key.strip()] = value.strip()
    return properties


def load_config(cli_overrides: Optional[dict] = None) -> DbContainersConfig:
    """
    Load configuration with optional CLI overrides.

    Args:
        cli_overrides: CLI argument overrides

    Returns:
        Loaded configuration
    """
    config = DbContainersConfig()

    if cli_overrides:
        config_data = config.model_dump()
        config_data.update({k: v for k, v in cli_overrides.items() if v is not None})
        config = DbContainersConfig(**config_data)

    return config
