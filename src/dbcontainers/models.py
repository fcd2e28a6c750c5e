"""
Data models for dbcontainers

Defines the start/stop modes, container and resource descriptors, the result
of an external command, provisioning outcomes and the exceptions raised when
a collaborator misbehaves.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class StartMode(Enum):
    """How a container is started and what happens to its database resources."""

    CREATE = "create"
    DROP_CREATE = "dropcreate"
    CONTAINER_ONLY = "container"

    @classmethod
    def parse(cls, value: Optional[str]) -> "StartMode":
        """Parse a configured start mode, defaulting to CREATE."""
        if isinstance(value, StartMode):
            return value
        mode = (value or "").strip().lower()
        for member in cls:
            if member.value == mode:
                return member
        return cls.CREATE


class StopMode(Enum):
    """How a container is stopped."""

    STOP_ONLY = "stop"
    REMOVE = "remove"

    @classmethod
    def parse(cls, value: Optional[str]) -> "StopMode":
        """Parse a configured stop mode, defaulting to STOP_ONLY."""
        if isinstance(value, StopMode):
            return value
        mode = (value or "").strip().lower()
        for member in cls:
            if member.value == mode:
                return member
        return cls.STOP_ONLY


class ProvisionOutcome(Enum):
    """Result of a create or drop of a database resource."""

    CREATED = "created"
    DROPPED = "dropped"
    SKIPPED = "skipped"  # nothing to do
    FAILED = "failed"

    @property
    def ok(self) -> bool:
        return self is not ProvisionOutcome.FAILED


@dataclass(frozen=True)
class ContainerDescriptor:
    """Identity and runtime shape of a database container."""

    name: str
    image: str
    port: int
    internal_port: int
    platform: str
    tmpfs: Optional[str] = None
    environment: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DatabaseResourceSpec:
    """
    Desired provisioned state of the database inside a container.

    An unset ``db_name`` or ``db_user`` means that resource is not managed.
    """

    db_name: Optional[str] = None
    db_user: Optional[str] = None
    db_password: str = ""
    admin_user: str = ""
    admin_password: str = ""
    extensions: str = ""
    extra_db: Optional[str] = None
    extra_db_user: Optional[str] = None
    extra_db_password: str = ""
    collation: Optional[str] = None

    @property
    def database_defined(self) -> bool:
        return bool(self.db_name and self.db_name.strip())

    @property
    def user_defined(self) -> bool:
        return bool(self.db_user and self.db_user.strip())

    def extension_list(self) -> List[str]:
        """Configured extensions in order, blank entries dropped."""
        return parse_extensions(self.extensions)

    def extra(self) -> Optional["DatabaseResourceSpec"]:
        """
        Return the resource spec for the secondary database/user pair, if configured.

        The extra user defaults to the main user and its password to the main
        password. Extensions are only applied to the main database.
        """
        if not (self.extra_db and self.extra_db.strip()):
            return None
        return DatabaseResourceSpec(
            db_name=self.extra_db,
            db_user=self.extra_db_user or self.db_user,
            db_password=self.extra_db_password or self.db_password,
            admin_user=self.admin_user,
            admin_password=self.admin_password,
        )


def parse_extensions(extensions: Optional[str]) -> List[str]:
    """Split a comma separated extension list, trimming and dropping blanks."""
    if not extensions:
        return []
    return [name.strip() for name in extensions.split(",") if name.strip()]


@dataclass
class ProcessResult:
    """Captured result of one external command."""

    command: List[str]
    returncode: int
    stdout_lines: List[str] = field(default_factory=list)
    stderr_lines: List[str] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def output_lines(self) -> List[str]:
        """Non-blank stdout lines with surrounding whitespace removed."""
        return [line.strip() for line in self.stdout_lines if line.strip()]

    def get_summary(self) -> str:
        status = "✅ SUCCESS" if self.success else f"❌ FAILED (exit {self.returncode})"
        return f"{status}: {' '.join(self.command[:3])} ({self.elapsed:.2f}s)"


class UnexpectedOutputError(RuntimeError):
    """A command produced output that does not have the expected shape."""

    def __init__(self, message: str, result: Optional[ProcessResult] = None):
        self.result = result
        if result is not None:
            message = (
                f"{message} - exit code: {result.returncode}, "
                f"stdout: {result.stdout_lines}, stderr: {result.stderr_lines}"
            )
        super().__init__(message)


class ContainerStartError(RuntimeError):
    """Raised when a container used as a context manager fails to start."""
