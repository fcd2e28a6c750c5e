"""
Database platform interfaces

A Platform bundles what differs between database engines: image and port
defaults, the container environment, the ResourceProvisioner that manages
users/databases/extensions through the engine's command line client, and the
ConnectivityProber used for client connection checks.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type
from urllib.parse import quote

from ..connectivity import ConnectivityProber
from ..models import (
    ContainerDescriptor,
    DatabaseResourceSpec,
    ProcessResult,
    ProvisionOutcome,
    UnexpectedOutputError,
)
from ..runtime import ContainerRuntime

logger = logging.getLogger(__name__)


class ResourceProvisioner(ABC):
    """
    Creates and drops the database, user and extensions of a resource spec.

    All SQL is run inside the container with the engine's own client, as the
    administrative user. Existence checks parse a row count from the client
    output and raise UnexpectedOutputError when the output cannot be parsed.
    Create and drop statements succeed only when the command exits with 0 and
    prints the expected number of non-error lines.
    """

    # Non-blank stdout lines printed by a successful DDL statement
    ddl_output_lines: int = 1

    def __init__(
        self,
        descriptor: ContainerDescriptor,
        spec: DatabaseResourceSpec,
        runtime: ContainerRuntime,
    ):
        self.descriptor = descriptor
        self.spec = spec
        self.runtime = runtime

    def for_spec(self, spec: DatabaseResourceSpec) -> "ResourceProvisioner":
        """Return a provisioner of the same platform for another resource spec."""
        return type(self)(self.descriptor, spec, self.runtime)

    # -- platform specifics ------------------------------------------------

    @abstractmethod
    def sql_command(self, sql: str, database: Optional[str] = None) -> List[str]:
        """In-container command running one SQL string as the admin user."""

    def sql_env(self) -> Dict[str, str]:
        """Environment passed to in-container SQL commands."""
        return {}

    @abstractmethod
    def engine_ready_command(self) -> List[str]:
        """In-container command that exits 0 once the engine accepts commands."""

    @abstractmethod
    def count_rows(self, result: ProcessResult) -> int:
        """Parse the row count of a query from the client output."""

    @abstractmethod
    def database_exists_sql(self, db_name: str) -> str:
        pass

    @abstractmethod
    def user_exists_sql(self, db_user: str) -> str:
        pass

    @abstractmethod
    def create_user_sql(self, db_user: str, db_password: str) -> str:
        pass

    @abstractmethod
    def create_database_sql(self, db_name: str, owner: Optional[str]) -> str:
        pass

    @abstractmethod
    def drop_database_sql(self, db_name: str) -> str:
        pass

    @abstractmethod
    def drop_user_sql(self, db_user: str) -> str:
        pass

    @abstractmethod
    def create_extension(self, extension: str) -> ProvisionOutcome:
        """Enable one extension (or plugin) for the managed database."""

    # -- command helpers ---------------------------------------------------

    def query(self, sql: str, database: Optional[str] = None) -> ProcessResult:
        """Run SQL inside the container as the admin user."""
        return self.runtime.exec(
            self.descriptor.name, self.sql_command(sql, database), env=self.sql_env()
        )

    def row_count(self, sql: str, database: Optional[str] = None) -> int:
        """Run a query and return its row count, raising on unexpected output."""
        result = self.query(sql, database)
        if not result.success:
            raise UnexpectedOutputError(f"Query failed: {sql}", result)
        return self.count_rows(result)

    def execute_ddl(self, sql: str, database: Optional[str] = None) -> bool:
        """Run a DDL statement, returning True when its output looks successful."""
        result = self.query(sql, database)
        lines = [line for line in result.output_lines() if not line.startswith("ERROR")]
        if result.success and len(lines) == self.ddl_output_lines:
            return True
        logger.warning(
            f"Unexpected result for [{sql}] on {self.descriptor.name}: "
            f"exit {result.returncode}, stdout {result.stdout_lines}, "
            f"stderr {result.stderr_lines}"
        )
        return False

    # -- readiness ---------------------------------------------------------

    def is_engine_ready(self) -> bool:
        """True once the engine process accepts local commands."""
        return self.runtime.exec(
            self.descriptor.name, self.engine_ready_command(), env=self.sql_env()
        ).success

    def is_admin_ready(self) -> bool:
        """True once the engine accepts SQL from the admin user."""
        return self.query("select 1").success

    # -- resources ---------------------------------------------------------

    def database_exists(self) -> bool:
        """Return True if the managed database exists."""
        if not self.spec.database_defined:
            return False
        return self.row_count(self.database_exists_sql(self.spec.db_name)) > 0

    def user_exists(self) -> bool:
        """Return True if the managed user exists."""
        if not self.spec.user_defined:
            return False
        return self.row_count(self.user_exists_sql(self.spec.db_user)) > 0

    def create_user(self, check_exists: bool = True) -> ProvisionOutcome:
        """
        Create the managed user.

        Args:
            check_exists: Skip creation when the user already exists

        Returns:
            CREATED, SKIPPED when there is nothing to do, or FAILED
        """
        if not self.spec.user_defined:
            return ProvisionOutcome.SKIPPED
        if check_exists and self.user_exists():
            logger.debug(f"User {self.spec.db_user} already exists")
            return ProvisionOutcome.SKIPPED

        logger.debug(f"Create {self.descriptor.platform} user {self.spec.db_user}")
        sql = self.create_user_sql(self.spec.db_user, self.spec.db_password)
        if self.execute_ddl(sql):
            return ProvisionOutcome.CREATED
        return ProvisionOutcome.FAILED

    def create_database(self, check_exists: bool = True) -> ProvisionOutcome:
        """
        Create the managed database owned by the managed user.

        Args:
            check_exists: Skip creation when the database already exists

        Returns:
            CREATED, SKIPPED when there is nothing to do, or FAILED
        """
        if not self.spec.database_defined:
            return ProvisionOutcome.SKIPPED
        if check_exists and self.database_exists():
            logger.debug(f"Database {self.spec.db_name} already exists")
            return ProvisionOutcome.SKIPPED

        owner = self.spec.db_user if self.spec.user_defined else None
        logger.debug(
            f"Create {self.descriptor.platform} database {self.spec.db_name} with owner {owner}"
        )
        if self.execute_ddl(self.create_database_sql(self.spec.db_name, owner)):
            return ProvisionOutcome.CREATED
        return ProvisionOutcome.FAILED

    def create_extensions(self) -> bool:
        """
        Enable every configured extension, in order.

        A failing extension does not stop the remaining ones.

        Returns:
            True if all extensions were enabled (or none are configured)
        """
        extensions = self.spec.extension_list()
        if not extensions:
            return True
        if not self.spec.database_defined:
            logger.debug(f"No database configured, skipping extensions {extensions}")
            return True

        logger.debug(f"Create database extensions {extensions}")
        all_ok = True
        for extension in extensions:
            outcome = self.create_extension(extension)
            if not outcome.ok:
                logger.warning(f"Failed to create extension {extension}")
                all_ok = False
        return all_ok

    def drop_database_if_exists(self) -> ProvisionOutcome:
        """Drop the managed database, SKIPPED when it does not exist."""
        if not self.spec.database_defined or not self.database_exists():
            return ProvisionOutcome.SKIPPED
        logger.debug(f"Drop {self.descriptor.platform} database {self.spec.db_name}")
        if self.execute_ddl(self.drop_database_sql(self.spec.db_name)):
            return ProvisionOutcome.DROPPED
        return ProvisionOutcome.FAILED

    def drop_user_if_exists(self) -> ProvisionOutcome:
        """Drop the managed user, SKIPPED when it does not exist."""
        if not self.spec.user_defined or not self.user_exists():
            return ProvisionOutcome.SKIPPED
        logger.debug(f"Drop {self.descriptor.platform} user {self.spec.db_user}")
        if self.execute_ddl(self.drop_user_sql(self.spec.db_user)):
            return ProvisionOutcome.DROPPED
        return ProvisionOutcome.FAILED


class Platform(ABC):
    """Defaults and component factories for one database engine."""

    tag: str = ""
    image_repository: str = ""
    default_version: str = "latest"
    default_container_name: str = ""
    default_port: int = 0
    internal_port: int = 0
    default_tmpfs: Optional[str] = None
    admin_user: str = ""
    admin_database: str = ""
    url_scheme: str = ""
    default_admin_password: str = "admin"
    default_password: str = "test"

    provisioner_class: Type[ResourceProvisioner]
    prober_class: Type[ConnectivityProber]

    def image(self, version: Optional[str] = None) -> str:
        return f"{self.image_repository}:{version or self.default_version}"

    @abstractmethod
    def environment(self, spec: DatabaseResourceSpec) -> Dict[str, str]:
        """Environment variables for the container run command."""

    def provisioner(
        self,
        descriptor: ContainerDescriptor,
        spec: DatabaseResourceSpec,
        runtime: ContainerRuntime,
    ) -> ResourceProvisioner:
        return self.provisioner_class(descriptor, spec, runtime)

    def prober(
        self,
        descriptor: ContainerDescriptor,
        spec: DatabaseResourceSpec,
        host: str = "localhost",
        connect_timeout: int = 5,
    ) -> ConnectivityProber:
        return self.prober_class(descriptor, spec, host=host, connect_timeout=connect_timeout)

    def connection_url(
        self,
        descriptor: ContainerDescriptor,
        spec: DatabaseResourceSpec,
        host: str = "localhost",
        admin: bool = False,
    ) -> str:
        """Client connection URL for the target user (or admin), credentials percent-encoded."""
        if admin or not spec.user_defined:
            user, password, database = spec.admin_user, spec.admin_password, self.admin_database
        else:
            user, password = spec.db_user, spec.db_password
            database = spec.db_name or self.admin_database
        credentials = f"{quote(user or '', safe='')}:{quote(password or '', safe='')}"
        return f"{self.url_scheme}://{credentials}@{host}:{descriptor.port}/{database}"
