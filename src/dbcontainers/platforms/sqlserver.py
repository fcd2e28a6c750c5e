"""
SQL Server platform

Provisioning runs ``sqlcmd`` inside the container as ``sa``. A managed user is
a server login plus a database user mapped to it in the managed database, made
a member of ``db_owner``. Client connectivity uses pyodbc.
"""

import logging
from typing import Dict, List, Optional

from ..connectivity import ConnectivityProber
from ..models import DatabaseResourceSpec, ProcessResult, ProvisionOutcome, UnexpectedOutputError
from .base import Platform, ResourceProvisioner

logger = logging.getLogger(__name__)

SQLCMD = "/opt/mssql-tools18/bin/sqlcmd"
ODBC_DRIVER = "ODBC Driver 18 for SQL Server"

# case sensitive, used unless a collation is configured
DEFAULT_COLLATION = "Latin1_General_100_BIN2"


def sql_literal(value: str) -> str:
    """Quote a value as a T-SQL unicode string literal."""
    return "N'" + value.replace("'", "''") + "'"


def sql_identifier(name: str) -> str:
    """Quote a login, user or database name with brackets."""
    return "[" + name.replace("]", "]]") + "]"


class SqlServerProvisioner(ResourceProvisioner):
    """Manages logins, databases and database users with sqlcmd."""

    ddl_output_lines = 0

    def sql_command(self, sql: str, database: Optional[str] = None) -> List[str]:
        # -h -1 and -W print bare values, -r1 sends informational messages to stderr
        cmd = [
            SQLCMD, "-S", "localhost", "-U", self.spec.admin_user or SqlServerPlatform.admin_user,
            "-C", "-b", "-r1", "-h", "-1", "-W",
        ]
        if database:
            cmd.extend(["-d", database])
        cmd.extend(["-Q", f"set nocount on; {sql}"])
        return cmd

    def sql_env(self) -> Dict[str, str]:
        return {"SQLCMDPASSWORD": self.spec.admin_password}

    def engine_ready_command(self) -> List[str]:
        return [
            SQLCMD, "-S", "localhost", "-U", self.spec.admin_user or SqlServerPlatform.admin_user,
            "-C", "-l", "2", "-Q", "select 1",
        ]

    def count_rows(self, result: ProcessResult) -> int:
        """Parse the single ``count(*)`` value printed by sqlcmd."""
        lines = result.output_lines()
        if len(lines) != 1 or not lines[0].isdigit():
            raise UnexpectedOutputError("Unexpected sqlcmd count output", result)
        return int(lines[0])

    def database_exists_sql(self, db_name: str) -> str:
        return f"select count(*) from sys.databases where name = {sql_literal(db_name)}"

    def user_exists_sql(self, db_user: str) -> str:
        return (
            "select count(*) from sys.server_principals "
            f"where name = {sql_literal(db_user)} and type = 'S'"
        )

    def database_user_exists_sql(self, db_user: str) -> str:
        return f"select count(*) from sys.database_principals where name = {sql_literal(db_user)}"

    def create_user_sql(self, db_user: str, db_password: str) -> str:
        return f"create login {sql_identifier(db_user)} with password = {sql_literal(db_password)}"

    def create_database_sql(self, db_name: str, owner: Optional[str]) -> str:
        # ownership is granted through the db_owner role once the database exists
        return f"create database {sql_identifier(db_name)}"

    def create_database_user_sql(self, db_user: str) -> str:
        user = sql_identifier(db_user)
        return (
            f"create user {user} for login {user}; "
            f"exec sp_addrolemember 'db_owner', {sql_literal(db_user)}"
        )

    def drop_database_sql(self, db_name: str) -> str:
        database = sql_identifier(db_name)
        return (
            f"alter database {database} set single_user with rollback immediate; "
            f"drop database {database}"
        )

    def drop_user_sql(self, db_user: str) -> str:
        # pooled client connections keep sessions open, which blocks drop login
        return (
            "declare @kill nvarchar(max) = N''; "
            "select @kill += N'kill ' + cast(session_id as nvarchar(10)) + N'; ' "
            f"from sys.dm_exec_sessions where login_name = {sql_literal(db_user)}; "
            "exec(@kill); "
            f"drop login {sql_identifier(db_user)}"
        )

    def create_database(self, check_exists: bool = True) -> ProvisionOutcome:
        """
        Create the managed database, then map the managed login into it.

        The database user is created as a ``db_owner`` member when the
        database does not have it yet, also when the database already existed.
        """
        outcome = super().create_database(check_exists)
        if not outcome.ok or not (self.spec.database_defined and self.spec.user_defined):
            return outcome

        db_name, db_user = self.spec.db_name, self.spec.db_user
        if self.row_count(self.database_user_exists_sql(db_user), db_name):
            logger.debug(f"Database user {db_user} already exists in {db_name}")
            return outcome

        logger.debug(f"Create sqlserver database user {db_user} in {db_name}")
        if not self.execute_ddl(self.create_database_user_sql(db_user), db_name):
            return ProvisionOutcome.FAILED
        return outcome

    def create_extension(self, extension: str) -> ProvisionOutcome:
        logger.warning(f"SQL Server has no extensions, ignoring {extension}")
        return ProvisionOutcome.SKIPPED


class SqlServerProber(ConnectivityProber):
    """Connectivity check using pyodbc and the Microsoft ODBC driver."""

    def connect(self, admin: bool):
        # imported here so the package works on hosts without unixODBC
        import pyodbc

        if admin or not self.spec.user_defined:
            user, password = self.spec.admin_user, self.spec.admin_password
            database = SqlServerPlatform.admin_database
        else:
            user, password = self.spec.db_user, self.spec.db_password
            database = self.spec.db_name or SqlServerPlatform.admin_database

        connection_string = (
            f"DRIVER={{{ODBC_DRIVER}}};SERVER={self.host},{self.descriptor.port};"
            f"DATABASE={database};UID={user};PWD={{{password.replace('}', '}}')}}};"
            "TrustServerCertificate=yes"
        )
        try:
            return pyodbc.connect(connection_string, timeout=self.connect_timeout)
        except pyodbc.Error as e:
            raise ConnectionError(str(e)) from e


class SqlServerPlatform(Platform):
    """SQL Server defaults for the ``mcr.microsoft.com/mssql/server`` image."""

    tag = "sqlserver"
    image_repository = "mcr.microsoft.com/mssql/server"
    default_version = "2022-latest"
    default_container_name = "ut_sqlserver"
    default_port = 1433
    internal_port = 1433
    default_tmpfs = None
    admin_user = "sa"
    admin_database = "master"
    url_scheme = "mssql"
    # the server rejects passwords that fail its complexity policy
    default_admin_password = "SqlS3rv#r"
    default_password = "SqlS3rv#r"

    provisioner_class = SqlServerProvisioner
    prober_class = SqlServerProber

    def environment(self, spec: DatabaseResourceSpec) -> Dict[str, str]:
        """
        Accept the EULA and set the ``sa`` password and server collation.

        A collation of ``default`` keeps the image's own server collation.
        """
        env = {"ACCEPT_EULA": "Y", "SA_PASSWORD": spec.admin_password}
        collation = (spec.collation or "").strip()
        if collation.lower() != "default":
            env["MSSQL_COLLATION"] = collation or DEFAULT_COLLATION
        return env
