"""
MySQL platform

Provisioning runs the ``mysql`` client inside the container as root in batch
mode without column names, so a count query prints a single number and DDL
prints nothing. Client connectivity uses PyMySQL.
"""

import logging
from typing import Dict, List, Optional

import pymysql

from ..connectivity import ConnectivityProber
from ..models import DatabaseResourceSpec, ProcessResult, ProvisionOutcome, UnexpectedOutputError
from .base import Platform, ResourceProvisioner

logger = logging.getLogger(__name__)

# TCP only: the server started during image initialisation listens on the socket alone
TCP_ARGS = ["-h", "127.0.0.1", "--protocol=tcp"]


def sql_literal(value: str) -> str:
    """Quote a value as a MySQL string literal."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


class MySqlProvisioner(ResourceProvisioner):
    """Manages users, databases and plugins with the mysql client."""

    ddl_output_lines = 0

    def sql_command(self, sql: str, database: Optional[str] = None) -> List[str]:
        admin_user = self.spec.admin_user or MySqlPlatform.admin_user
        cmd = ["mysql", *TCP_ARGS, "-u", admin_user, "-N", "-s"]
        if database:
            cmd.extend(["-D", database])
        cmd.extend(["-e", sql])
        return cmd

    def sql_env(self) -> Dict[str, str]:
        # keeps the password off the command line and avoids the client warning
        return {"MYSQL_PWD": self.spec.admin_password}

    def engine_ready_command(self) -> List[str]:
        return ["mysqladmin", "ping", *TCP_ARGS, "--silent"]

    def count_rows(self, result: ProcessResult) -> int:
        """Parse the single ``count(*)`` value printed by the client."""
        lines = result.output_lines()
        if len(lines) != 1 or not lines[0].isdigit():
            raise UnexpectedOutputError("Unexpected mysql count output", result)
        return int(lines[0])

    def database_exists_sql(self, db_name: str) -> str:
        return (
            "select count(*) from information_schema.schemata "
            f"where schema_name = {sql_literal(db_name)}"
        )

    def user_exists_sql(self, db_user: str) -> str:
        return f"select count(*) from mysql.user where user = {sql_literal(db_user)}"

    def create_user_sql(self, db_user: str, db_password: str) -> str:
        return f"create user '{db_user}'@'%' identified by {sql_literal(db_password)}"

    def create_database_sql(self, db_name: str, owner: Optional[str]) -> str:
        sql = f"create database {db_name}"
        if owner:
            sql += f"; grant all privileges on {db_name}.* to '{owner}'@'%'"
        return sql

    def drop_database_sql(self, db_name: str) -> str:
        return f"drop database if exists {db_name}"

    def drop_user_sql(self, db_user: str) -> str:
        return f"drop user if exists '{db_user}'@'%'"

    def create_extension(self, extension: str) -> ProvisionOutcome:
        """Install a server plugin unless it is already installed."""
        installed = self.row_count(
            "select count(*) from information_schema.plugins "
            f"where plugin_name = {sql_literal(extension)}"
        )
        if installed:
            logger.debug(f"Plugin {extension} already installed")
            return ProvisionOutcome.SKIPPED
        if self.execute_ddl(f"install plugin {extension} soname '{extension}.so'"):
            return ProvisionOutcome.CREATED
        return ProvisionOutcome.FAILED


class MySqlProber(ConnectivityProber):
    """Connectivity check using PyMySQL."""

    connection_errors = (pymysql.MySQLError, OSError)

    def connect(self, admin: bool):
        if admin or not self.spec.user_defined:
            user, password, database = self.spec.admin_user, self.spec.admin_password, None
        else:
            user, password = self.spec.db_user, self.spec.db_password
            database = self.spec.db_name or None
        return pymysql.connect(
            host=self.host,
            port=self.descriptor.port,
            user=user,
            password=password,
            database=database,
            connect_timeout=self.connect_timeout,
        )


class MySqlPlatform(Platform):
    """MySQL defaults for the official ``mysql`` image."""

    tag = "mysql"
    image_repository = "mysql"
    default_version = "8.0"
    default_container_name = "ut_mysql"
    default_port = 7306
    internal_port = 3306
    default_tmpfs = "/var/lib/mysql:rw"
    admin_user = "root"
    admin_database = ""
    url_scheme = "mysql"

    provisioner_class = MySqlProvisioner
    prober_class = MySqlProber

    def environment(self, spec: DatabaseResourceSpec) -> Dict[str, str]:
        return {"MYSQL_ROOT_PASSWORD": spec.admin_password}
