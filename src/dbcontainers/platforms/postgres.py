"""
PostgreSQL platform

Provisioning runs ``psql`` inside the container as the ``postgres`` superuser
and reads psql's aligned output; client connectivity uses psycopg2.

References:
    https://github.com/docker-library/postgres/issues/146
"""

import logging
import re
from typing import Dict, List, Optional

import psycopg2

from ..connectivity import ConnectivityProber
from ..models import DatabaseResourceSpec, ProcessResult, ProvisionOutcome, UnexpectedOutputError
from .base import Platform, ResourceProvisioner

logger = logging.getLogger(__name__)

# psql footer, e.g. "(0 rows)" or "(1 row)"
ROW_COUNT_PATTERN = re.compile(r"^\((\d+) rows?\)$")


def sql_literal(value: str) -> str:
    """Quote a value as an SQL string literal."""
    return "'" + value.replace("'", "''") + "'"


def sql_identifier(name: str) -> str:
    """Quote a role, database or extension name, keeping its case."""
    return '"' + name.replace('"', '""') + '"'


class PostgresProvisioner(ResourceProvisioner):
    """Manages roles, databases and extensions with psql."""

    ddl_output_lines = 1  # command tag, e.g. "CREATE ROLE"

    def sql_command(self, sql: str, database: Optional[str] = None) -> List[str]:
        cmd = ["psql", "-U", self.spec.admin_user or PostgresPlatform.admin_user]
        if database:
            cmd.extend(["-d", database])
        cmd.extend(["-c", sql])
        return cmd

    def engine_ready_command(self) -> List[str]:
        # pg_isready inside the container, so no local client install is needed
        return ["pg_isready", "-h", "localhost", "-p", str(self.descriptor.internal_port)]

    def count_rows(self, result: ProcessResult) -> int:
        """
        Parse the row count from psql's footer line.

        psql prints a header, a separator, the rows and a "(N rows)" footer,
        so anything shorter than three lines or without that footer is treated
        as malformed.
        """
        lines = result.output_lines()
        if len(lines) < 3:
            raise UnexpectedOutputError("Unexpected psql output", result)
        match = ROW_COUNT_PATTERN.match(lines[-1])
        if not match:
            raise UnexpectedOutputError("Missing psql row count", result)
        return int(match.group(1))

    def database_exists_sql(self, db_name: str) -> str:
        return f"select 1 from pg_database where datname = {sql_literal(db_name)}"

    def user_exists_sql(self, db_user: str) -> str:
        return f"select rolname from pg_roles where rolname = {sql_literal(db_user)}"

    def create_user_sql(self, db_user: str, db_password: str) -> str:
        return f"create role {sql_identifier(db_user)} password {sql_literal(db_password)} login"

    def create_database_sql(self, db_name: str, owner: Optional[str]) -> str:
        if owner:
            return f"create database {sql_identifier(db_name)} with owner {sql_identifier(owner)}"
        return f"create database {sql_identifier(db_name)}"

    def drop_database_sql(self, db_name: str) -> str:
        return f"drop database if exists {sql_identifier(db_name)}"

    def drop_user_sql(self, db_user: str) -> str:
        return f"drop role if exists {sql_identifier(db_user)}"

    def create_extension(self, extension: str) -> ProvisionOutcome:
        sql = f"create extension if not exists {sql_identifier(extension)}"
        if self.execute_ddl(sql, database=self.spec.db_name):
            return ProvisionOutcome.CREATED
        return ProvisionOutcome.FAILED


class PostgresProber(ConnectivityProber):
    """Connectivity check using psycopg2."""

    connection_errors = (psycopg2.Error, OSError)

    def connect(self, admin: bool):
        if admin or not self.spec.user_defined:
            user, password = self.spec.admin_user, self.spec.admin_password
            dbname = PostgresPlatform.admin_database
        else:
            user, password = self.spec.db_user, self.spec.db_password
            dbname = self.spec.db_name or PostgresPlatform.admin_database
        return psycopg2.connect(
            host=self.host,
            port=self.descriptor.port,
            dbname=dbname,
            user=user,
            password=password,
            connect_timeout=self.connect_timeout,
        )


class PostgresPlatform(Platform):
    """PostgreSQL defaults for the official ``postgres`` image."""

    tag = "postgres"
    image_repository = "postgres"
    default_version = "15"
    default_container_name = "ut_postgres"
    default_port = 6432
    internal_port = 5432
    default_tmpfs = "/var/lib/postgresql/data:rw"
    admin_user = "postgres"
    admin_database = "postgres"
    url_scheme = "postgresql"

    provisioner_class = PostgresProvisioner
    prober_class = PostgresProber

    def environment(self, spec: DatabaseResourceSpec) -> Dict[str, str]:
        return {"POSTGRES_PASSWORD": spec.admin_password}
