"""
Tests for building containers from properties.
"""

import threading
from unittest.mock import patch

import pytest

from dbcontainers.config import ContainerSettings
from dbcontainers.factory import ContainerFactory, create_container
from dbcontainers.models import StartMode, StopMode
from dbcontainers.platforms.mysql import MySqlProber, MySqlProvisioner
from dbcontainers.platforms.postgres import PostgresProber, PostgresProvisioner
from dbcontainers.runtime import ContainerRuntime

POSTGRES_PROPERTIES = {
    "postgres.dbName": "app_db",
    "postgres.dbUser": "app_user",
    "postgres.dbPassword": "secret",
    "postgres.dbExtensions": "hstore",
    "postgres.stopMode": "remove",
}


class TestCreateContainer:
    """Test wiring a single container."""

    def test_postgres_wiring(self, test_config):
        settings = ContainerSettings.from_properties("postgres", POSTGRES_PROPERTIES)
        container = create_container(settings, test_config)

        assert container.name == "ut_postgres"
        assert isinstance(container.provisioner, PostgresProvisioner)
        assert isinstance(container.prober, PostgresProber)
        assert isinstance(container.runtime, ContainerRuntime)
        assert container.runtime.executable == "docker"
        assert container.ready_poller.attempts == 300
        assert container.connectivity_poller.attempts == 3
        assert container.default_start_mode is StartMode.CREATE
        assert container.default_stop_mode is StopMode.REMOVE

    def test_mysql_wiring(self, test_config):
        settings = ContainerSettings.from_properties("mysql", {"mysql.dbName": "app_db"})
        container = create_container(settings, test_config)

        assert container.name == "ut_mysql"
        assert isinstance(container.provisioner, MySqlProvisioner)
        assert isinstance(container.prober, MySqlProber)

    def test_runtime_from_config(self, test_config):
        test_config.container_runtime = "podman"
        test_config.command_timeout = 30.0

        container = create_container(ContainerSettings(platform="postgres"), test_config)

        assert container.runtime.executable == "podman"
        assert container.runtime.executor.timeout == 30.0
        assert container.runtime.executor.log_handler is None

    def test_command_log(self, test_config, temp_workspace):
        test_config.command_log = True
        test_config.log_dir = str(temp_workspace)

        container = create_container(ContainerSettings(platform="postgres"), test_config)

        log_file = container.runtime.executor.log_handler.get_log_file_path()
        assert log_file.startswith(str(temp_workspace / "containers" / "container_ut_postgres"))

    def test_container_logger(self, test_config):
        container = create_container(ContainerSettings(platform="postgres"), test_config)

        assert container.logger.name == "dbcontainers.container.ut_postgres"
        assert container.ready_poller.logger is container.logger
        assert container.connectivity_poller.logger is container.logger

    def test_cancel_reaches_both_pollers(self, test_config):
        cancel = threading.Event()

        container = create_container(
            ContainerSettings(platform="postgres"), test_config, cancel=cancel
        )

        assert container.ready_poller.cancel is cancel
        assert container.connectivity_poller.cancel is cancel

    def test_shared_runtime(self, test_config, runtime):
        container = create_container(ContainerSettings(platform="postgres"), test_config, runtime)

        assert container.runtime is runtime
        assert container.provisioner.runtime is runtime


class TestContainerFactory:
    """Test the multi-platform factory."""

    def test_discovers_configured_platforms(self, test_config):
        factory = ContainerFactory(POSTGRES_PROPERTIES, test_config)

        assert factory.platforms() == ["postgres"]
        assert list(factory.containers) == ["postgres"]

    def test_both_platforms(self, test_config):
        properties = dict(POSTGRES_PROPERTIES, **{"mysql.dbName": "app_db"})
        factory = ContainerFactory(properties, test_config)

        assert factory.platforms() == ["postgres", "mysql"]
        assert factory.container("MySQL").name == "ut_mysql"

    def test_unconfigured_platform(self, test_config):
        factory = ContainerFactory(POSTGRES_PROPERTIES, test_config)

        with pytest.raises(KeyError):
            factory.container("mysql")

    def test_no_properties(self, test_config):
        assert ContainerFactory({}, test_config).containers == {}

    @patch("dbcontainers.platforms.postgres.psycopg2.connect")
    def test_start_and_stop_containers(self, mock_connect, test_config, runtime, engine):
        factory = ContainerFactory(POSTGRES_PROPERTIES, test_config, runtime)
        messages = []

        assert factory.start_containers(messages.append) is True
        assert engine.databases["app_db"] == "app_user"
        assert engine.extensions["app_db"] == ["hstore"]
        assert mock_connect.call_args.kwargs["user"] == "app_user"

        factory.stop_containers(messages.append)

        assert not runtime.is_registered("ut_postgres")
        assert messages == [
            "Starting postgres container ut_postgres",
            "Stopping postgres container ut_postgres",
        ]

    @patch("dbcontainers.platforms.postgres.psycopg2.connect")
    def test_cancelled_start(self, mock_connect, test_config, runtime, engine):
        cancel = threading.Event()
        factory = ContainerFactory(POSTGRES_PROPERTIES, test_config, runtime, cancel=cancel)
        cancel.set()

        assert factory.start_containers() is False

        assert runtime.lifecycle_calls() == ["run"]
        assert not any(call[0] == "exec" for call in runtime.calls)
        assert engine.statements == []
        mock_connect.assert_not_called()
        assert cancel.is_set()

    @patch("dbcontainers.platforms.postgres.psycopg2.connect")
    def test_start_failure_is_reported(self, mock_connect, test_config, runtime):
        runtime.run_fails = True
        factory = ContainerFactory(POSTGRES_PROPERTIES, test_config, runtime)
        messages = []

        assert factory.start_containers(messages.append) is False
        assert messages[-1] == "Failed to start postgres container ut_postgres"
        mock_connect.assert_not_called()
