"""
Database container lifecycle

DbContainer sequences the runtime commands, readiness polls and resource
provisioning into the start modes (create, dropCreate, container) and stop
modes (stop, remove) used by test code.
"""

import logging
import time
from typing import List, Optional, Union

from .connectivity import ConnectivityProber
from .models import (
    ContainerDescriptor,
    ContainerStartError,
    DatabaseResourceSpec,
    ProvisionOutcome,
    StartMode,
    StopMode,
)
from .platforms.base import Platform, ResourceProvisioner
from .readiness import ReadinessPoller
from .runtime import ContainerRuntime


class DbContainer:
    """
    A named database container and the database resources inside it.

    Starting always makes sure the container process runs (fresh run, resume
    of a stopped container, or nothing when already running), then waits for
    the engine in two steps: the engine accepting local commands, then the
    admin user accepting SQL. Only after provisioning does it wait for client
    connections, so a True result means a client can connect.
    """

    def __init__(
        self,
        descriptor: ContainerDescriptor,
        spec: DatabaseResourceSpec,
        runtime: ContainerRuntime,
        provisioner: ResourceProvisioner,
        prober: ConnectivityProber,
        ready_poller: ReadinessPoller,
        connectivity_poller: ReadinessPoller,
        start_mode: StartMode = StartMode.CREATE,
        stop_mode: StopMode = StopMode.STOP_ONLY,
        platform: Optional[Platform] = None,
        host: str = "localhost",
        logger: Optional[logging.Logger] = None,
    ):
        self.descriptor = descriptor
        self.spec = spec
        self.runtime = runtime
        self.provisioner = provisioner
        self.prober = prober
        self.ready_poller = ready_poller
        self.connectivity_poller = connectivity_poller
        self.default_start_mode = start_mode
        self.default_stop_mode = stop_mode
        self.platform = platform
        self.host = host
        self.logger = logger or logging.getLogger(__name__)
        self.start_mode: Optional[StartMode] = None

    @property
    def name(self) -> str:
        return self.descriptor.name

    def summary(self) -> str:
        return (
            f"{self.descriptor.platform} port:{self.descriptor.port} "
            f"db:{self.spec.db_name} user:{self.spec.db_user} "
            f"extensions:{self.spec.extension_list()}"
        )

    # -- start -------------------------------------------------------------

    def start(self, start_mode: Union[StartMode, str, None] = None) -> bool:
        """
        Start the container using a start mode.

        Args:
            start_mode: CREATE, DROP_CREATE or CONTAINER_ONLY (or their
                configuration strings); defaults to the configured mode

        Returns:
            True when the database is reachable and provisioned
        """
        mode = StartMode.parse(start_mode) if start_mode is not None else self.default_start_mode
        start_time = time.time()

        if mode is StartMode.DROP_CREATE:
            started = self.start_with_drop_create()
        elif mode is StartMode.CONTAINER_ONLY:
            started = self.start_container_only()
        else:
            started = self.start_with_create()

        elapsed = time.time() - start_time
        if started:
            self.logger.info(f"Container {self.name} ready in {elapsed:.1f}s mode:{mode.value}")
        else:
            self.logger.warning(f"Container {self.name} failed to start mode:{mode.value}")
        return started

    def start_with_create(self) -> bool:
        """Start ensuring the user, database and extensions exist."""
        self.start_mode = StartMode.CREATE
        if not self._start_and_wait_for_engine():
            return False
        if not self._provision(drop_first=False):
            return False
        return self.wait_for_connectivity(admin=not self.spec.user_defined)

    def start_with_drop_create(self) -> bool:
        """Start dropping and re-creating the database and user."""
        self.start_mode = StartMode.DROP_CREATE
        if not self._start_and_wait_for_engine():
            return False
        if not self._provision(drop_first=True):
            return False
        return self.wait_for_connectivity(admin=not self.spec.user_defined)

    def start_container_only(self) -> bool:
        """Start the container without touching users, databases or extensions."""
        self.start_mode = StartMode.CONTAINER_ONLY
        if not self._start_and_wait_for_engine():
            return False
        return self.wait_for_connectivity(admin=True)

    def start_if_needed(self) -> bool:
        """
        Make sure the container process is running.

        Returns:
            False if the run or resume command failed
        """
        if self.runtime.is_running(self.name):
            self.logger.info(f"Container {self.name} running with {self.summary()} mode:{self.start_mode}")
            return True
        if self.runtime.is_registered(self.name):
            self.logger.info(f"Start container {self.name} with {self.summary()} mode:{self.start_mode}")
            return self.runtime.resume(self.name)
        self.logger.info(f"Run container {self.name} with {self.summary()} mode:{self.start_mode}")
        return self.runtime.run(self.descriptor)

    def _start_and_wait_for_engine(self) -> bool:
        if not self.start_if_needed():
            self.logger.warning(f"Failed to start container {self.name}")
            return False
        if not self.wait_for_database_ready():
            self.logger.warning(f"Database engine in container {self.name} did not become ready")
            return False
        return True

    def wait_for_database_ready(self) -> bool:
        """Wait until the engine accepts local commands and admin SQL."""
        return self.ready_poller.wait(
            self.provisioner.is_engine_ready, f"{self.name} engine"
        ) and self.ready_poller.wait(
            self.provisioner.is_admin_ready, f"{self.name} admin commands"
        )

    def wait_for_connectivity(self, admin: bool = False) -> bool:
        """Wait until a client connection succeeds as the target user (or admin)."""
        probe = self.prober.check_admin if admin else self.prober.check_user
        if self.connectivity_poller.wait(probe, f"{self.name} client connection"):
            return True
        self.logger.warning(f"Failed waiting for connectivity to {self.name}")
        return False

    # -- provisioning ------------------------------------------------------

    def _provisioners(self) -> List[ResourceProvisioner]:
        provisioners = [self.provisioner]
        extra = self.spec.extra()
        if extra is not None:
            provisioners.append(self.provisioner.for_spec(extra))
        return provisioners

    def _provision(self, drop_first: bool) -> bool:
        """
        Create (optionally after dropping) users, databases and extensions.

        Databases are dropped before users since a database keeps a reference
        to its owner. Any failed step ends the sequence.
        """
        main, *extras = self._provisioners()

        steps = []
        if drop_first:
            steps.extend(p.drop_database_if_exists for p in (main, *extras))
            steps.extend(p.drop_user_if_exists for p in (main, *extras))
        steps.append(lambda: main.create_user(check_exists=not drop_first))
        steps.append(lambda: main.create_database(check_exists=not drop_first))
        for extra in extras:
            steps.append(extra.create_user)
            steps.append(extra.create_database)

        for step in steps:
            if step() is ProvisionOutcome.FAILED:
                self.logger.warning(f"Provisioning failed for container {self.name}")
                return False

        if not main.create_extensions():
            self.logger.warning(f"Failed to create extensions for container {self.name}")
            return False
        return True

    def database_exists(self) -> bool:
        return self.provisioner.database_exists()

    def user_exists(self) -> bool:
        return self.provisioner.user_exists()

    # -- stop --------------------------------------------------------------

    def stop(self, stop_mode: Union[StopMode, str, None] = None) -> None:
        """
        Stop the container using a stop mode.

        Args:
            stop_mode: STOP_ONLY keeps the container for reuse, REMOVE deletes it
        """
        mode = StopMode.parse(stop_mode) if stop_mode is not None else self.default_stop_mode
        if mode is StopMode.REMOVE:
            self.stop_remove()
        else:
            self.stop_only()

    def stop_only(self) -> None:
        """Stop the container if it is running, keeping its data."""
        self.runtime.stop_if_running(self.name)

    def stop_remove(self) -> None:
        """Stop and remove the container, discarding its data."""
        self.runtime.stop_remove(self.name)

    def is_running(self) -> bool:
        return self.runtime.is_running(self.name)

    def is_registered(self) -> bool:
        return self.runtime.is_registered(self.name)

    # -- clients -----------------------------------------------------------

    def connection_url(self, admin: bool = False) -> str:
        """Return the client connection URL for the target user or admin."""
        if self.platform is None:
            raise ValueError(f"No platform configured for container {self.name}")
        return self.platform.connection_url(self.descriptor, self.spec, host=self.host, admin=admin)

    def __enter__(self) -> "DbContainer":
        if not self.start():
            raise ContainerStartError(f"Container {self.name} failed to start")
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.stop()
