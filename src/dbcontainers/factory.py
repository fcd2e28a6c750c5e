"""
Container factory for dbcontainers

Builds DbContainer instances from flat key/value properties. A platform is
configured when any ``<platform>.*`` property is present.
"""

import logging
import threading
from typing import Callable, Dict, List, Mapping, Optional

from .config import ContainerSettings, DbContainersConfig
from .container import DbContainer
from .logging_config import SubprocessLogHandler
from .platforms import PLATFORMS
from .process import ProcessExecutor
from .readiness import ReadinessPoller
from .runtime import ContainerRuntime

logger = logging.getLogger(__name__)


def create_container(
    settings: ContainerSettings,
    config: Optional[DbContainersConfig] = None,
    runtime: Optional[ContainerRuntime] = None,
    cancel: Optional[threading.Event] = None,
) -> DbContainer:
    """
    Wire a DbContainer for one platform's settings.

    Args:
        settings: Container and resource settings
        config: Global configuration (defaults from the environment)
        runtime: Container runtime to use instead of one built from config
        cancel: Event that ends the container's readiness waits once set

    Returns:
        Configured DbContainer
    """
    config = config or DbContainersConfig()
    platform = settings.get_platform()
    spec = settings.resource_spec()
    descriptor = settings.descriptor(spec)
    container_logger = logging.getLogger(f"dbcontainers.container.{descriptor.name}")

    if runtime is None:
        log_handler = None
        if config.command_log:
            log_handler = SubprocessLogHandler(f"container_{descriptor.name}", config.log_dir)
        executor = ProcessExecutor(timeout=config.command_timeout, log_handler=log_handler)
        runtime = ContainerRuntime(config.container_runtime, executor)

    return DbContainer(
        descriptor=descriptor,
        spec=spec,
        runtime=runtime,
        provisioner=platform.provisioner(descriptor, spec, runtime),
        prober=platform.prober(
            descriptor, spec, host=config.host, connect_timeout=config.connect_timeout
        ),
        ready_poller=ReadinessPoller(
            settings.max_ready_attempts,
            config.ready_delay,
            cancel=cancel,
            logger=container_logger,
        ),
        connectivity_poller=ReadinessPoller(
            config.connectivity_attempts,
            config.connectivity_delay,
            cancel=cancel,
            logger=container_logger,
        ),
        start_mode=settings.get_start_mode(),
        stop_mode=settings.get_stop_mode(),
        platform=platform,
        host=config.host,
        logger=container_logger,
    )


class ContainerFactory:
    """Creates, starts and stops the containers configured in properties."""

    def __init__(
        self,
        properties: Mapping[str, str],
        config: Optional[DbContainersConfig] = None,
        runtime: Optional[ContainerRuntime] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self.properties = dict(properties)
        self.config = config or DbContainersConfig()
        self.runtime = runtime
        self.cancel = cancel
        self.containers: Dict[str, DbContainer] = {}

        logger.debug(f"Configured database platforms: {self.platforms()}")
        for tag in self.platforms():
            settings = ContainerSettings.from_properties(tag, self.properties)
            self.containers[tag] = create_container(settings, self.config, runtime, cancel)

    def platforms(self) -> List[str]:
        """Platforms with at least one property configured, in registry order."""
        return [
            tag
            for tag in PLATFORMS
            if any(key.startswith(f"{tag}.") for key in self.properties)
        ]

    def container(self, platform: str) -> DbContainer:
        """
        Return the container for a platform.

        Raises:
            KeyError: If the platform has no properties configured
        """
        key = platform.strip().lower()
        if key not in self.containers:
            raise KeyError(f"No container configured for platform '{platform}'")
        return self.containers[key]

    def start_containers(self, log: Optional[Callable[[str], None]] = None) -> bool:
        """
        Start every configured container with its configured start mode.

        Returns:
            True if all containers started
        """
        all_started = True
        for tag, container in self.containers.items():
            if log:
                log(f"Starting {tag} container {container.name}")
            if not container.start():
                all_started = False
                if log:
                    log(f"Failed to start {tag} container {container.name}")
        return all_started

    def stop_containers(self, log: Optional[Callable[[str], None]] = None) -> None:
        """Stop every configured container with its configured stop mode."""
        for tag, container in self.containers.items():
            if log:
                log(f"Stopping {tag} container {container.name}")
            container.stop()
