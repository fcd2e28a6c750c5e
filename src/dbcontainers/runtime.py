"""
Container runtime commands for dbcontainers

Translates lifecycle intents (is it running, is it registered, run, resume,
stop, remove, exec) into docker or podman invocations. Holds no state and
no retry logic.
"""

import logging
from typing import Dict, List, Optional

from .models import ContainerDescriptor, ProcessResult
from .process import ProcessExecutor

logger = logging.getLogger(__name__)

SUPPORTED_RUNTIMES = ("docker", "podman")


class ContainerRuntime:
    """
    Issues container runtime commands through a ProcessExecutor.

    Docker and podman share the command vocabulary used here, so the runtime
    name is only the executable that gets invoked.
    """

    def __init__(self, executable: str = "docker", executor: Optional[ProcessExecutor] = None):
        if executable not in SUPPORTED_RUNTIMES:
            raise ValueError(
                f"container runtime must be one of: {', '.join(SUPPORTED_RUNTIMES)}"
            )
        self.executable = executable
        self.executor = executor or ProcessExecutor()

    def _names(self, name: str, all_containers: bool) -> List[str]:
        cmd = [self.executable, "ps"]
        if all_containers:
            cmd.append("-a")
        cmd.extend(["--filter", f"name=^{name}$", "--format", "{{.Names}}"])
        result = self.executor.run(cmd)
        if not result.success:
            logger.warning(
                f"Failed to list containers for {name}: {result.stderr_lines}"
            )
            return []
        return result.output_lines()

    def is_running(self, name: str) -> bool:
        """Return True if a container with exactly this name is running."""
        return name in self._names(name, all_containers=False)

    def is_registered(self, name: str) -> bool:
        """Return True if a container with this name exists, running or not."""
        return name in self._names(name, all_containers=True)

    def run_command(self, descriptor: ContainerDescriptor) -> List[str]:
        """Build the command that creates and starts a fresh container."""
        cmd = [
            self.executable,
            "run",
            "-d",
            "--name",
            descriptor.name,
            "-p",
            f"{descriptor.port}:{descriptor.internal_port}",
        ]
        if descriptor.tmpfs:
            cmd.extend(["--tmpfs", descriptor.tmpfs])
        for env_name, env_value in descriptor.environment.items():
            cmd.extend(["-e", f"{env_name}={env_value}"])
        cmd.append(descriptor.image)
        return cmd

    def run(self, descriptor: ContainerDescriptor) -> bool:
        """Create and start a new container from the descriptor."""
        logger.info(
            f"Run {descriptor.platform} container {descriptor.name} from {descriptor.image}"
        )
        result = self.executor.run(self.run_command(descriptor))
        if not result.success:
            logger.error(f"Failed to run {descriptor.name}: {result.stderr_lines}")
        return result.success

    def resume(self, name: str) -> bool:
        """Start a registered but stopped container."""
        logger.info(f"Start container {name}")
        result = self.executor.run([self.executable, "start", name])
        if not result.success:
            logger.error(f"Failed to start {name}: {result.stderr_lines}")
        return result.success

    def stop(self, name: str) -> bool:
        """Stop a running container."""
        logger.info(f"Stop container {name}")
        result = self.executor.run([self.executable, "stop", name])
        if not result.success:
            logger.error(f"Failed to stop {name}: {result.stderr_lines}")
        return result.success

    def remove(self, name: str) -> bool:
        """Remove a stopped container."""
        logger.info(f"Remove container {name}")
        result = self.executor.run([self.executable, "rm", name])
        if not result.success:
            logger.error(f"Failed to remove {name}: {result.stderr_lines}")
        return result.success

    def stop_if_running(self, name: str) -> None:
        """Stop the container if it is running, otherwise do nothing."""
        if self.is_running(name):
            self.stop(name)
        else:
            logger.debug(f"Container {name} is not running")

    def stop_remove(self, name: str) -> None:
        """Stop the container if running, then remove it if registered."""
        self.stop_if_running(name)
        if self.is_registered(name):
            self.remove(name)

    def exec(
        self,
        name: str,
        command: List[str],
        env: Optional[Dict[str, str]] = None,
    ) -> ProcessResult:
        """
        Run a command inside the container.

        Args:
            name: Container name
            command: Program and arguments to run in the container
            env: Environment variables set for the command only

        Returns:
            ProcessResult of the exec
        """
        cmd = [self.executable, "exec", "-i"]
        for env_name, env_value in (env or {}).items():
            cmd.extend(["-e", f"{env_name}={env_value}"])
        cmd.append(name)
        cmd.extend(command)
        return self.executor.run(cmd)
