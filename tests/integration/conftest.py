"""
Integration test configuration for dbcontainers.

Integration tests run real database containers and are skipped when neither
Docker nor Podman is usable.
"""

import subprocess
from typing import Optional

import pytest

from dbcontainers.config import DbContainersConfig


def detect_container_runtime() -> Optional[str]:
    """
    Detect an available container runtime (Docker or Podman).

    Returns:
        str: 'docker' or 'podman' or None if neither is available
    """
    for runtime in ("docker", "podman"):
        try:
            result = subprocess.run(
                [runtime, "info"], capture_output=True, text=True, timeout=10
            )
            if result.returncode == 0:
                return runtime
        except (subprocess.TimeoutExpired, FileNotFoundError):
            continue
    return None


@pytest.fixture(scope="session")
def container_runtime() -> str:
    runtime = detect_container_runtime()
    if runtime is None:
        pytest.skip("No container runtime (Docker or Podman) available for integration tests")
    return runtime


@pytest.fixture
def integration_config(container_runtime, isolated_test_env) -> DbContainersConfig:
    return DbContainersConfig(
        container_runtime=container_runtime,
        log_level="DEBUG",
        ready_delay=0.5,
        connectivity_attempts=60,
        connectivity_delay=0.5,
        command_timeout=300,
    )
