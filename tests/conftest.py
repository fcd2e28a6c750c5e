"""
Pytest configuration and fixtures for dbcontainers tests.

Provides common fixtures and test utilities across all test modules.
"""

import os
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from dbcontainers.config import DbContainersConfig

from .fakes import FakePostgresEngine, FakeProber, FakeRuntime, postgres_descriptor, postgres_spec


@pytest.fixture
def isolated_test_env() -> Generator[dict[str, str], None, None]:
    """
    Create isolated test environment with clean environment variables.

    Yields:
        Dictionary of original environment variables
    """
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("DBCONTAINERS_"):
            del os.environ[key]

    yield original_env

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def test_config(isolated_test_env: dict[str, str]) -> DbContainersConfig:
    """
    Create test configuration with fast polling.

    Args:
        isolated_test_env: Isolated environment fixture

    Returns:
        Test configuration instance
    """
    return DbContainersConfig(
        log_level="DEBUG",
        verbose=True,
        ready_delay=0.0,
        connectivity_attempts=3,
        connectivity_delay=0.0,
    )


@pytest.fixture
def temp_workspace() -> Generator[Path, None, None]:
    """
    Create temporary workspace directory for test files.

    Yields:
        Path to temporary workspace
    """
    temp_dir = tempfile.mkdtemp(prefix="dbcontainers_workspace_")
    workspace = Path(temp_dir)

    yield workspace

    shutil.rmtree(temp_dir)


@pytest.fixture
def engine() -> FakePostgresEngine:
    """Fake postgres engine answering psql inside the fake container."""
    return FakePostgresEngine()


@pytest.fixture
def runtime(engine: FakePostgresEngine) -> FakeRuntime:
    """In-memory container runtime backed by the fake engine."""
    return FakeRuntime(engine)


@pytest.fixture
def descriptor():
    return postgres_descriptor()


@pytest.fixture
def spec():
    return postgres_spec()


@pytest.fixture
def prober(descriptor, spec) -> FakeProber:
    return FakeProber(descriptor, spec)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "container: marks tests that require a container runtime")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.container)

        if any(keyword in item.nodeid for keyword in ["slow", "timing"]):
            item.add_marker(pytest.mark.slow)
