"""Test configuration."""

from pathlib import Path

import pytest

from etcd_dump.core.logging import configure_logging

fixture = pytest.fixture


@fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@fixture(scope="session", autouse=True)
def configure_test_logging() -> None:
    """Use console logging while tests run."""
    configure_logging(level="debug", testing=True)


pytest_plugins: list[str] = [
    "tests.fixtures.snapshot",
]
