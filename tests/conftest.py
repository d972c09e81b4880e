"""Test configuration."""

import os
from pathlib import Path

import pytest
from pytest import Config

from depot_finder.core.logging import configure_logging

os.environ.setdefault("TESTING", "true")

fixture = pytest.fixture


@fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


pytest_plugins: list[str] = [
    "tests.fixtures.db",
    "tests.fixtures.api",
]


def pytest_configure(config: Config) -> None:
    """Configure pytest.

    Args:
        config: Pytest configuration object
    """
    configure_logging(testing=True)
