"""
Shared pytest fixtures and configuration for dataex tests.

This module provides:
- Automatic ``unit`` / ``integration`` markers by test location
- structlog reset between tests
- A scripted ``mysql.connector.connect`` driver (see ``tests._support.driver``)
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog

from dataex import MySqlSource
from tests._support.driver import CONNECTION_STRING, FakeDriver


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Each test starts from structlog's default configuration."""
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()


# =============================================================================
# Driver Fixtures
# =============================================================================


@pytest.fixture
def driver() -> Iterator[FakeDriver]:
    """Patch ``mysql.connector.connect`` with a scripted server."""
    with patch("mysql.connector.connect") as connect:
        yield FakeDriver(connect)


@pytest.fixture
def db() -> MySqlSource:
    return MySqlSource(CONNECTION_STRING)
