"""Shared test configuration for venuecal."""

from collections.abc import Generator
from typing import Any

import pytest

_VENUECAL_ENV_VARS = (
    "VENUECAL_TEST_TIME",
    "VENUECAL_DISPLAY_TIMEZONE",
    "VENUECAL_DEBUG",
    "VENUECAL_LOG_LEVEL",
    "VENUECAL_DATA_FILE",
    "VENUECAL_CONFIG",
    "VENUECAL_MAX_OCCURRENCES",
    "VENUECAL_CATEGORY_PRECEDENCE",
)


@pytest.fixture(autouse=True)
def clean_venuecal_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure VENUECAL_* variables from the host never leak into tests."""
    for name in _VENUECAL_ENV_VARS:
        # setenv first so values written during the test are undone afterwards
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    yield


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Tests that touch the filesystem or CLI")
    config.addinivalue_line("markers", "smoke: Basic smoke tests")
