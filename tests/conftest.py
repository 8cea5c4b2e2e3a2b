"""Root conftest.py for the Kanban API test suite.

This file contains project-wide fixtures and pytest configuration.
"""

import os
from collections.abc import Generator

import pytest

from src.core.config import get_settings


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )


@pytest.fixture(autouse=True)
def clean_lru_cache() -> Generator[None]:
    """Clear the settings cache before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove app and platform variables that would leak into Settings.

    Returns:
        pytest.MonkeyPatch: The monkeypatch instance for env manipulation.
    """
    prefixes = (
        "APP_",
        "API_",
        "ENVIRONMENT",
        "DEBUG",
        "SERVERLESS",
        "LOG_CONFIG__",
        "DATABASE_CONFIG__",
        "KEEP_WARM_CONFIG__",
        "VERCEL",
        "AWS_LAMBDA_FUNCTION_NAME",
        "K_SERVICE",
        "PORT",
    )
    for key in list(os.environ):
        if key.startswith(prefixes):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
