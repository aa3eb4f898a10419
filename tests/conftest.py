"""Shared test fixtures for pytest."""

import pytest

from toolrt.config import DuplicatePolicy, Settings
from toolrt.metrics import metrics
from toolrt.tools.registry import ToolRegistry


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep TOOLRT_* variables from the developer environment out of tests."""
    import toolrt.config

    for name in ("SCHEMA_ENABLED", "ON_DUPLICATE_REGISTRATION", "DEBUG", "LOG_LEVEL"):
        monkeypatch.delenv(f"TOOLRT_{name}", raising=False)

    toolrt.config.get_settings.cache_clear()
    yield
    toolrt.config.get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_metrics():
    """Start every test with empty metrics."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def settings():
    """Default settings, independent of any .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def registry(settings):
    """An empty registry using the default settings."""
    return ToolRegistry(settings)


@pytest.fixture
def overwrite_registry():
    """An empty registry that lets later registrations replace earlier ones."""
    return ToolRegistry(
        Settings(_env_file=None, on_duplicate_registration=DuplicatePolicy.OVERWRITE)
    )


@pytest.fixture
def opaque_registry():
    """An empty registry that declares types by name only."""
    return ToolRegistry(Settings(_env_file=None, schema_enabled=False))
