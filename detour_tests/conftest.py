"""Shared test fixtures."""

import os

import pytest

from detour.config import get_detour_settings
from detour.logging import clear_context, reset_logging
from detour.logging.config import get_logging_config


@pytest.fixture(autouse=True)
def _clear_environment(monkeypatch):
    """Clear environment variables that affect settings."""
    env_vars_to_clear = [
        "LOG_LEVEL",
        "LOG_FORMAT",
        "SERVICE_NAME",
        "INCLUDE_TIMESTAMP",
        "INCLUDE_LOCATION",
        "USE_COLORS",
    ]
    env_vars_to_clear.extend(name for name in os.environ if name.startswith("DETOUR_"))
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)

    get_detour_settings.cache_clear()
    get_logging_config.cache_clear()
    yield
    get_detour_settings.cache_clear()
    get_logging_config.cache_clear()
    clear_context()
    reset_logging()
