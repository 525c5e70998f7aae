"""Structured logging for detour mission runs.

Usage:
    from detour.logging import setup_logging

    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Uploading mission", extra={"waypoints": 22})
"""

from detour.logging.config import LogFormat, LoggingConfig, LogLevel
from detour.logging.context import (
    clear_context,
    generate_mission_id,
    get_extra_context,
    get_mission_id,
    mission_id,
    set_extra_context,
    set_mission_id,
)
from detour.logging.formatters import HumanFormatter, JSONFormatter
from detour.logging.logger import reset_logging, setup_logging

__all__ = [
    "HumanFormatter",
    "JSONFormatter",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "clear_context",
    "generate_mission_id",
    "get_extra_context",
    "get_mission_id",
    "mission_id",
    "reset_logging",
    "set_extra_context",
    "set_mission_id",
    "setup_logging",
]
