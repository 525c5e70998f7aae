"""Root logger setup for the detour command and its tests."""

import logging
import sys
from typing import TextIO

from detour.logging.config import LogFormat, LoggingConfig, get_logging_config
from detour.logging.formatters import HumanFormatter, JSONFormatter

# Third-party loggers that are noisy below WARNING during a flight
_QUIET_LOGGERS: tuple[str, ...] = ("pymavlink",)

_installed_handler: logging.Handler | None = None


def _build_formatter(config: LoggingConfig) -> logging.Formatter:
    if config.log_format == LogFormat.JSON:
        return JSONFormatter(
            service_name=config.service_name,
            include_timestamp=config.include_timestamp,
            include_location=config.include_location,
        )
    return HumanFormatter(use_colors=config.use_colors)


def setup_logging(
    config: LoggingConfig | None = None,
    stream: TextIO | None = None,
    *,
    force: bool = False,
) -> None:
    """Route all log records to one stream handler on the root logger.

    Logs go to stderr unless ``stream`` is given, leaving stdout for command
    output such as ``--plan-only``.

    Args:
        config: Logging configuration. Loaded from the environment if omitted.
        stream: Destination stream.
        force: Replace an existing setup instead of keeping it.
    """
    global _installed_handler

    if _installed_handler is not None and not force:
        return

    config = config or get_logging_config()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(_build_formatter(config))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(config.log_level.value)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _installed_handler = handler


def reset_logging() -> None:
    """Undo ``setup_logging`` and drop the cached configuration. Used by tests."""
    global _installed_handler

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    _installed_handler = None

    get_logging_config.cache_clear()
