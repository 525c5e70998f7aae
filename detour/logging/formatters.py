"""Log formatters for machine-shipped and console output.

Both formatters attach the same context: the mission execution ID, any
extra context set for the current run and fields passed through ``extra=``.
Records come from the sequencing thread and from provider threads, so the
thread name is part of every line.
"""

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any, ClassVar

from detour.logging.context import get_extra_context, get_mission_id

# Attributes every LogRecord carries; anything else arrived through ``extra=``
_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}

_LOGGER_NAME_WIDTH = 30


def _context_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Collect mission, run and per-call context for ``record``."""
    fields: dict[str, Any] = {}
    current_mission_id = get_mission_id()
    if current_mission_id:
        fields["mission_id"] = current_mission_id
    fields.update(get_extra_context())
    fields.update(
        (key, value)
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
    )
    return fields


def _shorten(name: str) -> str:
    if len(name) <= _LOGGER_NAME_WIDTH:
        return name
    return "..." + name[-(_LOGGER_NAME_WIDTH - 3) :]


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shipping."""

    def __init__(
        self,
        *,
        service_name: str = "detour",
        include_timestamp: bool = True,
        include_location: bool = True,
    ) -> None:
        """Initialize the JSON formatter.

        Args:
            service_name: Value of the ``service`` field.
            include_timestamp: Whether to emit an ISO-8601 UTC ``timestamp``.
            include_location: Whether to emit ``module``, ``function`` and ``line``.
        """
        super().__init__()
        self._service_name = service_name
        self._include_timestamp = include_timestamp
        self._include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        """Serialize ``record`` and its context as JSON."""
        entry: dict[str, Any] = {}
        if self._include_timestamp:
            entry["timestamp"] = datetime.fromtimestamp(record.created, UTC).isoformat(
                timespec="milliseconds"
            )
        entry.update(
            level=record.levelname,
            logger=record.name,
            message=record.getMessage(),
            thread=record.threadName,
            service=self._service_name,
        )
        if self._include_location:
            entry.update(module=record.module, function=record.funcName, line=record.lineno)

        entry.update(_context_fields(record))

        if record.exc_info:
            error_type, error, _ = record.exc_info
            entry["exception"] = {
                "type": error_type.__name__ if error_type else "Unknown",
                "message": str(error) if error else "",
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """Column-aligned console lines for an operator watching a flight."""

    LEVEL_COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[34m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self, *, use_colors: bool = True) -> None:
        """Initialize the console formatter.

        Args:
            use_colors: Whether to color the level name with ANSI escapes.
        """
        super().__init__()
        self._use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as ``time | level | thread | logger | message | context``."""
        level = f"{record.levelname:<8}"
        if self._use_colors:
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{self.RESET}"

        columns = [
            self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
            level,
            f"{record.threadName:<16}",
            f"{_shorten(record.name):<{_LOGGER_NAME_WIDTH}}",
            record.getMessage(),
        ]
        context = _context_fields(record)
        if context:
            columns.append(" ".join(f"{key}={value}" for key, value in context.items()))

        line = " | ".join(columns)
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return line
