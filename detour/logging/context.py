"""Mission-scoped logging context.

Values live in contextvars, so the ID set on the sequencing thread for one
execution does not appear on provider threads, which log without it.
"""

from contextvars import ContextVar
from typing import Any
from uuid import uuid4

mission_id: ContextVar[str] = ContextVar("mission_id", default="")

_extra_context: ContextVar[dict[str, Any] | None] = ContextVar("extra_context", default=None)


def get_mission_id() -> str:
    """Return the current mission execution ID, or an empty string."""
    return mission_id.get()


def set_mission_id(value: str) -> None:
    mission_id.set(value)


def generate_mission_id() -> str:
    """Start a new execution scope with a fresh random ID.

    Returns:
        The new mission execution ID, already set in the current context.
    """
    new_id = uuid4().hex[:12]
    set_mission_id(new_id)
    return new_id


def get_extra_context() -> dict[str, Any]:
    """Return a copy of the extra fields attached to every log line."""
    return dict(_extra_context.get() or {})


def set_extra_context(**fields: Any) -> None:
    """Attach ``fields`` to every log line emitted in this context."""
    _extra_context.set({**(_extra_context.get() or {}), **fields})


def clear_context() -> None:
    """Forget the mission ID and all extra fields."""
    mission_id.set("")
    _extra_context.set(None)
