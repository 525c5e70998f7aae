"""Planning error exceptions (rejected before any provider call)."""

from typing import Any, ClassVar

from detour.exceptions.base import DetourError


class PlanningError(DetourError):
    """Base class for errors raised while building a mission plan."""

    error_code: ClassVar[str] = "PLANNING_ERROR"


class GeometryError(PlanningError):
    """Degenerate geometric input, such as a zero-radius obstacle buffer.

    Raise when an obstacle or route cannot be planned around.
    """

    error_code: ClassVar[str] = "GEOMETRY_ERROR"

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize geometry error with optional field info.

        Args:
            message: Description of the degenerate input.
            field: Name of the offending field.
            value: The offending value.
            context: Additional context information.
        """
        context_dict = context or {}
        if field is not None:
            context_dict["field"] = field
        if value is not None:
            context_dict["value"] = value
        super().__init__(message, context=context_dict)
