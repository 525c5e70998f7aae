"""Root of the detour exception hierarchy.

Every subclass declares its own ``error_code`` for log lines and outcomes.
"""

from typing import Any, ClassVar


class DetourError(Exception):
    """Base exception for planning and flight errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code, unique per subclass.
        context: Debugging details such as the controller state or the
            offending field.
    """

    error_code: ClassVar[str] = "DETOUR_ERROR"

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return the error as a JSON-serializable dictionary."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }

    def to_log_dict(self) -> dict[str, Any]:
        """Return ``to_dict()`` plus the exception class name, for ``extra=``."""
        return {**self.to_dict(), "exception_type": type(self).__name__}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        return f"{self.message} (context: {self.context})"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"error_code={self.error_code!r}, context={self.context!r})"
        )
