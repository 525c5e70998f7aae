"""Flight error exceptions raised while driving a provider through a mission."""

from typing import Any, ClassVar

from detour.exceptions.base import DetourError


class FlightError(DetourError):
    """Base class for all errors raised during mission execution."""

    error_code: ClassVar[str] = "FLIGHT_ERROR"


class ProviderFailure(FlightError):
    """A provider command completed with a non-success result or raised."""

    error_code: ClassVar[str] = "PROVIDER_FAILURE"

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        result: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize provider failure.

        Args:
            message: Description of the failure.
            operation: Name of the provider command that failed.
            result: The provider's result value, verbatim, if one was returned.
            context: Additional context information.
        """
        context_dict = context or {}
        context_dict["operation"] = operation
        if result is not None:
            context_dict["result"] = result
        super().__init__(message, context=context_dict)
        self.operation = operation
        self.result = result


class HealthTimeout(FlightError):
    """The vehicle did not report healthy before the configured deadline."""

    error_code: ClassVar[str] = "HEALTH_TIMEOUT"


class CompletionTimeout(FlightError):
    """The mission did not finish before the configured deadline."""

    error_code: ClassVar[str] = "COMPLETION_TIMEOUT"
