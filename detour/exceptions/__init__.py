"""Detour exception hierarchy.

Architecture:
    DetourError (base)
    ├── PlanningError
    │   └── GeometryError
    └── FlightError
        ├── ProviderFailure
        ├── HealthTimeout
        └── CompletionTimeout

Usage:
    from detour.exceptions import GeometryError

    def require_radius(radius: float) -> float:
        if not radius > 0.0:
            raise GeometryError(
                "Obstacle buffer radius must be positive",
                field="buffer_radius",
                value=radius,
            )
        return radius
"""

from detour.exceptions.base import DetourError
from detour.exceptions.flight_errors import (
    CompletionTimeout,
    FlightError,
    HealthTimeout,
    ProviderFailure,
)
from detour.exceptions.planning_errors import GeometryError, PlanningError

__all__ = [
    "CompletionTimeout",
    "DetourError",
    "FlightError",
    "GeometryError",
    "HealthTimeout",
    "PlanningError",
    "ProviderFailure",
]
