"""Geometry data models."""

import math

from pydantic import BaseModel, ConfigDict, field_validator

from detour.exceptions import GeometryError


class Point2D(BaseModel):
    """Planar coordinate. ``x`` is longitude-like, ``y`` latitude-like."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float


class Obstacle(BaseModel):
    """Circular exclusion zone around a center point."""

    model_config = ConfigDict(frozen=True)

    center: Point2D
    buffer_radius: float

    @field_validator("buffer_radius")
    @classmethod
    def validate_buffer_radius(cls, value: float) -> float:
        """Reject zero, negative and non-finite buffers before planning.

        Raises GeometryError directly; pydantic only wraps ValueError and
        AssertionError, so callers see the planning error unchanged.
        """
        if not math.isfinite(value) or value <= 0.0:
            raise GeometryError(
                f"Obstacle buffer radius must be a positive finite number, got {value}",
                field="buffer_radius",
                value=value,
            )
        return value


class CircleIntersection(BaseModel):
    """The two points where a route line crosses an obstacle buffer.

    ``entry_point`` is the crossing nearer the route start.
    """

    model_config = ConfigDict(frozen=True)

    entry_point: Point2D
    exit_point: Point2D
