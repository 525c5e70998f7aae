"""Circle/line intersection and detour arc sampling.

Pure functions over Point2D and Obstacle: no state and no I/O. The route is
treated as an infinite line through its two endpoints, and the detour is a
semicircle sampled every 10 degrees around the obstacle buffer.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from detour.geometry.models import CircleIntersection, Point2D

if TYPE_CHECKING:
    from collections.abc import Iterator

    from detour.geometry.models import Obstacle

logger = logging.getLogger(__name__)

ARC_SWEEP_DEGREES: float = 180.0
ARC_STEP_DEGREES: float = 10.0
# Offset between the sample angle and the position it is placed at
_ARC_PHASE_DEGREES: float = 90.0


def intersect_circle_line(
    obstacle: Obstacle,
    start: Point2D,
    end: Point2D,
) -> CircleIntersection | None:
    """Compute where the line through ``start`` and ``end`` crosses the buffer.

    Non-vertical lines are written as ``y = m*x + n`` and substituted into the
    circle equation, giving ``A*x**2 + 2*B*x + C = 0`` with ``A = m**2 + 1``.
    Vertical lines are solved directly for ``y`` at ``x = start.x``. No
    tolerance is applied, so a tangent line returns two equal points.

    Args:
        obstacle: The circular buffer to intersect.
        start: First point on the route.
        end: Second point on the route.

    Returns:
        Both crossings ordered entry first, or None when the line misses the
        buffer and the route needs no detour.
    """
    center_x = obstacle.center.x
    center_y = obstacle.center.y
    radius = obstacle.buffer_radius

    if end.x != start.x:
        slope = (end.y - start.y) / (end.x - start.x)
        intercept = (start.y * end.x - start.x * end.y) / (end.x - start.x)

        quadratic_a = slope * slope + 1.0
        half_b = slope * intercept - slope * center_y - center_x
        quadratic_c = (
            center_x * center_x
            + center_y * center_y
            - radius * radius
            + intercept * intercept
            - 2.0 * intercept * center_y
        )
        discriminant = half_b * half_b - quadratic_a * quadratic_c
        if discriminant < 0.0:
            return None

        root = math.sqrt(discriminant)
        first_x = -(half_b + root) / quadratic_a
        second_x = -(half_b - root) / quadratic_a
        first = Point2D(x=first_x, y=slope * first_x + intercept)
        second = Point2D(x=second_x, y=slope * second_x + intercept)
    else:
        remainder = radius * radius - (start.x - center_x) ** 2
        if remainder < 0.0:
            return None

        root = math.sqrt(remainder)
        first = Point2D(x=start.x, y=center_y + root)
        second = Point2D(x=start.x, y=center_y - root)

    if _squared_distance(start, second) < _squared_distance(start, first):
        first, second = second, first

    logger.debug(
        "Route crosses obstacle buffer at (%.7f, %.7f) and (%.7f, %.7f)",
        first.x,
        first.y,
        second.x,
        second.y,
    )
    return CircleIntersection(entry_point=first, exit_point=second)


class AvoidanceArc:
    """Lazy semicircle of detour points around an obstacle.

    Iterating regenerates the samples from the stored inputs, so the arc can
    be walked any number of times with identical results.
    """

    def __init__(
        self,
        obstacle: Obstacle,
        start_angle_degrees: float,
        *,
        sweep_degrees: float = ARC_SWEEP_DEGREES,
        step_degrees: float = ARC_STEP_DEGREES,
    ) -> None:
        """Initialize the arc.

        Args:
            obstacle: Obstacle whose buffer the arc follows.
            start_angle_degrees: Angle of the first sample, fractional degrees kept.
            sweep_degrees: Total angle covered, both ends included.
            step_degrees: Angular distance between consecutive samples.

        Raises:
            ValueError: If the step is not positive or the sweep is negative.
        """
        if step_degrees <= 0.0:
            raise ValueError(f"Arc step must be positive, got {step_degrees}")
        if sweep_degrees < 0.0:
            raise ValueError(f"Arc sweep must not be negative, got {sweep_degrees}")

        self._obstacle = obstacle
        self._start_angle_degrees = start_angle_degrees
        self._step_degrees = step_degrees
        self._sample_count = int(sweep_degrees // step_degrees) + 1

    @property
    def start_angle_degrees(self) -> float:
        """Return the angle of the first sample in degrees."""
        return self._start_angle_degrees

    def __len__(self) -> int:
        return self._sample_count

    def __iter__(self) -> Iterator[Point2D]:
        center = self._obstacle.center
        radius = self._obstacle.buffer_radius
        for index in range(self._sample_count):
            angle_degrees = self._start_angle_degrees + index * self._step_degrees
            radians = math.radians(angle_degrees - _ARC_PHASE_DEGREES)
            yield Point2D(
                x=center.x + radius * math.cos(radians),
                y=center.y - radius * math.sin(radians),
            )

    def __repr__(self) -> str:
        return (
            f"AvoidanceArc(start_angle_degrees={self._start_angle_degrees!r}, "
            f"samples={self._sample_count})"
        )


def sample_avoidance_arc(obstacle: Obstacle, entry_point: Point2D) -> AvoidanceArc:
    """Sample a 180 degree detour arc around ``obstacle`` in 10 degree steps.

    The start angle is ``atan2(entry_point.y, entry_point.x)`` in degrees,
    taken from the entry point's own coordinates. Fractional degrees are
    preserved, so the arc always holds 19 samples.

    Args:
        obstacle: Obstacle with a validated, positive buffer radius.
        entry_point: Where the route enters the buffer.

    Returns:
        The lazily evaluated arc.
    """
    start_angle_degrees = math.degrees(math.atan2(entry_point.y, entry_point.x))
    arc = AvoidanceArc(obstacle, start_angle_degrees)
    logger.debug(
        "Sampling %d-point avoidance arc from %.3f degrees",
        len(arc),
        start_angle_degrees,
    )
    return arc


def _squared_distance(first: Point2D, second: Point2D) -> float:
    return (first.x - second.x) ** 2 + (first.y - second.y) ** 2
