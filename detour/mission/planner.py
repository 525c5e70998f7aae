"""Mission plan assembly for an obstacle detour.

Turns a straight route and a circular obstacle into an ordered waypoint
sequence: start, the detour arc, the buffer exit point, and the end. The
builder is a pure transformation and never talks to a provider.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from detour.geometry.engine import intersect_circle_line, sample_avoidance_arc
from detour.mission.models import MissionPlan, Waypoint, WaypointTemplate

if TYPE_CHECKING:
    from detour.geometry.models import Obstacle, Point2D

logger = logging.getLogger(__name__)


def build_avoidance_plan(
    route: tuple[Point2D, Point2D],
    obstacle: Obstacle,
    waypoint_template: WaypointTemplate,
) -> MissionPlan:
    """Assemble the waypoint sequence that flies ``route`` around ``obstacle``.

    Appends, in order: the route start; when the route crosses the buffer,
    the arc samples anchored at the entry point followed by the exit point;
    and the route end with the template's final gimbal orientation. A route
    that misses the buffer yields exactly the two endpoints.

    Args:
        route: The (start, end) points of the straight route.
        obstacle: The obstacle to fly around.
        waypoint_template: Altitude, speed, gimbal and camera attributes.

    Returns:
        The immutable mission plan.
    """
    start, end = route
    waypoints = [_make_waypoint(start, waypoint_template)]

    intersection = intersect_circle_line(obstacle, start, end)
    if intersection is None:
        logger.info("Route does not cross the obstacle buffer, planning direct route")
    else:
        arc = sample_avoidance_arc(obstacle, intersection.entry_point)
        waypoints.extend(_make_waypoint(point, waypoint_template) for point in arc)
        waypoints.append(_make_waypoint(intersection.exit_point, waypoint_template))
        logger.info(
            "Route crosses the obstacle buffer, added %d detour waypoints",
            len(arc) + 1,
        )

    waypoints.append(
        _make_waypoint(
            end,
            waypoint_template,
            gimbal_pitch=waypoint_template.final_gimbal_pitch,
            gimbal_yaw=waypoint_template.final_gimbal_yaw,
        )
    )

    return MissionPlan(waypoints=tuple(waypoints))


def plan_avoidance_route(
    start: Point2D,
    end: Point2D,
    obstacle: Obstacle,
    template: WaypointTemplate | None = None,
) -> MissionPlan:
    """Plan a mission from ``start`` to ``end`` that detours around ``obstacle``.

    Args:
        start: Route start point.
        end: Route end point.
        obstacle: Obstacle with a validated buffer radius.
        template: Waypoint attributes. Defaults to ``WaypointTemplate()``.

    Returns:
        The mission plan, ready to hand to a mission controller.
    """
    plan = build_avoidance_plan(
        (start, end),
        obstacle,
        template if template is not None else WaypointTemplate(),
    )
    logger.info("Planned mission with %d waypoints", len(plan))
    return plan


def _make_waypoint(
    point: Point2D,
    template: WaypointTemplate,
    *,
    gimbal_pitch: float | None = None,
    gimbal_yaw: float | None = None,
) -> Waypoint:
    return Waypoint(
        latitude=point.y,
        longitude=point.x,
        relative_altitude=template.relative_altitude,
        speed=template.speed,
        is_fly_through=template.is_fly_through,
        gimbal_pitch=template.gimbal_pitch if gimbal_pitch is None else gimbal_pitch,
        gimbal_yaw=template.gimbal_yaw if gimbal_yaw is None else gimbal_yaw,
        camera_action=template.camera_action,
    )
