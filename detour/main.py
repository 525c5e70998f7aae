"""Command-line entry point.

Plans the configured detour route and either prints the plan or flies it
through a MAVLink autopilot.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

from detour.config import get_detour_settings
from detour.controller.controller import execute_mission
from detour.geometry.models import Obstacle, Point2D
from detour.logging import set_extra_context, setup_logging
from detour.mavlink_provider.provider import MavlinkProvider
from detour.mission.planner import plan_avoidance_route

if TYPE_CHECKING:
    from collections.abc import Sequence

    from detour.config import DetourSettings
    from detour.mission.models import MissionPlan

logger = logging.getLogger(__name__)

_EXIT_SUCCESS: int = 0
_EXIT_FAILURE: int = 1


def build_plan(settings: DetourSettings) -> MissionPlan:
    """Plan the configured route around the configured obstacle."""
    return plan_avoidance_route(
        start=Point2D(x=settings.start_longitude, y=settings.start_latitude),
        end=Point2D(x=settings.end_longitude, y=settings.end_latitude),
        obstacle=Obstacle(
            center=Point2D(x=settings.obstacle_longitude, y=settings.obstacle_latitude),
            buffer_radius=settings.obstacle_buffer_degrees,
        ),
        template=settings.waypoint_template(),
    )


def fly_plan(plan: MissionPlan, settings: DetourSettings, connection_url: str) -> int:
    """Connect to the autopilot at ``connection_url`` and fly ``plan``.

    Returns:
        Process exit status.
    """
    provider = MavlinkProvider(
        connection_string=connection_url,
        baud_rate=settings.baud_rate,
        heartbeat_timeout_seconds=settings.heartbeat_timeout_seconds,
        command_timeout_seconds=settings.command_timeout_seconds,
    )
    # Tag every line of this flight with the vehicle link
    set_extra_context(link=connection_url)
    try:
        provider.connect()
    except ConnectionError:
        logger.error("Could not reach an autopilot at %s", connection_url)
        return _EXIT_FAILURE

    try:
        outcome = execute_mission(plan, provider, settings)
    finally:
        provider.disconnect()

    for warning in outcome.warnings:
        logger.warning("Mission warning: %s", warning)
    if not outcome.succeeded:
        logger.error(
            "Mission failed (%s): %s",
            outcome.failure_reason,
            outcome.message,
        )
        return _EXIT_FAILURE

    logger.info("Mission finished")
    return _EXIT_SUCCESS


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="detour",
        description="Fly a mission that detours around a circular obstacle.",
    )
    parser.add_argument(
        "connection_url",
        nargs="?",
        default=None,
        help="MAVLink connection URL (default: DETOUR_CONNECTION_URL or udpin:0.0.0.0:14540)",
    )
    parser.add_argument(
        "--plan-only",
        action="store_true",
        help="Print the planned mission as JSON and exit without connecting",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point: load settings, plan the route and fly or print it."""
    args = _parse_args(argv)
    settings = get_detour_settings()
    setup_logging()

    plan = build_plan(settings)
    if args.plan_only:
        sys.stdout.write(plan.model_dump_json(indent=2) + "\n")
        return _EXIT_SUCCESS

    connection_url = args.connection_url or settings.connection_url
    logger.info("Starting detour mission (waypoints=%d, mavlink=%s)", len(plan), connection_url)
    return fly_plan(plan, settings, connection_url)


if __name__ == "__main__":
    sys.exit(main())
