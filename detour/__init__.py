"""Obstacle-detour mission planning and execution."""

from detour.controller.controller import execute_mission
from detour.mission.planner import plan_avoidance_route

__all__ = ["execute_mission", "plan_avoidance_route"]
