"""Expansion of a mission plan into MAVLink mission items.

Every waypoint becomes a NAV_WAYPOINT. Speed and gimbal changes and camera
actions become DO_* items placed right after the waypoint they belong to.
ArduPilot missions additionally lead with a home item and a takeoff.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pymavlink import mavutil

from detour.mavlink_provider.models import MissionItem
from detour.mission.models import CameraAction

if TYPE_CHECKING:
    from detour.mission.models import MissionPlan, Waypoint

_COORDINATE_SCALE: float = 1e-7
_MAX_LATITUDE: float = 90.0
_MAX_LONGITUDE: float = 180.0
_STOP_HOLD_SECONDS: float = 0.5
_PHOTO_INTERVAL_SECONDS: float = 1.0
_SPEED_TYPE_GROUND: float = 1.0
_THROTTLE_UNCHANGED: float = -1.0

_HOME_FRAME = mavutil.mavlink.MAV_FRAME_GLOBAL_INT
_NAV_FRAME = mavutil.mavlink.MAV_FRAME_GLOBAL_RELATIVE_ALT_INT
_DO_FRAME = mavutil.mavlink.MAV_FRAME_MISSION


def encode_mission(plan: MissionPlan, *, ardupilot: bool = False) -> list[MissionItem]:
    """Expand ``plan`` into sequenced mission items, preserving waypoint order.

    ArduPilot overwrites item 0 with the home position and only climbs out
    of AUTO from a takeoff item, so for it the plan is preceded by a home
    placeholder and a NAV_TAKEOFF to the first waypoint's altitude. Both
    count as part of the first waypoint for progress.

    Args:
        plan: The mission plan to encode.
        ardupilot: Whether the vehicle runs ArduPilot.

    Returns:
        Mission items numbered from zero.

    Raises:
        ValueError: If a waypoint lies outside geographic coordinate ranges.
    """
    for waypoint_index, waypoint in enumerate(plan.waypoints):
        if abs(waypoint.latitude) > _MAX_LATITUDE or abs(waypoint.longitude) > _MAX_LONGITUDE:
            raise ValueError(
                f"Waypoint {waypoint_index} at ({waypoint.latitude}, {waypoint.longitude}) "
                f"is not a geographic position"
            )

    items: list[MissionItem] = []
    if ardupilot:
        items.extend(_launch_items(plan.waypoints[0]))

    previous_speed: float | None = None
    previous_gimbal: tuple[float, float] | None = None

    for waypoint_index, waypoint in enumerate(plan.waypoints):
        items.append(_navigation_item(len(items), waypoint_index, waypoint))

        if waypoint.speed != previous_speed:
            items.append(
                MissionItem(
                    seq=len(items),
                    waypoint_index=waypoint_index,
                    frame=_DO_FRAME,
                    command=mavutil.mavlink.MAV_CMD_DO_CHANGE_SPEED,
                    param1=_SPEED_TYPE_GROUND,
                    param2=waypoint.speed,
                    param3=_THROTTLE_UNCHANGED,
                )
            )
            previous_speed = waypoint.speed

        gimbal = (waypoint.gimbal_pitch, waypoint.gimbal_yaw)
        if gimbal != previous_gimbal:
            items.append(
                MissionItem(
                    seq=len(items),
                    waypoint_index=waypoint_index,
                    frame=_DO_FRAME,
                    command=mavutil.mavlink.MAV_CMD_DO_MOUNT_CONTROL,
                    param1=waypoint.gimbal_pitch,
                    param3=waypoint.gimbal_yaw,
                    z=float(mavutil.mavlink.MAV_MOUNT_MODE_MAVLINK_TARGETING),
                )
            )
            previous_gimbal = gimbal

        camera_item = _camera_item(len(items), waypoint_index, waypoint.camera_action)
        if camera_item is not None:
            items.append(camera_item)

    return items


def _launch_items(first: Waypoint) -> list[MissionItem]:
    latitude = round(first.latitude / _COORDINATE_SCALE)
    longitude = round(first.longitude / _COORDINATE_SCALE)
    return [
        # Replaced by the autopilot with its own home position
        MissionItem(
            seq=0,
            waypoint_index=0,
            frame=_HOME_FRAME,
            command=mavutil.mavlink.MAV_CMD_NAV_WAYPOINT,
            x=latitude,
            y=longitude,
        ),
        MissionItem(
            seq=1,
            waypoint_index=0,
            frame=_NAV_FRAME,
            command=mavutil.mavlink.MAV_CMD_NAV_TAKEOFF,
            x=latitude,
            y=longitude,
            z=first.relative_altitude,
        ),
    ]


def _navigation_item(seq: int, waypoint_index: int, waypoint: Waypoint) -> MissionItem:
    return MissionItem(
        seq=seq,
        waypoint_index=waypoint_index,
        frame=_NAV_FRAME,
        command=mavutil.mavlink.MAV_CMD_NAV_WAYPOINT,
        param1=0.0 if waypoint.is_fly_through else _STOP_HOLD_SECONDS,
        x=round(waypoint.latitude / _COORDINATE_SCALE),
        y=round(waypoint.longitude / _COORDINATE_SCALE),
        z=waypoint.relative_altitude,
    )


def _camera_item(
    seq: int,
    waypoint_index: int,
    camera_action: CameraAction,
) -> MissionItem | None:
    """Map a camera action to its MAVLink command, or None for no action."""
    if camera_action == CameraAction.NONE:
        return None

    command_parameters: dict[CameraAction, tuple[int, float, float]] = {
        CameraAction.TAKE_PHOTO: (mavutil.mavlink.MAV_CMD_IMAGE_START_CAPTURE, 0.0, 1.0),
        CameraAction.START_PHOTO_INTERVAL: (
            mavutil.mavlink.MAV_CMD_IMAGE_START_CAPTURE,
            _PHOTO_INTERVAL_SECONDS,
            0.0,
        ),
        CameraAction.STOP_PHOTO_INTERVAL: (mavutil.mavlink.MAV_CMD_IMAGE_STOP_CAPTURE, 0.0, 0.0),
        CameraAction.START_VIDEO: (mavutil.mavlink.MAV_CMD_VIDEO_START_CAPTURE, 0.0, 0.0),
        CameraAction.STOP_VIDEO: (mavutil.mavlink.MAV_CMD_VIDEO_STOP_CAPTURE, 0.0, 0.0),
    }
    command, interval, image_count = command_parameters[camera_action]
    return MissionItem(
        seq=seq,
        waypoint_index=waypoint_index,
        frame=_DO_FRAME,
        command=command,
        param2=interval,
        param3=image_count,
    )
