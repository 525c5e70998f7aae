"""Mission plan data models."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CameraAction(StrEnum):
    """Camera action performed when a waypoint is reached."""

    NONE = "none"
    TAKE_PHOTO = "take_photo"
    START_VIDEO = "start_video"
    STOP_VIDEO = "stop_video"
    START_PHOTO_INTERVAL = "start_photo_interval"
    STOP_PHOTO_INTERVAL = "stop_photo_interval"


class Waypoint(BaseModel):
    """A single navigable point of a mission plan."""

    model_config = ConfigDict(frozen=True)

    # Geometry-space coordinates; geographic bounds apply only when flown
    latitude: float
    longitude: float
    relative_altitude: float  # meters above the launch point
    speed: float = Field(gt=0.0)  # meters per second
    is_fly_through: bool = Field(default=False)
    gimbal_pitch: float = Field(default=0.0)  # degrees
    gimbal_yaw: float = Field(default=0.0)  # degrees
    camera_action: CameraAction = Field(default=CameraAction.NONE)


class WaypointTemplate(BaseModel):
    """Flight attributes shared by every waypoint a plan builder stamps out.

    The final gimbal orientation applies to the route end waypoint only.
    """

    model_config = ConfigDict(frozen=True)

    relative_altitude: float = Field(default=10.0)
    speed: float = Field(default=5.0, gt=0.0)
    is_fly_through: bool = Field(default=False)
    gimbal_pitch: float = Field(default=20.0)
    gimbal_yaw: float = Field(default=60.0)
    final_gimbal_pitch: float = Field(default=0.0)
    final_gimbal_yaw: float = Field(default=-60.0)
    camera_action: CameraAction = Field(default=CameraAction.NONE)


class MissionPlan(BaseModel):
    """Ordered, immutable waypoint sequence. Order is flight order."""

    model_config = ConfigDict(frozen=True)

    waypoints: tuple[Waypoint, ...] = Field(min_length=1)

    def __len__(self) -> int:
        return len(self.waypoints)


class MissionProgress(BaseModel):
    """Progress update reported by a provider while a mission runs."""

    model_config = ConfigDict(frozen=True)

    current: int = Field(ge=0)
    total: int = Field(ge=0)

    @model_validator(mode="after")
    def validate_current_within_total(self) -> "MissionProgress":
        """Ensure the current waypoint never exceeds the total."""
        if self.current > self.total:
            error_message = f"current ({self.current}) must not exceed total ({self.total})"
            raise ValueError(error_message)
        return self
