"""Detour configuration using Pydantic BaseSettings.

All settings are loaded from ``DETOUR_``-prefixed environment variables.
The route and obstacle defaults describe the reference flight next to the
PX4 SITL home position.
"""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from detour.mission.models import CameraAction, WaypointTemplate


class DetourSettings(BaseSettings):
    """Detour settings loaded from environment variables.

    Attributes:
        connection_url: pymavlink connection string for the vehicle.
        baud_rate: Serial baud rate, used for serial connection strings.
        heartbeat_timeout_seconds: How long to wait for the vehicle to appear.
        command_timeout_seconds: Bound on every provider command.
        health_poll_interval_seconds: Interval between health checks.
        pause_poll_interval_seconds: Interval between pause request checks.
        completion_poll_interval_seconds: Interval between mission finished checks.
        disarm_poll_interval_seconds: Interval between armed state checks.
        disarm_grace_seconds: Delay after return-to-launch before polling armed state.
        pause_hold_seconds: How long the vehicle holds once paused.
        pause_at_waypoint: Progress index that requests the pause, None disables it.
        health_timeout_seconds: Optional deadline on the health poll.
        completion_timeout_seconds: Optional deadline on the completion poll.
    """

    model_config = SettingsConfigDict(
        env_prefix="DETOUR_",
        case_sensitive=False,
        extra="ignore",
        str_strip_whitespace=True,
    )

    # Vehicle connection
    connection_url: str = Field(default="udpin:0.0.0.0:14540", min_length=1)
    baud_rate: int = Field(default=57600, ge=1)
    heartbeat_timeout_seconds: int = Field(default=30, ge=1, le=300)
    command_timeout_seconds: float = Field(default=5.0, gt=0.0, le=120.0)

    # Mission controller timing (seconds)
    health_poll_interval_seconds: float = Field(default=1.0, ge=0.0, le=60.0)
    pause_poll_interval_seconds: float = Field(default=1.0, ge=0.0, le=60.0)
    completion_poll_interval_seconds: float = Field(default=1.0, ge=0.0, le=60.0)
    disarm_poll_interval_seconds: float = Field(default=1.0, ge=0.0, le=60.0)
    disarm_grace_seconds: float = Field(default=2.0, ge=0.0, le=60.0)
    pause_hold_seconds: float = Field(default=5.0, ge=0.0, le=600.0)
    pause_at_waypoint: int | None = Field(default=2, ge=0)
    health_timeout_seconds: float | None = Field(default=None, gt=0.0)
    completion_timeout_seconds: float | None = Field(default=None, gt=0.0)

    # Route and obstacle (degrees)
    start_latitude: float = Field(default=47.398170327054473, ge=-90.0, le=90.0)
    start_longitude: float = Field(default=8.5456490218639658, ge=-180.0, le=180.0)
    end_latitude: float = Field(default=47.396928, ge=-90.0, le=90.0)
    end_longitude: float = Field(default=8.541570, ge=-180.0, le=180.0)
    obstacle_latitude: float = Field(default=47.397553, ge=-90.0, le=90.0)
    obstacle_longitude: float = Field(default=8.543696, ge=-180.0, le=180.0)
    obstacle_buffer_degrees: float = Field(default=0.0002, gt=0.0, le=1.0)

    # Waypoint attributes
    waypoint_altitude_meters: float = Field(default=10.0, ge=0.0, le=500.0)
    waypoint_speed_meters_per_second: float = Field(default=5.0, gt=0.0, le=30.0)
    waypoint_fly_through: bool = Field(default=False)
    gimbal_pitch_degrees: float = Field(default=20.0, ge=-180.0, le=180.0)
    gimbal_yaw_degrees: float = Field(default=60.0, ge=-180.0, le=180.0)
    final_gimbal_pitch_degrees: float = Field(default=0.0, ge=-180.0, le=180.0)
    final_gimbal_yaw_degrees: float = Field(default=-60.0, ge=-180.0, le=180.0)
    camera_action: CameraAction = Field(default=CameraAction.NONE)

    @model_validator(mode="after")
    def validate_distinct_route_endpoints(self) -> "DetourSettings":
        """Reject a route whose start and end coincide."""
        if (self.start_latitude, self.start_longitude) == (
            self.end_latitude,
            self.end_longitude,
        ):
            error_message = "Route start and end must be different points"
            raise ValueError(error_message)
        return self

    def waypoint_template(self) -> WaypointTemplate:
        """Build the waypoint template described by these settings.

        Returns:
            Template carrying the configured altitude, speed, gimbal and camera.
        """
        return WaypointTemplate(
            relative_altitude=self.waypoint_altitude_meters,
            speed=self.waypoint_speed_meters_per_second,
            is_fly_through=self.waypoint_fly_through,
            gimbal_pitch=self.gimbal_pitch_degrees,
            gimbal_yaw=self.gimbal_yaw_degrees,
            final_gimbal_pitch=self.final_gimbal_pitch_degrees,
            final_gimbal_yaw=self.final_gimbal_yaw_degrees,
            camera_action=self.camera_action,
        )


@lru_cache
def get_detour_settings() -> DetourSettings:
    """Get cached detour settings instance.

    Returns:
        Cached DetourSettings instance.
    """
    return DetourSettings()
