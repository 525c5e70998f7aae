"""MAVLink provider data models."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class AutopilotState(StrEnum):
    """Connection state of the MAVLink link."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class VehicleStatus(BaseModel):
    """Latest vehicle status assembled by the receiver thread."""

    model_config = ConfigDict(frozen=True)

    heartbeat_seen: bool = Field(default=False)
    autopilot: int | None = Field(default=None)  # MAV_AUTOPILOT of the vehicle
    armed: bool = Field(default=False)
    custom_mode: int | None = Field(default=None)
    sensors_healthy: bool = Field(default=False)
    gps_fix_type: int = Field(default=0, ge=0)
    mission_current_seq: int = Field(default=-1, ge=-1)
    mission_reached_seq: int = Field(default=-1, ge=-1)


class MissionItem(BaseModel):
    """One MISSION_ITEM_INT as sent to the vehicle.

    ``waypoint_index`` points back at the plan waypoint the item came from.
    """

    model_config = ConfigDict(frozen=True)

    seq: int = Field(ge=0)
    waypoint_index: int = Field(ge=0)
    frame: int
    command: int
    param1: float = Field(default=0.0)
    param2: float = Field(default=0.0)
    param3: float = Field(default=0.0)
    param4: float = Field(default=0.0)
    x: int = Field(default=0)
    y: int = Field(default=0)
    z: float = Field(default=0.0)
