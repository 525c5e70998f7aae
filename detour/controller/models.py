"""Mission controller data models."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class MissionState(StrEnum):
    """State of the mission controller."""

    IDLE = "idle"
    AWAITING_HEALTHY = "awaiting_healthy"
    UPLOADING = "uploading"
    ARMED = "armed"
    RUNNING = "running"
    PAUSE_REQUESTED = "pause_requested"
    PAUSED = "paused"
    RESUMING = "resuming"
    AWAITING_COMPLETION = "awaiting_completion"
    RETURNING_HOME = "returning_home"
    AWAITING_DISARM = "awaiting_disarm"
    FINISHED = "finished"
    FAILED = "failed"


class ActionResult(StrEnum):
    """Result of a vehicle action command (arm, return-to-launch)."""

    SUCCESS = "success"
    NO_SYSTEM = "no_system"
    CONNECTION_ERROR = "connection_error"
    BUSY = "busy"
    COMMAND_DENIED = "command_denied"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    ERROR = "error"


class MissionResult(StrEnum):
    """Result of a mission command (upload, start, pause, resume)."""

    SUCCESS = "success"
    ERROR = "error"
    TOO_MANY_MISSION_ITEMS = "too_many_mission_items"
    BUSY = "busy"
    TIMEOUT = "timeout"
    INVALID_ARGUMENT = "invalid_argument"
    UNSUPPORTED = "unsupported"
    NO_MISSION_AVAILABLE = "no_mission_available"
    TRANSFER_CANCELLED = "transfer_cancelled"
    NO_SYSTEM = "no_system"


class OutcomeStatus(StrEnum):
    """Terminal status of a mission execution."""

    FINISHED = "finished"
    FAILED = "failed"


class FailureReason(StrEnum):
    """Why a mission execution ended in the failed state."""

    UPLOAD_REJECTED = "upload_rejected"
    ARM_REJECTED = "arm_rejected"
    START_REJECTED = "start_rejected"
    HEALTH_TIMEOUT = "health_timeout"
    COMPLETION_TIMEOUT = "completion_timeout"


class MissionOutcome(BaseModel):
    """Structured result of one mission execution."""

    model_config = ConfigDict(frozen=True)

    status: OutcomeStatus
    failure_reason: FailureReason | None = Field(default=None)
    provider_result: str | None = Field(default=None)  # provider result value, verbatim
    message: str = Field(default="")
    warnings: tuple[str, ...] = Field(default=())

    @property
    def succeeded(self) -> bool:
        """Return whether the mission reached the finished state."""
        return self.status == OutcomeStatus.FINISHED
