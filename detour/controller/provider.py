"""Capability interface the mission controller drives.

A provider wraps one connected vehicle and exposes its action, telemetry and
mission capabilities. Commands return one-shot futures completed from the
provider's own threads, and progress updates arrive on a delivery thread the
controller does not own.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable
    from concurrent.futures import Future

    from detour.controller.models import ActionResult, MissionResult
    from detour.mission.models import MissionPlan, MissionProgress


class Subscription(Protocol):
    """Handle for an active progress subscription."""

    def cancel(self) -> None:
        """Stop delivering updates to the subscribed callback."""


class ProviderAdapter(Protocol):
    """Flight-control capabilities consumed by the mission controller."""

    def is_healthy(self) -> bool:
        """Return whether every vehicle subsystem reports nominal. Poll-safe."""

    def arm(self) -> Future[ActionResult]:
        """Arm the vehicle."""

    def upload_mission(self, plan: MissionPlan) -> Future[MissionResult]:
        """Upload ``plan`` to the vehicle, preserving waypoint order."""

    def start_mission(self) -> Future[MissionResult]:
        """Start the uploaded mission."""

    def pause_mission(self) -> Future[MissionResult]:
        """Pause the running mission; the vehicle holds position."""

    def resume_mission(self) -> Future[MissionResult]:
        """Continue a paused mission from its current waypoint."""

    def subscribe_progress(
        self,
        callback: Callable[[MissionProgress], None],
    ) -> Subscription:
        """Deliver every mission progress update to ``callback``."""

    def is_mission_finished(self) -> bool:
        """Return whether the last mission waypoint has been reached."""

    def return_to_launch(self) -> Future[ActionResult]:
        """Fly back to the launch point and land."""

    def is_armed(self) -> bool:
        """Return whether the vehicle motors are armed."""
