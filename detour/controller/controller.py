"""Mission controller that sequences a provider through one mission lifecycle.

Drives upload, arm, start, a progress-triggered pause, a timed hold, resume,
the wait for completion, return-to-launch and the wait for disarm. The
sequencing thread blocks only on command futures and in fixed-interval
polling loops. Progress callbacks run on the provider's delivery thread and
only raise the shared PauseRequest.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from detour.config import get_detour_settings
from detour.controller.models import (
    ActionResult,
    FailureReason,
    MissionOutcome,
    MissionResult,
    MissionState,
    OutcomeStatus,
)
from detour.controller.pause_request import PauseRequest
from detour.exceptions import (
    CompletionTimeout,
    FlightError,
    HealthTimeout,
    ProviderFailure,
)
from detour.logging import clear_context, generate_mission_id

if TYPE_CHECKING:
    from collections.abc import Callable
    from concurrent.futures import Future

    from detour.config import DetourSettings
    from detour.controller.provider import ProviderAdapter, Subscription
    from detour.mission.models import MissionPlan, MissionProgress

logger = logging.getLogger(__name__)

_TERMINAL_STATES: frozenset[MissionState] = frozenset(
    {MissionState.FINISHED, MissionState.FAILED}
)

# FAILED is additionally reachable from every non-terminal state
_ALLOWED_TRANSITIONS: dict[MissionState, frozenset[MissionState]] = {
    MissionState.IDLE: frozenset({MissionState.AWAITING_HEALTHY}),
    MissionState.AWAITING_HEALTHY: frozenset({MissionState.UPLOADING}),
    MissionState.UPLOADING: frozenset({MissionState.ARMED}),
    MissionState.ARMED: frozenset({MissionState.RUNNING}),
    MissionState.RUNNING: frozenset(
        {MissionState.PAUSE_REQUESTED, MissionState.AWAITING_COMPLETION}
    ),
    MissionState.PAUSE_REQUESTED: frozenset({MissionState.PAUSED}),
    MissionState.PAUSED: frozenset({MissionState.RESUMING}),
    MissionState.RESUMING: frozenset({MissionState.AWAITING_COMPLETION}),
    MissionState.AWAITING_COMPLETION: frozenset({MissionState.RETURNING_HOME}),
    MissionState.RETURNING_HOME: frozenset({MissionState.AWAITING_DISARM}),
    MissionState.AWAITING_DISARM: frozenset({MissionState.FINISHED}),
}

_FATAL_COMMAND_REASONS: dict[str, FailureReason] = {
    "upload_mission": FailureReason.UPLOAD_REJECTED,
    "arm": FailureReason.ARM_REJECTED,
    "start_mission": FailureReason.START_REJECTED,
}

_SUCCESS_RESULTS: frozenset[str] = frozenset({ActionResult.SUCCESS, MissionResult.SUCCESS})


class MissionController:
    """State machine that executes one mission plan on a provider.

    A controller instance runs a single execution. Upload, arm and start
    failures are fatal and end in FAILED with the provider's result attached.
    Pause, resume and return-to-launch failures are recorded as warnings and
    the sequence carries on. Nothing is retried.
    """

    def __init__(
        self,
        provider: ProviderAdapter,
        settings: DetourSettings,
    ) -> None:
        """Initialize the mission controller.

        Args:
            provider: Connected vehicle to drive.
            settings: Poll intervals, hold duration, pause threshold and deadlines.
        """
        self._provider = provider
        self._settings = settings
        self._state = MissionState.IDLE
        self._state_history: list[MissionState] = [MissionState.IDLE]
        self._pause_request = PauseRequest()
        self._subscription: Subscription | None = None
        self._warnings: list[str] = []

    @property
    def state(self) -> MissionState:
        """Return the current controller state."""
        return self._state

    @property
    def state_history(self) -> tuple[MissionState, ...]:
        """Return every state entered so far, in order."""
        return tuple(self._state_history)

    @property
    def pause_request(self) -> PauseRequest:
        """Return the pause signal raised by the progress feed."""
        return self._pause_request

    def execute(self, plan: MissionPlan) -> MissionOutcome:
        """Run ``plan`` through the full mission lifecycle.

        Args:
            plan: The mission plan to upload, unchanged and in order.

        Returns:
            FINISHED once the vehicle is back and disarmed, or FAILED with the
            reason and the provider's result.

        Raises:
            RuntimeError: If this controller has already run.
        """
        if self._state != MissionState.IDLE:
            raise RuntimeError(
                f"Cannot execute in state {self._state}. "
                f"A controller runs a single mission."
            )

        execution_id = generate_mission_id()
        logger.info(
            "Executing mission %s (%d waypoints)",
            execution_id,
            len(plan.waypoints),
        )

        try:
            self._run(plan)
        except ProviderFailure as failure:
            reason = _FATAL_COMMAND_REASONS[failure.operation]
            return self._fail(reason, failure, provider_result=failure.result)
        except HealthTimeout as timeout:
            return self._fail(FailureReason.HEALTH_TIMEOUT, timeout)
        except CompletionTimeout as timeout:
            return self._fail(FailureReason.COMPLETION_TIMEOUT, timeout)
        except Exception:
            logger.exception("Mission execution aborted in state %s", self._state)
            if self._state not in _TERMINAL_STATES:
                self._transition(MissionState.FAILED)
            raise
        finally:
            self._cancel_subscription()
            clear_context()

        logger.info("Mission finished, vehicle disarmed")
        return MissionOutcome(
            status=OutcomeStatus.FINISHED,
            message="Mission finished and vehicle disarmed",
            warnings=tuple(self._warnings),
        )

    def _run(self, plan: MissionPlan) -> None:
        """Walk the lifecycle from IDLE to FINISHED."""
        self._transition(MissionState.AWAITING_HEALTHY)
        logger.info("Waiting for vehicle to report healthy")
        self._poll_until(
            self._provider.is_healthy,
            interval=self._settings.health_poll_interval_seconds,
            timeout=self._settings.health_timeout_seconds,
            timeout_error=HealthTimeout,
            description="vehicle health",
        )
        logger.info("Vehicle ready")

        self._transition(MissionState.UPLOADING)
        self._issue("upload_mission", lambda: self._provider.upload_mission(plan))
        logger.info("Mission uploaded")

        self._issue("arm", self._provider.arm)
        self._transition(MissionState.ARMED)
        logger.info("Vehicle armed")

        # Subscribe before starting so the first progress updates are not missed
        self._subscription = self._provider.subscribe_progress(self._on_progress)
        self._issue("start_mission", self._provider.start_mission)
        self._transition(MissionState.RUNNING)
        logger.info("Mission started")

        if self._wait_for_pause_request():
            self._pause_and_resume()

        self._transition(MissionState.AWAITING_COMPLETION)
        self._poll_until(
            self._provider.is_mission_finished,
            interval=self._settings.completion_poll_interval_seconds,
            timeout=self._settings.completion_timeout_seconds,
            timeout_error=CompletionTimeout,
            description="mission completion",
        )
        logger.info("Mission complete, returning to launch")

        self._transition(MissionState.RETURNING_HOME)
        self._issue_best_effort("return_to_launch", self._provider.return_to_launch)

        self._transition(MissionState.AWAITING_DISARM)
        # The armed state lags behind the return-to-launch command
        time.sleep(self._settings.disarm_grace_seconds)
        self._poll_until(
            lambda: not self._provider.is_armed(),
            interval=self._settings.disarm_poll_interval_seconds,
            timeout=None,
            timeout_error=FlightError,
            description="disarm",
        )
        self._transition(MissionState.FINISHED)

    def _wait_for_pause_request(self) -> bool:
        """Poll the pause signal until it is raised.

        Returns:
            True once a pause was requested. False if pausing is disabled or
            the mission finished before the threshold was reached.
        """
        threshold = self._settings.pause_at_waypoint
        if threshold is None:
            logger.info("Pausing disabled, waiting for completion")
            return False

        interval = self._settings.pause_poll_interval_seconds
        while not self._pause_request.is_raised():
            if self._provider.is_mission_finished():
                logger.info("Mission finished before reaching pause waypoint %d", threshold)
                return False
            time.sleep(interval)
        return True

    def _pause_and_resume(self) -> None:
        """Pause, hold for the configured time, then resume."""
        self._transition(MissionState.PAUSE_REQUESTED)
        trigger = self._pause_request.trigger
        logger.info(
            "Pausing mission (requested at waypoint %s)",
            trigger.current if trigger is not None else "unknown",
        )
        if self._issue_best_effort("pause_mission", self._provider.pause_mission):
            logger.info("Mission paused")

        self._transition(MissionState.PAUSED)
        logger.info("Holding for %.1f seconds", self._settings.pause_hold_seconds)
        time.sleep(self._settings.pause_hold_seconds)

        self._transition(MissionState.RESUMING)
        if self._issue_best_effort("resume_mission", self._provider.resume_mission):
            logger.info("Mission resumed")

    def _on_progress(self, progress: MissionProgress) -> None:
        """Handle a progress update on the provider's delivery thread.

        Must stay non-blocking: it logs and raises the pause signal, and never
        calls back into the provider.
        """
        logger.info("Mission status update: %d / %d", progress.current, progress.total)

        threshold = self._settings.pause_at_waypoint
        if threshold is None or progress.current < threshold:
            return

        if self._pause_request.raise_request(progress):
            logger.info("Pause requested at waypoint %d", progress.current)

    def _issue(
        self,
        operation: str,
        command: Callable[[], Future[ActionResult] | Future[MissionResult]],
    ) -> ActionResult | MissionResult:
        """Issue a provider command and wait for its one-shot result.

        Args:
            operation: Provider command name, used in errors and logs.
            command: Callable issuing the command and returning its future.

        Returns:
            The successful result.

        Raises:
            ProviderFailure: If the command raised or returned a non-success result.
        """
        logger.info("Issuing %s", operation)
        try:
            result = command().result()
        except Exception as error:
            raise ProviderFailure(
                f"{operation} raised {type(error).__name__}: {error}",
                operation=operation,
            ) from error

        if result not in _SUCCESS_RESULTS:
            raise ProviderFailure(
                f"{operation} failed ({result})",
                operation=operation,
                result=str(result),
            )
        return result

    def _issue_best_effort(
        self,
        operation: str,
        command: Callable[[], Future[ActionResult] | Future[MissionResult]],
    ) -> bool:
        """Issue a non-fatal provider command, recording any failure as a warning.

        Returns:
            True if the command succeeded.
        """
        try:
            self._issue(operation, command)
        except ProviderFailure as failure:
            logger.warning("Failed to %s, continuing: %s", operation, failure.message)
            self._warnings.append(failure.message)
            return False
        return True

    def _poll_until(
        self,
        predicate: Callable[[], bool],
        *,
        interval: float,
        timeout: float | None,
        timeout_error: type[FlightError],
        description: str,
    ) -> None:
        """Sleep and re-check ``predicate`` until it holds.

        Raises:
            FlightError: The given ``timeout_error`` once ``timeout`` elapses.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not predicate():
            if deadline is not None and time.monotonic() >= deadline:
                raise timeout_error(
                    f"Timed out after {timeout:.1f} seconds waiting for {description}",
                    context={"state": str(self._state)},
                )
            logger.debug("Waiting for %s", description)
            time.sleep(interval)

    def _transition(self, target: MissionState) -> None:
        """Move to ``target``, enforcing the lifecycle order.

        Raises:
            RuntimeError: If the transition is not part of the lifecycle.
        """
        if self._state in _TERMINAL_STATES:
            raise RuntimeError(f"Cannot leave terminal state {self._state}")

        allowed = _ALLOWED_TRANSITIONS.get(self._state, frozenset())
        if target != MissionState.FAILED and target not in allowed:
            raise RuntimeError(f"Illegal mission transition {self._state} -> {target}")

        logger.debug("Mission state %s -> %s", self._state, target)
        self._state = target
        self._state_history.append(target)

    def _fail(
        self,
        reason: FailureReason,
        error: FlightError,
        *,
        provider_result: str | None = None,
    ) -> MissionOutcome:
        """Enter FAILED and build the outcome reported to the caller."""
        logger.error(
            "Mission failed in state %s: %s",
            self._state,
            error.message,
            extra={"failure_reason": str(reason), "error": error.to_log_dict()},
        )
        self._transition(MissionState.FAILED)
        return MissionOutcome(
            status=OutcomeStatus.FAILED,
            failure_reason=reason,
            provider_result=provider_result,
            message=error.message,
            warnings=tuple(self._warnings),
        )

    def _cancel_subscription(self) -> None:
        if self._subscription is None:
            return
        self._subscription.cancel()
        self._subscription = None


def execute_mission(
    plan: MissionPlan,
    provider: ProviderAdapter,
    settings: DetourSettings | None = None,
) -> MissionOutcome:
    """Execute ``plan`` on a connected ``provider``.

    Args:
        plan: The mission plan to fly.
        provider: Connected vehicle.
        settings: Controller timing. Loaded from the environment when omitted.

    Returns:
        The structured outcome of the execution.
    """
    controller = MissionController(
        provider=provider,
        settings=settings if settings is not None else get_detour_settings(),
    )
    return controller.execute(plan)
