"""Tests for the mission controller state machine."""

import threading
import time
from concurrent.futures import Future
from unittest.mock import MagicMock, patch

import pytest

from detour.config import DetourSettings
from detour.controller.controller import MissionController, execute_mission
from detour.controller.models import (
    ActionResult,
    FailureReason,
    MissionResult,
    MissionState,
    OutcomeStatus,
)
from detour.logging import get_mission_id
from detour.mission.models import MissionPlan, MissionProgress, Waypoint

_FULL_HISTORY = (
    MissionState.IDLE,
    MissionState.AWAITING_HEALTHY,
    MissionState.UPLOADING,
    MissionState.ARMED,
    MissionState.RUNNING,
    MissionState.PAUSE_REQUESTED,
    MissionState.PAUSED,
    MissionState.RESUMING,
    MissionState.AWAITING_COMPLETION,
    MissionState.RETURNING_HOME,
    MissionState.AWAITING_DISARM,
    MissionState.FINISHED,
)


def _completed(result):
    """Return a future already resolved to ``result``."""
    future = Future()
    future.set_result(result)
    return future


def _raising(error):
    """Return a future already resolved with ``error``."""
    future = Future()
    future.set_exception(error)
    return future


def _make_settings(**overrides):
    """Create settings with every wait set to zero."""
    values = {
        "health_poll_interval_seconds": 0.0,
        "pause_poll_interval_seconds": 0.0,
        "completion_poll_interval_seconds": 0.0,
        "disarm_poll_interval_seconds": 0.0,
        "disarm_grace_seconds": 0.0,
        "pause_hold_seconds": 0.0,
        "pause_at_waypoint": 2,
    }
    values.update(overrides)
    return DetourSettings(**values)


def _make_plan(count=3):
    """Create a plan of ``count`` waypoints."""
    return MissionPlan(
        waypoints=tuple(
            Waypoint(
                latitude=47.39 + index * 0.001,
                longitude=8.54,
                relative_altitude=10.0,
                speed=5.0,
            )
            for index in range(count)
        )
    )


def _make_provider(progress=((1, 10), (2, 10), (3, 10))):
    """Create a provider mock that succeeds at every step.

    Starting the mission delivers ``progress`` to the subscribed callback.
    """
    provider = MagicMock()
    provider.is_healthy.return_value = True
    provider.upload_mission.return_value = _completed(MissionResult.SUCCESS)
    provider.arm.return_value = _completed(ActionResult.SUCCESS)
    provider.pause_mission.return_value = _completed(MissionResult.SUCCESS)
    provider.resume_mission.return_value = _completed(MissionResult.SUCCESS)
    provider.return_to_launch.return_value = _completed(ActionResult.SUCCESS)
    provider.is_mission_finished.return_value = False
    provider.is_armed.return_value = False

    def start_mission():
        callback = provider.subscribe_progress.call_args.args[0]
        for current, total in progress:
            callback(MissionProgress(current=current, total=total))
        provider.is_mission_finished.return_value = True
        return _completed(MissionResult.SUCCESS)

    provider.start_mission.side_effect = start_mission
    return provider


def _call_names(provider):
    return [name for name, _args, _kwargs in provider.mock_calls]


class TestMissionControllerHappyPath:
    def test_finishes_with_full_lifecycle(self):
        provider = _make_provider()
        controller = MissionController(provider=provider, settings=_make_settings())

        outcome = controller.execute(_make_plan())

        assert outcome.status == OutcomeStatus.FINISHED
        assert outcome.succeeded is True
        assert outcome.failure_reason is None
        assert outcome.warnings == ()
        assert controller.state == MissionState.FINISHED
        assert controller.state_history == _FULL_HISTORY

    def test_uploads_plan_unchanged(self):
        provider = _make_provider()
        plan = _make_plan(count=5)

        MissionController(provider=provider, settings=_make_settings()).execute(plan)

        provider.upload_mission.assert_called_once_with(plan)

    def test_commands_issued_in_order(self):
        provider = _make_provider()

        MissionController(provider=provider, settings=_make_settings()).execute(_make_plan())

        commands = [
            name
            for name in _call_names(provider)
            if name
            in {
                "upload_mission",
                "arm",
                "subscribe_progress",
                "start_mission",
                "pause_mission",
                "resume_mission",
                "return_to_launch",
            }
        ]
        assert commands == [
            "upload_mission",
            "arm",
            "subscribe_progress",
            "start_mission",
            "pause_mission",
            "resume_mission",
            "return_to_launch",
        ]

    def test_subscribes_before_start(self):
        provider = _make_provider()

        MissionController(provider=provider, settings=_make_settings()).execute(_make_plan())

        names = _call_names(provider)
        assert names.index("subscribe_progress") < names.index("start_mission")

    def test_armed_precedes_running(self):
        provider = _make_provider()
        controller = MissionController(provider=provider, settings=_make_settings())

        controller.execute(_make_plan())

        history = controller.state_history
        assert history.index(MissionState.ARMED) == history.index(MissionState.RUNNING) - 1

    def test_subscription_cancelled_after_execution(self):
        provider = _make_provider()

        MissionController(provider=provider, settings=_make_settings()).execute(_make_plan())

        provider.subscribe_progress.return_value.cancel.assert_called_once()

    def test_mission_id_cleared_after_execution(self):
        provider = _make_provider()

        MissionController(provider=provider, settings=_make_settings()).execute(_make_plan())

        assert get_mission_id() == ""

    def test_waits_for_disarm(self):
        provider = _make_provider()
        provider.is_armed.side_effect = [True, True, False]

        outcome = MissionController(provider=provider, settings=_make_settings()).execute(
            _make_plan()
        )

        assert outcome.succeeded is True
        assert provider.is_armed.call_count == 3

    def test_waits_for_health(self):
        provider = _make_provider()
        provider.is_healthy.side_effect = [False, False, True]

        outcome = MissionController(provider=provider, settings=_make_settings()).execute(
            _make_plan()
        )

        assert outcome.succeeded is True
        assert provider.is_healthy.call_count == 3

    def test_controller_runs_only_once(self):
        controller = MissionController(provider=_make_provider(), settings=_make_settings())
        controller.execute(_make_plan())

        with pytest.raises(RuntimeError, match="single mission"):
            controller.execute(_make_plan())


class TestMissionControllerPause:
    def test_single_pause_for_progress_past_threshold(self):
        provider = _make_provider(progress=((1, 10), (2, 10), (3, 10)))
        controller = MissionController(provider=provider, settings=_make_settings())

        controller.execute(_make_plan())

        provider.pause_mission.assert_called_once()
        provider.resume_mission.assert_called_once()
        assert controller.pause_request.trigger == MissionProgress(current=2, total=10)

    def test_many_updates_between_polls_coalesce(self):
        provider = _make_provider(progress=[(current, 10) for current in range(11)])
        controller = MissionController(provider=provider, settings=_make_settings())

        controller.execute(_make_plan())

        provider.pause_mission.assert_called_once()
        assert controller.pause_request.trigger.current == 2

    def test_custom_threshold(self):
        provider = _make_provider(progress=((1, 10), (2, 10), (3, 10), (4, 10)))
        controller = MissionController(
            provider=provider, settings=_make_settings(pause_at_waypoint=4)
        )

        controller.execute(_make_plan())

        assert controller.pause_request.trigger.current == 4

    def test_no_pause_when_mission_finishes_first(self):
        provider = _make_provider(progress=((1, 10),))
        controller = MissionController(provider=provider, settings=_make_settings())

        outcome = controller.execute(_make_plan())

        assert outcome.succeeded is True
        provider.pause_mission.assert_not_called()
        assert MissionState.PAUSE_REQUESTED not in controller.state_history
        assert MissionState.AWAITING_COMPLETION in controller.state_history

    def test_pausing_disabled(self):
        provider = _make_provider()
        controller = MissionController(
            provider=provider, settings=_make_settings(pause_at_waypoint=None)
        )

        outcome = controller.execute(_make_plan())

        assert outcome.succeeded is True
        provider.pause_mission.assert_not_called()
        assert controller.pause_request.is_raised() is False

    @patch("detour.controller.controller.time")
    def test_holds_for_configured_time(self, mock_time):
        provider = _make_provider()

        MissionController(
            provider=provider, settings=_make_settings(pause_hold_seconds=5.0)
        ).execute(_make_plan())

        assert any(call.args == (5.0,) for call in mock_time.sleep.call_args_list)

    def test_progress_from_delivery_thread(self):
        provider = _make_provider()
        delivered = threading.Event()

        def start_mission():
            callback = provider.subscribe_progress.call_args.args[0]

            def deliver():
                for current in (1, 2, 3):
                    time.sleep(0.01)
                    callback(MissionProgress(current=current, total=10))
                delivered.set()

            threading.Thread(target=deliver, daemon=True).start()
            return _completed(MissionResult.SUCCESS)

        provider.start_mission.side_effect = start_mission
        provider.is_mission_finished.side_effect = lambda: provider.resume_mission.called
        controller = MissionController(
            provider=provider,
            settings=_make_settings(pause_poll_interval_seconds=0.005),
        )

        outcome = controller.execute(_make_plan())

        assert outcome.succeeded is True
        provider.pause_mission.assert_called_once()
        assert controller.pause_request.trigger.current == 2
        assert delivered.wait(timeout=1.0)


class TestMissionControllerFatalFailures:
    def test_upload_failure_never_arms(self):
        provider = _make_provider()
        provider.upload_mission.return_value = _completed(MissionResult.ERROR)
        controller = MissionController(provider=provider, settings=_make_settings())

        outcome = controller.execute(_make_plan())

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.failure_reason == FailureReason.UPLOAD_REJECTED
        assert outcome.provider_result == "error"
        provider.arm.assert_not_called()
        assert controller.state == MissionState.FAILED

    def test_failure_log_carries_error_details(self, caplog):
        provider = _make_provider()
        provider.upload_mission.return_value = _completed(MissionResult.ERROR)

        with caplog.at_level("ERROR", logger="detour.controller.controller"):
            MissionController(provider=provider, settings=_make_settings()).execute(_make_plan())

        record = next(r for r in caplog.records if r.getMessage().startswith("Mission failed"))
        assert record.failure_reason == "upload_rejected"
        assert record.error["error_code"] == "PROVIDER_FAILURE"
        assert record.error["context"] == {"operation": "upload_mission", "result": "error"}
        assert record.error["exception_type"] == "ProviderFailure"

    def test_upload_result_surfaced_verbatim(self):
        provider = _make_provider()
        provider.upload_mission.return_value = _completed(MissionResult.TOO_MANY_MISSION_ITEMS)

        outcome = MissionController(provider=provider, settings=_make_settings()).execute(
            _make_plan()
        )

        assert outcome.provider_result == "too_many_mission_items"
        assert "too_many_mission_items" in outcome.message

    def test_upload_future_raising_is_upload_failure(self):
        provider = _make_provider()
        provider.upload_mission.return_value = _raising(ConnectionError("link lost"))

        outcome = MissionController(provider=provider, settings=_make_settings()).execute(
            _make_plan()
        )

        assert outcome.failure_reason == FailureReason.UPLOAD_REJECTED
        assert outcome.provider_result is None
        assert "link lost" in outcome.message
        provider.arm.assert_not_called()

    def test_arm_failure_never_starts(self):
        provider = _make_provider()
        provider.arm.return_value = _completed(ActionResult.COMMAND_DENIED)
        controller = MissionController(provider=provider, settings=_make_settings())

        outcome = controller.execute(_make_plan())

        assert outcome.failure_reason == FailureReason.ARM_REJECTED
        assert outcome.provider_result == "command_denied"
        provider.start_mission.assert_not_called()
        assert MissionState.ARMED not in controller.state_history
        assert MissionState.RUNNING not in controller.state_history

    def test_start_failure_is_fatal(self):
        provider = _make_provider()
        provider.start_mission.side_effect = None
        provider.start_mission.return_value = _completed(MissionResult.BUSY)
        controller = MissionController(provider=provider, settings=_make_settings())

        outcome = controller.execute(_make_plan())

        assert outcome.failure_reason == FailureReason.START_REJECTED
        assert outcome.provider_result == "busy"
        assert MissionState.RUNNING not in controller.state_history
        provider.subscribe_progress.return_value.cancel.assert_called_once()

    @patch("detour.controller.controller.time")
    def test_health_timeout(self, mock_time):
        mock_time.monotonic.side_effect = [0.0, 1.0]
        provider = _make_provider()
        provider.is_healthy.return_value = False

        outcome = MissionController(
            provider=provider, settings=_make_settings(health_timeout_seconds=0.5)
        ).execute(_make_plan())

        assert outcome.failure_reason == FailureReason.HEALTH_TIMEOUT
        provider.upload_mission.assert_not_called()

    @patch("detour.controller.controller.time")
    def test_completion_timeout_skips_return_to_launch(self, mock_time):
        mock_time.monotonic.side_effect = [0.0, 10.0]
        provider = _make_provider(progress=())
        provider.start_mission.side_effect = None
        provider.start_mission.return_value = _completed(MissionResult.SUCCESS)
        controller = MissionController(
            provider=provider,
            settings=_make_settings(pause_at_waypoint=None, completion_timeout_seconds=5.0),
        )

        outcome = controller.execute(_make_plan())

        assert outcome.failure_reason == FailureReason.COMPLETION_TIMEOUT
        provider.return_to_launch.assert_not_called()
        assert controller.state_history[-2:] == (
            MissionState.AWAITING_COMPLETION,
            MissionState.FAILED,
        )

    def test_unexpected_error_propagates_and_fails(self):
        provider = _make_provider()
        provider.is_healthy.side_effect = ValueError("bad telemetry")
        controller = MissionController(provider=provider, settings=_make_settings())

        with pytest.raises(ValueError, match="bad telemetry"):
            controller.execute(_make_plan())

        assert controller.state == MissionState.FAILED


class TestMissionControllerWarnings:
    def test_pause_failure_is_warning(self):
        provider = _make_provider()
        provider.pause_mission.return_value = _completed(MissionResult.UNSUPPORTED)
        controller = MissionController(provider=provider, settings=_make_settings())

        outcome = controller.execute(_make_plan())

        assert outcome.succeeded is True
        assert len(outcome.warnings) == 1
        assert "pause_mission" in outcome.warnings[0]
        assert MissionState.PAUSED in controller.state_history
        provider.resume_mission.assert_called_once()

    def test_resume_raising_is_warning(self):
        provider = _make_provider()
        provider.resume_mission.return_value = _raising(TimeoutError("no ack"))

        outcome = MissionController(provider=provider, settings=_make_settings()).execute(
            _make_plan()
        )

        assert outcome.succeeded is True
        assert "no ack" in outcome.warnings[0]

    def test_return_to_launch_failure_still_waits_for_disarm(self):
        provider = _make_provider()
        provider.return_to_launch.return_value = _completed(ActionResult.ERROR)
        controller = MissionController(provider=provider, settings=_make_settings())

        outcome = controller.execute(_make_plan())

        assert outcome.succeeded is True
        assert len(outcome.warnings) == 1
        provider.is_armed.assert_called()
        assert controller.state_history[-1] == MissionState.FINISHED


class TestExecuteMission:
    def test_runs_with_given_settings(self):
        outcome = execute_mission(_make_plan(), _make_provider(), _make_settings())
        assert outcome.status == OutcomeStatus.FINISHED

    @patch("detour.controller.controller.get_detour_settings")
    def test_loads_settings_when_omitted(self, mock_get_settings):
        mock_get_settings.return_value = _make_settings()

        outcome = execute_mission(_make_plan(), _make_provider())

        mock_get_settings.assert_called_once()
        assert outcome.succeeded is True
