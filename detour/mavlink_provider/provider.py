"""Flight-control provider over MAVLink via pymavlink.

One connection carries three capabilities: actions (arm, mode changes),
telemetry (health, armed flag, mission progress) and mission transfer.
A receiver thread owns reads from the link; commands run one at a time on a
single worker thread and resolve the futures handed back to the caller.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from pymavlink import mavutil

from detour.controller.models import ActionResult, MissionResult
from detour.mavlink_provider.mission_items import encode_mission
from detour.mavlink_provider.models import AutopilotState, VehicleStatus
from detour.mission.models import MissionProgress

if TYPE_CHECKING:
    from collections.abc import Callable
    from concurrent.futures import Future

    from pymavlink.mavutil import mavfile

    from detour.mavlink_provider.models import MissionItem
    from detour.mission.models import MissionPlan

logger = logging.getLogger(__name__)

_ARM_PARAM: float = 1.0
_DATA_STREAM_RATE_HZ: int = 4
_RECEIVE_TIMEOUT_SECONDS: float = 0.5
_RECEIVER_JOIN_TIMEOUT_SECONDS: float = 2.0
_MIN_GPS_FIX_TYPE: int = 3

_MISSION_MODES: tuple[str, ...] = ("AUTO", "MISSION")
_HOLD_MODES: tuple[str, ...] = ("LOITER", "HOLD")
_RETURN_MODES: tuple[str, ...] = ("RTL",)

_RESPONSE_TYPES: frozenset[str] = frozenset(
    {"COMMAND_ACK", "MISSION_REQUEST", "MISSION_REQUEST_INT", "MISSION_ACK"}
)
_UPLOAD_RESPONSE_TYPES: frozenset[str] = frozenset(
    {"MISSION_REQUEST", "MISSION_REQUEST_INT", "MISSION_ACK"}
)

_ACK_RESULTS: dict[int, ActionResult] = {
    mavutil.mavlink.MAV_RESULT_ACCEPTED: ActionResult.SUCCESS,
    mavutil.mavlink.MAV_RESULT_TEMPORARILY_REJECTED: ActionResult.BUSY,
    mavutil.mavlink.MAV_RESULT_DENIED: ActionResult.COMMAND_DENIED,
    mavutil.mavlink.MAV_RESULT_UNSUPPORTED: ActionResult.UNSUPPORTED,
    mavutil.mavlink.MAV_RESULT_FAILED: ActionResult.ERROR,
}

_MISSION_ACK_RESULTS: dict[int, MissionResult] = {
    mavutil.mavlink.MAV_MISSION_ACCEPTED: MissionResult.SUCCESS,
    mavutil.mavlink.MAV_MISSION_NO_SPACE: MissionResult.TOO_MANY_MISSION_ITEMS,
    mavutil.mavlink.MAV_MISSION_UNSUPPORTED: MissionResult.UNSUPPORTED,
    mavutil.mavlink.MAV_MISSION_UNSUPPORTED_FRAME: MissionResult.UNSUPPORTED,
    mavutil.mavlink.MAV_MISSION_INVALID: MissionResult.INVALID_ARGUMENT,
    mavutil.mavlink.MAV_MISSION_INVALID_SEQUENCE: MissionResult.INVALID_ARGUMENT,
    mavutil.mavlink.MAV_MISSION_INVALID_PARAM1: MissionResult.INVALID_ARGUMENT,
    mavutil.mavlink.MAV_MISSION_INVALID_PARAM4: MissionResult.INVALID_ARGUMENT,
    mavutil.mavlink.MAV_MISSION_INVALID_PARAM7: MissionResult.INVALID_ARGUMENT,
    mavutil.mavlink.MAV_MISSION_OPERATION_CANCELLED: MissionResult.TRANSFER_CANCELLED,
}


def _reports_mode(custom_mode: int | None, mode_id: int | tuple[int, int, int]) -> bool:
    """Return True if a heartbeat's ``custom_mode`` is the mode ``mode_id`` names.

    ArduPilot mode IDs are plain custom mode numbers. PX4 mode IDs are
    ``(base_mode, main_mode, sub_mode)`` and the heartbeat packs main and sub
    mode into bits 16-23 and 24-31 of ``custom_mode``.
    """
    if custom_mode is None:
        return False
    if isinstance(mode_id, tuple):
        _, main_mode, sub_mode = mode_id
        return (custom_mode >> 16) & 0xFF == main_mode and (custom_mode >> 24) & 0xFF == sub_mode
    return custom_mode == mode_id


class ProgressSubscription:
    """Handle for one progress callback registered with a provider."""

    def __init__(
        self,
        provider: MavlinkProvider,
        callback: Callable[[MissionProgress], None],
    ) -> None:
        self._provider = provider
        self.callback = callback

    def cancel(self) -> None:
        """Stop delivering progress to this subscription's callback."""
        self._provider._unsubscribe(self)


class MavlinkProvider:
    """Provider adapter that flies a mission plan through an autopilot.

    Commands return futures resolved on the command worker. Progress
    callbacks run on the receiver thread and must not block.
    """

    def __init__(
        self,
        connection_string: str,
        baud_rate: int,
        *,
        heartbeat_timeout_seconds: int = 30,
        command_timeout_seconds: float = 5.0,
    ) -> None:
        """Initialize the provider without opening the link.

        Args:
            connection_string: MAVLink connection URI (e.g., "udpin:0.0.0.0:14540").
            baud_rate: Serial baud rate for the connection.
            heartbeat_timeout_seconds: How long ``connect`` waits for a heartbeat.
            command_timeout_seconds: Bound on every vehicle response a command waits for.
        """
        self._connection_string = connection_string
        self._baud_rate = baud_rate
        self._heartbeat_timeout_seconds = heartbeat_timeout_seconds
        self._command_timeout_seconds = command_timeout_seconds

        self._connection: mavfile | None = None
        self._state = AutopilotState.DISCONNECTED

        self._status_changed = threading.Condition()
        self._status = VehicleStatus()
        self._mission_items: tuple[MissionItem, ...] = ()
        self._final_navigation_seq = -1
        self._last_progress = -1
        self._subscriptions: list[ProgressSubscription] = []

        self._responses: queue.Queue[Any] = queue.Queue()
        self._stop_event = threading.Event()
        self._receiver: threading.Thread | None = None
        self._command_worker: ThreadPoolExecutor | None = None

        self._message_handlers: dict[str, Callable[[Any], None]] = {
            "HEARTBEAT": self._handle_heartbeat,
            "SYS_STATUS": self._handle_sys_status,
            "GPS_RAW_INT": self._handle_gps_raw,
            "MISSION_CURRENT": self._handle_mission_current,
            "MISSION_ITEM_REACHED": self._handle_mission_item_reached,
        }

    @property
    def state(self) -> AutopilotState:
        """Return the current link state."""
        return self._state

    @property
    def status(self) -> VehicleStatus:
        """Return the latest vehicle status snapshot."""
        with self._status_changed:
            return self._status

    def connect(self) -> None:
        """Open the link, wait for a heartbeat and start the worker threads.

        Raises:
            ConnectionError: If the connection or heartbeat fails.
        """
        logger.info(
            "Connecting to autopilot at %s (baud=%d)",
            self._connection_string,
            self._baud_rate,
        )
        self._state = AutopilotState.CONNECTING

        try:
            self._connection = mavutil.mavlink_connection(
                self._connection_string,
                baud=self._baud_rate,
            )
            logger.info("Waiting for heartbeat (timeout=%ds)", self._heartbeat_timeout_seconds)
            heartbeat = self._connection.wait_heartbeat(timeout=self._heartbeat_timeout_seconds)
        except Exception as error:
            self._state = AutopilotState.DISCONNECTED
            self._connection = None
            logger.exception("Failed to connect to autopilot at %s", self._connection_string)
            raise ConnectionError(
                f"Failed to connect to autopilot at {self._connection_string}: {error}"
            ) from error

        if heartbeat is None:
            self._state = AutopilotState.DISCONNECTED
            self._connection.close()
            self._connection = None
            raise ConnectionError(
                f"No heartbeat from autopilot at {self._connection_string} "
                f"within {self._heartbeat_timeout_seconds}s"
            )

        self._state = AutopilotState.CONNECTED
        self._handle_heartbeat(heartbeat)
        self._request_data_streams()

        self._stop_event.clear()
        self._receiver = threading.Thread(
            target=self._receive_loop,
            name="mavlink-receiver",
            daemon=True,
        )
        self._receiver.start()
        self._command_worker = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="mavlink-command",
        )
        logger.info(
            "Connected to autopilot (system=%d, component=%d)",
            self._connection.target_system,
            self._connection.target_component,
        )

    def _request_data_streams(self) -> None:
        """Ask the autopilot for position and extended status streams.

        Extended status carries SYS_STATUS, GPS_RAW_INT and MISSION_CURRENT.
        """
        connection = self._get_connection()
        for stream_id in (
            mavutil.mavlink.MAV_DATA_STREAM_POSITION,
            mavutil.mavlink.MAV_DATA_STREAM_EXTENDED_STATUS,
        ):
            connection.mav.request_data_stream_send(
                connection.target_system,
                connection.target_component,
                stream_id,
                _DATA_STREAM_RATE_HZ,
                1,
            )
        logger.info("Requested data streams at %d Hz", _DATA_STREAM_RATE_HZ)

    def disconnect(self) -> None:
        """Stop the worker threads and close the link."""
        self._stop_event.set()
        if self._receiver is not None:
            self._receiver.join(timeout=_RECEIVER_JOIN_TIMEOUT_SECONDS)
            self._receiver = None
        if self._command_worker is not None:
            self._command_worker.shutdown(wait=False, cancel_futures=True)
            self._command_worker = None
        if self._connection is not None:
            logger.info("Disconnecting from autopilot")
            self._connection.close()
            self._connection = None

        self._state = AutopilotState.DISCONNECTED
        logger.info("Disconnected from autopilot")

    # Telemetry

    def is_healthy(self) -> bool:
        """Return True once sensors are healthy and GPS has a 3D fix."""
        status = self.status
        return (
            status.heartbeat_seen
            and status.sensors_healthy
            and status.gps_fix_type >= _MIN_GPS_FIX_TYPE
        )

    def is_armed(self) -> bool:
        """Return the armed flag from the latest heartbeat."""
        return self.status.armed

    def is_mission_finished(self) -> bool:
        """Return True once the last navigation item has been reached.

        Autopilots only report reached items for navigation commands, so DO_*
        items trailing the final waypoint are not waited for.
        """
        with self._status_changed:
            if not self._mission_items:
                return False
            return self._status.mission_reached_seq >= self._final_navigation_seq

    def subscribe_progress(
        self,
        callback: Callable[[MissionProgress], None],
    ) -> ProgressSubscription:
        """Register ``callback`` for mission progress updates.

        Args:
            callback: Called on the receiver thread with each new progress value.

        Returns:
            A subscription whose ``cancel()`` stops delivery.
        """
        subscription = ProgressSubscription(self, callback)
        with self._status_changed:
            self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: ProgressSubscription) -> None:
        with self._status_changed:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    # Commands

    def arm(self) -> Future[ActionResult]:
        """Arm the motors; resolves to the COMMAND_ACK result."""
        return self._submit(self._arm)

    def upload_mission(self, plan: MissionPlan) -> Future[MissionResult]:
        """Upload ``plan``; resolves to the final MISSION_ACK result."""
        return self._submit(self._upload_mission, plan)

    def start_mission(self) -> Future[MissionResult]:
        """Switch to the mission flight mode."""
        return self._submit(self._change_mode, _MISSION_MODES, MissionResult)

    def pause_mission(self) -> Future[MissionResult]:
        """Hold position at the current location."""
        return self._submit(self._change_mode, _HOLD_MODES, MissionResult)

    def resume_mission(self) -> Future[MissionResult]:
        """Continue the mission from the current item."""
        return self._submit(self._change_mode, _MISSION_MODES, MissionResult)

    def return_to_launch(self) -> Future[ActionResult]:
        """Fly back to the launch point and land."""
        return self._submit(self._change_mode, _RETURN_MODES, ActionResult)

    def _submit(self, function: Callable[..., Any], *args: Any) -> Future[Any]:
        """Queue ``function`` on the command worker.

        Raises:
            ConnectionError: If not connected to the autopilot.
        """
        self._require_connection()
        if self._command_worker is None:
            raise ConnectionError("Command worker is not running. Call connect() first.")
        return self._command_worker.submit(function, *args)

    def _arm(self) -> ActionResult:
        connection = self._get_connection()
        command = mavutil.mavlink.MAV_CMD_COMPONENT_ARM_DISARM

        logger.info("Arming motors")
        self._drain_responses()
        connection.mav.command_long_send(
            connection.target_system,
            connection.target_component,
            command,
            0,  # confirmation
            _ARM_PARAM,
            0,
            0,
            0,
            0,
            0,
            0,
        )

        ack = self._wait_for_response(
            lambda message: (
                message.get_type() == "COMMAND_ACK"
                and message.command == command
                and message.result != mavutil.mavlink.MAV_RESULT_IN_PROGRESS
            )
        )
        if ack is None:
            logger.warning("No COMMAND_ACK for arm within %.1fs", self._command_timeout_seconds)
            return ActionResult.TIMEOUT

        result = _ACK_RESULTS.get(ack.result, ActionResult.ERROR)
        logger.info("Arm acknowledged: %s", result)
        return result

    def _upload_mission(self, plan: MissionPlan) -> MissionResult:
        """Run the MAVLink mission upload handshake for ``plan``."""
        connection = self._get_connection()
        ardupilot = self.status.autopilot == mavutil.mavlink.MAV_AUTOPILOT_ARDUPILOTMEGA
        try:
            items = encode_mission(plan, ardupilot=ardupilot)
        except ValueError as error:
            logger.error("Mission not uploaded: %s", error)
            return MissionResult.INVALID_ARGUMENT

        logger.info("Uploading mission: %d waypoints as %d items", len(plan), len(items))
        self._drain_responses()
        connection.mav.mission_count_send(
            connection.target_system,
            connection.target_component,
            len(items),
            mavutil.mavlink.MAV_MISSION_TYPE_MISSION,
        )

        while True:
            message = self._wait_for_response(
                lambda candidate: candidate.get_type() in _UPLOAD_RESPONSE_TYPES
            )
            if message is None:
                logger.warning("Mission upload stalled after %.1fs", self._command_timeout_seconds)
                return MissionResult.TIMEOUT

            if message.get_type() == "MISSION_ACK":
                result = _MISSION_ACK_RESULTS.get(message.type, MissionResult.ERROR)
                if result == MissionResult.SUCCESS:
                    self._install_mission(items)
                logger.info("Mission upload finished: %s", result)
                return result

            if message.seq >= len(items):
                logger.error(
                    "Autopilot requested item %d of a %d item mission",
                    message.seq,
                    len(items),
                )
                return MissionResult.ERROR

            self._send_mission_item(connection, items[message.seq])

    def _send_mission_item(self, connection: mavfile, item: MissionItem) -> None:
        connection.mav.mission_item_int_send(
            connection.target_system,
            connection.target_component,
            item.seq,
            item.frame,
            item.command,
            0,  # current
            1,  # autocontinue
            item.param1,
            item.param2,
            item.param3,
            item.param4,
            item.x,
            item.y,
            item.z,
            mavutil.mavlink.MAV_MISSION_TYPE_MISSION,
        )

    def _install_mission(self, items: list[MissionItem]) -> None:
        """Make ``items`` the mission that progress is reported against."""
        with self._status_changed:
            self._mission_items = tuple(items)
            self._final_navigation_seq = max(
                item.seq for item in items if item.command == mavutil.mavlink.MAV_CMD_NAV_WAYPOINT
            )
            self._last_progress = -1
            self._status = self._status.model_copy(
                update={"mission_current_seq": -1, "mission_reached_seq": -1}
            )

    def _change_mode(
        self,
        mode_names: tuple[str, ...],
        result_type: type[ActionResult] | type[MissionResult],
    ) -> ActionResult | MissionResult:
        """Switch flight mode and wait for a heartbeat reporting it.

        Args:
            mode_names: Acceptable mode names, first known one wins.
            result_type: Result enum to report in.

        Returns:
            ``success``, ``unsupported`` when the autopilot knows none of the
            modes, or ``timeout`` when no heartbeat confirms the switch.
        """
        connection = self._get_connection()
        mode_mapping = connection.mode_mapping() or {}
        mode_name = next((name for name in mode_names if name in mode_mapping), None)
        if mode_name is None:
            logger.error("Autopilot supports none of the flight modes %s", mode_names)
            return result_type.UNSUPPORTED

        mode_id = mode_mapping[mode_name]
        logger.info("Setting flight mode to %s (id=%s)", mode_name, mode_id)
        if isinstance(mode_id, tuple):
            connection.set_mode_px4(*mode_id)
        else:
            connection.set_mode(mode_id)

        with self._status_changed:
            confirmed = self._status_changed.wait_for(
                lambda: _reports_mode(self._status.custom_mode, mode_id),
                timeout=self._command_timeout_seconds,
            )
        if not confirmed:
            logger.warning("Flight mode %s not confirmed by heartbeat", mode_name)
            return result_type.TIMEOUT
        return result_type.SUCCESS

    def _wait_for_response(self, predicate: Callable[[Any], bool]) -> Any | None:
        """Return the first queued response matching ``predicate``, or None on timeout."""
        deadline = time.monotonic() + self._command_timeout_seconds
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            try:
                message = self._responses.get(timeout=remaining)
            except queue.Empty:
                return None
            if predicate(message):
                return message

    def _drain_responses(self) -> None:
        while True:
            try:
                self._responses.get_nowait()
            except queue.Empty:
                return

    # Receiver

    def _receive_loop(self) -> None:
        connection = self._get_connection()
        while not self._stop_event.is_set():
            try:
                message = connection.recv_match(blocking=True, timeout=_RECEIVE_TIMEOUT_SECONDS)
            except Exception:
                logger.exception("MAVLink receive failed")
                self._stop_event.wait(_RECEIVE_TIMEOUT_SECONDS)
                continue
            if message is None:
                continue
            try:
                self._handle_message(message)
            except Exception:
                logger.exception("Failed to handle %s message", message.get_type())

    def _handle_message(self, message: Any) -> None:
        """Route one received message to the command worker or the status snapshot."""
        message_type = message.get_type()
        if message_type in _RESPONSE_TYPES:
            self._responses.put(message)
            return

        handler = self._message_handlers.get(message_type)
        if handler is not None:
            handler(message)

    def _handle_heartbeat(self, message: Any) -> None:
        if message.type == mavutil.mavlink.MAV_TYPE_GCS:
            return
        armed = bool(message.base_mode & mavutil.mavlink.MAV_MODE_FLAG_SAFETY_ARMED)
        self._update_status(
            heartbeat_seen=True,
            autopilot=message.autopilot,
            armed=armed,
            custom_mode=message.custom_mode,
        )

    def _handle_sys_status(self, message: Any) -> None:
        required = message.onboard_control_sensors_present & message.onboard_control_sensors_enabled
        healthy = (message.onboard_control_sensors_health & required) == required
        self._update_status(sensors_healthy=healthy)

    def _handle_gps_raw(self, message: Any) -> None:
        self._update_status(gps_fix_type=message.fix_type)

    def _handle_mission_current(self, message: Any) -> None:
        self._update_status(mission_current_seq=message.seq)
        self._publish_progress()

    def _handle_mission_item_reached(self, message: Any) -> None:
        with self._status_changed:
            reached = max(self._status.mission_reached_seq, message.seq)
        self._update_status(mission_reached_seq=reached)
        self._publish_progress()

    def _update_status(self, **changes: Any) -> None:
        with self._status_changed:
            self._status = self._status.model_copy(update=changes)
            self._status_changed.notify_all()

    def _publish_progress(self) -> None:
        """Deliver a progress update when the current waypoint has advanced.

        Progress counts plan waypoints, not mission items. It reaches
        ``total`` once the final navigation item has been reached and never goes
        back.
        """
        with self._status_changed:
            if not self._mission_items:
                return
            total = self._mission_items[-1].waypoint_index + 1
            status = self._status
            if status.mission_reached_seq >= self._final_navigation_seq:
                current = total
            elif 0 <= status.mission_current_seq < len(self._mission_items):
                current = self._mission_items[status.mission_current_seq].waypoint_index
            else:
                return
            if current <= self._last_progress:
                return
            self._last_progress = current
            callbacks = [subscription.callback for subscription in self._subscriptions]

        progress = MissionProgress(current=current, total=total)
        for callback in callbacks:
            try:
                callback(progress)
            except Exception:
                logger.exception("Progress subscriber failed on %d / %d", current, total)

    def _require_connection(self) -> None:
        """Verify the provider is connected to an autopilot.

        Raises:
            ConnectionError: If not connected.
        """
        if self._connection is None or self._state == AutopilotState.DISCONNECTED:
            raise ConnectionError("Not connected to autopilot. Call connect() first.")

    def _get_connection(self) -> mavfile:
        if self._connection is None:
            raise ConnectionError("No active MAVLink connection")
        return self._connection
