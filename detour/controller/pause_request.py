"""Thread-safe pause signal shared between a progress feed and a poll loop."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from detour.mission.models import MissionProgress


class PauseRequest:
    """Single-slot latch raised from a delivery thread, read by one poller.

    Raising coalesces: once raised, further raises change nothing, so any
    number of progress updates between two polls count as one request. The
    update that first raised the latch is kept as the trigger.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._raised = False
        self._trigger: MissionProgress | None = None

    def raise_request(self, progress: MissionProgress | None = None) -> bool:
        """Raise the request.

        Args:
            progress: The update that crossed the pause threshold.

        Returns:
            True if this call raised the latch, False if it was already raised.
        """
        with self._lock:
            if self._raised:
                return False
            self._raised = True
            self._trigger = progress
            return True

    def is_raised(self) -> bool:
        """Return whether the request has been raised."""
        with self._lock:
            return self._raised

    @property
    def trigger(self) -> MissionProgress | None:
        """Return the progress update that raised the request, if any."""
        with self._lock:
            return self._trigger
