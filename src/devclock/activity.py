"""Idle detection based on the time since the last user activity."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from .models import DEFAULT_IDLE_TIMEOUT_MS

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class ActivityDetector:
    """Tracks the last activity timestamp and decides idleness against a timeout.

    A timeout of ``0`` disables idle detection entirely, so elapsed wall-clock
    time keeps counting while the user is away from the editor.
    """

    def __init__(
        self, idle_timeout_ms: int = DEFAULT_IDLE_TIMEOUT_MS, *, now: Clock = datetime.now
    ) -> None:
        self._now = now
        self._idle_timeout_ms = max(int(idle_timeout_ms), 0)
        self._last_activity_time = now()

    @property
    def idle_timeout_ms(self) -> int:
        return self._idle_timeout_ms

    @property
    def last_activity_time(self) -> datetime:
        return self._last_activity_time

    def record_activity(self) -> None:
        self._last_activity_time = self._now()

    def set_idle_timeout(self, timeout_ms: int) -> None:
        self._idle_timeout_ms = max(int(timeout_ms), 0)
        logger.debug("Idle timeout set to %d ms.", self._idle_timeout_ms)

    def idle_duration_ms(self) -> int:
        return int((self._now() - self._last_activity_time).total_seconds() * 1000)

    def is_idle(self, timeout_ms: Optional[int] = None) -> bool:
        threshold = self._idle_timeout_ms if timeout_ms is None else timeout_ms
        if threshold == 0:
            return False
        return self.idle_duration_ms() > threshold

    def idle_cutoff(self) -> Optional[datetime]:
        """Instant at which the current idle window elapsed, if detection is enabled."""
        if self._idle_timeout_ms == 0:
            return None
        return self._last_activity_time + timedelta(milliseconds=self._idle_timeout_ms)
