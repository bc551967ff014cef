"""Drive the session tracker from a periodic tick thread."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import timedelta
from typing import Callable, Iterable, Iterator, Optional

from .events import HostEvent, HostEventKind
from .tracker import SessionTracker

logger = logging.getLogger(__name__)

EventObserver = Callable[[HostEvent], None]


class TrackerRunner:
    """Serialises every tracker mutation and owns the tick thread.

    Host events, ticks and reads all pass through one lock, so a mutator
    never interleaves with the next event.
    """

    def __init__(
        self,
        tracker: SessionTracker,
        tick_interval: timedelta,
        *,
        observers: Iterable[EventObserver] = (),
    ) -> None:
        self._tracker = tracker
        self._tick_interval = tick_interval
        self._observers = tuple(observers)
        self._lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @contextmanager
    def locked(self) -> Iterator[SessionTracker]:
        with self._lock:
            yield self._tracker

    def dispatch(self, event: HostEvent) -> None:
        with self._lock:
            for observer in self._observers:
                observer(event)
            self._tracker.dispatch(event)

    def start(self, *, run_ticks: bool = True) -> None:
        with self._lock:
            self._tracker.start()
            if not run_ticks or (self._thread and self._thread.is_alive()):
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_ticks,
                args=(stop_event,),
                name="devclock-ticker",
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.info("Tick thread started (every %.0fs).", self._tick_interval.total_seconds())

    def request_stop(self, timeout: timedelta) -> bool:
        """Ask the tick thread to flush, end the session and exit.

        Returns ``True`` when the final flush completed within ``timeout``.
        Otherwise a best-effort stop is attempted without waiting further.
        """
        thread: Optional[threading.Thread] = None
        with self._lock:
            if self._thread and self._thread.is_alive() and self._stop_event:
                self._stop_event.set()
                thread = self._thread
            self._thread = None
            self._stop_event = None

        if thread is None:
            with self._lock:
                self._tracker.stop()
            return True

        thread.join(timeout=timeout.total_seconds())
        if not thread.is_alive():
            logger.info("Tick thread stopped.")
            return True

        logger.warning("Tracker did not stop within %.1fs; forcing a final flush.", timeout.total_seconds())
        if self._lock.acquire(timeout=1.0):
            try:
                self._tracker.stop()
            finally:
                self._lock.release()
        else:
            logger.warning("Tracker is busy; the last increments may be lost.")
        return False

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def _run_ticks(self, stop_event: threading.Event) -> None:
        interval = self._tick_interval.total_seconds()
        tick = HostEvent.of(HostEventKind.TICK)
        try:
            # Sleep in an interruptible manner.
            while not stop_event.wait(interval):
                self.dispatch(tick)
        finally:
            with self._lock:
                self._tracker.stop()
