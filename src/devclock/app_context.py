"""Explicit application context wiring the tracker components together."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional

from .activity import ActivityDetector
from .aggregation import AggregationEngine
from .config import TrackerSettings
from .db import SqliteDocumentBackend
from .events import ContextProvider, HostEvent, LastReportedContext
from .models import DailyAggregate, StoredSettings
from .runner import TrackerRunner
from .storage import DataStats, ImportResult, PersistenceStore
from .styles import StyleClassifier
from .summaries import WeeklySummary
from .tracker import SessionTracker, TrackerState

logger = logging.getLogger(__name__)


class AppContext:
    """Owns one store, tracker and runner for the lifetime of a host.

    Construction is side-effect free; ``start`` loads the store and begins
    tracking, ``shutdown`` flushes and ends the live session.
    """

    def __init__(
        self,
        db_path: Path,
        settings: Optional[TrackerSettings] = None,
        *,
        context_provider: Optional[ContextProvider] = None,
        now: Callable[[], datetime] = datetime.now,
        on_status: Optional[Callable[[str], None]] = None,
        on_persist_failure: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.db_path = Path(db_path)
        self.settings = settings or TrackerSettings()
        self.warnings: list[str] = []
        self._on_persist_failure = on_persist_failure

        observers = []
        if context_provider is None:
            reported = LastReportedContext()
            observers.append(reported.observe)
            context_provider = reported

        self.store = PersistenceStore(
            SqliteDocumentBackend(self.db_path),
            now=now,
            retries=self.settings.persist_retries,
            retry_backoff=self.settings.retry_backoff,
            on_persist_failure=self._notify_persist_failure,
        )
        self.detector = ActivityDetector(now=now)
        self.tracker = SessionTracker(
            self.store,
            self.detector,
            context_provider=context_provider,
            now=now,
            on_status=on_status,
        )
        self.engine = AggregationEngine(self.store, StyleClassifier())
        self.runner = TrackerRunner(
            self.tracker, self.settings.tick_interval, observers=observers
        )
        self._started = False

    # Lifecycle
    def open(self) -> "AppContext":
        """Load the store without starting the tracker, for read-only commands."""
        with self.runner.locked():
            if not self._started:
                self.store.initialize()
                self.detector.set_idle_timeout(self.store.get_settings().idle_timeout_ms)
                self._started = True
        return self

    def start(self, *, run_ticks: bool = True) -> None:
        self.open()
        self.runner.start(run_ticks=run_ticks)
        logger.info("Tracking into %s.", self.db_path)

    def shutdown(self, timeout: Optional[timedelta] = None) -> bool:
        if not self._started:
            return True
        return self.runner.request_stop(timeout or self.settings.shutdown_timeout)

    def _notify_persist_failure(self, message: str) -> None:
        self.warnings.append(message)
        if self._on_persist_failure is not None:
            self._on_persist_failure(message)

    # Host events
    def dispatch(self, event: HostEvent) -> None:
        self.runner.dispatch(event)

    # Exposed queries
    def get_or_create_today_aggregate(self) -> DailyAggregate:
        with self.runner.locked():
            return self.store.get_or_create_today_aggregate()

    def generate_summary(self, period: str, offset: int = 0) -> Optional[WeeklySummary]:
        with self.runner.locked():
            return self.engine.generate_summary(period, offset)

    def is_tracking(self) -> bool:
        return self.tracker.is_tracking()

    def state(self) -> TrackerState:
        return self.tracker.state

    def status_text(self) -> str:
        with self.runner.locked():
            return self.tracker.status_text()

    # Settings
    def get_settings(self) -> StoredSettings:
        return self.store.get_settings()

    def update_idle_timeout(self, timeout_ms: int) -> None:
        self.update_settings(idle_timeout_ms=timeout_ms)

    def update_settings(
        self,
        *,
        idle_timeout_ms: Optional[int] = None,
        show_status_bar: Optional[bool] = None,
        status_bar_period: Optional[str] = None,
    ) -> StoredSettings:
        with self.runner.locked() as tracker:
            updated = self.store.update_settings(
                idle_timeout_ms=idle_timeout_ms,
                show_status_bar=show_status_bar,
                status_bar_period=status_bar_period,
            )
            if idle_timeout_ms is not None:
                tracker.update_idle_timeout(updated.idle_timeout_ms)
            tracker.refresh_status()
        return updated

    # Data management
    def export_data(self) -> dict[str, Any]:
        with self.runner.locked():
            return self.store.export_data()

    def import_data(self, payload: Any) -> ImportResult:
        with self.runner.locked() as tracker:
            result = self.store.import_data(payload)
            if result.success:
                tracker.update_idle_timeout(self.store.get_settings().idle_timeout_ms)
        return result

    def data_stats(self) -> DataStats:
        with self.runner.locked():
            return self.store.data_stats()

    def clear_all_data(self) -> None:
        with self.runner.locked():
            self.store.clear_all_data()
