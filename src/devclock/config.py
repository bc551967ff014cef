"""Configuration models and helpers for the tracker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the tracker runner and the store.

    The idle timeout is a user setting and lives in the persisted store.
    """

    tick_interval: timedelta = timedelta(seconds=30)
    persist_retries: int = 3
    retry_backoff: timedelta = timedelta(milliseconds=100)
    shutdown_timeout: timedelta = timedelta(seconds=10)

    @classmethod
    def from_intervals(
        cls,
        tick_seconds: float,
        persist_retries: int | None = None,
        shutdown_seconds: float | None = None,
    ) -> "TrackerSettings":
        retries = persist_retries if persist_retries is not None else 3
        shutdown = shutdown_seconds if shutdown_seconds is not None else max(tick_seconds, 10.0)
        return cls(
            tick_interval=timedelta(seconds=tick_seconds),
            persist_retries=max(retries, 1),
            shutdown_timeout=timedelta(seconds=shutdown),
        )
