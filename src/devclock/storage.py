"""Versioned, cached store of per-day aggregates."""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Literal, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .dates import format_date, iter_days, parse_date
from .errors import ImportValidationError, StorageError
from .models import HOURS_PER_DAY, DailyAggregate, Session, StoredSettings

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2


class DocumentBackend(Protocol):
    def load(self) -> Optional[dict[str, Any]]: ...

    def save(self, document: dict[str, Any]) -> None: ...


@dataclass(slots=True)
class ImportResult:
    success: bool
    message: str
    imported_days: int = 0


@dataclass(slots=True)
class DataStats:
    total_days: int
    first_date: Optional[str]
    last_date: Optional[str]


class _PayloadModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class DailyAggregatePayload(_PayloadModel):
    date: Optional[str] = None
    total_time_ms: int = Field(default=0, ge=0)
    active_time_ms: int = Field(default=0, ge=0)
    language_time: dict[str, int] = Field(default_factory=dict)
    project_time: dict[str, int] = Field(default_factory=dict)
    file_time_ms: dict[str, int] = Field(default_factory=dict)
    file_workspaces: dict[str, str] = Field(default_factory=dict)
    hourly_distribution: list[int] = Field(
        default_factory=lambda: [0] * HOURS_PER_DAY,
        min_length=HOURS_PER_DAY,
        max_length=HOURS_PER_DAY,
    )
    edited_file_count: int = Field(default=0, ge=0)
    total_characters_edited: int = Field(default=0, ge=0)
    night_owl_time_ms: int = Field(default=0, ge=0)
    longest_session_ms: int = Field(default=0, ge=0)


class SettingsPayload(_PayloadModel):
    idle_timeout_ms: Optional[int] = Field(default=None, ge=0)
    show_status_bar: Optional[bool] = None
    status_bar_period: Optional[Literal["today", "week", "month"]] = None


class StorePayload(_PayloadModel):
    version: int = Field(ge=1)
    daily_aggregates: dict[str, DailyAggregatePayload]
    settings: SettingsPayload = Field(default_factory=SettingsPayload)

    @field_validator("daily_aggregates")
    @classmethod
    def _check_date_keys(
        cls, value: dict[str, DailyAggregatePayload]
    ) -> dict[str, DailyAggregatePayload]:
        for key in value:
            try:
                parse_date(key)
            except ValueError as exc:
                raise ValueError(f"invalid date key {key!r}") from exc
        return value


def _migrate_v1(document: dict[str, Any]) -> dict[str, Any]:
    """Version 1 stored ``dailyStats`` and could lack per-file times."""
    daily = document.pop("dailyStats", None) or {}
    migrated: dict[str, Any] = {}
    for key, stats in daily.items():
        stats = dict(stats)
        # Access counts carry no duration, so they cannot become file times.
        stats.pop("fileAccessCount", None)
        stats.setdefault("fileTimeMs", {})
        stats.setdefault("fileWorkspaces", {})
        stats.setdefault("date", key)
        migrated[key] = stats
    settings = dict(document.get("settings") or {})
    settings.pop("language", None)
    return {
        "version": 2,
        "currentSession": document.get("currentSession"),
        "dailyAggregates": migrated,
        "settings": settings,
    }


_MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    1: _migrate_v1,
}


def migrate_document(document: dict[str, Any]) -> dict[str, Any]:
    """Run the migration chain until the document reaches the current version."""
    version = int(document.get("version") or 1)
    while version < SCHEMA_VERSION:
        step = _MIGRATIONS.get(version)
        if step is None:
            raise ImportValidationError(f"No migration from schema version {version}")
        document = step(document)
        logger.info("Migrated store document from version %d to %d.", version, document["version"])
        version = document["version"]
    return document


class PersistenceStore:
    """In-memory cache of the store document, written through to a backend."""

    def __init__(
        self,
        backend: DocumentBackend,
        *,
        now: Callable[[], datetime] = datetime.now,
        retries: int = 3,
        retry_backoff: timedelta = timedelta(milliseconds=100),
        sleep: Callable[[float], None] = time.sleep,
        on_persist_failure: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._backend = backend
        self._now = now
        self._retries = max(retries, 1)
        self._retry_backoff = retry_backoff
        self._sleep = sleep
        self._on_persist_failure = on_persist_failure
        self._daily: dict[str, DailyAggregate] = {}
        self._settings = StoredSettings()
        self._current_session: Optional[Session] = None
        self._initialized = False

    # Lifecycle
    def initialize(self) -> None:
        try:
            stored = self._backend.load()
        except StorageError:
            logger.exception("Failed to load stored data; starting with an empty store.")
            stored = None

        if not stored:
            self._reset()
            self._initialized = True
            self.persist()
            return

        try:
            version = int(stored.get("version") or 1)
            if version < SCHEMA_VERSION:
                stored = migrate_document(copy.deepcopy(stored))
            elif version > SCHEMA_VERSION:
                logger.warning(
                    "Stored data has schema version %d, newer than %d; loading known fields only.",
                    version,
                    SCHEMA_VERSION,
                )
            self._load_document(stored)
        except (AttributeError, KeyError, TypeError, ValueError):
            logger.exception("Stored data is malformed; starting with an empty store.")
            self._reset()
            self._initialized = True
            self.persist()
            return
        self._initialized = True

        if self._current_session is not None:
            # Time up to the last successful persist is already in the aggregates.
            logger.info(
                "Discarding session %s left open by a previous run.", self._current_session.id
            )
            self._current_session = None
            self.persist()
        elif version < SCHEMA_VERSION:
            self.persist()

    def _reset(self) -> None:
        self._daily = {}
        self._settings = StoredSettings()
        self._current_session = None

    def _load_document(self, document: dict[str, Any]) -> None:
        self._daily = {
            key: DailyAggregate.from_dict({**value, "date": value.get("date") or key})
            for key, value in (document.get("dailyAggregates") or {}).items()
        }
        self._settings = StoredSettings.from_dict(document.get("settings") or {})
        session = document.get("currentSession")
        self._current_session = Session.from_dict(session) if session else None

    def to_document(self) -> dict[str, Any]:
        return {
            "version": SCHEMA_VERSION,
            "currentSession": self._current_session.to_dict() if self._current_session else None,
            "dailyAggregates": {key: value.to_dict() for key, value in self._daily.items()},
            "settings": self._settings.to_dict(),
        }

    def persist(self) -> bool:
        """Write the full document, retrying with linear backoff.

        Returns ``False`` once every attempt failed; never raises.
        """
        if not self._initialized:
            return False
        document = self.to_document()
        for attempt in range(1, self._retries + 1):
            try:
                self._backend.save(document)
                return True
            except StorageError:
                logger.error("Persist failed (attempt %d/%d).", attempt, self._retries, exc_info=True)
                if attempt < self._retries:
                    self._sleep(self._retry_backoff.total_seconds() * attempt)

        message = "Failed to save data. Your recent coding time may not be recorded."
        logger.warning(message)
        if self._on_persist_failure is not None:
            try:
                self._on_persist_failure(message)
            except Exception:
                logger.exception("Persist failure notifier raised.")
        return False

    # Daily aggregates
    def today(self) -> date:
        return self._now().date()

    def _key(self, day: date | str | None) -> str:
        if day is None:
            return format_date(self.today())
        if isinstance(day, str):
            return day
        return format_date(day)

    def get_daily_aggregate(self, day: date | str) -> Optional[DailyAggregate]:
        return self._daily.get(self._key(day))

    def get_or_create_daily_aggregate(self, day: date | str | None = None) -> DailyAggregate:
        key = self._key(day)
        aggregate = self._daily.get(key)
        if aggregate is None:
            aggregate = DailyAggregate(date=key)
            self._daily[key] = aggregate
            # Persist right away so the first increment of a day survives a crash.
            self.persist()
        return aggregate

    def get_or_create_today_aggregate(self) -> DailyAggregate:
        return self.get_or_create_daily_aggregate(None)

    def get_range(self, start: date, end: date) -> list[DailyAggregate]:
        return [
            self._daily[key]
            for key in (format_date(day) for day in iter_days(start, end))
            if key in self._daily
        ]

    def rolling_total_ms(self, days: int) -> int:
        end = self.today()
        start = end - timedelta(days=days - 1)
        return sum(aggregate.total_time_ms for aggregate in self.get_range(start, end))

    def record_time(
        self,
        session: Session,
        duration_ms: int,
        hour: int,
        is_night_owl: bool,
        day: date | str | None = None,
    ) -> None:
        if duration_ms <= 0:
            return
        aggregate = self.get_or_create_daily_aggregate(day)
        aggregate.total_time_ms += duration_ms
        if session.is_active:
            aggregate.active_time_ms += duration_ms
        aggregate.project_time[session.workspace_path] = (
            aggregate.project_time.get(session.workspace_path, 0) + duration_ms
        )
        aggregate.language_time[session.language_id] = (
            aggregate.language_time.get(session.language_id, 0) + duration_ms
        )
        aggregate.hourly_distribution[hour] += duration_ms
        if is_night_owl:
            aggregate.night_owl_time_ms += duration_ms
        self.persist()

    def record_file_time(
        self,
        file_path: str,
        duration_ms: int,
        workspace_name: Optional[str] = None,
        day: date | str | None = None,
    ) -> None:
        if duration_ms <= 0:
            return
        aggregate = self.get_or_create_daily_aggregate(day)
        aggregate.file_time_ms[file_path] = aggregate.file_time_ms.get(file_path, 0) + duration_ms
        if workspace_name:
            aggregate.file_workspaces[file_path] = workspace_name
        self.persist()

    def record_characters_edited(self, count: int, day: date | str | None = None) -> None:
        aggregate = self.get_or_create_daily_aggregate(day)
        aggregate.total_characters_edited += count
        self.persist()

    def update_longest_session(self, duration_ms: int, day: date | str | None = None) -> None:
        aggregate = self.get_or_create_daily_aggregate(day)
        if duration_ms > aggregate.longest_session_ms:
            aggregate.longest_session_ms = duration_ms
            self.persist()

    def increment_edited_file_count(self, day: date | str | None = None) -> None:
        aggregate = self.get_or_create_daily_aggregate(day)
        aggregate.edited_file_count += 1
        self.persist()

    # Session marker
    def get_current_session(self) -> Optional[Session]:
        return self._current_session

    def set_current_session(self, session: Optional[Session]) -> None:
        self._current_session = session
        self.persist()

    # Settings
    def get_settings(self) -> StoredSettings:
        return self._settings

    def update_settings(
        self,
        *,
        idle_timeout_ms: Optional[int] = None,
        show_status_bar: Optional[bool] = None,
        status_bar_period: Optional[str] = None,
    ) -> StoredSettings:
        merged = self._settings.to_dict()
        if idle_timeout_ms is not None:
            merged["idleTimeoutMs"] = max(int(idle_timeout_ms), 0)
        if show_status_bar is not None:
            merged["showStatusBar"] = show_status_bar
        if status_bar_period is not None:
            merged["statusBarPeriod"] = status_bar_period
        self._settings = StoredSettings.from_dict(merged)
        self.persist()
        return self._settings

    # Bulk operations
    def clear_all_data(self) -> None:
        self._reset()
        self.persist()

    def data_stats(self) -> DataStats:
        keys = sorted(self._daily)
        if not keys:
            return DataStats(total_days=0, first_date=None, last_date=None)
        return DataStats(total_days=len(keys), first_date=keys[0], last_date=keys[-1])

    def export_data(self) -> dict[str, Any]:
        return self.to_document()

    def import_data(self, payload: Any) -> ImportResult:
        """Validate ``payload`` fully, then merge it into the store."""
        try:
            validated = self._validate_import(payload)
        except ImportValidationError as exc:
            logger.info("Rejected import: %s", exc)
            return ImportResult(success=False, message=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error while validating import.")
            return ImportResult(success=False, message=f"Import failed: {exc}")

        imported = {
            key: DailyAggregate.from_dict({**value.model_dump(by_alias=True), "date": key})
            for key, value in validated.daily_aggregates.items()
        }
        self._daily.update(imported)
        settings_update = validated.settings.model_dump(by_alias=True, exclude_none=True)
        self._settings = StoredSettings.from_dict({**self._settings.to_dict(), **settings_update})
        self.persist()

        count = len(imported)
        logger.info("Imported %d days of data.", count)
        return ImportResult(
            success=True,
            message=f"Successfully imported {count} days of data",
            imported_days=count,
        )

    @staticmethod
    def _validate_import(payload: Any) -> StorePayload:
        if not isinstance(payload, dict):
            raise ImportValidationError("Invalid data format: expected a JSON object")
        version = payload.get("version")
        if not isinstance(version, int) or isinstance(version, bool) or version < 1:
            raise ImportValidationError(f"Unsupported data version: {version!r}")
        if version > SCHEMA_VERSION:
            raise ImportValidationError(
                f"Unsupported data version: {version}. Current version: {SCHEMA_VERSION}"
            )
        document = copy.deepcopy(payload)
        if version < SCHEMA_VERSION:
            if not isinstance(document.get("dailyStats"), dict):
                raise ImportValidationError(
                    "Invalid data format: dailyStats is missing or invalid"
                )
            document = migrate_document(document)
        if not isinstance(document.get("dailyAggregates"), dict):
            raise ImportValidationError(
                "Invalid data format: dailyAggregates is missing or invalid"
            )
        try:
            return StorePayload.model_validate(document)
        except ValidationError as exc:
            raise ImportValidationError(f"Invalid data format: {exc.error_count()} errors") from exc
