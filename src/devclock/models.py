"""Domain models for tracked coding time."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from .normalization import normalize_language_id

HOURS_PER_DAY = 24
DEFAULT_IDLE_TIMEOUT_MS = 300_000
STATUS_BAR_PERIODS = ("today", "week", "month")


@dataclass(slots=True, frozen=True)
class EditorContext:
    """What the host editor currently has in focus."""

    workspace_name: str
    workspace_path: str
    language_id: str
    file_name: str

    def attribution(self) -> tuple[str, str, str]:
        return (self.language_id, self.workspace_path, self.file_name)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EditorContext":
        return cls(
            workspace_name=data.get("workspaceName") or "Unknown",
            workspace_path=data.get("workspacePath") or "unknown",
            language_id=normalize_language_id(data["languageId"]),
            file_name=data["fileName"],
        )


@dataclass(slots=True)
class Session:
    """A continuous tracked interval that survives file switches."""

    id: str
    start_time: datetime
    workspace_name: str
    workspace_path: str
    language_id: str
    file_name: str
    end_time: Optional[datetime] = None
    is_active: bool = True
    characters_edited: int = 0

    @classmethod
    def begin(cls, context: EditorContext, at: datetime) -> "Session":
        return cls(
            id=str(uuid.uuid4()),
            start_time=at,
            workspace_name=context.workspace_name,
            workspace_path=context.workspace_path,
            language_id=context.language_id,
            file_name=context.file_name,
        )

    def attribution(self) -> tuple[str, str, str]:
        return (self.language_id, self.workspace_path, self.file_name)

    def relabel(self, context: EditorContext) -> None:
        self.workspace_name = context.workspace_name
        self.workspace_path = context.workspace_path
        self.language_id = context.language_id
        self.file_name = context.file_name

    def context(self) -> EditorContext:
        return EditorContext(
            workspace_name=self.workspace_name,
            workspace_path=self.workspace_path,
            language_id=self.language_id,
            file_name=self.file_name,
        )

    @property
    def duration_ms(self) -> int:
        if self.end_time is None:
            return 0
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startTime": _to_ms(self.start_time),
            "endTime": _to_ms(self.end_time) if self.end_time else None,
            "workspaceName": self.workspace_name,
            "workspacePath": self.workspace_path,
            "languageId": self.language_id,
            "fileName": self.file_name,
            "isActive": self.is_active,
            "charactersEdited": self.characters_edited,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        end = data.get("endTime")
        return cls(
            id=data["id"],
            start_time=_from_ms(data["startTime"]),
            end_time=_from_ms(end) if end is not None else None,
            workspace_name=data.get("workspaceName", "Unknown"),
            workspace_path=data.get("workspacePath", "unknown"),
            language_id=data.get("languageId", "plaintext"),
            file_name=data.get("fileName", ""),
            is_active=data.get("isActive", True),
            characters_edited=data.get("charactersEdited", 0),
        )


@dataclass(slots=True)
class DailyAggregate:
    """Per-day rollup of recorded time, keyed by local calendar date."""

    date: str
    total_time_ms: int = 0
    active_time_ms: int = 0
    language_time: dict[str, int] = field(default_factory=dict)
    project_time: dict[str, int] = field(default_factory=dict)
    file_time_ms: dict[str, int] = field(default_factory=dict)
    file_workspaces: dict[str, str] = field(default_factory=dict)
    hourly_distribution: list[int] = field(default_factory=lambda: [0] * HOURS_PER_DAY)
    edited_file_count: int = 0
    total_characters_edited: int = 0
    night_owl_time_ms: int = 0
    longest_session_ms: int = 0

    @property
    def day(self) -> date:
        return date.fromisoformat(self.date)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "totalTimeMs": self.total_time_ms,
            "activeTimeMs": self.active_time_ms,
            "languageTime": dict(self.language_time),
            "projectTime": dict(self.project_time),
            "fileTimeMs": dict(self.file_time_ms),
            "fileWorkspaces": dict(self.file_workspaces),
            "hourlyDistribution": list(self.hourly_distribution),
            "editedFileCount": self.edited_file_count,
            "totalCharactersEdited": self.total_characters_edited,
            "nightOwlTimeMs": self.night_owl_time_ms,
            "longestSessionMs": self.longest_session_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DailyAggregate":
        hourly = list(data.get("hourlyDistribution") or [])
        hourly = (hourly + [0] * HOURS_PER_DAY)[:HOURS_PER_DAY]
        return cls(
            date=data["date"],
            total_time_ms=data.get("totalTimeMs", 0),
            active_time_ms=data.get("activeTimeMs", 0),
            language_time=dict(data.get("languageTime") or {}),
            project_time=dict(data.get("projectTime") or {}),
            file_time_ms=dict(data.get("fileTimeMs") or {}),
            file_workspaces=dict(data.get("fileWorkspaces") or {}),
            hourly_distribution=hourly,
            edited_file_count=data.get("editedFileCount", 0),
            total_characters_edited=data.get("totalCharactersEdited", 0),
            night_owl_time_ms=data.get("nightOwlTimeMs", 0),
            longest_session_ms=data.get("longestSessionMs", 0),
        )


@dataclass(slots=True)
class StoredSettings:
    """User settings persisted alongside the daily aggregates."""

    idle_timeout_ms: int = DEFAULT_IDLE_TIMEOUT_MS
    show_status_bar: bool = True
    status_bar_period: str = "today"

    def to_dict(self) -> dict[str, Any]:
        return {
            "idleTimeoutMs": self.idle_timeout_ms,
            "showStatusBar": self.show_status_bar,
            "statusBarPeriod": self.status_bar_period,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredSettings":
        defaults = cls()
        period = data.get("statusBarPeriod", defaults.status_bar_period)
        if period not in STATUS_BAR_PERIODS:
            period = defaults.status_bar_period
        return cls(
            idle_timeout_ms=int(data.get("idleTimeoutMs", defaults.idle_timeout_ms)),
            show_status_bar=bool(data.get("showStatusBar", defaults.show_status_bar)),
            status_bar_period=period,
        )


def _to_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _from_ms(value: int | float) -> datetime:
    return datetime.fromtimestamp(value / 1000)
