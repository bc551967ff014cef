from __future__ import annotations

import copy
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

import pytest

from devclock.activity import ActivityDetector
from devclock.db import SqliteDocumentBackend
from devclock.errors import StorageError
from devclock.models import EditorContext, Session
from devclock.storage import PersistenceStore
from devclock.tracker import SessionTracker

START = datetime(2024, 3, 13, 10, 0, 0)


class FakeClock:
    """Manually advanced replacement for ``datetime.now``."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value


class MemoryBackend:
    def __init__(self, document: Optional[dict[str, Any]] = None) -> None:
        self.document = copy.deepcopy(document)
        self.saves = 0

    def load(self) -> Optional[dict[str, Any]]:
        return copy.deepcopy(self.document)

    def save(self, document: dict[str, Any]) -> None:
        self.document = copy.deepcopy(document)
        self.saves += 1


class FlakyBackend(MemoryBackend):
    """Fails the next ``failures`` saves."""

    def __init__(self, document: Optional[dict[str, Any]] = None) -> None:
        super().__init__(document)
        self.failures = 0

    def save(self, document: dict[str, Any]) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise StorageError("disk full")
        super().save(document)


class ContextHolder:
    """Mutable "current editor context" query for the tracker."""

    def __init__(self, context: Optional[EditorContext] = None) -> None:
        self.context = context

    def __call__(self) -> Optional[EditorContext]:
        return self.context


def editor(
    file_name: str,
    language_id: str = "typescript",
    workspace_path: str = "/work/app",
    workspace_name: str = "app",
) -> EditorContext:
    return EditorContext(
        workspace_name=workspace_name,
        workspace_path=workspace_path,
        language_id=language_id,
        file_name=file_name,
    )


def seed_time(
    store: PersistenceStore,
    day: str,
    duration_ms: int,
    *,
    language_id: str = "typescript",
    project: str = "/work/app",
    file_name: Optional[str] = None,
    hour: int = 10,
    longest_session_ms: Optional[int] = None,
) -> None:
    """Record ``duration_ms`` on ``day`` as the tracker would."""
    context = editor(
        file_name or f"{project}/main.ts",
        language_id=language_id,
        workspace_path=project,
        workspace_name=project.rsplit("/", 1)[-1],
    )
    session = Session.begin(context, datetime.fromisoformat(f"{day}T{hour:02d}:00:00"))
    night_owl = hour >= 22 or hour < 4
    store.record_time(session, duration_ms, hour, night_owl, day=day)
    store.record_file_time(context.file_name, duration_ms, context.workspace_name, day=day)
    store.update_longest_session(longest_session_ms or duration_ms, day=day)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "devclock.sqlite3"


@pytest.fixture
def store(db_path: Path, clock: FakeClock) -> PersistenceStore:
    persistence = PersistenceStore(SqliteDocumentBackend(db_path), now=clock, sleep=lambda _: None)
    persistence.initialize()
    return persistence


@pytest.fixture
def context_holder() -> ContextHolder:
    return ContextHolder()


@pytest.fixture
def detector(clock: FakeClock) -> ActivityDetector:
    return ActivityDetector(300_000, now=clock)


@pytest.fixture
def tracker(
    store: PersistenceStore,
    detector: ActivityDetector,
    context_holder: ContextHolder,
    clock: FakeClock,
) -> SessionTracker:
    return SessionTracker(store, detector, context_provider=context_holder, now=clock)
