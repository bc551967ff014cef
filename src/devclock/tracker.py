"""Session state machine that attributes elapsed editing time."""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from typing import Callable, Optional

from .activity import ActivityDetector
from .dates import elapsed_ms, format_duration_short, is_night_owl_hour
from .events import ContextProvider, HostEvent, HostEventKind
from .models import EditorContext, Session
from .storage import PersistenceStore

logger = logging.getLogger(__name__)


class TrackerState(str, Enum):
    STOPPED = "stopped"
    ACTIVE = "active"
    IDLE_WAITING = "idle_waiting"


def _no_context() -> Optional[EditorContext]:
    return None


class SessionTracker:
    """Owns the live session and flushes elapsed time into the store.

    Time is always accrued against the attribution that was current since the
    last flush, and a flush runs before every relabel. File switches relabel
    the session in place; only an idle timeout, an explicit stop or a change of
    workspace folders ends it.
    """

    def __init__(
        self,
        store: PersistenceStore,
        detector: ActivityDetector,
        *,
        context_provider: ContextProvider = _no_context,
        now: Callable[[], datetime] = datetime.now,
        on_status: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._store = store
        self._detector = detector
        self._context_provider = context_provider
        self._now = now
        self._on_status = on_status
        self._tracking = False
        self._session: Optional[Session] = None
        self._last_flush_time = now()
        self._last_context: Optional[EditorContext] = None
        self._seen_day: Optional[date] = None
        self._seen_files: set[str] = set()

    # Introspection
    @property
    def state(self) -> TrackerState:
        if not self._tracking:
            return TrackerState.STOPPED
        if self._session is not None:
            return TrackerState.ACTIVE
        return TrackerState.IDLE_WAITING

    @property
    def current_session(self) -> Optional[Session]:
        return self._session

    @property
    def last_flush_time(self) -> datetime:
        return self._last_flush_time

    def is_tracking(self) -> bool:
        return self._tracking

    def update_idle_timeout(self, timeout_ms: int) -> None:
        self._detector.set_idle_timeout(timeout_ms)

    # Lifecycle
    def start(self) -> None:
        if self._tracking:
            return
        self._tracking = True
        context = self._context_provider()
        if context is not None:
            self._note_file(context)
            self._start_session(context)
        logger.info("Tracking started (%s).", self.state.value)
        self.refresh_status()

    def stop(self) -> None:
        if not self._tracking:
            return
        self._close_lapsed_session()
        self._tracking = False
        if self._session is not None:
            self.flush_progress()
            self.end_session()
        logger.info("Tracking stopped.")

    # Event dispatch
    def dispatch(self, event: HostEvent) -> None:
        """Route one host event; exceptions are logged, never propagated."""
        try:
            if event.kind is HostEventKind.ACTIVE_CONTEXT_CHANGED:
                self.on_context_change(event.context)
            elif event.kind is HostEventKind.CONTENT_CHANGED:
                self.on_content_changed(event.edited_characters)
            elif event.kind is HostEventKind.WINDOW_FOCUS_CHANGED:
                self.on_window_focus_change(event.focused)
            elif event.kind is HostEventKind.WORKSPACE_FOLDERS_CHANGED:
                self.on_workspace_folders_change()
            elif event.kind is HostEventKind.TICK:
                self.on_tick()
            else:
                self.on_user_activity()
        except Exception:
            logger.exception("Failed to handle %s event.", event.kind.value)

    def on_context_change(self, context: Optional[EditorContext]) -> None:
        if not self._tracking:
            return
        self._close_lapsed_session()
        self._detector.record_activity()
        if context is None:
            # Terminal, webview or no editor: the session carries on.
            return

        self._note_file(context)
        if self._session is None:
            self._start_session(context)
            return

        if self._session.attribution() != context.attribution():
            self.flush_progress()
            self._session.relabel(context)
            logger.debug(
                "Session %s now on %s (%s).",
                self._session.id,
                context.file_name,
                context.language_id,
            )
        self._last_context = context

    def on_content_changed(self, edited_characters: int) -> None:
        if not self._tracking:
            return
        self._close_lapsed_session()
        self._detector.record_activity()
        if edited_characters <= 0:
            return
        self._store.record_characters_edited(edited_characters, day=self._now().date())
        if self._session is not None:
            self._session.characters_edited += edited_characters

    def on_user_activity(self) -> None:
        """Selection changes and terminal activity only prove the user is present."""
        if self._tracking:
            self._close_lapsed_session()
            self._detector.record_activity()

    def on_window_focus_change(self, focused: bool) -> None:
        if not self._tracking:
            return
        self._close_lapsed_session()
        if focused:
            if self._session is None:
                context = self._known_context()
                if context is not None:
                    self._start_session(context)
            self._detector.record_activity()
        else:
            self.flush_progress()

    def on_workspace_folders_change(self) -> None:
        if not self._tracking:
            return
        self._close_lapsed_session()
        self.flush_progress()
        context = self._known_context()
        self.end_session()
        if context is not None:
            self._start_session(context)

    def on_tick(self) -> None:
        if not self._tracking:
            return

        if self._detector.is_idle():
            if self._session is not None:
                self._end_idle_session()
            return

        if self._session is None:
            context = self._known_context()
            if context is not None:
                self._start_session(context)
            return

        self.flush_progress()
        self.refresh_status()

    # Attribution
    def flush_progress(self, at: Optional[datetime] = None) -> None:
        """Commit time elapsed since the last flush to the current attribution."""
        session = self._session
        if session is None:
            return
        when = at or self._now()
        delta = elapsed_ms(self._last_flush_time, when)
        if delta > 0:
            day = when.date()
            hour = when.hour
            self._store.record_time(session, delta, hour, is_night_owl_hour(hour), day=day)
            self._store.record_file_time(
                session.file_name, delta, session.workspace_name, day=day
            )
            self._last_flush_time = when

    def end_session(self, at: Optional[datetime] = None) -> None:
        session = self._session
        if session is None:
            return
        session.end_time = at or self._now()
        duration = session.duration_ms
        self._store.update_longest_session(duration, day=session.end_time.date())
        self._session = None
        self._store.set_current_session(None)
        logger.debug("Session %s ended after %d ms.", session.id, duration)

    def _end_idle_session(self) -> None:
        # Time past the idle threshold is not attributed to anything.
        cutoff = self._detector.idle_cutoff() or self._now()
        cutoff = max(cutoff, self._last_flush_time)
        self.flush_progress(at=cutoff)
        self.end_session(at=cutoff)
        logger.info("Session ended after idle timeout.")

    def _close_lapsed_session(self) -> None:
        # Handlers may run after the idle window elapsed but before a tick saw it.
        if self._session is not None and self._detector.is_idle():
            self._end_idle_session()

    def _start_session(self, context: EditorContext) -> None:
        now = self._now()
        self._session = Session.begin(context, now)
        self._last_flush_time = now
        self._last_context = context
        self._detector.record_activity()
        self._store.set_current_session(self._session)
        logger.debug("Session %s started on %s.", self._session.id, context.file_name)

    def _known_context(self) -> Optional[EditorContext]:
        return self._context_provider() or self._last_context

    def _note_file(self, context: EditorContext) -> None:
        today = self._now().date()
        if today != self._seen_day:
            self._seen_day = today
            self._seen_files = set()
        if context.file_name not in self._seen_files:
            self._seen_files.add(context.file_name)
            self._store.increment_edited_file_count(day=today)

    # Derived outputs
    def status_text(self) -> str:
        period = self._store.get_settings().status_bar_period
        if period == "week":
            return f"{format_duration_short(self._store.rolling_total_ms(7))} (7d)"
        if period == "month":
            return f"{format_duration_short(self._store.rolling_total_ms(30))} (30d)"
        return format_duration_short(self._store.get_or_create_today_aggregate().total_time_ms)

    def refresh_status(self) -> None:
        if self._on_status is None or not self._store.get_settings().show_status_bar:
            return
        self._on_status(self.status_text())
