from __future__ import annotations

import logging
from datetime import timedelta

import pytest
from conftest import START, editor

from devclock.events import HostEvent, HostEventKind
from devclock.tracker import TrackerState

MINUTE = 60_000


def _today(store):
    return store.get_daily_aggregate(START.date())


def _keep_typing(tracker, clock, minutes):
    for _ in range(minutes):
        clock.advance(minutes=1)
        tracker.dispatch(HostEvent.content_changed(1))


def test_start_without_context_waits_for_an_editor(tracker, store):
    tracker.start()

    assert tracker.state is TrackerState.IDLE_WAITING
    assert tracker.current_session is None

    tracker.dispatch(HostEvent.context_changed(editor("a.ts")))
    assert tracker.state is TrackerState.ACTIVE
    assert store.get_current_session() is tracker.current_session


def test_back_to_back_flushes_are_idempotent(tracker, context_holder, clock, store):
    context_holder.context = editor("a.ts")
    tracker.start()
    clock.advance(minutes=1)

    tracker.flush_progress()
    tracker.flush_progress()

    aggregate = _today(store)
    assert aggregate.total_time_ms == MINUTE
    assert aggregate.file_time_ms == {"a.ts": MINUTE}


def test_file_switch_keeps_the_session_and_flushes_first(tracker, context_holder, clock, store):
    context_holder.context = editor("a.ts")
    tracker.start()
    session = tracker.current_session

    clock.advance(minutes=2)
    tracker.dispatch(HostEvent.context_changed(editor("b.ts")))

    assert tracker.current_session is session
    assert session.file_name == "b.ts"
    assert _today(store).file_time_ms == {"a.ts": 2 * MINUTE}

    clock.advance(minutes=3)
    tracker.flush_progress()
    aggregate = _today(store)
    assert aggregate.file_time_ms == {"a.ts": 2 * MINUTE, "b.ts": 3 * MINUTE}
    assert aggregate.edited_file_count == 2
    # Nothing is ended by a file switch.
    assert aggregate.longest_session_ms == 0


def test_recorded_time_is_conserved_across_buckets(tracker, context_holder, clock, store):
    tracker.update_idle_timeout(0)
    context_holder.context = editor("a.ts")
    tracker.start()
    clock.advance(minutes=4)
    tracker.dispatch(HostEvent.context_changed(editor("main.py", "python", "/work/tool", "tool")))
    clock.advance(minutes=6)
    tracker.dispatch(HostEvent.context_changed(editor("notes.md", "markdown", "/work/tool", "tool")))
    clock.advance(minutes=1)
    tracker.stop()

    aggregate = _today(store)
    assert aggregate.total_time_ms == 11 * MINUTE
    assert sum(aggregate.language_time.values()) == aggregate.total_time_ms
    assert sum(aggregate.project_time.values()) == aggregate.total_time_ms
    assert sum(aggregate.hourly_distribution) == aggregate.total_time_ms
    assert sum(aggregate.file_time_ms.values()) == aggregate.total_time_ms
    assert aggregate.project_time == {"/work/app": 4 * MINUTE, "/work/tool": 7 * MINUTE}


def test_idle_timeout_ends_session_at_the_cutoff(tracker, context_holder, clock, store):
    context_holder.context = editor("a.ts")
    tracker.start()
    session = tracker.current_session

    _keep_typing(tracker, clock, 10)
    tracker.dispatch(HostEvent.context_changed(editor("b.ts")))
    context_holder.context = editor("b.ts")

    # Ticks every 30 seconds; the idle check first trips at 15:30.
    for _ in range(11):
        clock.advance(seconds=30)
        tracker.dispatch(HostEvent.of(HostEventKind.TICK))

    assert tracker.current_session is None
    assert tracker.state is TrackerState.IDLE_WAITING
    aggregate = _today(store)
    assert aggregate.language_time == {"typescript": 15 * MINUTE}
    assert aggregate.file_time_ms == {"a.ts": 10 * MINUTE, "b.ts": 5 * MINUTE}
    assert aggregate.longest_session_ms == 15 * MINUTE
    assert session.start_time == START
    assert session.end_time == START + timedelta(minutes=15)
    assert tracker.last_flush_time == START + timedelta(minutes=15)
    assert store.get_current_session() is None


def test_idle_cutoff_applies_without_intermediate_ticks(tracker, context_holder, clock, store):
    context_holder.context = editor("a.ts")
    tracker.start()
    _keep_typing(tracker, clock, 10)
    tracker.dispatch(HostEvent.context_changed(editor("b.ts")))

    clock.advance(minutes=40)
    tracker.on_tick()

    aggregate = _today(store)
    assert aggregate.total_time_ms == 15 * MINUTE
    assert aggregate.file_time_ms["b.ts"] == 5 * MINUTE
    assert aggregate.longest_session_ms == 15 * MINUTE


def test_zero_idle_timeout_keeps_counting(tracker, context_holder, clock, store):
    tracker.update_idle_timeout(0)
    context_holder.context = editor("a.ts")
    tracker.start()

    clock.advance(hours=2)
    tracker.on_tick()

    assert tracker.state is TrackerState.ACTIVE
    assert _today(store).total_time_ms == 120 * MINUTE


def test_session_resumes_on_the_tick_after_new_activity(tracker, context_holder, clock, store):
    context_holder.context = editor("a.ts")
    tracker.start()
    clock.advance(minutes=10)
    tracker.on_tick()
    assert tracker.current_session is None

    tracker.dispatch(HostEvent.content_changed(3))
    tracker.on_tick()

    assert tracker.state is TrackerState.ACTIVE
    assert tracker.current_session.start_time == clock()


def test_focus_loss_flushes_without_ending(tracker, context_holder, clock, store):
    context_holder.context = editor("a.ts")
    tracker.start()
    session = tracker.current_session

    clock.advance(minutes=3)
    tracker.dispatch(HostEvent.focus_changed(False))

    assert tracker.current_session is session
    assert _today(store).total_time_ms == 3 * MINUTE

    clock.advance(minutes=1)
    tracker.dispatch(HostEvent.focus_changed(True))
    assert tracker.current_session is session


def test_focus_regained_starts_a_session_after_idle(tracker, context_holder, clock):
    context_holder.context = editor("a.ts")
    tracker.start()
    clock.advance(minutes=6)
    tracker.on_tick()
    assert tracker.current_session is None

    tracker.dispatch(HostEvent.focus_changed(True))
    assert tracker.current_session is not None
    assert tracker.current_session.file_name == "a.ts"


def test_workspace_change_ends_and_restarts_session(tracker, context_holder, clock, store):
    tracker.update_idle_timeout(0)
    context_holder.context = editor("a.ts")
    tracker.start()
    first = tracker.current_session

    clock.advance(minutes=7)
    context_holder.context = editor("lib.rs", "rust", "/work/other", "other")
    tracker.dispatch(HostEvent.of(HostEventKind.WORKSPACE_FOLDERS_CHANGED))

    second = tracker.current_session
    assert second is not None and second.id != first.id
    assert second.workspace_path == "/work/other"
    aggregate = _today(store)
    assert aggregate.longest_session_ms == 7 * MINUTE
    assert aggregate.project_time == {"/work/app": 7 * MINUTE}


def test_context_without_editor_does_not_end_the_session(tracker, context_holder, clock):
    context_holder.context = editor("a.ts")
    tracker.start()
    session = tracker.current_session

    clock.advance(minutes=1)
    tracker.dispatch(HostEvent.context_changed(None))

    assert tracker.current_session is session
    assert session.file_name == "a.ts"


def test_content_changes_count_characters(tracker, context_holder, store):
    context_holder.context = editor("a.ts")
    tracker.start()

    tracker.dispatch(HostEvent.content_changed(12))
    tracker.dispatch(HostEvent.content_changed(0))
    tracker.dispatch(HostEvent.content_changed(30))

    assert _today(store).total_characters_edited == 42
    assert tracker.current_session.characters_edited == 42


def test_events_while_stopped_are_ignored(tracker, store, clock):
    tracker.dispatch(HostEvent.context_changed(editor("a.ts")))
    tracker.dispatch(HostEvent.content_changed(10))
    clock.advance(minutes=5)
    tracker.dispatch(HostEvent.of(HostEventKind.TICK))
    tracker.flush_progress()

    assert tracker.state is TrackerState.STOPPED
    assert store.data_stats().total_days == 0


def test_stop_flushes_and_ends_the_session(tracker, context_holder, clock, store):
    tracker.update_idle_timeout(0)
    context_holder.context = editor("a.ts")
    tracker.start()
    clock.advance(minutes=8)

    tracker.stop()
    tracker.stop()

    aggregate = _today(store)
    assert aggregate.total_time_ms == 8 * MINUTE
    assert aggregate.longest_session_ms == 8 * MINUTE
    assert not tracker.is_tracking()
    assert store.get_current_session() is None


def test_handler_errors_are_logged_not_raised(tracker, context_holder, caplog):
    tracker.start()

    def broken():
        raise RuntimeError("host went away")

    tracker._context_provider = broken
    with caplog.at_level(logging.ERROR, logger="devclock.tracker"):
        tracker.dispatch(HostEvent.of(HostEventKind.WORKSPACE_FOLDERS_CHANGED))

    assert "workspace_folders_changed" in caplog.text


def test_status_text_follows_the_configured_period(tracker, context_holder, clock, store):
    statuses = []
    tracker._on_status = statuses.append
    tracker.update_idle_timeout(0)
    context_holder.context = editor("a.ts")
    tracker.start()
    clock.advance(minutes=65)
    tracker.on_tick()

    assert statuses[-1] == "1h 5m"
    store.update_settings(status_bar_period="week")
    assert tracker.status_text() == "1h 5m (7d)"
    store.update_settings(show_status_bar=False)
    statuses.clear()
    tracker.refresh_status()
    assert statuses == []


def test_context_change_after_an_unnoticed_idle_gap(tracker, context_holder, clock, store):
    context_holder.context = editor("a.ts")
    tracker.start()
    first = tracker.current_session

    # No ticks ran while the host was suspended.
    clock.advance(minutes=60)
    tracker.dispatch(HostEvent.context_changed(editor("b.ts")))

    aggregate = _today(store)
    assert aggregate.file_time_ms == {"a.ts": 5 * MINUTE}
    assert aggregate.longest_session_ms == 5 * MINUTE
    assert first.end_time == START + timedelta(minutes=5)
    assert tracker.current_session.file_name == "b.ts"
    assert tracker.current_session.start_time == clock()


@pytest.mark.parametrize(
    "late_event",
    [
        HostEvent.focus_changed(False),
        HostEvent.content_changed(4),
        HostEvent.of(HostEventKind.SELECTION_CHANGED),
        HostEvent.of(HostEventKind.WORKSPACE_FOLDERS_CHANGED),
    ],
)
def test_late_events_do_not_credit_the_idle_gap(tracker, context_holder, clock, store, late_event):
    context_holder.context = editor("a.ts")
    tracker.start()

    clock.advance(minutes=30)
    tracker.dispatch(late_event)
    clock.advance(minutes=1)
    tracker.stop()

    aggregate = _today(store)
    assert aggregate.file_time_ms["a.ts"] <= 6 * MINUTE
    assert aggregate.longest_session_ms == 5 * MINUTE


def test_stop_after_an_unnoticed_idle_gap(tracker, context_holder, clock, store):
    context_holder.context = editor("a.ts")
    tracker.start()

    clock.advance(minutes=45)
    tracker.stop()

    aggregate = _today(store)
    assert aggregate.total_time_ms == 5 * MINUTE
    assert aggregate.longest_session_ms == 5 * MINUTE


def test_session_across_midnight_feeds_both_days(tracker, context_holder, clock, store):
    tracker.update_idle_timeout(0)
    late = START.replace(hour=23, minute=50)
    clock.set(late)
    context_holder.context = editor("a.ts")
    tracker.start()

    clock.advance(minutes=5)
    tracker.on_tick()
    clock.advance(minutes=10)
    tracker.on_tick()
    clock.advance(minutes=5)
    tracker.stop()

    before = store.get_daily_aggregate(late.date())
    after = store.get_daily_aggregate(late.date() + timedelta(days=1))
    assert before.total_time_ms == 5 * MINUTE
    assert before.hourly_distribution[23] == 5 * MINUTE
    assert before.longest_session_ms == 0
    # The delta spanning midnight lands on the date of the flush.
    assert after.total_time_ms == 15 * MINUTE
    assert after.hourly_distribution[0] == 15 * MINUTE
    assert after.longest_session_ms == 20 * MINUTE
