from __future__ import annotations

import logging
from datetime import datetime, timedelta

import pytest
from conftest import START, FlakyBackend, MemoryBackend, editor, seed_time

from devclock.db import DOCUMENT_KEY, SqliteDocumentBackend, database_connection, fetch_document, write_document
from devclock.models import Session
from devclock.storage import SCHEMA_VERSION, PersistenceStore, migrate_document

HOUR = 3_600_000


def _store(backend, clock, **kwargs):
    store = PersistenceStore(backend, now=clock, sleep=kwargs.pop("sleep", lambda _: None), **kwargs)
    store.initialize()
    return store


def _v1_document():
    return {
        "version": 1,
        "currentSession": None,
        "dailyStats": {
            "2023-12-30": {
                "date": "2023-12-30",
                "totalTimeMs": HOUR,
                "activeTimeMs": HOUR,
                "languageTime": {"python": HOUR},
                "projectTime": {"/work/app": HOUR},
                "fileAccessCount": {"main.py": 14},
                "hourlyDistribution": [0] * 9 + [HOUR] + [0] * 14,
                "editedFileCount": 1,
                "totalCharactersEdited": 400,
                "nightOwlTimeMs": 0,
                "longestSessionMs": HOUR,
            }
        },
        "settings": {"idleTimeoutMs": 600_000, "language": "en"},
    }


def test_fresh_store_is_persisted_at_current_version(db_path, clock):
    _store(SqliteDocumentBackend(db_path), clock)

    with database_connection(db_path) as conn:
        document = fetch_document(conn, DOCUMENT_KEY)
    assert document["version"] == SCHEMA_VERSION
    assert document["dailyAggregates"] == {}
    assert document["settings"]["idleTimeoutMs"] == 300_000


def test_data_survives_a_reload(store, db_path, clock):
    seed_time(store, "2024-03-13", HOUR, language_id="python")

    reloaded = _store(SqliteDocumentBackend(db_path), clock)

    aggregate = reloaded.get_daily_aggregate("2024-03-13")
    assert aggregate.total_time_ms == HOUR
    assert aggregate.language_time == {"python": HOUR}
    assert aggregate.hourly_distribution[10] == HOUR


def test_stale_session_marker_is_cleared_on_initialize(clock):
    session = Session.begin(editor("a.ts"), START - timedelta(hours=3))
    backend = MemoryBackend(
        {
            "version": SCHEMA_VERSION,
            "currentSession": session.to_dict(),
            "dailyAggregates": {},
            "settings": {},
        }
    )

    store = _store(backend, clock)

    assert store.get_current_session() is None
    assert backend.document["currentSession"] is None


@pytest.mark.parametrize(
    "document",
    [
        {"version": SCHEMA_VERSION, "dailyAggregates": {"2024-03-13": ["bad"]}, "settings": {}},
        {"version": SCHEMA_VERSION, "dailyAggregates": "2024-03-13", "settings": {}},
        {"version": SCHEMA_VERSION, "dailyAggregates": {}, "currentSession": {"startTime": 0}},
        {"version": "two", "dailyAggregates": {}},
        {"version": 1, "dailyStats": ["bad"]},
    ],
)
def test_malformed_stored_document_starts_an_empty_store(clock, caplog, document):
    backend = MemoryBackend(document)

    with caplog.at_level(logging.ERROR, logger="devclock.storage"):
        store = _store(backend, clock)

    assert "Stored data is malformed" in caplog.text
    assert store.data_stats().total_days == 0
    assert store.get_current_session() is None
    assert backend.document["version"] == SCHEMA_VERSION
    seed_time(store, "2024-03-13", HOUR)
    assert store.get_daily_aggregate("2024-03-13").total_time_ms == HOUR


def test_session_marker_round_trips(store, db_path, clock):
    session = Session.begin(editor("a.ts"), START)
    store.set_current_session(session)

    backend = SqliteDocumentBackend(db_path)
    marker = backend.load()["currentSession"]
    assert Session.from_dict(marker) == session


def test_legacy_document_is_migrated_on_initialize(db_path, clock):
    with database_connection(db_path) as conn:
        write_document(conn, DOCUMENT_KEY, _v1_document())

    store = _store(SqliteDocumentBackend(db_path), clock)

    aggregate = store.get_daily_aggregate("2023-12-30")
    assert aggregate.total_time_ms == HOUR
    assert aggregate.file_time_ms == {}
    assert store.get_settings().idle_timeout_ms == 600_000
    with database_connection(db_path) as conn:
        document = fetch_document(conn, DOCUMENT_KEY)
    assert document["version"] == SCHEMA_VERSION
    assert "dailyStats" not in document


def test_migrate_document_drops_access_counts():
    migrated = migrate_document(_v1_document())

    day = migrated["dailyAggregates"]["2023-12-30"]
    assert "fileAccessCount" not in day
    assert day["fileTimeMs"] == {}
    assert "language" not in migrated["settings"]


def test_non_positive_durations_are_not_recorded(store):
    session = Session.begin(editor("a.ts"), START)
    store.record_time(session, 0, 10, False)
    store.record_file_time("a.ts", -5)

    assert store.data_stats().total_days == 0


def test_persist_retries_with_linear_backoff(clock):
    backend = FlakyBackend()
    sleeps = []
    store = _store(backend, clock, sleep=sleeps.append, retries=3, retry_backoff=timedelta(milliseconds=100))

    backend.failures = 2
    assert store.persist() is True
    assert sleeps == [0.1, 0.2]


def test_persist_exhaustion_notifies_and_keeps_memory_state(clock):
    backend = FlakyBackend()
    messages = []
    store = _store(backend, clock, retries=3, on_persist_failure=messages.append)
    saved_before = backend.saves

    backend.failures = 100
    seed_time(store, "2024-03-13", HOUR)

    assert backend.saves == saved_before
    assert messages and "Failed to save data" in messages[0]
    assert store.get_daily_aggregate("2024-03-13").total_time_ms == HOUR

    backend.failures = 0
    assert store.persist() is True
    assert backend.document["dailyAggregates"]["2024-03-13"]["totalTimeMs"] == HOUR


def test_import_merges_and_overwrites_colliding_days(store):
    seed_time(store, "2024-01-01", HOUR)
    seed_time(store, "2023-12-31", HOUR)

    result = store.import_data(
        {
            "version": SCHEMA_VERSION,
            "dailyAggregates": {
                "2024-01-01": {"totalTimeMs": 2 * HOUR},
                "2024-01-02": {"totalTimeMs": HOUR},
            },
        }
    )

    assert result.success
    assert result.message == "Successfully imported 2 days of data"
    assert store.get_daily_aggregate("2024-01-01").total_time_ms == 2 * HOUR
    assert store.get_daily_aggregate("2024-01-02").total_time_ms == HOUR
    assert store.get_daily_aggregate("2023-12-31").total_time_ms == HOUR


def test_import_of_legacy_export_is_migrated(store):
    result = store.import_data(_v1_document())

    assert result.success
    assert store.get_daily_aggregate("2023-12-30").total_characters_edited == 400
    assert store.get_settings().idle_timeout_ms == 600_000


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"version": SCHEMA_VERSION + 1, "dailyAggregates": {}}, "Unsupported data version"),
        ({"dailyAggregates": {}}, "Unsupported data version"),
        ({"version": SCHEMA_VERSION}, "Invalid data format"),
        ({"version": SCHEMA_VERSION, "dailyAggregates": {"13/03/2024": {}}}, "Invalid data format"),
        (
            {"version": SCHEMA_VERSION, "dailyAggregates": {"2024-03-13": {"hourlyDistribution": [1, 2]}}},
            "Invalid data format",
        ),
        (
            {"version": SCHEMA_VERSION, "dailyAggregates": {"2024-03-13": {"totalTimeMs": -1}}},
            "Invalid data format",
        ),
        ({"version": 1, "dailyAggregates": {}}, "Invalid data format"),
        (["not", "an", "object"], "Invalid data format"),
    ],
)
def test_invalid_import_leaves_store_untouched(store, payload, message):
    seed_time(store, "2024-03-13", HOUR)
    before = store.export_data()

    result = store.import_data(payload)

    assert not result.success
    assert result.message.startswith(message)
    assert store.export_data() == before


def test_update_settings_keeps_known_periods_only(store):
    store.update_settings(status_bar_period="month", idle_timeout_ms=-10)
    assert store.get_settings().status_bar_period == "month"
    assert store.get_settings().idle_timeout_ms == 0

    store.update_settings(status_bar_period="decade")
    assert store.get_settings().status_bar_period == "today"


def test_range_queries_and_stats(store, clock):
    for day in ("2024-03-01", "2024-03-05", "2024-03-13"):
        seed_time(store, day, HOUR)

    days = store.get_range(datetime(2024, 3, 2).date(), datetime(2024, 3, 13).date())
    assert [aggregate.date for aggregate in days] == ["2024-03-05", "2024-03-13"]
    assert store.rolling_total_ms(7) == HOUR
    assert store.rolling_total_ms(30) == 3 * HOUR

    stats = store.data_stats()
    assert (stats.total_days, stats.first_date, stats.last_date) == (3, "2024-03-01", "2024-03-13")

    store.clear_all_data()
    assert store.data_stats().total_days == 0
