"""SQLite layer holding the tracker's JSON document."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional

from .errors import StorageError

DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"
DOCUMENT_KEY = "devclock.data"


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        PRAGMA journal_mode = WAL;

        CREATE TABLE IF NOT EXISTS documents (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        """
    )


def fetch_document(conn: sqlite3.Connection, key: str) -> Optional[dict[str, Any]]:
    row = conn.execute("SELECT value FROM documents WHERE key = ?", (key,)).fetchone()
    if row is None:
        return None
    return json.loads(row["value"])


def write_document(conn: sqlite3.Connection, key: str, document: dict[str, Any]) -> None:
    conn.execute(
        """
        INSERT INTO documents (key, value, updated_at) VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET
            value = excluded.value,
            updated_at = excluded.updated_at
        """,
        (key, json.dumps(document), datetime.now().strftime(DATETIME_FMT)),
    )


class SqliteDocumentBackend:
    """Loads and saves the whole store document under a single key."""

    def __init__(self, db_path: Path, key: str = DOCUMENT_KEY) -> None:
        self.db_path = Path(db_path)
        self.key = key

    def load(self) -> Optional[dict[str, Any]]:
        try:
            with database_connection(self.db_path) as conn:
                return fetch_document(conn, self.key)
        except (sqlite3.Error, OSError, ValueError) as exc:
            raise StorageError(f"Failed to load {self.key} from {self.db_path}: {exc}") from exc

    def save(self, document: dict[str, Any]) -> None:
        try:
            with database_connection(self.db_path) as conn:
                write_document(conn, self.key, document)
        except (sqlite3.Error, OSError, TypeError, ValueError) as exc:
            raise StorageError(f"Failed to save {self.key} to {self.db_path}: {exc}") from exc
