"""SQLite storage adapter.

Implements the core CursorStore and ThreadStatePort using a simple SQLite
database.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Optional


class SQLiteStore:
    """Thin SQLite wrapper that satisfies the CursorStore and ThreadStatePort contracts."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - cursors: one timestamp per logical view (read cursors)
        - archived_threads: thread ids hidden from thread lists
        - thread_filters: selected thread filter per collection
        """

        with self._connect() as conn:
            # cursors keeps a single value per view key so unread state
            # survives restarts.
            # Fields:
            # - key: logical view name, e.g. inbox_last_visit (PRIMARY KEY)
            # - value: unix timestamp in seconds
            # - updated_at: wall-clock time of the last save, for debugging
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cursors (
                    key TEXT PRIMARY KEY,
                    value REAL NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS archived_threads (
                    thread_id TEXT PRIMARY KEY,
                    archived_at TIMESTAMP NOT NULL
                )
                """
            )
            # Fields:
            # - collection_key: collection coordinate (PRIMARY KEY)
            # - filter_name: preset value such as "4h" or "needs-response-1d"
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS thread_filters (
                    collection_key TEXT PRIMARY KEY,
                    filter_name TEXT NOT NULL
                )
                """
            )

    def load(self, key: str) -> Optional[float]:
        """Return the stored cursor value for a key, if any."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM cursors WHERE key = ?",
                (key,),
            ).fetchone()
        return float(row["value"]) if row else None

    def save(self, key: str, value: float) -> None:
        """Upsert the cursor value for a key."""

        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO cursors (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, now.isoformat()),
            )

    def archived_thread_ids(self) -> set[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT thread_id FROM archived_threads").fetchall()
        return {row["thread_id"] for row in rows}

    def archive_thread(self, thread_id: str) -> None:
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO archived_threads (thread_id, archived_at) VALUES (?, ?)",
                (thread_id, now.isoformat()),
            )

    def unarchive_thread(self, thread_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM archived_threads WHERE thread_id = ?", (thread_id,))

    def get_filter(self, collection_key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT filter_name FROM thread_filters WHERE collection_key = ?",
                (collection_key,),
            ).fetchone()
        return row["filter_name"] if row else None

    def set_filter(self, collection_key: str, filter_name: Optional[str]) -> None:
        """Store the selected filter; None clears the selection."""

        with self._connect() as conn:
            if filter_name is None:
                conn.execute(
                    "DELETE FROM thread_filters WHERE collection_key = ?",
                    (collection_key,),
                )
                return
            conn.execute(
                """
                INSERT INTO thread_filters (collection_key, filter_name)
                VALUES (?, ?)
                ON CONFLICT(collection_key) DO UPDATE SET filter_name = excluded.filter_name
                """,
                (collection_key, filter_name),
            )
