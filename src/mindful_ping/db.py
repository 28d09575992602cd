"""SQLite database layer for usage totals and settings."""

from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Mapping


DATE_FMT = "%Y-%m-%d"


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS daily_usage (
            day TEXT NOT NULL,
            resource TEXT NOT NULL,
            seconds INTEGER NOT NULL DEFAULT 0,
            sessions INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (day, resource)
        );

        CREATE TABLE IF NOT EXISTS hourly_usage (
            day TEXT NOT NULL,
            resource TEXT NOT NULL,
            hour INTEGER NOT NULL CHECK (hour BETWEEN 0 AND 23),
            seconds INTEGER NOT NULL DEFAULT 0,
            sessions INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (day, resource, hour)
        );
        """
    )


class Database:
    """A shared connection guarded by a lock.

    The connection runs in autocommit mode; :meth:`transaction` wraps a block
    in ``BEGIN IMMEDIATE``/``COMMIT`` so increments never interleave.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._conn = open_database(self.path, check_same_thread=False)
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")

    @contextmanager
    def reading(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            yield self._conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def fetch_settings(conn: sqlite3.Connection) -> dict[str, Any]:
    rows = conn.execute("SELECT key, value FROM settings").fetchall()
    return {row["key"]: json.loads(row["value"]) for row in rows}


def upsert_settings(conn: sqlite3.Connection, values: Mapping[str, Any]) -> None:
    conn.executemany(
        """
        INSERT INTO settings (key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """,
        [(key, json.dumps(value)) for key, value in values.items()],
    )


def increment_usage(
    conn: sqlite3.Connection, day: str, resource: str, hour: int, seconds: int
) -> int:
    """Add ``seconds`` to both buckets and return the previous daily total."""
    row = conn.execute(
        "SELECT seconds FROM daily_usage WHERE day = ? AND resource = ?",
        (day, resource),
    ).fetchone()
    previous = int(row["seconds"]) if row else 0
    conn.execute(
        """
        INSERT INTO daily_usage (day, resource, seconds, sessions) VALUES (?, ?, ?, 1)
        ON CONFLICT(day, resource) DO UPDATE SET
            seconds = seconds + excluded.seconds,
            sessions = sessions + 1
        """,
        (day, resource, seconds),
    )
    conn.execute(
        """
        INSERT INTO hourly_usage (day, resource, hour, seconds, sessions)
        VALUES (?, ?, ?, ?, 1)
        ON CONFLICT(day, resource, hour) DO UPDATE SET
            seconds = seconds + excluded.seconds,
            sessions = sessions + 1
        """,
        (day, resource, hour, seconds),
    )
    return previous


def fetch_daily_usage(
    conn: sqlite3.Connection, start_day: str, end_day: str
) -> list[sqlite3.Row]:
    """Return daily rows with ``start_day <= day <= end_day``."""
    return list(
        conn.execute(
            """
            SELECT day, resource, seconds, sessions
            FROM daily_usage
            WHERE day >= ? AND day <= ?
            ORDER BY day, seconds DESC, resource;
            """,
            (start_day, end_day),
        )
    )


def fetch_hourly_usage(
    conn: sqlite3.Connection, start_day: str, end_day: str
) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            """
            SELECT day, resource, hour, seconds, sessions
            FROM hourly_usage
            WHERE day >= ? AND day <= ?
            ORDER BY day, resource, hour;
            """,
            (start_day, end_day),
        )
    )


def delete_usage_before(conn: sqlite3.Connection, cutoff_day: str) -> list[str]:
    """Delete every bucket whose day sorts before ``cutoff_day``."""
    days = [
        row["day"]
        for row in conn.execute(
            """
            SELECT day FROM daily_usage WHERE day < ?
            UNION
            SELECT day FROM hourly_usage WHERE day < ?
            ORDER BY day;
            """,
            (cutoff_day, cutoff_day),
        )
    ]
    conn.execute("DELETE FROM daily_usage WHERE day < ?", (cutoff_day,))
    conn.execute("DELETE FROM hourly_usage WHERE day < ?", (cutoff_day,))
    return days


def delete_all_usage(conn: sqlite3.Connection) -> None:
    conn.execute("DELETE FROM daily_usage")
    conn.execute("DELETE FROM hourly_usage")
