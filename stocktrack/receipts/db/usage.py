"""Counters for metered actions such as receipt scans."""

from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path

from .schema import ensure_schema


class UsageDB:
    """Manages the usage_events table."""

    def __init__(self, db_path: str | Path = "~/.config/stocktrack/inventory.db") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = ensure_schema(self._db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def record(self, owner_key: str, resource_type: str, on: date | None = None) -> int:
        """Record one use of a metered resource. Returns the row id."""
        conn = self._get_conn()
        cur = conn.execute(
            "INSERT INTO usage_events (owner_key, resource_type, occurred_on) VALUES (?, ?, ?)",
            (owner_key, resource_type, (on or date.today()).isoformat()),
        )
        conn.commit()
        return cur.lastrowid

    def count_since(self, owner_key: str, resource_type: str, since: date) -> int:
        conn = self._get_conn()
        row = conn.execute(
            """SELECT COUNT(*) AS n FROM usage_events
               WHERE owner_key = ? AND resource_type = ? AND occurred_on >= ?""",
            (owner_key, resource_type, since.isoformat()),
        ).fetchone()
        return int(row["n"])
