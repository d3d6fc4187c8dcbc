from __future__ import annotations

import sqlite3
from typing import Dict, Optional

from domain.errors import PreferenceWriteError
from domain.repositories import PreferenceRepository


class SqlitePreferenceRepository(PreferenceRepository):
    """
    SQLite-backed implementation of `PreferenceRepository`.

    Owns a two-column `preferences` table. It is self-initialising: the
    table is created if needed.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._ensure_table()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS preferences (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.commit()

    def get(self, key: str) -> Optional[str]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT value FROM preferences WHERE key = ?", (key,))
            row = cur.fetchone()
            if not row:
                return None
            return str(row[0])

    def set_values(self, values: Dict[str, str]) -> None:
        try:
            with self._get_connection() as conn:
                cur = conn.cursor()
                cur.executemany(
                    """
                    INSERT INTO preferences (key, value)
                    VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value
                    """,
                    list(values.items()),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise PreferenceWriteError(f"Could not save preferences: {exc}") from exc
