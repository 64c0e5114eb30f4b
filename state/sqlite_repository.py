from __future__ import annotations

import sqlite3
import threading
import time
from pathlib import Path

from state.repository import StateRepository


class SqliteStateRepository(StateRepository):
    def __init__(self, path: Path) -> None:
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        with self._lock:
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._create_tables()

    def _create_tables(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS records (
                key TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at INTEGER
            )
            """
        )
        self._conn.commit()

    def read(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute("SELECT payload FROM records WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def write(self, key: str, payload: str) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO records (key, payload, updated_at) VALUES (?, ?, ?)
                """,
                (key, payload, int(time.time())),
            )
            self._conn.commit()

    def keys(self) -> list[str]:
        with self._lock:
            rows = self._conn.execute("SELECT key FROM records ORDER BY key").fetchall()
        return [row[0] for row in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
