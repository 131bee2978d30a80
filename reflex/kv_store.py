"""
REFLEX — Key-Value Store
Persistence contract for the concept graph, plus a SQLite implementation.

The graph only ever needs get/put under one key, so any backend that
stores strings will do.
"""

import sqlite3
import threading
import time
from typing import Optional, Protocol


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, value: str) -> None: ...


class SQLiteKVStore:
    """
    SQLite-backed string store. Survives restarts when given a file path,
    ephemeral with ":memory:".
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn   = sqlite3.connect(db_path, check_same_thread=False)
        # the debounce timer writes from its own thread
        self._lock   = threading.Lock()
        self._init_schema()

    def _init_schema(self):
        with self._lock:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key        TEXT PRIMARY KEY,
                    value      TEXT NOT NULL,
                    updated_at REAL
                )
            """)
            self._conn.commit()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ).fetchone()
        return row[0] if row else None

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._conn.execute("""
                INSERT INTO kv (key, value, updated_at)
                VALUES (?,?,?)
                ON CONFLICT(key) DO UPDATE SET
                    value      = excluded.value,
                    updated_at = excluded.updated_at
            """, (key, value, time.time()))
            self._conn.commit()

    def delete(self, key: str):
        with self._lock:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self._conn.commit()

    def keys(self) -> list:
        with self._lock:
            rows = self._conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        return [r[0] for r in rows]

    def close(self):
        with self._lock:
            self._conn.close()
