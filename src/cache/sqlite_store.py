# src/cache/sqlite_store.py — v2
"""SQLite-based cache store (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency.
One ``cache.db`` file per tier directory. Better performance than JSON for
large caches.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from pydantic import ValidationError

from relatondb.cache.base_cache_store import BaseCacheStore, CacheStoreError
from relatondb.cache.models import CacheEntry, cache_entry_adapter

logger = logging.getLogger(__name__)

DB_FILENAME = "cache.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    data TEXT NOT NULL,
    status TEXT NOT NULL,
    version TEXT NOT NULL,
    fetched TEXT NOT NULL
);
"""


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed cache store for better performance at scale."""

    def __init__(self, cache_root: Path | str) -> None:
        self._root = Path(cache_root).expanduser()
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._root / DB_FILENAME))
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as exc:
            raise CacheStoreError(f"Cannot open cache at {self._root}: {exc}") from exc

    @property
    def path(self) -> Path:
        return self._root

    def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""
        row = self._execute(
            "SELECT data FROM cache_entries WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        try:
            return cache_entry_adapter.validate_json(row[0])
        except ValidationError as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            return None

    def set(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry (upsert, keeping the original position)."""
        self._execute(
            """INSERT INTO cache_entries (key, data, status, version, fetched)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET
                   data = excluded.data,
                   status = excluded.status,
                   version = excluded.version,
                   fetched = excluded.fetched""",
            (
                key,
                entry.model_dump_json(),
                entry.status,
                entry.version,
                entry.fetched.isoformat(),
            ),
            commit=True,
        )

    def delete(self, key: str) -> None:
        """Remove a cache entry."""
        self._execute("DELETE FROM cache_entries WHERE key = ?", (key,), commit=True)

    def entries(self) -> list[tuple[str, CacheEntry]]:
        """List all cached entries in insertion order."""
        rows = self._execute(
            "SELECT key, data FROM cache_entries ORDER BY seq"
        ).fetchall()
        result: list[tuple[str, CacheEntry]] = []
        for key, data in rows:
            try:
                result.append((key, cache_entry_adapter.validate_json(data)))
            except ValidationError:
                logger.warning("Skipping undecodable cache entry %s", key)
        return result

    def clear(self) -> None:
        """Remove all entries."""
        self._execute("DELETE FROM cache_entries", commit=True)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _execute(
        self, sql: str, params: tuple = (), commit: bool = False
    ) -> sqlite3.Cursor:
        try:
            cursor = self._conn.execute(sql, params)
            if commit:
                self._conn.commit()
            return cursor
        except sqlite3.Error as exc:
            raise CacheStoreError(f"Cache database error at {self._root}: {exc}") from exc
