# src/cache/json_store.py — v2
"""JSON file-based cache store (default CACHE_BACKEND=json).

Layout under the tier directory:

    index.json              ordered list of keys (insertion order)
    entries/<slug>.json     one file per key: {"key": ..., "entry": {...}}

Every file is written to a temporary sibling and moved into place, so a
reader never sees a half-written entry.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import tempfile
from pathlib import Path

from pydantic import ValidationError

from relatondb.cache.base_cache_store import BaseCacheStore, CacheStoreError
from relatondb.cache.models import CacheEntry, cache_entry_adapter

logger = logging.getLogger(__name__)

_INDEX_FILE = "index.json"
_ENTRIES_DIR = "entries"


class JsonCacheStore(BaseCacheStore):
    """File-based cache store using JSON files."""

    def __init__(self, cache_root: Path | str) -> None:
        self._root = Path(cache_root).expanduser()
        try:
            (self._root / _ENTRIES_DIR).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheStoreError(f"Cannot open cache at {self._root}: {exc}") from exc
        self._index = self._load_index()

    @property
    def path(self) -> Path:
        return self._root

    def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""
        path = self._entry_path(key)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return cache_entry_adapter.validate_python(data["entry"])
        except OSError as exc:
            raise CacheStoreError(f"Cannot read cache entry {key!r}: {exc}") from exc
        except (json.JSONDecodeError, KeyError, ValidationError) as e:
            logger.warning("Failed to read cache entry %s: %s", key, e)
            return None

    def set(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry.

        The index is written before the entry file: a key indexed without a
        file reads as absent, while a file missing from the index would be
        invisible to entries().
        """
        if key not in self._index:
            self._index.append(key)
            try:
                self._write_index()
            except CacheStoreError:
                self._index.remove(key)
                raise
        record = {"key": key, "entry": entry.model_dump(mode="json")}
        self._atomic_write(self._entry_path(key), json.dumps(record, indent=2))

    def delete(self, key: str) -> None:
        """Remove a cache entry."""
        path = self._entry_path(key)
        try:
            if path.exists():
                path.unlink()
        except OSError as exc:
            raise CacheStoreError(f"Cannot delete cache entry {key!r}: {exc}") from exc
        if key in self._index:
            self._index.remove(key)
            self._write_index()

    def entries(self) -> list[tuple[str, CacheEntry]]:
        """List all cached entries in insertion order."""
        result: list[tuple[str, CacheEntry]] = []
        for key in list(self._index):
            entry = self.get(key)
            if entry is not None:
                result.append((key, entry))
        return result

    def clear(self) -> None:
        """Remove all entries."""
        try:
            for path in (self._root / _ENTRIES_DIR).glob("*.json"):
                path.unlink()
        except OSError as exc:
            raise CacheStoreError(f"Cannot clear cache at {self._root}: {exc}") from exc
        self._index = []
        self._write_index()

    def _load_index(self) -> list[str]:
        """Read the key index, rebuilding it from entry files if unreadable."""
        index_path = self._root / _INDEX_FILE
        if index_path.exists():
            try:
                keys = json.loads(index_path.read_text(encoding="utf-8"))
                if isinstance(keys, list):
                    return [str(k) for k in keys]
            except OSError as exc:
                raise CacheStoreError(f"Cannot read cache index {index_path}: {exc}") from exc
            except json.JSONDecodeError as e:
                logger.warning("Corrupt cache index %s, rebuilding: %s", index_path, e)
        return self._rebuild_index()

    def _rebuild_index(self) -> list[str]:
        """Recover keys from entry files, oldest first."""
        paths = sorted(
            (self._root / _ENTRIES_DIR).glob("*.json"),
            key=lambda p: p.stat().st_mtime,
        )
        keys: list[str] = []
        for path in paths:
            try:
                keys.append(json.loads(path.read_text(encoding="utf-8"))["key"])
            except (json.JSONDecodeError, KeyError) as e:
                logger.warning("Skipping unreadable cache file %s: %s", path, e)
        return keys

    def _write_index(self) -> None:
        self._atomic_write(self._root / _INDEX_FILE, json.dumps(self._index, indent=2))

    def _atomic_write(self, path: Path, content: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        except OSError as exc:
            raise CacheStoreError(f"Cannot write {path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            os.replace(tmp, path)
        except OSError as exc:
            Path(tmp).unlink(missing_ok=True)
            raise CacheStoreError(f"Cannot write {path}: {exc}") from exc

    def _entry_path(self, key: str) -> Path:
        """Return file path for a cache key.

        The digest keeps keys distinct on case-insensitive filesystems.
        """
        slug = re.sub(r"[^A-Za-z0-9._-]+", "_", key).strip("_")[:80]
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
        return self._root / _ENTRIES_DIR / f"{slug}-{digest}.json"
