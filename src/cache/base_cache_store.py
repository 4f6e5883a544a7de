# src/cache/base_cache_store.py — v2
"""Abstract cache store interface.

One store instance backs one cache tier. Stores are raw key/value
persistence: freshness and version policy live in the engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from types import TracebackType

from relatondb.cache.models import CacheEntry


class CacheStoreError(Exception):
    """Raised when the backing storage of a cache tier is inaccessible."""


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends."""

    @property
    @abstractmethod
    def path(self) -> Path:
        """Directory holding this tier."""

    @abstractmethod
    def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""

    @abstractmethod
    def set(self, key: str, entry: CacheEntry) -> None:
        """Store cache entry, replacing any previous one atomically."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove cache entry; no-op when absent."""

    @abstractmethod
    def entries(self) -> list[tuple[str, CacheEntry]]:
        """List all (key, entry) pairs in insertion order."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""

    def close(self) -> None:
        """Release backend resources."""

    def keys(self) -> list[str]:
        """List all keys in insertion order."""
        return [key for key, _ in self.entries()]

    def valid_entry(self, key: str, expected_version: str) -> str | None:
        """Return the stored version of ``key`` if present.

        The stored version is returned whether or not it equals
        ``expected_version``; callers do the comparison.
        """
        entry = self.get(key)
        return entry.version if entry is not None else None

    def fetched(self, key: str) -> date | None:
        """Return the fetch date of ``key``, or None if absent."""
        entry = self.get(key)
        return entry.fetched if entry is not None else None

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __enter__(self) -> BaseCacheStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
