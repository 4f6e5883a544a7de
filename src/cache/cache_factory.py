# src/cache/cache_factory.py — v3
"""Factory for cache store instantiation."""

from __future__ import annotations

from pathlib import Path

from relatondb.cache.base_cache_store import BaseCacheStore
from relatondb.config.settings import Settings


def create_cache_store(
    cache_root: Path | str, settings: Settings | None = None
) -> BaseCacheStore:
    """Instantiate the configured cache backend for one tier.

    Args:
        cache_root: Tier directory; created if absent.
        settings: Application settings. Defaults to JSON backend.

    Returns:
        Configured BaseCacheStore implementation.
    """
    backend = "json" if settings is None else settings.cache_backend

    if backend == "json":
        from relatondb.cache.json_store import JsonCacheStore
        return JsonCacheStore(cache_root=cache_root)

    if backend == "sqlite":
        from relatondb.cache.sqlite_store import SqliteCacheStore
        return SqliteCacheStore(cache_root=cache_root)

    raise ValueError(f"Unsupported cache backend: {backend!r}")
