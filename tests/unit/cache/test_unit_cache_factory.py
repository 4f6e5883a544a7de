# tests/unit/cache/test_unit_cache_factory.py — v4
"""Tests for cache/cache_factory.py."""

from __future__ import annotations

import pytest

from relatondb.cache.cache_factory import create_cache_store
from relatondb.cache.json_store import JsonCacheStore
from relatondb.cache.sqlite_store import SqliteCacheStore
from relatondb.config.settings import Settings


class TestCreateCacheStore:
    def test_default_json(self, tmp_path):
        store = create_cache_store(tmp_path / "c")
        assert isinstance(store, JsonCacheStore)

    def test_sqlite_backend(self, tmp_path):
        s = Settings(_env_file=None, cache_backend="sqlite")
        store = create_cache_store(tmp_path / "c", s)
        assert isinstance(store, SqliteCacheStore)
        store.close()

    def test_unsupported_backend(self, tmp_path):
        """Settings validation rejects invalid backends before factory is reached."""
        with pytest.raises(ValueError):
            s = Settings(_env_file=None, cache_backend="redis")
            create_cache_store(tmp_path / "c", s)
