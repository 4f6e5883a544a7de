# tests/integration/db/test_int_db.py — v1
"""Integration tests for the engine over real on-disk tiers.

Each scenario runs against both cache backends and reopens the tiers the
way a new process would.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import timedelta

import pytest

from relatondb.cache.cache_factory import create_cache_store
from relatondb.cache.models import FoundEntry, NotFoundEntry
from relatondb.config.settings import Settings
from relatondb.db.engine import Db
from relatondb.registry.registry import ResolverRegistry


@pytest.fixture(params=["json", "sqlite"])
def backend_settings(request) -> Settings:
    return Settings(_env_file=None, cache_backend=request.param)


@pytest.fixture
def open_db(tmp_cache_dirs, clock, backend_settings):
    """Open a Db over the shared temp tiers with a given registry."""
    opened: list[Db] = []

    def _open(registry: ResolverRegistry) -> Db:
        global_dir, local_dir = tmp_cache_dirs
        db = Db(global_dir, local_dir, registry, settings=backend_settings, clock=clock)
        opened.append(db)
        return db

    yield _open
    for db in opened:
        db.close()


def _reopen_store(path, settings):
    return create_cache_store(path, settings)


class TestPersistence:
    def test_cache_survives_restart(self, open_db, registry, iso_resolver):
        first = open_db(registry)
        bib = first.fetch("ISO 19115-1", None, {})
        first.close()

        second = open_db(registry)
        assert second.fetch("ISO 19115-1", None, {}) == bib
        assert len(iso_resolver.calls) == 1

    def test_tiers_readable_independently(
        self, open_db, registry, tmp_cache_dirs, backend_settings
    ):
        db = open_db(registry)
        db.fetch("ISO 19115-1", None, {})
        db.close()
        for path in tmp_cache_dirs:
            with _reopen_store(path, backend_settings) as store:
                entry = store.get("ISO(ISO 19115-1)")
                assert "<project-number>ISO 19115</project-number>" in entry.payload

    def test_not_found_memoized_across_restart(self, open_db, registry, iso_resolver, clock):
        open_db(registry).fetch("ISO 111111119115-1")
        assert open_db(registry).fetch("ISO 111111119115-1") is None
        assert len(iso_resolver.calls) == 1

        clock.today += timedelta(days=1)
        open_db(registry).fetch("ISO 111111119115-1")
        assert len(iso_resolver.calls) == 2


class TestVersionReconciliation:
    def test_unchanged_version_keeps_entries(self, open_db, registry):
        db = open_db(registry)
        db.save_entry("iso(test_key)", "test_value")
        db.fetch("NIST SP 800-38B")
        db.close()

        reopened = open_db(registry)
        assert reopened.global_store.entries()
        assert reopened.local_store.entries()
        assert reopened.load_entry("iso(test_key)") == "test_value"

    def test_changed_version_purges_family_from_both_tiers(
        self, open_db, registry, iso_resolver, nist_resolver
    ):
        db = open_db(registry)
        db.save_entry("iso(test_key)", "test_value")
        db.fetch("ISO 19115-1")
        db.fetch("NIST SP 800-38B")
        db.close()

        iso_resolver.version = "new_version"
        reopened = open_db(registry)
        for store in (reopened.global_store, reopened.local_store):
            assert store.keys() == ["NIST(NIST SP 800-38B)"]

    def test_purge_then_refetch_uses_new_version(self, open_db, registry, iso_resolver):
        open_db(registry).fetch("ISO 19115-1")
        iso_resolver.version = "v2"
        db = open_db(registry)
        db.fetch("ISO 19115-1")
        assert len(iso_resolver.calls) == 2
        assert db.local_store.valid_entry("ISO(ISO 19115-1)", "v2") == "v2"

    def test_unknown_family_not_purged(self, open_db, registry, make_resolver):
        ogc = make_resolver("OGC", version="v1")
        with_ogc = ResolverRegistry([*[registry.resolve(p) for p in registry.prefixes], ogc])
        open_db(with_ogc).save_entry("OGC(OGC 19-025r1)", "<bibitem/>")

        reopened = open_db(registry)
        assert reopened.load_entry("OGC(OGC 19-025r1)") == "<bibitem/>"

    def test_mismatch_found_only_in_global_tier(
        self, open_db, registry, iso_resolver, clock
    ):
        db = open_db(registry)
        db.global_store.set(
            "ISO(ISO 1)", NotFoundEntry(version="old", fetched=clock.today)
        )
        db.local_store.set(
            "ISO(ISO 2)", FoundEntry(payload="<bibitem/>", version="v1", fetched=clock.today)
        )
        db.global_store.set(
            "ISO(ISO 2)", FoundEntry(payload="<bibitem/>", version="v1", fetched=clock.today)
        )
        db.close()

        reopened = open_db(registry)
        assert reopened.global_store.entries() == []
        assert reopened.local_store.entries() == []


class TestSerialization:
    def test_to_xml_after_restart(self, open_db, registry):
        db = open_db(registry)
        db.fetch("ISO 19115-1", None, {})
        db.fetch("ISO 19115-2", None, {})
        db.fetch("ISO 111111119115-1", None, {})
        db.close()

        docs = ET.fromstring(open_db(registry).to_xml())
        assert len(docs.findall("bibdata")) == 2
