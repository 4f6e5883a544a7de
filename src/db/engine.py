# src/db/engine.py — v1
"""Bibliographic cache engine: resolve references through two cache tiers.

Usage:
    from relatondb.db.engine import Db
    db = Db("~/.relaton/cache", "relaton", registry)
    item = db.fetch("ISO 19115-1")

Tier policy:
  - Reads consult the local tier first, then the global tier. The first
    usable entry wins; a hit served from the global tier is copied into
    the local tier.
  - Writes go to the local tier, then the global tier. Each write is
    attempted even if the other failed; there is no cross-tier rollback.
  - Not-found results are cached as sentinels that are only trusted on the
    day they were written.
  - On construction, every family whose stored schema version differs from
    its resolver's current version is purged from both tiers.
"""

from __future__ import annotations

import logging
import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable, Mapping
from datetime import date
from pathlib import Path
from types import TracebackType
from typing import Any

from relatondb.cache.base_cache_store import BaseCacheStore, CacheStoreError
from relatondb.cache.cache_factory import create_cache_store
from relatondb.cache.models import CacheEntry, FoundEntry, NotFoundEntry, Tier
from relatondb.config.settings import Settings
from relatondb.core.models import Reference, key_family
from relatondb.core.normalizer import UnrecognizedPrefixError, normalize, strip_wrapper
from relatondb.logging.context import clear_context, set_reference_context
from relatondb.registry.base_resolver import BaseResolver
from relatondb.registry.registry import ResolverRegistry

logger = logging.getLogger(__name__)

_PREFIX_HELP = (
    "See https://github.com/relaton/relaton/ for instructions on prefixing "
    "and wrapping document identifiers to disambiguate them."
)


class Db:
    """Two-tier persistent cache in front of the family resolvers.

    Args:
        global_cache: Directory of the shared (global) tier; created if absent.
        local_cache: Directory of the project (local) tier; created if absent.
        registry: Resolvers available to this engine.
        settings: Backend and freshness settings. Loaded from .env if None.
        clock: Returns "today"; injectable for tests.
        flush_caches: Empty both tiers before use.

    Raises:
        CacheStoreError: If either tier cannot be opened.
    """

    def __init__(
        self,
        global_cache: Path | str,
        local_cache: Path | str,
        registry: ResolverRegistry,
        settings: Settings | None = None,
        clock: Callable[[], date] = date.today,
        flush_caches: bool = False,
    ) -> None:
        self._settings = settings or Settings()
        self._registry = registry
        self._clock = clock
        self._db = create_cache_store(global_cache, self._settings)
        self._local_db = create_cache_store(local_cache, self._settings)
        if flush_caches:
            self.clear()
        self._reconcile_versions()

    @property
    def registry(self) -> ResolverRegistry:
        return self._registry

    @property
    def global_store(self) -> BaseCacheStore:
        return self._db

    @property
    def local_store(self) -> BaseCacheStore:
        return self._local_db

    # --- Public API ---

    def fetch(
        self,
        ref: str,
        year: str | None = None,
        opts: Mapping[str, str] | None = None,
    ) -> Any | None:
        """Resolve a reference, using the caches when possible.

        Args:
            ref: Reference text, e.g. "ISO 19115-1" or "CN(GB/T 20223-2006)".
            year: Explicit publication year; overrides a year inside ``ref``.
            opts: Options passed through to the resolver.

        Returns:
            The resolver's bibliographic item, or None when the reference is
            unknown, not found, or has no recognised prefix.

        Raises:
            CacheStoreError: If a cache tier becomes inaccessible.
        """
        try:
            reference = normalize(ref, self._registry, year=year, opts=opts)
        except UnrecognizedPrefixError as exc:
            sys.stderr.write(f"{exc}\n{_PREFIX_HELP}\n")
            logger.warning("%s", exc)
            return None
        return self._check_bibliocache(reference)

    def fetch_std(
        self,
        code: str,
        year: str | None = None,
        prefix: str | None = None,
        opts: Mapping[str, str] | None = None,
    ) -> Any | None:
        """Resolve a code against an explicitly named family.

        Without ``prefix`` this behaves like fetch().
        """
        if prefix is None:
            return self.fetch(code, year, opts)
        resolver = self._registry.resolve(prefix)
        if resolver is None:
            sys.stderr.write(
                f"{prefix} does not have a recognised prefix: "
                f"{', '.join(self._registry.prefixes)}.\n"
            )
            logger.warning("Unknown family prefix %s for %s", prefix, code)
            return None
        return self.fetch(f"{resolver.prefix}({strip_wrapper(code, resolver.prefix)})", year, opts)

    def docid_type(self, code: str) -> tuple[str, str]:
        """Return the family prefix of ``code`` and the code without its wrapper.

        Raises:
            UnrecognizedPrefixError: If no resolver claims the code.
        """
        reference = normalize(code, self._registry)
        return reference.prefix, strip_wrapper(code.strip(), reference.prefix)

    def save_entry(self, key: str, value: str | None) -> None:
        """Store an arbitrary value in both tiers; None deletes the key."""
        if value is None:
            self._apply_to_tiers(lambda store: store.delete(key), f"delete {key}")
            return
        resolver = self._resolver_for_key(key)
        entry = FoundEntry(
            payload=value,
            version=resolver.schema_version if resolver else "",
            fetched=self._clock(),
        )
        self._write_both(key, entry)

    def load_entry(self, key: str) -> str | None:
        """Return the value stored under ``key``, local tier first."""
        _, entry = self._lookup(key)
        if isinstance(entry, FoundEntry):
            return entry.payload
        return None

    def to_xml(self) -> str:
        """Serialize every cached record of the local tier.

        Returns:
            ``<documents>`` with one ``<bibdata>`` child per found entry, in
            stored order. Not-found sentinels and entries of unknown
            families are skipped.
        """
        root = ET.Element("documents")
        for key, entry in self._local_db.entries():
            if not isinstance(entry, FoundEntry):
                continue
            resolver = self._resolver_for_key(key)
            if resolver is None:
                logger.debug("No resolver for %s, not serialized", key)
                continue
            try:
                item = resolver.deserialize(entry.payload)
                element = ET.fromstring(resolver.serialize(item))
            except (ET.ParseError, ValueError) as e:
                logger.warning("Skipping unparseable cache entry %s: %s", key, e)
                continue
            element.tag = "bibdata"
            root.append(element)
        return ET.tostring(root, encoding="unicode")

    def clear(self) -> None:
        """Empty both tiers."""
        self._apply_to_tiers(lambda store: store.clear(), "clear")

    def close(self) -> None:
        """Release both tiers."""
        self._local_db.close()
        self._db.close()

    def __enter__(self) -> Db:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # --- Resolution ---

    def _check_bibliocache(self, reference: Reference) -> Any | None:
        """Serve ``reference`` from cache, or fetch and cache it."""
        resolver = self._registry.resolve_or_raise(reference.prefix)
        key = reference.key
        set_reference_context(reference.raw, key)
        try:
            tier, entry = self._lookup(key, reference)
            if tier is None or entry is None:
                return self._fetch_and_store(key, reference, resolver)

            if tier is Tier.GLOBAL:
                self._local_db.set(key, entry)
            if isinstance(entry, NotFoundEntry):
                logger.debug("Not found earlier today, resolver not called")
                return None
            try:
                item = resolver.deserialize(entry.payload)
            except (ET.ParseError, ValueError) as exc:
                logger.warning(
                    "Unreadable cached payload in %s tier, refetching: %s", tier.value, exc
                )
                return self._fetch_and_store(key, reference, resolver)
            logger.debug("Cache hit in %s tier", tier.value)
            return item
        finally:
            clear_context()

    def _lookup(
        self, key: str, reference: Reference | None = None
    ) -> tuple[Tier | None, CacheEntry | None]:
        """Return the first usable entry for ``key`` and the tier it came from.

        With a ``reference``, entries that are no longer fresh are passed
        over; without one, any stored entry is returned.
        """
        for tier, store in self._tiers():
            entry = store.get(key)
            if entry is None:
                continue
            if reference is None or self._is_fresh(entry, reference):
                return tier, entry
            logger.debug("Stale entry in %s tier (fetched %s)", tier.value, entry.fetched)
        return None, None

    def _is_fresh(self, entry: CacheEntry, reference: Reference) -> bool:
        today = self._clock()
        if isinstance(entry, NotFoundEntry):
            return entry.fetched == today
        max_age = self._settings.undated_max_age_days
        if max_age is None or reference.year:
            return True
        return (today - entry.fetched).days < max_age

    def _fetch_and_store(
        self, key: str, reference: Reference, resolver: BaseResolver
    ) -> Any | None:
        """Call the resolver and write the outcome to both tiers."""
        today = self._clock()
        logger.info("Fetching %s from %s resolver", reference.raw, resolver.prefix)
        try:
            item = resolver.fetch(
                reference.code,
                reference.year,
                reference.dispatch_all_parts,
                dict(reference.opts),
            )
        except Exception as exc:  # noqa: BLE001
            # Transient errors and genuine misses are cached alike.
            logger.warning("Resolver %s failed for %s: %s", resolver.prefix, key, exc)
            item = None

        if item is None:
            self._write_both(
                key, NotFoundEntry(version=resolver.schema_version, fetched=today)
            )
            return None

        self._write_both(
            key,
            FoundEntry(
                payload=resolver.serialize(item),
                version=resolver.schema_version,
                fetched=today,
            ),
        )
        return item

    # --- Tier plumbing ---

    def _tiers(self) -> list[tuple[Tier, BaseCacheStore]]:
        """Tiers in read and write order."""
        return [(Tier.LOCAL, self._local_db), (Tier.GLOBAL, self._db)]

    def _write_both(self, key: str, entry: CacheEntry) -> None:
        self._apply_to_tiers(lambda store: store.set(key, entry), f"write {key}")

    def _apply_to_tiers(
        self, operation: Callable[[BaseCacheStore], None], label: str
    ) -> None:
        """Run ``operation`` on each tier; re-raise the first failure afterwards."""
        errors: list[CacheStoreError] = []
        for tier, store in self._tiers():
            try:
                operation(store)
            except CacheStoreError as exc:
                logger.error("Failed to %s in %s tier: %s", label, tier.value, exc)
                errors.append(exc)
        if errors:
            raise errors[0]

    def _resolver_for_key(self, key: str) -> BaseResolver | None:
        family = key_family(key)
        return self._registry.resolve(family) if family else None

    # --- Version reconciliation ---

    def _reconcile_versions(self) -> None:
        """Purge families whose stored schema version is outdated.

        One representative entry per family and tier is compared with the
        resolver's current version. Families without a resolver are kept.
        """
        for tier, store in self._tiers():
            for family, version in self._family_versions(store).items():
                resolver = self._registry.resolve(family)
                if resolver is None:
                    logger.debug("No resolver for cached family %s, kept", family)
                    continue
                if version == resolver.schema_version:
                    continue
                logger.info(
                    "Schema of %s changed in %s tier (%s -> %s), purging family",
                    family, tier.value, version, resolver.schema_version,
                )
                self._purge_family(family)

    @staticmethod
    def _family_versions(store: BaseCacheStore) -> dict[str, str]:
        """Map each family present in ``store`` to its first entry's version."""
        versions: dict[str, str] = {}
        for key, entry in store.entries():
            family = key_family(key)
            if family is not None and family.upper() not in versions:
                versions[family.upper()] = entry.version
        return versions

    def _purge_family(self, family: str) -> None:
        """Delete every entry of ``family`` from both tiers, best-effort per tier."""
        for tier, store in self._tiers():
            try:
                doomed = [
                    key for key in store.keys()
                    if (key_family(key) or "").upper() == family.upper()
                ]
                for key in doomed:
                    store.delete(key)
                logger.info("Purged %d %s entries from %s tier", len(doomed), family, tier.value)
            except CacheStoreError as exc:
                logger.error("Failed to purge %s from %s tier: %s", family, tier.value, exc)


def init_bib_caches(
    registry: ResolverRegistry,
    settings: Settings | None = None,
    global_cache: Path | str | None = None,
    local_cache: Path | str | None = None,
    flush_caches: bool = False,
) -> Db:
    """Build a Db with tier paths taken from Settings unless given.

    Args:
        registry: Resolvers available to the engine.
        settings: Settings providing GLOBAL_CACHE / LOCAL_CACHE defaults.
        global_cache: Global tier directory override.
        local_cache: Local tier directory override.
        flush_caches: Empty both tiers before use.

    Returns:
        Ready-to-use Db.
    """
    settings = settings or Settings()
    return Db(
        global_cache if global_cache is not None else settings.global_cache,
        local_cache if local_cache is not None else settings.local_cache,
        registry,
        settings=settings,
        flush_caches=flush_caches,
    )
