# src/registry/registry.py — v1
"""Resolver registry: prefix-keyed lookup of family resolvers.

Constructed once by the caller and handed to the engine, so tests can
substitute fakes for the real standards-body integrations.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from relatondb.registry.base_resolver import BaseResolver

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Raised when a resolver cannot be registered or located."""


class ResolverRegistry:
    """Registry of available resolvers, keyed by upper-cased prefix.

    Lookup by raw reference walks resolvers in registration order; the first
    one whose prefix or default-prefix pattern matches wins.
    """

    def __init__(self, resolvers: Iterable[BaseResolver] = ()) -> None:
        self._resolvers: dict[str, BaseResolver] = {}
        for resolver in resolvers:
            self.register(resolver)

    @property
    def prefixes(self) -> list[str]:
        """Return registered prefixes in registration order."""
        return [r.prefix for r in self._resolvers.values()]

    def register(self, resolver: BaseResolver) -> None:
        """Register a resolver under its prefix."""
        if not resolver.prefix:
            raise RegistryError(f"{type(resolver).__name__} declares an empty prefix")
        name = resolver.prefix.upper()
        if name in self._resolvers:
            logger.warning("Overwriting existing resolver: %s", resolver.prefix)
        self._resolvers[name] = resolver
        logger.debug("Registered resolver %s (schema %s)", resolver.prefix, resolver.schema_version)

    def resolve(self, prefix: str) -> BaseResolver | None:
        """Get resolver by family prefix (case-insensitive), or None."""
        return self._resolvers.get(prefix.upper())

    def resolve_or_raise(self, prefix: str) -> BaseResolver:
        """Get resolver by family prefix, raise if not registered."""
        resolver = self.resolve(prefix)
        if resolver is None:
            raise RegistryError(f"No resolver registered for prefix '{prefix}'")
        return resolver

    def find(self, reference: str) -> BaseResolver | None:
        """Find the resolver claiming a raw reference string."""
        for resolver in self._resolvers.values():
            if resolver.matches(reference):
                return resolver
        return None

    def __contains__(self, prefix: object) -> bool:
        return isinstance(prefix, str) and prefix.upper() in self._resolvers

    def __len__(self) -> int:
        return len(self._resolvers)
