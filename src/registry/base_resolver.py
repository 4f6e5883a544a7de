# src/registry/base_resolver.py — v1
"""Standard resolver interface for standards-body integrations.

One resolver exists per family (ISO, NIST, IETF, ...). The engine only ever
talks to this interface; it never inspects the items a resolver produces.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any


class ResolverFetchError(Exception):
    """Raised by a resolver when a document cannot be retrieved."""


class BaseResolver(ABC):
    """Capability interface implemented by every family resolver."""

    @property
    @abstractmethod
    def prefix(self) -> str:
        """Family prefix used in cache keys (e.g., 'ISO', 'IETF', 'CN')."""

    @property
    def default_prefix(self) -> re.Pattern[str] | None:
        """Pattern claiming unprefixed references (e.g., ``^RFC `` for IETF)."""
        return None

    @property
    @abstractmethod
    def schema_version(self) -> str:
        """Fingerprint of the resolver's serialization format."""

    @abstractmethod
    def fetch(
        self,
        code: str,
        year: str | None,
        all_parts: bool,
        opts: dict[str, str],
    ) -> Any | None:
        """Retrieve a bibliographic item.

        Args:
            code: Document code without prefix wrapper or year.
            year: Publication year, if requested.
            all_parts: Whether the whole multi-part series is requested.
            opts: Free-form resolver options.

        Returns:
            The item, or None when the document does not exist.
        """

    @abstractmethod
    def serialize(self, item: Any) -> str:
        """Serialize an item to its cached XML payload."""

    @abstractmethod
    def deserialize(self, payload: str) -> Any:
        """Rebuild an item from a cached payload."""

    def matches(self, reference: str) -> bool:
        """Whether a raw reference belongs to this family."""
        if re.match(rf"^(urn:)?{re.escape(self.prefix)}\b", reference, re.IGNORECASE):
            return True
        pattern = self.default_prefix
        return pattern is not None and pattern.match(reference) is not None
