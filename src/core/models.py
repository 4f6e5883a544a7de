# src/core/models.py — v1
"""Shared Pydantic domain models: Reference and cache-key helpers.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

# "ISO(ISO 19115-1)", "CN(GB/T 20223:2006)", "iso(test_key)"
_KEY_RE = re.compile(r"^(?P<family>[^\s()]+)\((?P<body>.*)\)$", re.DOTALL)


class Reference(BaseModel):
    """A normalized standards reference, ready for cache lookup and dispatch."""

    raw: str
    prefix: str
    code: str
    year: str | None = None
    all_parts: bool = False
    has_part: bool = False
    opts: dict[str, str] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        """Canonical cache key for this reference."""
        return cache_key(
            self.prefix, self.code, self.year, all_parts=self.all_parts and self.has_part
        )

    @property
    def dispatch_all_parts(self) -> bool:
        """All-parts flag handed to the resolver.

        A code without a part number asks for the whole series just like an
        explicit "(all parts)" marker does.
        """
        return self.all_parts or not self.has_part


def cache_key(
    prefix: str, code: str, year: str | None = None, all_parts: bool = False
) -> str:
    """Build the on-disk cache key ``PREFIX(CODE[:YEAR][ (all parts)])``."""
    body = code.strip()
    if year:
        body = f"{body}:{year}"
    if all_parts:
        body = f"{body} (all parts)"
    return f"{prefix}({body})"


def key_family(key: str) -> str | None:
    """Return the prefix family of a cache key, or None for free-form keys."""
    match = _KEY_RE.match(key)
    if match is None:
        return None
    return match.group("family")
