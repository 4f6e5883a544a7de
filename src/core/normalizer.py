# src/core/normalizer.py — v1
"""Reference normalization: raw reference string -> canonical Reference.

Handles prefix detection through the resolver registry, explicit
``PREFIX(CODE)`` wrappers, the "(all parts)" marker and embedded years
written as ``CODE:YYYY`` or ``CODE-YYYY``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING

from relatondb.core.models import Reference

if TYPE_CHECKING:
    from relatondb.registry.registry import ResolverRegistry

_ALL_PARTS_RE = re.compile(r"\s*\(all parts\)\s*$", re.IGNORECASE)
_YEAR_RE = re.compile(r"^(?P<code>.+?)[:-](?P<year>(?:19|20)\d{2})$")
_PART_RE = re.compile(r"\d-\d")
_TRUTHY = {"1", "true", "yes", "on"}


class UnrecognizedPrefixError(Exception):
    """Raised when no registered resolver claims a reference."""

    def __init__(self, reference: str, known_prefixes: list[str]) -> None:
        self.reference = reference
        self.known_prefixes = known_prefixes
        super().__init__(
            f"{reference} does not have a recognised prefix: "
            f"{', '.join(known_prefixes)}."
        )


def normalize(
    raw: str,
    registry: ResolverRegistry,
    year: str | None = None,
    opts: Mapping[str, str] | None = None,
) -> Reference:
    """Parse a raw reference into a canonical Reference.

    Args:
        raw: Reference as written by the user (e.g. "CN(GB/T 20223-2006)").
        registry: Registry used to recognise the family prefix.
        year: Explicit year; overrides any year embedded in ``raw``.
        opts: Resolver options. ``all_parts`` acts like the "(all parts)" marker.

    Returns:
        Normalized Reference.

    Raises:
        UnrecognizedPrefixError: If no resolver matches the reference.
    """
    text = raw.replace("\u2013", "-").strip()
    resolver = registry.find(text)
    if resolver is None:
        raise UnrecognizedPrefixError(raw, registry.prefixes)

    options = dict(opts or {})
    code, outer_marker = strip_all_parts(text)
    code = strip_wrapper(code, resolver.prefix)
    code, inner_marker = strip_all_parts(code)
    all_parts = outer_marker or inner_marker
    if str(options.get("all_parts", "")).lower() in _TRUTHY:
        all_parts = True
    code, embedded_year = split_year(code)

    return Reference(
        raw=raw,
        prefix=resolver.prefix,
        code=code,
        year=str(year) if year else embedded_year,
        all_parts=all_parts,
        has_part=_PART_RE.search(code) is not None,
        opts=options,
    )


def strip_all_parts(code: str) -> tuple[str, bool]:
    """Remove a trailing "(all parts)" marker."""
    stripped = _ALL_PARTS_RE.sub("", code)
    return stripped, stripped != code


def strip_wrapper(code: str, prefix: str) -> str:
    """Unwrap ``PREFIX(CODE)`` into ``CODE``; other codes pass through."""
    match = re.match(rf"^(?:urn:)?{re.escape(prefix)}\((.+)\)$", code, re.IGNORECASE)
    return match.group(1).strip() if match else code


def split_year(code: str) -> tuple[str, str | None]:
    """Split an embedded year off a code ("ISO 19133:2005" -> "ISO 19133", "2005")."""
    match = _YEAR_RE.match(code)
    if match is None:
        return code, None
    return match.group("code").strip(), match.group("year")
