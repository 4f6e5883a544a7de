# src/cache/models.py — v2
"""Cache domain models: FoundEntry, NotFoundEntry, CacheEntry, Tier.

Positive results and not-found sentinels share storage but never share a
shape: every stored record carries a ``status`` tag.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class FoundEntry(BaseModel):
    """Positive cache entry holding a serialized bibliographic record."""

    status: Literal["found"] = "found"
    payload: str
    version: str
    fetched: date


class NotFoundEntry(BaseModel):
    """Sentinel for a negative lookup, authoritative only on its fetch day."""

    status: Literal["not_found"] = "not_found"
    version: str
    fetched: date


CacheEntry = Annotated[Union[FoundEntry, NotFoundEntry], Field(discriminator="status")]

cache_entry_adapter: TypeAdapter[FoundEntry | NotFoundEntry] = TypeAdapter(CacheEntry)


class Tier(str, Enum):
    """The two cache tiers owned by the engine."""

    GLOBAL = "global"
    LOCAL = "local"
