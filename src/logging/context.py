# src/logging/context.py — v2
"""Contextual logging support: attach reference and cache key to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging: set per fetch call.
_reference: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "reference", default=None
)
_cache_key: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "cache_key", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    reference: str | None = None
    cache_key: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(reference=_reference.get(), cache_key=_cache_key.get())


def set_reference_context(reference: str, cache_key: str | None = None) -> None:
    """Set reference-level context (called once per fetch)."""
    _reference.set(reference)
    _cache_key.set(cache_key)


def clear_context() -> None:
    """Reset all context variables."""
    _reference.set(None)
    _cache_key.set(None)
