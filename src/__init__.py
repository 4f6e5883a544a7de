"""relatondb: two-tier cache and dispatch for standards-document references."""

from relatondb.version import __version__

__all__ = ["__version__"]
