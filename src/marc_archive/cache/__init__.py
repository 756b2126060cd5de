"""Local memoization of archive records.

This package contains the SQLite cache that stores catalog entries, listing
stubs and full messages with a freshness window, plus the full-text index over
cached messages.
"""

from .repository import ArchiveCacheRepository, CacheStats

__all__ = ["ArchiveCacheRepository", "CacheStats"]
