"""Read-through archive operations.

This package contains the service that combines the archive client, the
extractors and the cache into the catalog, listing, message and search
operations.
"""

from .service import ArchiveService

__all__ = ["ArchiveService"]
