"""marc-archive - structured, cached access to the marc.info mailing-list archive.

This package extracts mailing-list catalogs, message listings and messages from
rendered archive pages, memoizes them in a local SQLite cache and offers
full-text search over the messages that have been fetched.
"""

__version__ = "0.1.0"

from marc_archive.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
