"""Access to the upstream mailing-list archive.

This package contains the HTTP fetcher and the extractors that turn rendered
archive pages into catalog, listing and message records.
"""

from .client import MarcClient
from .parsing import parse_catalog, parse_message, parse_message_list

__all__ = ["MarcClient", "parse_catalog", "parse_message", "parse_message_list"]
