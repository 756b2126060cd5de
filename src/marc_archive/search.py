"""Free-text search over cached messages.

Only messages that have been fetched and cached are searchable; the index
reflects what has been seen, not the whole archive.
"""

from __future__ import annotations

from enum import Enum

import structlog

from marc_archive.cache.repository import SEARCH_LIMIT, ArchiveCacheRepository
from marc_archive.exceptions import ValidationError
from marc_archive.models import MessageStub

logger = structlog.get_logger()


class SearchField(str, Enum):
    """Message field a search can be restricted to."""

    SUBJECT = "subject"
    AUTHOR = "author"
    BODY = "body"

    @classmethod
    def parse(cls, value: str | SearchField | None) -> SearchField | None:
        """Accept a field name or the archive's one-letter codes (s, a, b)."""
        if value is None or value == "":
            return None
        if isinstance(value, SearchField):
            return value
        aliases = {"s": cls.SUBJECT, "a": cls.AUTHOR, "b": cls.BODY}
        lowered = value.strip().lower()
        if lowered in aliases:
            return aliases[lowered]
        try:
            return cls(lowered)
        except ValueError:
            raise ValidationError(f"unknown search field: {value!r}") from None


def _quote_term(term: str) -> str:
    return '"' + term.replace('"', '""') + '"'


def build_match_expression(query: str, field: SearchField | None = None) -> str:
    """Turn free text into an FTS5 MATCH expression.

    Every whitespace-separated term is quoted, so punctuation in the query is
    never read as FTS syntax. Terms are ANDed; with ``field`` each term gets a
    column filter.
    """
    terms = [_quote_term(term) for term in query.split()]
    if field is not None:
        terms = [f"{field.value}:{term}" for term in terms]
    return " ".join(terms)


def search_messages(
    repo: ArchiveCacheRepository,
    query: str,
    list_name: str | None = None,
    field: SearchField | str | None = None,
    limit: int = SEARCH_LIMIT,
) -> list[MessageStub]:
    """Search cached messages, best match first.

    Args:
        repo: Cache repository holding the index.
        query: Free-text query.
        list_name: Restrict results to one list.
        field: Restrict matching to subject, author or body.
        limit: Max results, capped at 100.

    Returns:
        Matching messages; an empty list when nothing matches.
    """
    match = build_match_expression(query, SearchField.parse(field))
    if not match:
        return []

    limit = max(1, min(int(limit), SEARCH_LIMIT))
    results = repo.search(match, list_name=list_name or None, limit=limit)
    logger.info("search_completed", query=query, list=list_name, results=len(results))
    return results
