"""Read-through access to the mailing-list archive.

This module provides the service behind every outward operation: it consults
the cache, fetches and parses on a miss, and writes the result back before
returning it.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from marc_archive.cache.repository import ArchiveCacheRepository, check_month
from marc_archive.exceptions import CacheError, NotFoundError, ParseError
from marc_archive.marc import parsing
from marc_archive.marc.client import MarcClient, catalog_path, listing_path, message_path
from marc_archive.models import MailingList, MessageContent, MessageStub
from marc_archive.search import SearchField, search_messages

logger = structlog.get_logger()


def current_month() -> str:
    return datetime.now().strftime("%Y%m")


class ArchiveService:
    """Catalog, listing, message and search operations over the archive.

    The client and the cache repository are owned by the caller, which opens
    them at startup and closes them at shutdown.
    """

    def __init__(self, client: MarcClient, cache: ArchiveCacheRepository) -> None:
        """Initialize the service.

        Args:
            client: Archive client used on cache misses.
            cache: Opened cache repository.
        """
        self.client = client
        self.cache = cache

    def list_mailing_lists(self, category: str | None = None) -> list[MailingList]:
        """Return the archive's mailing lists, optionally only one category.

        Raises:
            TransportError: If the catalog cannot be fetched.
        """
        logger.debug("listing_mailing_lists", category=category)

        lists = self.cache.get_mailing_lists()
        if lists is None:
            document = self.client.fetch_document(catalog_path())
            lists = parsing.parse_catalog(document)
            logger.debug("found_mailing_lists", count=len(lists))
            self._write_through("mailing_lists", self.cache.set_mailing_lists, lists)

        if category:
            lists = [ml for ml in lists if ml.category == category]
        return lists

    def list_messages(
        self,
        list_name: str,
        month: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> list[MessageStub]:
        """Return the messages on one page of a list's monthly listing.

        Args:
            list_name: Mailing list name.
            month: Month in ``YYYYMM`` format; defaults to the current month.
            page: 1-based page number.
            limit: Maximum number of messages to return from the page.

        Raises:
            ValidationError: If the month is malformed.
            NotFoundError: If the list does not exist upstream.
            TransportError: If the page cannot be fetched.
        """
        month = check_month(month or current_month())
        page = max(page, 1)

        logger.debug("listing_messages", list=list_name, month=month, page=page, limit=limit)

        # Only a month's first page is memoized.
        messages = self.cache.get_messages(list_name, month) if page == 1 else None

        if messages is None:
            raw = self.client.fetch_text(listing_path(list_name, month, page))
            logger.debug("response_length", bytes=len(raw))

            messages = parsing.parse_message_list(raw, list_name)
            if not messages and parsing.is_no_such_list_page(raw):
                logger.debug("list_not_found", list=list_name)
                raise NotFoundError(f"no such list: {list_name}")

            logger.debug("found_messages", list=list_name, count=len(messages))
            if page == 1:
                self._write_through("messages", self.cache.set_messages, messages)

        if limit is not None and limit > 0:
            messages = messages[:limit]
        return messages

    def get_message(self, list_name: str, message_id: str) -> MessageContent:
        """Return the full content of one message.

        Raises:
            NotFoundError: If the list does not exist upstream.
            TransportError: If the page cannot be fetched.
            ParseError: If the page holds no message.
        """
        logger.debug("getting_message", list=list_name, message_id=message_id)

        cached = self.cache.get_message_content(list_name, message_id)
        if cached is not None:
            return cached

        raw = self.client.fetch_text(message_path(list_name, message_id))
        try:
            message = parsing.parse_message(raw, list_name, message_id)
        except ParseError:
            if parsing.is_no_such_list_page(raw):
                raise NotFoundError(f"no such list: {list_name}") from None
            raise
        logger.debug("parsed_message", subject=message.subject, author=message.author)

        self._write_through("message_content", self.cache.set_message_content, message)
        return message

    def search(
        self,
        query: str,
        list_name: str | None = None,
        field: SearchField | str | None = None,
    ) -> list[MessageStub]:
        """Search messages that have already been fetched."""
        return search_messages(self.cache, query, list_name=list_name, field=field)

    def _write_through(self, family: str, write: Callable[[Any], None], value: Any) -> None:
        # A failed cache write never fails the request.
        try:
            write(value)
        except CacheError as exc:
            logger.warning("cache_write_failed", family=family, error=str(exc))
