"""HTTP client for the mailing-list archive.

This module provides the fetcher used to retrieve raw archive pages. It does
no caching and no retries: every failure is surfaced to the caller at once.
"""

from __future__ import annotations

from types import TracebackType
from urllib.parse import urlencode

import httpx
import structlog
from bs4 import BeautifulSoup

from marc_archive.config import Settings
from marc_archive.exceptions import TransportError

logger = structlog.get_logger()


def catalog_path() -> str:
    return ""


def listing_path(list_name: str, month: str, page: int) -> str:
    """Path of one page of a list's monthly listing (``r`` is the page number)."""
    return "?" + urlencode({"l": list_name, "b": month, "r": page, "w": 2})


def message_path(list_name: str, message_id: str) -> str:
    return "?" + urlencode({"l": list_name, "m": message_id, "w": 2})


class MarcClient:
    """Archive client for fetching rendered pages.

    The underlying ``httpx.Client`` is created once and must be released with
    ``close()`` (or by using the client as a context manager).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the archive client.

        Args:
            settings: Application settings. If None, uses default settings.
            transport: Optional httpx transport, mainly for tests.
        """
        from marc_archive.config import get_settings

        self.settings = settings or get_settings()
        self._base_url = self.settings.base_url
        self._http = httpx.Client(
            timeout=self.settings.timeout,
            headers={"User-Agent": self.settings.user_agent},
            follow_redirects=True,
            transport=transport,
        )
        logger.info(
            "marc_client_initialized",
            base_url=self._base_url,
            timeout=self.settings.timeout,
        )

    def fetch_text(self, path: str) -> str:
        """Fetch a page and return its raw text.

        Args:
            path: Path relative to the archive base URL (e.g. ``"?l=git&w=2"``).

        Raises:
            TransportError: On network errors or a non-200 response.
        """
        url = self._base_url + path
        logger.debug("fetching", url=url)

        try:
            response = self._http.get(url)
        except httpx.HTTPError as exc:
            logger.debug("fetch_failed", url=url, error=str(exc))
            raise TransportError(f"fetch failed: {exc}") from exc

        logger.debug("fetch_response", url=url, status=response.status_code)

        if response.status_code != 200:
            raise TransportError(f"unexpected status: {response.status_code}")

        return response.text

    def fetch_document(self, path: str) -> BeautifulSoup:
        """Fetch a page and return it parsed as an HTML document."""
        return BeautifulSoup(self.fetch_text(path), "html.parser")

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> MarcClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
