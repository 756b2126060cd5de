"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator

import httpx
import pytest
import structlog

from marc_archive.cache import ArchiveCacheRepository
from marc_archive.config import Settings
from marc_archive.marc import MarcClient

TTL = 3600.0


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = 1_770_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repo(tmp_path, clock) -> Iterator[ArchiveCacheRepository]:
    """An opened cache repository with a one-hour TTL and a fake clock."""
    repository = ArchiveCacheRepository(tmp_path / "cache.db", ttl=TTL, clock=clock)
    repository.initialize()
    yield repository
    repository.close()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        base_url="https://marc.test/",
        timeout=15,
        cache_db_path=tmp_path / "settings-cache.db",
        log_level="DEBUG",
    )


@pytest.fixture
def make_client(settings) -> Iterator[Callable[..., MarcClient]]:
    """Build a MarcClient whose requests are answered by ``handler``."""
    clients: list[MarcClient] = []

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> MarcClient:
        client = MarcClient(settings, transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()


@pytest.fixture
def catalog_html() -> str:
    return """<html>
<head><title>MARC: Mailing list ARChives</title></head>
<body>
<p><a href="?l=marc-announce">marc-announce</a></p>
<dl>
<dt><b><img alt="Group: " src="group.gif"> Development</b></dt>
<dd><a href="?l=git">git</a> <a href="?l=git-commits&w=2">git-commits</a></dd>
<dt><b>Not a category</b></dt>
<dd><a href="?l=">broken</a> <a href="?m=123">no list</a> <a href="http://example.com/">elsewhere</a></dd>
<dt><b><img alt="Group: " src="group.gif"> Linux</b></dt>
<dd><a href="?l=linux-kernel">linux-kernel</a></dd>
</dl>
</body>
</html>"""


@pytest.fixture
def listing_html() -> str:
    return """<html>
<head><title>git messages</title></head>
<body>
<pre>
<b>List:</b>       <a href="?l=git&w=2">git</a>
<b>Period:</b>     2026-02

   1. 2026-02-24  [1] <a href="?l=git&m=174037595823063">Fix memory leak in cache</a> <a href="?l=git&w=2">git</a>  Alice Developer
   2. 2026-02-23  [1] <a href="?l=git&m=174037595823064">Add new subcommand</a> <a href="?l=git&w=2">git</a>  Bob Maintainer
   3. 2026-02-22  [1] <a href="?l=git&m=174037595823065">Update documentation</a> <a href="?l=git&w=2">git</a>  Charlie Doc

<a href="?l=git&b=202602&r=2&w=2">Next</a>
</pre>
</body>
</html>"""


@pytest.fixture
def message_html() -> str:
    return """<html>
<head><title>Message</title></head>
<body>
<pre>
From: Alice Developer &lt;alice@example.com&gt;
Subject: Fix buffer overflow bug
Date: Thu, 15 Feb 2026 10:30:00 +0000
Message-ID: &lt;123456@git.example.com&gt;
X-Mailer: git-send-email 2.45.0

This patch fixes a critical buffer overflow in the core module.

The issue was caused by incorrect bounds checking when processing
large input files.

Signed-off-by: Alice Developer &lt;alice@example.com&gt;
</pre>
</body>
</html>"""
