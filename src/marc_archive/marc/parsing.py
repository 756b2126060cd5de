"""Helpers for turning rendered archive pages into internal models.

The archive has no machine API. The catalog is read from the parsed root page;
listing and message pages are read from their fixed-width ``<pre>`` blocks.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from urllib.parse import parse_qs, urlsplit

from bs4 import BeautifulSoup, Tag

from marc_archive.exceptions import ParseError
from marc_archive.models import MailingList, MessageContent, MessageStub

# "   1. 2026-02-24  [1] <a href=...>Subject</a> <a href=...>git</a>  Author"
LISTING_ROW_RE = re.compile(r"^\s*\d+\.\s+\d{4}-\d{2}-\d{2}\s+")
DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
MESSAGE_LINK_RE = re.compile(r"\?l=([^&\"'>\s]+)&(?:amp;)?m=(\d+)")

NO_SUCH_LIST_MARKER = "No such list"

_ANCHOR_CLOSE = "</a>"
_PAGINATION_LABELS = ("Next", "Last")


def is_no_such_list_page(raw: str) -> bool:
    return NO_SUCH_LIST_MARKER in raw


# Catalog


def list_name_from_href(href: str) -> str:
    """Return the list named by a ``?l=<name>`` link, or ``""``."""
    if not href:
        return ""
    values = parse_qs(urlsplit(href).query).get("l")
    return values[0] if values else ""


def category_from_header(dt: Tag) -> str:
    """Return the category named by a ``<dt><b><img alt="Group: "> Name</b>`` header.

    Returns ``""`` when the node is not a category header.
    """
    for bold in dt.find_all("b", recursive=False):
        has_group_img = any(
            "Group" in (img.get("alt") or "") for img in bold.find_all("img", recursive=False)
        )
        if has_group_img:
            text = "".join(bold.find_all(string=True, recursive=False))
            return text.strip()
    return ""


def _catalog_nodes(document: BeautifulSoup) -> Iterator[Tag]:
    # find_all walks the tree in document order.
    yield from document.find_all(["dt", "a"])


def parse_catalog(document: BeautifulSoup) -> list[MailingList]:
    """Extract mailing lists from the archive's root page.

    Each list link is tagged with the nearest preceding category header, or
    ``""`` when none has appeared yet. A list linked more than once keeps
    its first position and category.
    """
    category = ""
    lists: list[MailingList] = []
    seen: set[str] = set()

    for node in _catalog_nodes(document):
        if node.name == "dt":
            found = category_from_header(node)
            if found:
                category = found
            continue

        href = node.get("href") or ""
        if not href.startswith("?l="):
            continue
        name = list_name_from_href(href)
        if name and name not in seen:
            seen.add(name)
            lists.append(MailingList(name=name, category=category))

    return lists


# Listing pages


def is_listing_row(line: str) -> bool:
    return LISTING_ROW_RE.match(line) is not None


def extract_row_date(line: str) -> str:
    match = DATE_RE.search(line)
    return match.group(0) if match else ""


def extract_message_link(line: str) -> tuple[str, str] | None:
    """Return ``(list, message_id)`` of the first message link on the line."""
    match = MESSAGE_LINK_RE.search(line)
    if match is None:
        return None
    return match.group(1), match.group(2)


def extract_subject(line: str) -> str | None:
    """Return the link text of the first message anchor on the line.

    Markup entities are left as they appear in the page.
    """
    match = MESSAGE_LINK_RE.search(line)
    if match is None:
        return None
    start = line.find(">", match.end())
    if start == -1:
        return None
    start += 1
    end = line.find(_ANCHOR_CLOSE, start)
    if end == -1:
        return None
    return line[start:end].strip()


def extract_author(line: str) -> str:
    """Return the text following the line's last closing anchor."""
    last = line.rfind(_ANCHOR_CLOSE)
    if last == -1:
        return ""
    author = line[last + len(_ANCHOR_CLOSE):].strip()
    for label in _PAGINATION_LABELS:
        if author.endswith(label):
            author = author[: -len(label)].rstrip()
    return author


def parse_message_row(line: str, list_name: str) -> MessageStub | None:
    if not is_listing_row(line):
        return None

    date = extract_row_date(line)
    link = extract_message_link(line)
    subject = extract_subject(line)
    if not date or link is None or subject is None:
        return None

    return MessageStub(
        id=link[1],
        list=list_name,
        subject=subject,
        author=extract_author(line),
        date=date,
    )


def parse_message_list(raw: str, list_name: str) -> list[MessageStub]:
    """Extract message stubs from one listing page, in page order.

    Args:
        raw: Raw HTML of the listing page.
        list_name: The list the page was requested for; stamped on every stub.

    Returns:
        One stub per listing row. Pages without rows yield an empty list.
    """
    messages: list[MessageStub] = []
    for line in raw.splitlines():
        stub = parse_message_row(line, list_name)
        if stub is not None:
            messages.append(stub)
    return messages


# Message pages


def _first_pre_text(raw: str) -> str:
    soup = BeautifulSoup(raw, "html.parser")
    pre = soup.find("pre")
    if pre is None:
        raise ParseError("message page has no <pre> block")
    return pre.get_text()


def parse_message(raw: str, list_name: str, message_id: str) -> MessageContent:
    """Extract headers and body from one message page.

    Lines up to the first blank line are headers (``Key: value``); the rest is
    the body. Folded header continuation lines are not joined back onto their
    header.

    Raises:
        ParseError: If the page has no message block, or the block has no
            headers.
    """
    block = _first_pre_text(raw).lstrip("\r\n")

    headers: dict[str, str] = {}
    fields = {"subject": "", "from": "", "date": ""}
    body_lines: list[str] = []
    in_headers = True

    for line in block.splitlines():
        if in_headers:
            if not line.strip():
                in_headers = False
                continue
            key, sep, value = line.partition(":")
            key = key.strip()
            if not sep or not key:
                continue
            value = value.strip()
            headers[key] = value
            if key.lower() in fields:
                fields[key.lower()] = value
        else:
            body_lines.append(line)

    if not headers:
        raise ParseError("message block has no headers")

    return MessageContent(
        id=message_id,
        list=list_name,
        subject=fields["subject"],
        author=fields["from"],
        date=fields["date"],
        body="\n".join(body_lines).strip(),
        headers=headers,
    )
