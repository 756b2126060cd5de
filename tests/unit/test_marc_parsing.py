"""Unit tests for the archive page extractors."""

import pytest
from bs4 import BeautifulSoup

from marc_archive.exceptions import ParseError
from marc_archive.marc.parsing import (
    category_from_header,
    extract_author,
    extract_message_link,
    extract_row_date,
    extract_subject,
    is_listing_row,
    is_no_such_list_page,
    list_name_from_href,
    parse_catalog,
    parse_message,
    parse_message_list,
)


class TestCatalog:
    """Test suite for catalog extraction."""

    def test_lists_take_nearest_preceding_category(self, catalog_html) -> None:
        lists = parse_catalog(BeautifulSoup(catalog_html, "html.parser"))

        assert [(ml.name, ml.category) for ml in lists] == [
            ("marc-announce", ""),
            ("git", "Development"),
            ("git-commits", "Development"),
            ("linux-kernel", "Linux"),
        ]

    def test_repeated_list_keeps_first_occurrence(self) -> None:
        doc = BeautifulSoup(
            """
            <dl>
            <dt><b><img alt="Group: "> Development</b></dt>
            <dd><a href="?l=git&w=2">git</a></dd>
            <dt><b><img alt="Group: "> Shells</b></dt>
            <dd><a href="?l=bash-bug&w=2">bash-bug</a></dd>
            <dt><b><img alt="Group: "> Version control</b></dt>
            <dd><a href="?l=git&w=2">git</a></dd>
            </dl>
            """,
            "html.parser",
        )

        lists = parse_catalog(doc)

        assert [(ml.name, ml.category) for ml in lists] == [
            ("git", "Development"),
            ("bash-bug", "Shells"),
        ]

    def test_document_without_lists(self) -> None:
        doc = BeautifulSoup("<html><body><p>Nothing here</p></body></html>", "html.parser")

        assert parse_catalog(doc) == []

    @pytest.mark.parametrize(
        ("markup", "expected"),
        [
            ('<dt><b><img alt="Group: " src="group.gif"> Development</b></dt>', "Development"),
            ("<dt><b>Not a category</b></dt>", ""),
            ("<dt></dt>", ""),
        ],
    )
    def test_category_from_header(self, markup: str, expected: str) -> None:
        dt = BeautifulSoup(markup, "html.parser").find("dt")

        assert category_from_header(dt) == expected

    @pytest.mark.parametrize(
        ("href", "expected"),
        [
            ("?l=git", "git"),
            ("?l=linux-kernel", "linux-kernel"),
            ("?l=git&m=123", "git"),
            ("?l=git&w=2", "git"),
            ("", ""),
            ("invalid", ""),
            ("?m=123", ""),
        ],
    )
    def test_list_name_from_href(self, href: str, expected: str) -> None:
        assert list_name_from_href(href) == expected


class TestListing:
    """Test suite for listing page extraction."""

    def test_parse_listing_page(self, listing_html) -> None:
        messages = parse_message_list(listing_html, "git")

        assert len(messages) == 3
        assert [m.id for m in messages] == [
            "174037595823063",
            "174037595823064",
            "174037595823065",
        ]
        first = messages[0]
        assert first.subject == "Fix memory leak in cache"
        assert first.date == "2026-02-24"
        assert first.author == "Alice Developer"
        assert all(m.list == "git" for m in messages)

    def test_single_row(self) -> None:
        line = (
            '   1. 2026-02-24  [1] <a href="?l=git&m=42">Fix bug</a> '
            '<a href="?l=git&w=2">git</a>  Alice'
        )

        messages = parse_message_list(line, "git")

        assert len(messages) == 1
        assert messages[0].model_dump() == {
            "id": "42",
            "list": "git",
            "subject": "Fix bug",
            "author": "Alice",
            "date": "2026-02-24",
        }

    def test_list_comes_from_caller(self) -> None:
        line = '  1. 2026-02-24  [1] <a href="?l=git&m=42">Fix bug</a> <a href="?l=git&w=2">git</a>  Alice'

        messages = parse_message_list(line, "git-mirror")

        assert messages[0].list == "git-mirror"

    def test_page_without_rows(self) -> None:
        assert parse_message_list("<html><body><pre>No messages found</pre></body></html>", "x") == []

    def test_escaped_ampersand_and_entities_pass_through(self) -> None:
        line = (
            '   7. 2026-01-15  [3] <a href="?l=git&amp;m=99&amp;w=2">Tom &amp; Jerry</a> '
            '<a href="?l=git&amp;w=2">git</a>  Carol Next'
        )

        messages = parse_message_list(line, "git")

        assert messages[0].id == "99"
        assert messages[0].subject == "Tom &amp; Jerry"
        assert messages[0].author == "Carol"

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("   1. 2026-02-24  [1] message", True),
            ("  10. 2026-01-15  [2] message", True),
            (" 100. 2025-12-31  [1] message", True),
            ("1. 2026-02-24 message", True),
            ("   1 2026-02-24 message", False),
            ("not a message line", False),
            ("", False),
        ],
    )
    def test_is_listing_row(self, line: str, expected: bool) -> None:
        assert is_listing_row(line) is expected

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("2026-02-24 some text", "2026-02-24"),
            ("prefix 2025-12-31 suffix", "2025-12-31"),
            ("no date here", ""),
            ("2026-2-4 invalid format", ""),
        ],
    )
    def test_extract_row_date(self, line: str, expected: str) -> None:
        assert extract_row_date(line) == expected

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("?l=git&m=123456", ("git", "123456")),
            ("?l=linux-kernel&m=789012345", ("linux-kernel", "789012345")),
            ("?l=git", None),
            ("?m=123", None),
            ("invalid", None),
        ],
    )
    def test_extract_message_link(self, text: str, expected) -> None:
        assert extract_message_link(text) == expected

    def test_extract_subject_requires_closed_anchor(self) -> None:
        assert extract_subject('<a href="?l=git&m=1">Unterminated') is None
        assert extract_subject('<a href="?l=git&m=1"> Padded </a>') == "Padded"

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ('<a href="?l=git&w=2">git</a>  Alice Developer', "Alice Developer"),
            ('<a href="?l=git&w=2">git</a>  Bob Last', "Bob"),
            ('<a href="?l=git&w=2">git</a>  Erin Next', "Erin"),
            ('<a href="?l=git&w=2">git</a>', ""),
            ("no anchors at all", ""),
        ],
    )
    def test_extract_author(self, line: str, expected: str) -> None:
        assert extract_author(line) == expected

    def test_no_such_list_marker(self) -> None:
        assert is_no_such_list_page("<html><body>No such list</body></html>")
        assert not is_no_such_list_page("<html><body><pre></pre></body></html>")


class TestMessage:
    """Test suite for message page extraction."""

    def test_parse_message(self, message_html) -> None:
        msg = parse_message(message_html, "git", "123456")

        assert msg.id == "123456"
        assert msg.list == "git"
        assert msg.subject == "Fix buffer overflow bug"
        assert msg.author == "Alice Developer <alice@example.com>"
        assert msg.date == "Thu, 15 Feb 2026 10:30:00 +0000"
        assert msg.headers["Message-ID"] == "<123456@git.example.com>"
        assert msg.headers["X-Mailer"] == "git-send-email 2.45.0"
        assert msg.body.startswith("This patch fixes a critical buffer overflow")
        assert "module.\n\nThe issue" in msg.body
        assert msg.body.endswith("Signed-off-by: Alice Developer <alice@example.com>")

    def test_header_names_match_case_insensitively(self) -> None:
        raw = "<pre>SUBJECT: Loud\nfrom: quiet@example.com\nDATE: today\n\nbody</pre>"

        msg = parse_message(raw, "test", "1")

        assert msg.subject == "Loud"
        assert msg.author == "quiet@example.com"
        assert msg.date == "today"
        assert list(msg.headers) == ["SUBJECT", "from", "DATE"]
        assert msg.header("subject") == "Loud"

    def test_empty_body(self) -> None:
        raw = """<html><body><pre>
From: Test
Subject: Empty message
Date: Thu, 15 Feb 2026 10:30:00 +0000

</pre></body></html>"""

        msg = parse_message(raw, "test", "1")

        assert msg.body == ""
        assert msg.subject == "Empty message"

    def test_folded_header_is_not_joined(self) -> None:
        raw = "<pre>Subject: A very long\n  subject line\nFrom: someone\n\nbody</pre>"

        msg = parse_message(raw, "test", "1")

        assert msg.subject == "A very long"
        assert msg.author == "someone"
        assert msg.body == "body"

    def test_only_first_block_is_read(self) -> None:
        raw = "<pre>Subject: first\n\none</pre><pre>Subject: second\n\ntwo</pre>"

        msg = parse_message(raw, "test", "1")

        assert msg.subject == "first"
        assert msg.body == "one"

    def test_missing_block_raises(self) -> None:
        with pytest.raises(ParseError):
            parse_message("<html><body><p>Nothing</p></body></html>", "test", "1")

    @pytest.mark.parametrize(
        "raw",
        [
            "<html><pre>\n</pre></html>",
            "<html><pre>just some text\nwith no headers\n\nand a body</pre></html>",
            "<html><pre>\n\nbody only</pre></html>",
        ],
    )
    def test_block_without_headers_raises(self, raw: str) -> None:
        with pytest.raises(ParseError, match="no headers"):
            parse_message(raw, "git", "1")
