"""SQLite-backed cache for archive records.

Catalog entries, listing stubs and full messages are memoized with the time
they were written. A row is served only while it is younger than the
repository's TTL; ``cleanup()`` reclaims the space of older rows. Full messages
are mirrored into an FTS5 index by triggers, so content and index change in
the same statement.
"""

from __future__ import annotations

import json
import re
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

import structlog

from marc_archive.exceptions import CacheError, ValidationError
from marc_archive.models import MailingList, MessageContent, MessageStub

logger = structlog.get_logger()


_SCHEMA_VERSION = 1

DEFAULT_TTL_SECONDS = 24 * 3600.0
SEARCH_LIMIT = 100

_BUSY_TIMEOUT_SECONDS = 5.0
_MONTH_RE = re.compile(r"^\d{6}$")

_TABLES = ("mailing_lists", "messages", "message_content")


@dataclass(frozen=True)
class CacheStats:
    """Row counts per record family; ``live_*`` counts rows within the TTL."""

    mailing_lists: int
    live_mailing_lists: int
    messages: int
    live_messages: int
    message_contents: int
    live_message_contents: int


def check_month(month: str) -> str:
    """Return ``month`` unchanged if it is a ``YYYYMM`` string.

    Raises:
        ValidationError: If the month is malformed.
    """
    if not _MONTH_RE.match(month or ""):
        raise ValidationError(f"month must be in YYYYMM format, got {month!r}")
    return month


def month_prefix(month: str) -> str:
    """Convert a ``YYYYMM`` month into the ``YYYY-MM`` prefix of stored dates."""
    month = check_month(month)
    return f"{month[:4]}-{month[4:]}"


class ArchiveCacheRepository:
    """Repository memoizing archive records with a freshness window."""

    def __init__(
        self,
        db_path: Path,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Create a repository.

        Args:
            db_path: Path to the SQLite database file.
            ttl: Maximum age in seconds of a row that is still served.
            clock: Source of the current time in epoch seconds.
        """

        if ttl <= 0:
            raise ValidationError(f"ttl must be positive, got {ttl!r}")

        self._db_path = Path(db_path)
        self._ttl = float(ttl)
        self._clock = clock
        self._open = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def ttl(self) -> float:
        return self._ttl

    def initialize(self) -> None:
        """Create or upgrade the cache schema and open the repository."""

        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with self._raw_connect() as conn:
                # Readers are never blocked by a writer in WAL mode.
                conn.execute("PRAGMA journal_mode=WAL;")

                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS _schema_meta (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    );
                    """
                )

                current_version = self._get_schema_version(conn)
                if current_version is None:
                    self._create_schema_v1(conn)
                    self._set_schema_version(conn, _SCHEMA_VERSION)
                    conn.commit()
                    logger.info("cache_schema_created", version=_SCHEMA_VERSION, path=str(self._db_path))
                elif current_version != _SCHEMA_VERSION:
                    raise CacheError(
                        f"Unsupported schema version {current_version}; expected {_SCHEMA_VERSION}"
                    )
        except sqlite3.Error as exc:
            raise CacheError(f"cannot open cache at {self._db_path}: {exc}") from exc

        self._open = True
        logger.debug("cache_initialized", path=str(self._db_path), ttl=self._ttl)

    def close(self) -> None:
        """Checkpoint the write-ahead log and close the repository."""

        if not self._open:
            return
        self._open = False

        try:
            with self._raw_connect() as conn:
                conn.execute("PRAGMA wal_checkpoint(TRUNCATE);")
        except sqlite3.Error as exc:
            logger.warning("cache_checkpoint_failed", path=str(self._db_path), error=str(exc))

    def __enter__(self) -> ArchiveCacheRepository:
        self.initialize()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # Mailing lists

    def get_mailing_lists(self) -> list[MailingList] | None:
        """Return the cached catalog in document order, or None on a miss."""

        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT name, category
                    FROM mailing_lists
                    WHERE updated_at >= ?
                    ORDER BY position;
                    """,
                    (self._cutoff(),),
                ).fetchall()
            lists = [MailingList(name=row["name"], category=row["category"]) for row in rows]
        except (sqlite3.Error, ValueError, CacheError) as exc:
            logger.warning("cache_read_failed", family="mailing_lists", error=str(exc))
            return None

        if not lists:
            logger.debug("cache_miss", family="mailing_lists")
            return None

        logger.debug("cache_hit", family="mailing_lists", count=len(lists))
        return lists

    def set_mailing_lists(self, lists: list[MailingList]) -> None:
        """Replace the cached catalog; a repeated name keeps its first entry."""

        now = self._clock()
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM mailing_lists;")
                conn.executemany(
                    """
                    INSERT INTO mailing_lists (name, category, position, updated_at)
                    VALUES (:name, :category, :position, :updated_at)
                    ON CONFLICT(name) DO NOTHING
                    """,
                    [
                        {
                            "name": ml.name,
                            "category": ml.category,
                            "position": position,
                            "updated_at": now,
                        }
                        for position, ml in enumerate(lists)
                    ],
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise CacheError(f"cannot store mailing lists: {exc}") from exc

        logger.debug("cache_set", family="mailing_lists", count=len(lists))

    # Listing stubs

    def get_messages(self, list_name: str, month: str | None = None) -> list[MessageStub] | None:
        """Return cached stubs of a list, most recent first, or None on a miss.

        Args:
            list_name: Mailing list name.
            month: Optional ``YYYYMM`` month; only stubs dated in it are returned.
        """

        query = """
            SELECT id, list, subject, author, date
            FROM messages
            WHERE list = ? AND updated_at >= ?
        """
        params: list[object] = [list_name, self._cutoff()]
        if month:
            query += " AND date LIKE ?"
            params.append(month_prefix(month) + "%")
        query += " ORDER BY date DESC, id DESC;"

        try:
            with self._connect() as conn:
                rows = conn.execute(query, params).fetchall()
            messages = [self._row_to_stub(row) for row in rows]
        except (sqlite3.Error, ValueError, CacheError) as exc:
            logger.warning("cache_read_failed", family="messages", list=list_name, error=str(exc))
            return None

        if not messages:
            logger.debug("cache_miss", family="messages", list=list_name, month=month)
            return None

        logger.debug("cache_hit", family="messages", list=list_name, count=len(messages))
        return messages

    def set_messages(self, messages: list[MessageStub]) -> None:
        """Upsert a batch of listing stubs."""

        if not messages:
            return

        now = self._clock()
        try:
            with self._connect() as conn:
                conn.executemany(
                    """
                    INSERT INTO messages (id, list, subject, author, date, updated_at)
                    VALUES (:id, :list, :subject, :author, :date, :updated_at)
                    ON CONFLICT(id) DO UPDATE SET
                        list=excluded.list,
                        subject=excluded.subject,
                        author=excluded.author,
                        date=excluded.date,
                        updated_at=excluded.updated_at
                    """,
                    [{**m.model_dump(), "updated_at": now} for m in messages],
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise CacheError(f"cannot store messages: {exc}") from exc

        logger.debug("cache_set", family="messages", count=len(messages))

    # Message content

    def get_message_content(self, list_name: str, message_id: str) -> MessageContent | None:
        """Return a cached message, or None on a miss."""

        try:
            with self._connect() as conn:
                row = conn.execute(
                    """
                    SELECT id, list, subject, author, date, body, headers_json
                    FROM message_content
                    WHERE id = ? AND list = ? AND updated_at >= ?;
                    """,
                    (message_id, list_name, self._cutoff()),
                ).fetchone()
            content = self._row_to_content(row) if row is not None else None
        except (sqlite3.Error, ValueError, CacheError) as exc:
            logger.warning("cache_read_failed", family="message_content", id=message_id, error=str(exc))
            return None

        if content is None:
            logger.debug("cache_miss", family="message_content", id=message_id)
            return None

        logger.debug("cache_hit", family="message_content", id=message_id)
        return content

    def set_message_content(self, content: MessageContent) -> None:
        """Upsert a full message; the search index follows through triggers."""

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO message_content (
                        id, list, subject, author, date, body, headers_json, updated_at
                    )
                    VALUES (
                        :id, :list, :subject, :author, :date, :body, :headers_json, :updated_at
                    )
                    ON CONFLICT(id) DO UPDATE SET
                        list=excluded.list,
                        subject=excluded.subject,
                        author=excluded.author,
                        date=excluded.date,
                        body=excluded.body,
                        headers_json=excluded.headers_json,
                        updated_at=excluded.updated_at
                    """,
                    {
                        "id": content.id,
                        "list": content.list,
                        "subject": content.subject,
                        "author": content.author,
                        "date": content.date,
                        "body": content.body,
                        "headers_json": json.dumps(content.headers),
                        "updated_at": self._clock(),
                    },
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise CacheError(f"cannot store message {content.id}: {exc}") from exc

        logger.debug("cache_set", family="message_content", id=content.id)

    # Search

    def search(
        self,
        match: str,
        list_name: str | None = None,
        limit: int = SEARCH_LIMIT,
    ) -> list[MessageStub]:
        """Search cached messages using SQLite FTS5.

        Args:
            match: FTS5 MATCH expression.
            list_name: Restrict results to one list.
            limit: Max results.

        Returns:
            Matching messages, best match first.
        """

        query = """
            SELECT mc.id, mc.list, mc.subject, mc.author, mc.date
            FROM messages_fts
            JOIN message_content mc ON mc.rowid = messages_fts.rowid
            WHERE messages_fts MATCH ?
        """
        params: list[object] = [match]
        if list_name:
            query += " AND mc.list = ?"
            params.append(list_name)
        query += " ORDER BY bm25(messages_fts) LIMIT ?;"
        params.append(limit)

        try:
            with self._connect() as conn:
                rows = conn.execute(query, params).fetchall()
        except (sqlite3.Error, CacheError) as exc:
            logger.warning("cache_search_failed", match=match, error=str(exc))
            return []

        logger.debug("fts_search", match=match, list=list_name, results=len(rows))
        return [self._row_to_stub(row) for row in rows]

    # Maintenance

    def cleanup(self) -> dict[str, int]:
        """Delete rows older than the TTL from every record family.

        Returns:
            Number of deleted rows per table.
        """

        cutoff = self._cutoff()
        deleted: dict[str, int] = {}
        try:
            with self._connect() as conn:
                for table in _TABLES:
                    cursor = conn.execute(f"DELETE FROM {table} WHERE updated_at < ?;", (cutoff,))
                    deleted[table] = cursor.rowcount
                conn.commit()
        except sqlite3.Error as exc:
            raise CacheError(f"cleanup failed: {exc}") from exc

        for table, count in deleted.items():
            if count:
                logger.info("cache_cleanup", table=table, deleted=count)
        return deleted

    def stats(self) -> CacheStats:
        """Count stored and live rows per record family."""

        cutoff = self._cutoff()
        counts: dict[str, tuple[int, int]] = {}
        try:
            with self._connect() as conn:
                for table in _TABLES:
                    total, live = conn.execute(
                        f"SELECT COUNT(*), SUM(updated_at >= ?) FROM {table};",
                        (cutoff,),
                    ).fetchone()
                    counts[table] = (int(total or 0), int(live or 0))
        except sqlite3.Error as exc:
            raise CacheError(f"cannot read cache stats: {exc}") from exc

        return CacheStats(
            mailing_lists=counts["mailing_lists"][0],
            live_mailing_lists=counts["mailing_lists"][1],
            messages=counts["messages"][0],
            live_messages=counts["messages"][1],
            message_contents=counts["message_content"][0],
            live_message_contents=counts["message_content"][1],
        )

    def _cutoff(self) -> float:
        return self._clock() - self._ttl

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        if not self._open:
            raise CacheError("cache repository is not open")
        with self._raw_connect() as conn:
            yield conn

    @contextmanager
    def _raw_connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path, timeout=_BUSY_TIMEOUT_SECONDS)
        try:
            conn.row_factory = sqlite3.Row
            yield conn
        finally:
            conn.close()

    def _get_schema_version(self, conn: sqlite3.Connection) -> int | None:
        row = conn.execute(
            "SELECT value FROM _schema_meta WHERE key = 'schema_version'"
        ).fetchone()
        if row is None:
            return None
        return int(row[0])

    def _set_schema_version(self, conn: sqlite3.Connection, version: int) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO _schema_meta(key, value) VALUES('schema_version', ?) ",
            (str(version),),
        )

    def _create_schema_v1(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS mailing_lists (
                name TEXT PRIMARY KEY,
                category TEXT NOT NULL,
                position INTEGER NOT NULL,
                updated_at REAL NOT NULL
            );

            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                list TEXT NOT NULL,
                subject TEXT NOT NULL,
                author TEXT NOT NULL,
                date TEXT NOT NULL,
                updated_at REAL NOT NULL
            );

            CREATE TABLE IF NOT EXISTS message_content (
                rowid INTEGER PRIMARY KEY,
                id TEXT NOT NULL UNIQUE,
                list TEXT NOT NULL,
                subject TEXT NOT NULL,
                author TEXT NOT NULL,
                date TEXT NOT NULL,
                body TEXT NOT NULL,
                headers_json TEXT NOT NULL,
                updated_at REAL NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_mailing_lists_updated_at
                ON mailing_lists(updated_at);

            CREATE INDEX IF NOT EXISTS idx_messages_list_date
                ON messages(list, date);

            CREATE INDEX IF NOT EXISTS idx_messages_updated_at
                ON messages(updated_at);

            CREATE INDEX IF NOT EXISTS idx_message_content_list
                ON message_content(list);

            CREATE INDEX IF NOT EXISTS idx_message_content_updated_at
                ON message_content(updated_at);

            CREATE VIRTUAL TABLE IF NOT EXISTS messages_fts USING fts5(
                id,
                list,
                subject,
                author,
                body,
                content='message_content',
                content_rowid='rowid'
            );

            CREATE TRIGGER IF NOT EXISTS message_content_ai
            AFTER INSERT ON message_content
            BEGIN
                INSERT INTO messages_fts(rowid, id, list, subject, author, body)
                VALUES (new.rowid, new.id, new.list, new.subject, new.author, new.body);
            END;

            CREATE TRIGGER IF NOT EXISTS message_content_ad
            AFTER DELETE ON message_content
            BEGIN
                INSERT INTO messages_fts(messages_fts, rowid, id, list, subject, author, body)
                VALUES ('delete', old.rowid, old.id, old.list, old.subject, old.author, old.body);
            END;

            CREATE TRIGGER IF NOT EXISTS message_content_au
            AFTER UPDATE ON message_content
            BEGIN
                INSERT INTO messages_fts(messages_fts, rowid, id, list, subject, author, body)
                VALUES ('delete', old.rowid, old.id, old.list, old.subject, old.author, old.body);

                INSERT INTO messages_fts(rowid, id, list, subject, author, body)
                VALUES (new.rowid, new.id, new.list, new.subject, new.author, new.body);
            END;
            """
        )

    def _row_to_stub(self, row: sqlite3.Row) -> MessageStub:
        return MessageStub(
            id=row["id"],
            list=row["list"],
            subject=row["subject"],
            author=row["author"],
            date=row["date"],
        )

    def _row_to_content(self, row: sqlite3.Row) -> MessageContent:
        headers = json.loads(row["headers_json"])
        if not isinstance(headers, dict):
            raise ValueError("stored headers are not a mapping")

        return MessageContent(
            id=row["id"],
            list=row["list"],
            subject=row["subject"],
            author=row["author"],
            date=row["date"],
            body=row["body"],
            headers=headers,
        )
