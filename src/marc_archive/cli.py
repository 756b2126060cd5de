"""Command-line interface for marc-archive.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import structlog
from pydantic import BaseModel

from marc_archive import __version__
from marc_archive.archive import ArchiveService
from marc_archive.cache import ArchiveCacheRepository
from marc_archive.config import Settings, get_settings
from marc_archive.exceptions import MarcArchiveError
from marc_archive.marc import MarcClient
from marc_archive.search import SearchField

logger = structlog.get_logger()


def _add_cache_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to the SQLite cache database (default: settings cache_db_path)",
    )
    parser.add_argument(
        "--ttl-hours",
        type=float,
        default=None,
        help="Freshness window of cached records (default: settings cache_ttl_hours)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="marc-archive", description="marc.info archive reader")
    subparsers = parser.add_subparsers(dest="command", required=True)

    lists_parser = subparsers.add_parser("lists", help="List the archive's mailing lists")
    lists_parser.add_argument(
        "--category",
        default=None,
        help="Only lists in this category (e.g. 'Development', 'Linux', 'Security')",
    )
    _add_cache_arguments(lists_parser)

    messages_parser = subparsers.add_parser("messages", help="List messages of a mailing list")
    messages_parser.add_argument("list", help="Mailing list name (e.g. 'git', 'linux-kernel')")
    messages_parser.add_argument(
        "--month",
        default=None,
        help="Month in YYYYMM format (default: current month)",
    )
    messages_parser.add_argument("--page", type=int, default=1, help="1-based page number")
    messages_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of messages to return from the page (default: all)",
    )
    _add_cache_arguments(messages_parser)

    message_parser = subparsers.add_parser("message", help="Show the full content of a message")
    message_parser.add_argument("list", help="Mailing list name")
    message_parser.add_argument("message_id", help="Message ID from 'messages' results")
    _add_cache_arguments(message_parser)

    search_parser = subparsers.add_parser("search", help="Search messages that have been fetched")
    search_parser.add_argument("query", help="Free-text query")
    search_parser.add_argument("--list", default=None, help="Only search this mailing list")
    search_parser.add_argument(
        "--field",
        default=None,
        choices=[f.value for f in SearchField] + ["s", "a", "b"],
        help="Restrict matching to subject (s), author (a) or body (b)",
    )
    _add_cache_arguments(search_parser)

    cache_parser = subparsers.add_parser("cache", help="Maintain the local cache")
    cache_sub = cache_parser.add_subparsers(dest="cache_command", required=True)
    cleanup_parser = cache_sub.add_parser("cleanup", help="Delete expired cache rows")
    _add_cache_arguments(cleanup_parser)
    stats_parser = cache_sub.add_parser("stats", help="Show cache row counts")
    _add_cache_arguments(stats_parser)

    return parser


def _cache_repository(args: argparse.Namespace, settings: Settings) -> ArchiveCacheRepository:
    db_path: Path = args.db or settings.cache_db_path
    ttl_hours: float = args.ttl_hours or settings.cache_ttl_hours
    return ArchiveCacheRepository(db_path, ttl=ttl_hours * 3600.0)


def _print_json(value: object) -> None:
    if isinstance(value, list):
        payload = [item.model_dump() if isinstance(item, BaseModel) else item for item in value]
    elif isinstance(value, BaseModel):
        payload = value.model_dump()
    elif dataclasses.is_dataclass(value):
        payload = dataclasses.asdict(value)
    else:
        payload = value
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _run_archive_command(args: argparse.Namespace, settings: Settings) -> int:
    with _cache_repository(args, settings) as cache, MarcClient(settings) as client:
        service = ArchiveService(client, cache)

        if args.command == "lists":
            _print_json(service.list_mailing_lists(category=args.category))
        elif args.command == "messages":
            _print_json(
                service.list_messages(args.list, month=args.month, page=args.page, limit=args.limit)
            )
        elif args.command == "message":
            _print_json(service.get_message(args.list, args.message_id))
        elif args.command == "search":
            _print_json(service.search(args.query, list_name=args.list, field=args.field))

    return 0


def _run_cache_command(args: argparse.Namespace, settings: Settings) -> int:
    with _cache_repository(args, settings) as cache:
        if args.cache_command == "cleanup":
            deleted = cache.cleanup()
            print(f"Deleted {sum(deleted.values())} expired rows from {cache.db_path}")
            for table, count in deleted.items():
                print(f"- {table}: {count}")
        elif args.cache_command == "stats":
            _print_json(cache.stats())
    return 0


def main(args: Sequence[str] | None = None) -> int:
    """Main entry point for the marc-archive CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()

    # Configure logging; output goes to stderr so stdout stays valid JSON.
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.effective_log_level, logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )

    logger.debug("marc_archive_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    try:
        if parsed.command == "cache":
            return _run_cache_command(parsed, settings)
        return _run_archive_command(parsed, settings)
    except MarcArchiveError as exc:
        logger.debug("command_failed", command=parsed.command, error=str(exc))
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
