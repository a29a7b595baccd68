"""Application entry point for the ledgerscope view engine."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from rich.console import Console

import settings
from adapters.console_rendering import inbox_table, roster_table, threads_table
from adapters.jsonl_feed import JsonlRecordFeed
from adapters.sqlite_storage import SQLiteStore
from core.processor import RecordProcessor
from core.relevance import ThreadFilter, parse_filter

NAME = "LEDGERSCOPE"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/ledgerscope.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _build_store() -> SQLiteStore:
    directory = os.path.dirname(settings.DB_PATH)
    if directory:
        os.makedirs(directory, exist_ok=True)
    store = SQLiteStore(settings.DB_PATH)
    store.init_db()
    return store


def _build_processor(store: SQLiteStore) -> RecordProcessor:
    return RecordProcessor(
        config=settings.engine_config(),
        cursor_store=store,
        thread_state=store,
    )


async def _consume_all(processor: RecordProcessor, feed: JsonlRecordFeed) -> int:
    queries = processor.queries(settings.COLLECTIONS)
    counts = await asyncio.gather(*(processor.consume(feed, query) for query in queries))
    return sum(counts)


def _log_summary(processor: RecordProcessor) -> None:
    logger = logging.getLogger(__name__)
    stats = processor.ledger_stats()
    logger.info(
        "Views: threads=%s, replies=%s, orphaned replies=%s, inbox=%s, unread=%s",
        stats.thread_count,
        stats.reply_count,
        stats.orphaned_reply_count,
        len(processor.inbox_items()),
        processor.unread_count(),
    )


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting ledgerscope")
    if not settings.COLLECTIONS:
        logger.warning("No collections configured; only inbox records will be read")
    if not settings.VIEWER_PUBKEY:
        logger.warning("No viewer pubkey configured; needs-response filters are disabled")

    store = _build_store()
    processor = _build_processor(store)
    feed = JsonlRecordFeed(
        settings.FEED_PATH,
        follow=settings.FEED_FOLLOW,
        poll_interval=settings.FEED_POLL_INTERVAL_SECONDS,
    )

    try:
        seen = asyncio.run(_consume_all(processor, feed))
    except KeyboardInterrupt:
        feed.close()
        logger.info("Stopped by user")
        return
    logger.info("Feed drained, %s records delivered", seen)
    _log_summary(processor)


def _show(thread_filter: Optional[ThreadFilter]) -> None:
    _configure_logging()
    store = _build_store()
    processor = _build_processor(store)
    feed = JsonlRecordFeed(settings.FEED_PATH, follow=False)
    asyncio.run(_consume_all(processor, feed))

    console = Console()
    for collection_key in settings.COLLECTIONS:
        console.print(
            roster_table(
                collection_key,
                processor.current_roster(collection_key),
                processor.is_online(collection_key),
            )
        )
        console.print(
            threads_table(
                collection_key,
                processor.filtered_threads(collection_key, thread_filter),
                settings.SNIPPET_CHARS,
            )
        )
    console.print(
        inbox_table(
            processor.inbox_items(),
            processor.unread_count(),
            settings.SNIPPET_CHARS,
            processor.agent_name,
        )
    )


def _mark_read() -> None:
    _configure_logging()
    processor = _build_processor(_build_store())
    if not processor.mark_inbox_read():
        raise RuntimeError("Failed to persist the inbox read cursor")
    print("Inbox marked as read.")


def _select_filter(collection_key: str, filter_name: str) -> None:
    processor = _build_processor(_build_store())
    selected = None if filter_name == "none" else parse_filter(filter_name)
    processor.select_filter(collection_key, selected)
    print(f"Filter for {collection_key}: {selected.display_name if selected else 'none'}")


def _set_archived(thread_id: str, archived: bool) -> None:
    processor = _build_processor(_build_store())
    if archived:
        processor.archive_thread(thread_id)
    else:
        processor.unarchive_thread(thread_id)
    print(f"Thread {thread_id} {'archived' if archived else 'unarchived'}.")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="ledgerscope")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Consume the record feed and keep views current")
    show_parser = subparsers.add_parser("show", help="Replay the feed and print every view")
    show_parser.add_argument(
        "--filter",
        choices=[item.value for item in ThreadFilter],
        help="Thread filter to apply instead of the stored selection",
    )
    subparsers.add_parser("mark-read", help="Mark the inbox as read now")
    filter_parser = subparsers.add_parser("filter", help="Select the thread filter of a collection")
    filter_parser.add_argument("collection")
    filter_parser.add_argument("name", choices=[item.value for item in ThreadFilter] + ["none"])
    archive_parser = subparsers.add_parser("archive", help="Hide a thread from thread lists")
    archive_parser.add_argument("thread_id")
    unarchive_parser = subparsers.add_parser("unarchive", help="Show an archived thread again")
    unarchive_parser.add_argument("thread_id")

    args = parser.parse_args(argv)
    if args.command == "show":
        _show(parse_filter(args.filter))
        return
    if args.command == "mark-read":
        _mark_read()
        return
    if args.command == "filter":
        _select_filter(args.collection, args.name)
        return
    if args.command in {"archive", "unarchive"}:
        _set_archived(args.thread_id, args.command == "archive")
        return
    _run()


if __name__ == "__main__":
    main()
