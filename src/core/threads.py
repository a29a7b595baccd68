"""Thread ledger (core domain).

Three record streams feed the ledger:
- thread roots (kind 11), keyed by thread id, last arrival wins
- metadata overlays (kind 513), keyed by referenced thread, newest createdAt wins
- replies (kinds 1111/21111), deduplicated by record id and counted per thread

Root replacement is arrival-ordered while overlays are timestamp-ordered.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Iterable, Optional

from core.config import KIND_THREAD, KIND_THREAD_METADATA, REPLY_KINDS
from core.dedup import is_newer
from core.models import LedgerStats, Record, Thread, ThreadMessage
from core.tags import (
    TAG_COLLECTION,
    TAG_IDENTIFIER,
    TAG_PARENT,
    TAG_PHASE,
    TAG_REPLY_COUNT,
    TAG_ROOT,
    TAG_SUMMARY,
    TAG_TITLE,
    TagIndex,
)

LOGGER = logging.getLogger(__name__)


def parse_summary(content: str) -> Optional[str]:
    """Extract ``summary`` from JSON content, if the content is a JSON object."""

    try:
        payload = json.loads(content)
    except (TypeError, ValueError):
        return None
    if not isinstance(payload, dict):
        return None
    summary = payload.get("summary")
    if isinstance(summary, str) and summary:
        return summary
    return None


def thread_id_of(record: Record) -> str:
    """Threads are addressed by their identifier tag, falling back to the record id."""

    return TagIndex.of(record).first_value(TAG_IDENTIFIER).non_empty().or_else(record.id)


def message_from_record(record: Record) -> Optional[ThreadMessage]:
    index = TagIndex.of(record)
    # Replies belong to the thread named by their root tag; a parent tag alone is not enough.
    thread_id = index.reference((TAG_ROOT,))
    if not thread_id.present:
        return None
    return ThreadMessage(
        id=record.id,
        thread_id=thread_id.value,
        author=record.author,
        content=record.content,
        created_at=record.created_at,
        reply_to=index.first_value(TAG_PARENT).non_empty().value,
    )


def merge_thread(
    root: Record,
    overlay: Optional[Record],
    reply_count: int,
    last_reply_at: Optional[int],
) -> Thread:
    """Merge a root with its overlay and reply aggregates into a Thread."""

    index = TagIndex.of(root)
    title = index.first_value(TAG_TITLE).or_else("")
    summary = parse_summary(root.content)
    phase = index.first_value(TAG_PHASE).non_empty().value

    if overlay is not None:
        overlay_index = TagIndex.of(overlay)
        title = overlay_index.first_value(TAG_TITLE).non_empty().or_else(title)
        overlay_summary = overlay_index.first_value(TAG_SUMMARY).non_empty().value
        summary = overlay_summary or parse_summary(overlay.content) or summary
        phase = overlay_index.first_value(TAG_PHASE).non_empty().or_else(phase)

    if reply_count <= 0:
        reply_count = max(index.first_value(TAG_REPLY_COUNT).as_int() or 0, 0)

    last_activity = root.created_at
    if last_reply_at is not None:
        last_activity = max(last_activity, last_reply_at)

    return Thread(
        id=thread_id_of(root),
        author=root.author,
        parent_collection_id=index.first_value(TAG_COLLECTION).or_else(""),
        title=title,
        summary=summary,
        created_at=root.created_at,
        reply_count=reply_count,
        phase=phase,
        last_activity=last_activity,
    )


class ThreadLedger:
    """Deduplicates thread records and materializes Thread snapshots."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._root_ids: set[str] = set()
        self._roots: dict[str, Record] = {}
        self._overlays: dict[str, Record] = {}
        self._replies: dict[str, ThreadMessage] = {}
        self._snapshot: tuple[tuple[Thread, ...], dict[str, tuple[ThreadMessage, ...]]] = ((), {})

    def ingest(self, record: Record) -> bool:
        """Apply one record; return True when the snapshot changed."""

        with self._lock:
            if record.kind == KIND_THREAD:
                changed = self._apply_root(record)
            elif record.kind == KIND_THREAD_METADATA:
                changed = self._apply_overlay(record)
            elif record.kind in REPLY_KINDS:
                changed = self._apply_reply(record)
            else:
                changed = False
            if changed:
                self._rebuild()
        return changed

    def ingest_batch(self, records: Iterable[Record]) -> bool:
        changed = False
        for record in records:
            changed = self.ingest(record) or changed
        return changed

    def _apply_root(self, record: Record) -> bool:
        if record.id in self._root_ids:
            return False
        index = TagIndex.of(record)
        if not index.first_value(TAG_TITLE).present:
            LOGGER.debug("Thread %s has no title tag, skipping", record.id)
            return False
        if not index.first_value(TAG_COLLECTION).non_empty().present:
            LOGGER.debug("Thread %s has no collection tag, skipping", record.id)
            return False
        self._root_ids.add(record.id)
        self._roots[thread_id_of(record)] = record
        return True

    def _apply_overlay(self, record: Record) -> bool:
        reference = TagIndex.of(record).reference()
        if not reference.present:
            LOGGER.debug("Metadata %s has no reference tag, skipping", record.id)
            return False
        current = self._overlays.get(reference.value)
        if not is_newer(record, current):
            return False
        self._overlays[reference.value] = record
        return True

    def _apply_reply(self, record: Record) -> bool:
        if record.id in self._replies:
            return False
        message = message_from_record(record)
        if message is None:
            LOGGER.debug("Reply %s has no thread reference, skipping", record.id)
            return False
        self._replies[record.id] = message
        return True

    def _rebuild(self) -> None:
        by_thread: dict[str, list[ThreadMessage]] = {}
        for message in self._replies.values():
            by_thread.setdefault(message.thread_id, []).append(message)
        messages = {
            thread_id: tuple(sorted(items, key=lambda item: (item.created_at, item.id)))
            for thread_id, items in by_thread.items()
        }

        threads = []
        for thread_id, root in self._roots.items():
            replies = messages.get(thread_id, ())
            threads.append(
                merge_thread(
                    root,
                    self._overlays.get(thread_id),
                    len(replies),
                    replies[-1].created_at if replies else None,
                )
            )

        # Swap whole collections so readers never see a half-built snapshot.
        self._snapshot = (tuple(threads), messages)

    def threads(self, collection_key: Optional[str] = None) -> list[Thread]:
        """Return threads, optionally limited to one collection. Not sorted."""

        threads, _ = self._snapshot
        if collection_key is None:
            return list(threads)
        return [thread for thread in threads if thread.parent_collection_id == collection_key]

    def thread(self, thread_id: str) -> Optional[Thread]:
        threads, _ = self._snapshot
        for thread in threads:
            if thread.id == thread_id:
                return thread
        return None

    def messages(self, thread_id: str) -> list[ThreadMessage]:
        """Replies of one thread, oldest first."""

        _, messages = self._snapshot
        return list(messages.get(thread_id, ()))

    def replies(self) -> list[ThreadMessage]:
        """Every retained reply across all threads."""

        replies: list[ThreadMessage] = []
        _, messages = self._snapshot
        for items in messages.values():
            replies.extend(items)
        return replies

    def stats(self) -> LedgerStats:
        threads, messages = self._snapshot
        known = {thread.id for thread in threads}
        orphaned = {
            thread_id: len(items) for thread_id, items in messages.items() if thread_id not in known
        }
        return LedgerStats(
            thread_count=len(threads),
            reply_count=sum(len(items) for items in messages.values()),
            threads_with_replies=sum(1 for thread in threads if thread.id in messages),
            orphaned_replies=orphaned,
        )
