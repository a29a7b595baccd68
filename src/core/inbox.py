"""Inbox aggregation (core domain).

Incoming records are classified, deduplicated by reference (newest createdAt
wins per referenced conversation), sorted newest first, and annotated with
unread state from the read cursor at query time.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Optional

from core.config import KIND_ARTICLE, KIND_MENTION, KIND_REACTION, KIND_REPLY
from core.dedup import group_key, is_newer
from core.models import InboxCategory, InboxItem, Record
from core.read_cursor import ReadCursorTracker
from core.tags import (
    AGENT_MARKER,
    TAG_CLIENT,
    MentionTag,
    SuggestionTag,
    TagIndex,
    of_type,
    parse_tags,
)

LOGGER = logging.getLogger(__name__)

_CATEGORY_BY_KIND = {
    KIND_MENTION: InboxCategory.MENTION,
    KIND_REPLY: InboxCategory.REPLY,
    KIND_REACTION: InboxCategory.REACTION,
    KIND_ARTICLE: InboxCategory.ARTICLE_REFERENCE,
}


def has_agent_marker(record: Record) -> bool:
    """True when a mention carries the agent marker or the client tag names an agent."""

    for tag in of_type(parse_tags(record.tags), MentionTag):
        if tag.marker == AGENT_MARKER:
            return True
    client = TagIndex.of(record).first_value(TAG_CLIENT).or_else("")
    return AGENT_MARKER in client.lower()


def classify(record: Record) -> Optional[InboxCategory]:
    """Return the category for a record, or None for kinds the inbox ignores."""

    category = _CATEGORY_BY_KIND.get(record.kind)
    if category is InboxCategory.REPLY and has_agent_marker(record):
        return InboxCategory.RESPONSE
    return category


def extract_suggestions(record: Record) -> tuple[str, ...]:
    return tuple(tag.value for tag in of_type(parse_tags(record.tags), SuggestionTag))


@dataclass(frozen=True)
class InboxView:
    """Items and unread count computed from the same cursor reading."""

    items: tuple[InboxItem, ...]
    unread_count: int


class InboxAggregator:
    """Materializes the notification inbox."""

    def __init__(self, cursor: ReadCursorTracker) -> None:
        self._cursor = cursor
        self._lock = threading.Lock()
        self._groups: dict[str, Record] = {}
        self._ordered: tuple[tuple[Record, InboxCategory], ...] = ()

    def ingest(self, record: Record) -> bool:
        """Apply one record; return True when the retained set changed."""

        category = classify(record)
        if category is None:
            LOGGER.debug("Inbox dropped record %s of kind %s", record.id, record.kind)
            return False
        key = group_key(record)
        with self._lock:
            if not is_newer(record, self._groups.get(key)):
                return False
            self._groups[key] = record
            ordered = sorted(
                self._groups.values(),
                key=lambda item: (item.created_at, item.id),
                reverse=True,
            )
            self._ordered = tuple((item, classify(item)) for item in ordered)
        return True

    def ingest_batch(self, records: Iterable[Record]) -> bool:
        changed = False
        for record in records:
            changed = self.ingest(record) or changed
        return changed

    def view(self) -> InboxView:
        cursor = self._cursor.cursor()
        items = tuple(
            InboxItem(
                record=record,
                category=category,
                is_unread=record.created_at > cursor,
                suggestions=extract_suggestions(record),
            )
            for record, category in self._ordered
        )
        return InboxView(items=items, unread_count=sum(1 for item in items if item.is_unread))

    def items(self) -> list[InboxItem]:
        return list(self.view().items)

    def unread_count(self) -> int:
        return self.view().unread_count

    def mark_read(self, at: Optional[float] = None) -> bool:
        return self._cursor.mark_read(at)

    def clear(self) -> None:
        with self._lock:
            self._groups = {}
            self._ordered = ()
