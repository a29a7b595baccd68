"""Ports (interfaces) used by the core engine.

Ports define the minimal contracts for the record feed and the small
key/value stores so that the core can be reused with different backends.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol

from core.models import Record
from core.tags import TagIndex


@dataclass(frozen=True)
class FeedQuery:
    """Which records a subscription should deliver."""

    kinds: frozenset[int]
    authors: Optional[frozenset[str]] = None
    # Tag name -> accepted first values, e.g. {"a": {coordinate}} or {"p": {viewer}}.
    tags: Optional[dict[str, frozenset[str]]] = None
    since: Optional[int] = None

    def matches(self, record: Record) -> bool:
        if record.kind not in self.kinds:
            return False
        if self.authors is not None and record.author not in self.authors:
            return False
        if self.since is not None and record.created_at < self.since:
            return False
        if self.tags:
            index = TagIndex.of(record)
            for name, accepted in self.tags.items():
                if not any(tag[1] in accepted for tag in index.tags_named(name)):
                    return False
        return True


class RecordFeed(Protocol):
    """Source of records; delivery may repeat and arrive out of order."""

    def subscribe(self, query: FeedQuery) -> AsyncIterator[Record]:
        ...


class CursorStore(Protocol):
    """Persists one float per logical view key."""

    def load(self, key: str) -> Optional[float]:
        ...

    def save(self, key: str, value: float) -> None:
        ...


class ThreadStatePort(Protocol):
    """Per-collection thread preferences: archived ids and the selected filter."""

    def archived_thread_ids(self) -> set[str]:
        ...

    def archive_thread(self, thread_id: str) -> None:
        ...

    def unarchive_thread(self, thread_id: str) -> None:
        ...

    def get_filter(self, collection_key: str) -> Optional[str]:
        ...

    def set_filter(self, collection_key: str, filter_name: Optional[str]) -> None:
        ...
