from __future__ import annotations

import asyncio
import itertools
from typing import AsyncIterator, Optional

from core.config import EngineConfig, ThreadConfig
from core.models import InboxCategory, Record
from core.ports import FeedQuery
from core.processor import RecordProcessor
from core.relevance import ThreadFilter

COLLECTION = "31933:owner:proj"
VIEWER = "viewer"
NOW = 1_000_000.0


class FakeCursorStore:
    def __init__(self) -> None:
        self.values: dict[str, float] = {}

    def load(self, key: str) -> Optional[float]:
        return self.values.get(key)

    def save(self, key: str, value: float) -> None:
        self.values[key] = value


class FakeThreadState:
    def __init__(self) -> None:
        self.archived: set[str] = set()
        self.filters: dict[str, str] = {}

    def archived_thread_ids(self) -> set[str]:
        return set(self.archived)

    def archive_thread(self, thread_id: str) -> None:
        self.archived.add(thread_id)

    def unarchive_thread(self, thread_id: str) -> None:
        self.archived.discard(thread_id)

    def get_filter(self, collection_key: str) -> Optional[str]:
        return self.filters.get(collection_key)

    def set_filter(self, collection_key: str, filter_name: Optional[str]) -> None:
        if filter_name is None:
            self.filters.pop(collection_key, None)
        else:
            self.filters[collection_key] = filter_name


class ListFeed:
    """Feed that replays a fixed list, duplicates included."""

    def __init__(self, records: list[Record]) -> None:
        self._records = records

    async def subscribe(self, query: FeedQuery) -> AsyncIterator[Record]:
        for record in self._records:
            if query.matches(record):
                yield record


def _processor(
    viewer: Optional[str] = VIEWER,
    thread_state: Optional[FakeThreadState] = None,
    default_filter: Optional[str] = None,
) -> RecordProcessor:
    return RecordProcessor(
        config=EngineConfig(viewer=viewer, threads=ThreadConfig(default_filter=default_filter)),
        cursor_store=FakeCursorStore(),
        thread_state=thread_state,
        clock=lambda: NOW,
    )


def _record(
    record_id: str,
    kind: int,
    created_at: float,
    *tags: tuple,
    author: str = "agent",
    content: str = "",
) -> Record:
    return Record(
        id=record_id,
        author=author,
        kind=kind,
        created_at=int(created_at),
        content=content,
        tags=tuple(tags),
    )


def _root(thread_id: str, created_at: float) -> Record:
    return _record(thread_id, 11, created_at, ("a", COLLECTION), ("title", thread_id), author=VIEWER)


def _reply(record_id: str, thread_id: str, created_at: float, author: str = "agent") -> Record:
    return _record(
        record_id,
        1111,
        created_at,
        ("E", thread_id),
        ("a", COLLECTION),
        ("p", VIEWER),
        author=author,
    )


def _scenario() -> list[Record]:
    return [
        _record(
            "status",
            24010,
            NOW - 60,
            ("a", COLLECTION),
            ("agent", "pk1", "Alice"),
            ("model", "gpt-4", "Alice"),
        ),
        _root("t-old", NOW - 50_000),
        _root("t-new", NOW - 40_000),
        _reply("c1", "t-old", NOW - 30_000),
        _reply("c2", "t-new", NOW - 600),
        _record("m1", 1, NOW - 100, ("p", VIEWER), content="hello"),
        _record("own", 1, NOW - 90, ("p", VIEWER), author=VIEWER),
        _record("other", 1, NOW - 80, ("p", "someone-else")),
    ]


def test_routes_records_to_every_view() -> None:
    processor = _processor()
    processor.handle_batch(_scenario())

    [alice] = processor.current_roster(COLLECTION)
    assert alice.capability_a == "gpt-4"
    assert processor.is_online(COLLECTION)
    assert processor.agent_name("pk1") == "Alice"

    assert [thread.id for thread in processor.current_threads(COLLECTION)] == ["t-new", "t-old"]
    assert [message.id for message in processor.thread_messages("t-old")] == ["c1"]

    inbox_ids = {item.record.id for item in processor.inbox_items()}
    # Own records and records addressed to someone else stay out of the inbox.
    assert inbox_ids == {"c1", "c2", "m1"}
    assert {item.category for item in processor.inbox_items()} == {
        InboxCategory.REPLY,
        InboxCategory.MENTION,
    }


def test_views_are_independent_of_arrival_order_and_duplicates() -> None:
    records = [record for record in _scenario() if record.kind != 11]
    baseline = None
    for permutation in itertools.permutations(records[:5]):
        processor = _processor()
        processor.handle_batch([_root("t-old", NOW - 50_000), _root("t-new", NOW - 40_000)])
        processor.handle_batch(list(permutation) + records[5:] + list(permutation))
        snapshot = (
            processor.current_roster(COLLECTION),
            processor.current_threads(COLLECTION),
            processor.inbox_items(),
        )
        if baseline is None:
            baseline = snapshot
        assert snapshot == baseline


def test_filtered_threads_uses_explicit_stored_then_default_filter() -> None:
    state = FakeThreadState()
    processor = _processor(thread_state=state, default_filter="1h")
    processor.handle_batch(_scenario())

    # Default: only t-new had activity in the last hour.
    assert [thread.id for thread in processor.filtered_threads(COLLECTION)] == ["t-new"]

    processor.select_filter(COLLECTION, ThreadFilter.NEEDS_RESPONSE_FOUR_HOURS)
    assert state.filters[COLLECTION] == "needs-response-4h"
    assert [thread.id for thread in processor.filtered_threads(COLLECTION)] == ["t-old"]

    assert len(processor.filtered_threads(COLLECTION, "1d")) == 2


def test_archived_threads_are_hidden() -> None:
    state = FakeThreadState()
    processor = _processor(thread_state=state)
    processor.handle_batch(_scenario())

    processor.archive_thread("t-old")
    assert [thread.id for thread in processor.current_threads(COLLECTION)] == ["t-new"]

    processor.unarchive_thread("t-old")
    assert len(processor.current_threads(COLLECTION)) == 2


def test_mark_inbox_read_clears_unread() -> None:
    processor = _processor()
    processor.handle_batch(_scenario())
    assert processor.unread_count() == 0  # cursor defaults to now

    processor.handle(_record("late", 1, NOW + 10, ("p", VIEWER)))
    assert processor.unread_count() == 1
    assert processor.mark_inbox_read()
    assert processor.inbox_cursor() == NOW


def test_without_viewer_inbox_accepts_prefiltered_records() -> None:
    processor = _processor(viewer=None)
    processor.handle(_record("m1", 1, NOW, ("p", "anyone")))

    assert len(processor.inbox_items()) == 1
    assert len(processor.queries([COLLECTION])) == 2


def test_consume_drains_feed_with_duplicates() -> None:
    records = _scenario()
    feed = ListFeed(records + records)
    processor = _processor()

    async def _drain() -> int:
        total = 0
        for query in processor.queries([COLLECTION]):
            total += await processor.consume(feed, query)
        return total

    seen = asyncio.run(_drain())

    assert seen > len(records)
    assert len(processor.current_threads(COLLECTION)) == 2
    assert processor.ledger_stats().reply_count == 2
    assert {item.record.id for item in processor.inbox_items()} == {"c1", "c2", "m1"}


def test_inbox_query_uses_since_window() -> None:
    processor = _processor()
    inbox_query = processor.queries([COLLECTION])[-1]

    assert inbox_query.since == int(NOW - 7 * 24 * 3600)
    assert not inbox_query.matches(_record("ancient", 1, NOW - 8 * 24 * 3600, ("p", VIEWER)))
    assert inbox_query.matches(_record("recent", 1, NOW - 60, ("p", VIEWER)))


def test_query_tag_filter_ignores_hints_and_markers() -> None:
    query = FeedQuery(kinds=frozenset({1111}), tags={"p": frozenset({"agent"})})

    assert not query.matches(_record("hinted", 1111, NOW, ("p", VIEWER, "", "agent")))
    assert query.matches(_record("direct", 1111, NOW, ("p", "agent")))
