from __future__ import annotations

import itertools
from typing import Optional

from core.inbox import InboxAggregator, classify
from core.models import InboxCategory, Record
from core.read_cursor import ReadCursorTracker


class FakeCursorStore:
    def __init__(self, value: Optional[float] = None) -> None:
        self.values: dict[str, float] = {}
        if value is not None:
            self.values["inbox_last_visit"] = value

    def load(self, key: str) -> Optional[float]:
        return self.values.get(key)

    def save(self, key: str, value: float) -> None:
        self.values[key] = value


def _inbox(cursor_at: float = 0.0, now: float = 10_000.0) -> InboxAggregator:
    tracker = ReadCursorTracker(FakeCursorStore(cursor_at), "inbox_last_visit", clock=lambda: now)
    return InboxAggregator(tracker)


def _event(
    record_id: str,
    *,
    kind: int = 1111,
    created_at: int = 100,
    content: str = "",
    tags: tuple = (),
) -> Record:
    return Record(
        id=record_id,
        author="agent",
        kind=kind,
        created_at=created_at,
        content=content,
        tags=(("p", "viewer"),) + tuple(tags),
    )


def test_classification_by_kind_and_agent_marker() -> None:
    assert classify(_event("a", kind=1)) is InboxCategory.MENTION
    assert classify(_event("b", kind=7)) is InboxCategory.REACTION
    assert classify(_event("c", kind=30023)) is InboxCategory.ARTICLE_REFERENCE
    assert classify(_event("d", kind=1111)) is InboxCategory.REPLY
    assert classify(_event("e", kind=1111, tags=(("p", "viewer", "", "agent"),))) is InboxCategory.RESPONSE
    assert classify(_event("f", kind=1111, tags=(("client", "TENEX Agent"),))) is InboxCategory.RESPONSE
    assert classify(_event("g", kind=3)) is None


def test_agent_marker_only_changes_replies() -> None:
    assert classify(_event("a", kind=1, tags=(("client", "TENEX Agent"),))) is InboxCategory.MENTION


def test_dedup_keeps_newest_per_reference() -> None:
    records = [
        _event("r1", created_at=100, content="10%", tags=(("E", "root-1"),)),
        _event("r2", created_at=110, content="50%", tags=(("E", "root-1"),)),
        _event("r3", created_at=120, content="100%", tags=(("E", "root-1"),)),
    ]

    for permutation in itertools.permutations(records):
        inbox = _inbox()
        inbox.ingest_batch(permutation)
        items = inbox.items()
        assert len(items) == 1
        assert items[0].record.content == "100%"


def test_records_without_reference_stay_separate() -> None:
    inbox = _inbox()
    inbox.ingest_batch(
        [
            _event("m1", kind=1, content="same"),
            _event("m2", kind=1, content="same"),
            _event("x1", kind=7, content="+"),
        ]
    )

    assert len(inbox.items()) == 3


def test_mixed_grouped_and_standalone_records() -> None:
    inbox = _inbox()
    inbox.ingest_batch(
        [
            _event("r1", created_at=100, content="Response 1", tags=(("E", "root"),)),
            _event("r2", created_at=200, content="Response 2", tags=(("E", "root"),)),
            _event("m1", kind=1, created_at=150, content="Standalone mention"),
        ]
    )

    assert [item.record.content for item in inbox.items()] == ["Response 2", "Standalone mention"]


def test_items_sorted_newest_first_and_out_of_scope_kinds_dropped() -> None:
    inbox = _inbox()
    inbox.ingest(_event("old", kind=1, created_at=100))
    inbox.ingest(_event("new", kind=1, created_at=300))
    inbox.ingest(_event("mid", kind=1, created_at=200))

    assert not inbox.ingest(_event("contacts", kind=3, created_at=400))
    assert [item.record.id for item in inbox.items()] == ["new", "mid", "old"]


def test_reingesting_is_idempotent() -> None:
    inbox = _inbox()
    record = _event("r1", tags=(("E", "root"),))

    assert inbox.ingest(record)
    assert not inbox.ingest(record)
    assert len(inbox.items()) == 1


def test_unread_count_follows_cursor() -> None:
    inbox = _inbox(cursor_at=150.0, now=1000.0)
    inbox.ingest_batch(
        [
            _event("a", kind=1, created_at=100),
            _event("b", kind=1, created_at=200),
            _event("c", kind=1, created_at=300),
        ]
    )

    view = inbox.view()
    assert view.unread_count == 2
    assert [item.is_unread for item in view.items] == [True, True, False]
    assert 0 <= inbox.unread_count() <= len(inbox.items())

    assert inbox.mark_read()
    assert inbox.unread_count() == 0


def test_suggestions_preserve_tag_order() -> None:
    inbox = _inbox()
    inbox.ingest(
        _event(
            "s1",
            tags=(("suggestion", "Option B"), ("suggestion", "Option A"), ("suggestion", "Option C")),
        )
    )

    assert inbox.items()[0].suggestions == ("Option B", "Option A", "Option C")


def test_clear_empties_the_inbox() -> None:
    inbox = _inbox()
    inbox.ingest(_event("a", kind=1))
    inbox.clear()

    assert inbox.items() == []
    assert inbox.unread_count() == 0
