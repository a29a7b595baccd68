from __future__ import annotations

from adapters.console_rendering import (
    format_author_label,
    format_category_label,
    format_snippet,
    inbox_table,
    roster_table,
)
from core.models import CompositeEntity, InboxCategory, InboxItem, Record


def test_format_author_label_uses_roster_name() -> None:
    assert format_author_label("abcdef0123456789", "Alice") == "Alice (abcdef01)"
    assert format_author_label("abcdef0123456789", None) == "abcdef01"


def test_format_category_label() -> None:
    assert format_category_label(InboxCategory.RESPONSE) == "Agent Response"
    assert format_category_label(InboxCategory.ARTICLE_REFERENCE) == "Article Mention"


def test_format_snippet_collapses_and_clips() -> None:
    assert format_snippet("a\n  b   c", 20) == "a b c"
    assert format_snippet("abcdefghij", 5) == "abcd…"


def test_tables_have_one_row_per_item() -> None:
    entity = CompositeEntity(identity="pk1", display_name="Alice", capabilities_b=frozenset({"search"}))
    assert roster_table("scope", [entity], online=True).row_count == 1

    record = Record(id="r1", author="pk1", kind=1, created_at=100, content="hi")
    items = [InboxItem(record=record, category=InboxCategory.MENTION, is_unread=True)]
    table = inbox_table(items, 1, 40, lambda identity: "Alice")
    assert table.row_count == 1
    assert table.title == "Inbox (1 unread)"
