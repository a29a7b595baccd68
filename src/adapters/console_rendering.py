"""Shared console rendering helpers.

Keeping formatting here prevents drift between CLI commands and keeps the
tables consistent regardless of which view is printed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from rich.table import Table
from rich.text import Text

from core.models import CompositeEntity, InboxCategory, InboxItem, Thread

_CATEGORY_LABELS = {
    InboxCategory.RESPONSE: "Agent Response",
    InboxCategory.MENTION: "Mention",
    InboxCategory.REPLY: "Reply",
    InboxCategory.REACTION: "Reaction",
    InboxCategory.ARTICLE_REFERENCE: "Article Mention",
}


def format_timestamp(created_at: float) -> str:
    return datetime.fromtimestamp(created_at, tz=timezone.utc).astimezone().strftime(
        "%H:%M:%S %d-%m-%Y"
    )


def format_author_label(author: str, agent_name: Optional[str]) -> str:
    """Return a human-friendly author label, using the roster name if known."""

    short = author[:8]
    if not agent_name:
        return short
    return f"{agent_name} ({short})"


def format_category_label(category: InboxCategory) -> str:
    return _CATEGORY_LABELS[category]


def format_snippet(content: str, limit: int) -> str:
    collapsed = " ".join(content.split())
    if len(collapsed) <= limit:
        return collapsed
    return collapsed[: max(limit - 1, 0)].rstrip() + "…"


def roster_table(
    scope_key: str, entities: Iterable[CompositeEntity], online: bool
) -> Table:
    status = "online" if online else "offline"
    table = Table(title=f"Roster {scope_key} ({status})")
    table.add_column("name")
    table.add_column("identity")
    table.add_column("global")
    table.add_column("model")
    table.add_column("tools")
    for entity in entities:
        table.add_row(
            entity.display_name,
            entity.identity[:8],
            "yes" if entity.is_global else "",
            entity.capability_a or "",
            ", ".join(sorted(entity.capabilities_b)),
        )
    return table


def threads_table(collection_key: str, threads: Iterable[Thread], snippet_chars: int) -> Table:
    table = Table(title=f"Threads {collection_key}")
    table.add_column("created", width=19)
    table.add_column("title")
    table.add_column("replies", justify="right")
    table.add_column("phase")
    table.add_column("summary")
    for thread in threads:
        table.add_row(
            format_timestamp(thread.created_at),
            thread.title,
            str(thread.reply_count),
            thread.phase or "",
            format_snippet(thread.summary or "", snippet_chars),
        )
    return table


def inbox_table(
    items: Iterable[InboxItem],
    unread_count: int,
    snippet_chars: int,
    agent_name: Callable[[str], Optional[str]],
) -> Table:
    table = Table(title=f"Inbox ({unread_count} unread)")
    table.add_column("", width=1)
    table.add_column("date", width=19)
    table.add_column("type")
    table.add_column("from")
    table.add_column("content")
    table.add_column("suggestions")
    for item in items:
        marker = Text("●", style="bold blue") if item.is_unread else Text("")
        table.add_row(
            marker,
            format_timestamp(item.record.created_at),
            format_category_label(item.category),
            format_author_label(item.record.author, agent_name(item.record.author)),
            format_snippet(item.record.content, snippet_chars),
            " | ".join(item.suggestions),
        )
    return table
