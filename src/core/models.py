"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any feed-specific types. Every derived model is a frozen value
snapshot; aggregators rebuild them instead of mutating them in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Record:
    """Immutable signed record as delivered by the feed."""

    id: str
    author: str
    kind: int
    created_at: int
    content: str
    tags: tuple[tuple[str, ...], ...] = ()


@dataclass(frozen=True)
class CompositeEntity:
    """Roster member assembled from membership and capability tags."""

    identity: str
    display_name: str
    is_global: bool = False
    capability_a: Optional[str] = None
    capabilities_b: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class Roster:
    """All entities known for one scope plus the newest status timestamp."""

    scope_key: str
    entities: dict[str, CompositeEntity]
    created_at: int
    stale_after_seconds: int

    def is_stale(self, now: float) -> bool:
        return now - self.created_at >= self.stale_after_seconds

    def is_online(self, now: float) -> bool:
        return not self.is_stale(now) and bool(self.entities)


@dataclass(frozen=True)
class Thread:
    """Conversation root merged with its newest metadata overlay."""

    id: str
    author: str
    parent_collection_id: str
    title: str
    summary: Optional[str]
    created_at: int
    reply_count: int
    phase: Optional[str]
    last_activity: int


@dataclass(frozen=True)
class ThreadMessage:
    """A reply record attributed to a thread."""

    id: str
    thread_id: str
    author: str
    content: str
    created_at: int
    reply_to: Optional[str]


@dataclass(frozen=True)
class LedgerStats:
    """Debug counters for a thread ledger snapshot."""

    thread_count: int
    reply_count: int
    threads_with_replies: int
    orphaned_replies: dict[str, int]

    @property
    def orphaned_reply_count(self) -> int:
        return sum(self.orphaned_replies.values())


class InboxCategory(str, Enum):
    """Semantic category assigned to an inbox record."""

    RESPONSE = "response"
    MENTION = "mention"
    REPLY = "reply"
    REACTION = "reaction"
    ARTICLE_REFERENCE = "article-reference"


@dataclass(frozen=True)
class InboxItem:
    """One deduplicated inbox record annotated for display."""

    record: Record
    category: InboxCategory
    is_unread: bool
    suggestions: tuple[str, ...] = ()
