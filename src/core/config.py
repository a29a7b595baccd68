"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# Record kinds understood by the engine.
KIND_MENTION = 1
KIND_REACTION = 7
KIND_THREAD = 11
KIND_THREAD_METADATA = 513
KIND_REPLY = 1111
KIND_EPHEMERAL_REPLY = 21111
KIND_ROSTER_STATUS = 24010
KIND_ARTICLE = 30023

REPLY_KINDS = frozenset({KIND_REPLY, KIND_EPHEMERAL_REPLY})
THREAD_KINDS = frozenset({KIND_THREAD, KIND_THREAD_METADATA}) | REPLY_KINDS
INBOX_KINDS = frozenset({KIND_MENTION, KIND_REPLY, KIND_REACTION, KIND_ARTICLE})


@dataclass(frozen=True)
class RosterConfig:
    """Roster staleness settings."""

    stale_after_seconds: int = 300


@dataclass(frozen=True)
class InboxConfig:
    """Inbox cursor and subscription window settings."""

    cursor_key: str = "inbox_last_visit"
    since_days: int = 7


@dataclass(frozen=True)
class ThreadConfig:
    """Thread view settings."""

    default_filter: Optional[str] = None


@dataclass(frozen=True)
class EngineConfig:
    """Aggregate settings handed to the view engine."""

    viewer: Optional[str] = None
    roster: RosterConfig = field(default_factory=RosterConfig)
    inbox: InboxConfig = field(default_factory=InboxConfig)
    threads: ThreadConfig = field(default_factory=ThreadConfig)
