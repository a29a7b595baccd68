"""Time-windowed thread filters (core domain).

Two families share one threshold but compare in opposite directions:
- activity: keep threads whose last reply is at most ``threshold`` old
- needs-response: keep threads whose newest reply from someone else is
  unanswered by the viewer and at least ``threshold`` old

Both are evaluated against ``now`` at call time.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from core.models import Thread, ThreadMessage

HOUR = 60 * 60


class ThreadFilter(str, Enum):
    """Preset filters selectable per collection."""

    ONE_HOUR = "1h"
    FOUR_HOURS = "4h"
    ONE_DAY = "1d"
    NEEDS_RESPONSE_ONE_HOUR = "needs-response-1h"
    NEEDS_RESPONSE_FOUR_HOURS = "needs-response-4h"
    NEEDS_RESPONSE_ONE_DAY = "needs-response-1d"

    @property
    def threshold_seconds(self) -> int:
        return _THRESHOLDS[self]

    @property
    def is_needs_response(self) -> bool:
        return self.value.startswith("needs-response")

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_THRESHOLDS = {
    ThreadFilter.ONE_HOUR: HOUR,
    ThreadFilter.FOUR_HOURS: 4 * HOUR,
    ThreadFilter.ONE_DAY: 24 * HOUR,
    ThreadFilter.NEEDS_RESPONSE_ONE_HOUR: HOUR,
    ThreadFilter.NEEDS_RESPONSE_FOUR_HOURS: 4 * HOUR,
    ThreadFilter.NEEDS_RESPONSE_ONE_DAY: 24 * HOUR,
}

_DISPLAY_NAMES = {
    ThreadFilter.ONE_HOUR: "Active in last hour",
    ThreadFilter.FOUR_HOURS: "Active in last 4 hours",
    ThreadFilter.ONE_DAY: "Active in last 24 hours",
    ThreadFilter.NEEDS_RESPONSE_ONE_HOUR: "Needs response (1h)",
    ThreadFilter.NEEDS_RESPONSE_FOUR_HOURS: "Needs response (4h)",
    ThreadFilter.NEEDS_RESPONSE_ONE_DAY: "Needs response (1d)",
}


def parse_filter(name: Optional[str]) -> Optional[ThreadFilter]:
    """Return the preset for ``name``; None and "" mean no filter."""

    if not name:
        return None
    try:
        return ThreadFilter(name)
    except ValueError:
        raise ValueError(f"Unsupported thread filter: {name}") from None


@dataclass(frozen=True)
class ReplyTimes:
    """Newest reply timestamps for one thread, split by viewer authorship."""

    last_reply: Optional[int] = None
    last_other_reply: Optional[int] = None
    last_viewer_reply: Optional[int] = None


def _latest(current: Optional[int], candidate: int) -> int:
    return candidate if current is None or candidate > current else current


def reply_times(
    replies: Iterable[ThreadMessage], viewer: Optional[str] = None
) -> dict[str, ReplyTimes]:
    """Aggregate newest reply times per thread id."""

    last: dict[str, int] = {}
    other: dict[str, int] = {}
    own: dict[str, int] = {}
    for reply in replies:
        thread_id = reply.thread_id
        last[thread_id] = _latest(last.get(thread_id), reply.created_at)
        if viewer is not None and reply.author == viewer:
            own[thread_id] = _latest(own.get(thread_id), reply.created_at)
        else:
            other[thread_id] = _latest(other.get(thread_id), reply.created_at)
    return {
        thread_id: ReplyTimes(
            last_reply=last[thread_id],
            last_other_reply=other.get(thread_id),
            last_viewer_reply=own.get(thread_id),
        )
        for thread_id in last
    }


def activity_filter(
    threads: Iterable[Thread],
    replies: Iterable[ThreadMessage],
    threshold_seconds: float,
    now: Optional[float] = None,
) -> List[Thread]:
    """Keep threads with a reply (or, without replies, creation) inside the window."""

    if now is None:
        now = time.time()
    times = reply_times(replies)
    kept: List[Thread] = []
    for thread in threads:
        last_reply = times.get(thread.id, ReplyTimes()).last_reply
        if last_reply is None:
            last_reply = thread.created_at
        if now - last_reply <= threshold_seconds:
            kept.append(thread)
    return kept


def needs_response_filter(
    threads: Iterable[Thread],
    replies: Iterable[ThreadMessage],
    threshold_seconds: float,
    viewer: Optional[str],
    now: Optional[float] = None,
) -> List[Thread]:
    """Keep threads whose newest other-party reply has waited at least the window.

    Without a viewer identity there is no way to tell who answered, so the
    threads are returned unfiltered.
    """

    threads = list(threads)
    if viewer is None:
        return threads
    if now is None:
        now = time.time()
    times = reply_times(replies, viewer)
    kept: List[Thread] = []
    for thread in threads:
        entry = times.get(thread.id)
        if entry is None or entry.last_other_reply is None:
            continue
        if entry.last_viewer_reply is not None and entry.last_viewer_reply > entry.last_other_reply:
            continue
        if now - entry.last_other_reply < threshold_seconds:
            continue
        kept.append(thread)
    return kept


def apply_filter(
    thread_filter: ThreadFilter,
    threads: Iterable[Thread],
    replies: Iterable[ThreadMessage],
    viewer: Optional[str],
    now: Optional[float] = None,
) -> List[Thread]:
    """Dispatch a preset to the matching filter family."""

    if thread_filter.is_needs_response:
        return needs_response_filter(
            threads, replies, thread_filter.threshold_seconds, viewer, now
        )
    return activity_filter(threads, replies, thread_filter.threshold_seconds, now)
