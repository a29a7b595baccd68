"""Core record processing pipeline.

This module is feed-agnostic. It only relies on ports for the record feed and
the cursor/thread stores, routing each record to the aggregators that care
about its kind and exposing read-only view accessors.

Routing order for one record:
1) Roster status records -> RosterAggregator
2) Thread roots, metadata overlays and replies -> ThreadLedger
3) Inbox kinds addressed to the viewer -> InboxAggregator
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional, Union

from core.config import (
    INBOX_KINDS,
    KIND_ROSTER_STATUS,
    THREAD_KINDS,
    EngineConfig,
)
from core.inbox import InboxAggregator
from core.models import CompositeEntity, InboxItem, LedgerStats, Record, Thread, ThreadMessage
from core.ports import CursorStore, FeedQuery, RecordFeed, ThreadStatePort
from core.read_cursor import ReadCursorTracker
from core.relevance import ThreadFilter, apply_filter, parse_filter
from core.roster import RosterAggregator
from core.tags import TAG_COLLECTION, TAG_MENTION, TagIndex
from core.threads import ThreadLedger

LOGGER = logging.getLogger(__name__)

DAY = 24 * 60 * 60


class RecordProcessor:
    """Orchestrates routing, aggregation, and view queries."""

    def __init__(
        self,
        config: EngineConfig,
        cursor_store: CursorStore,
        thread_state: Optional[ThreadStatePort] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._thread_state = thread_state
        self._clock = clock
        self._roster = RosterAggregator(config.roster)
        self._ledger = ThreadLedger()
        self._cursor = ReadCursorTracker(cursor_store, config.inbox.cursor_key, clock)
        self._inbox = InboxAggregator(self._cursor)

    @property
    def viewer(self) -> Optional[str]:
        return self._config.viewer

    def handle(self, record: Record) -> bool:
        """Route one record; return True if any view changed."""

        changed = False
        if record.kind == KIND_ROSTER_STATUS:
            changed = self._roster.ingest(record) is not None or changed
        if record.kind in THREAD_KINDS:
            changed = self._ledger.ingest(record) or changed
        if self._wants_inbox(record):
            changed = self._inbox.ingest(record) or changed
        return changed

    def handle_batch(self, records: Iterable[Record]) -> bool:
        changed = False
        count = 0
        for record in records:
            changed = self.handle(record) or changed
            count += 1
        LOGGER.info("Batch of %s records ingested (changed=%s)", count, changed)
        return changed

    def _wants_inbox(self, record: Record) -> bool:
        if record.kind not in INBOX_KINDS:
            return False
        viewer = self._config.viewer
        if viewer is None:
            # Without a viewer the feed is trusted to pre-filter inbox records.
            return True
        if record.author == viewer:
            return False
        return viewer in TagIndex.of(record).all_values(TAG_MENTION)

    async def consume(self, feed: RecordFeed, query: FeedQuery) -> int:
        """Drain a subscription into the views; return the number of records seen."""

        LOGGER.info("Subscribing to kinds %s", sorted(query.kinds))
        seen = 0
        async for record in feed.subscribe(query):
            seen += 1
            try:
                self.handle(record)
            except Exception:
                LOGGER.exception("Error while processing record %s", record.id)
        LOGGER.info("Subscription ended after %s records", seen)
        return seen

    def queries(self, collection_keys: Iterable[str]) -> list[FeedQuery]:
        """Build the subscriptions that feed every view."""

        collections = frozenset(collection_keys)
        queries = [
            FeedQuery(kinds=frozenset({KIND_ROSTER_STATUS}), tags={TAG_COLLECTION: collections}),
            FeedQuery(kinds=THREAD_KINDS, tags={TAG_COLLECTION: collections}),
        ]
        viewer = self._config.viewer
        if viewer is not None:
            since = int(self._clock() - self._config.inbox.since_days * DAY)
            queries.append(
                FeedQuery(
                    kinds=INBOX_KINDS,
                    tags={TAG_MENTION: frozenset({viewer})},
                    since=since,
                )
            )
        return queries

    # Roster views

    def current_roster(self, scope_key: str) -> list[CompositeEntity]:
        return self._roster.current_roster(scope_key)

    def is_online(self, scope_key: str) -> bool:
        return self._roster.is_online(scope_key, self._clock())

    def is_roster_stale(self, scope_key: str) -> bool:
        roster = self._roster.roster(scope_key)
        return roster is None or roster.is_stale(self._clock())

    def agent_name(self, identity: str) -> Optional[str]:
        return self._roster.agent_name(identity)

    # Thread views

    def current_threads(self, collection_key: str) -> list[Thread]:
        """Non-archived threads of a collection, newest first."""

        threads = self._ledger.threads(collection_key)
        if self._thread_state is not None:
            archived = self._thread_state.archived_thread_ids()
            threads = [thread for thread in threads if thread.id not in archived]
        return sorted(threads, key=lambda thread: (thread.created_at, thread.id), reverse=True)

    def filtered_threads(
        self,
        collection_key: str,
        thread_filter: Union[ThreadFilter, str, None] = None,
    ) -> list[Thread]:
        """Apply an explicit filter, else the stored one, else the configured default."""

        selected = self._resolve_filter(collection_key, thread_filter)
        threads = self.current_threads(collection_key)
        if selected is None:
            return threads
        return apply_filter(
            selected,
            threads,
            self._ledger.replies(),
            self._config.viewer,
            self._clock(),
        )

    def _resolve_filter(
        self, collection_key: str, thread_filter: Union[ThreadFilter, str, None]
    ) -> Optional[ThreadFilter]:
        if isinstance(thread_filter, ThreadFilter):
            return thread_filter
        if thread_filter:
            return parse_filter(thread_filter)
        if self._thread_state is not None:
            stored = self._thread_state.get_filter(collection_key)
            if stored:
                try:
                    return parse_filter(stored)
                except ValueError:
                    LOGGER.warning("Ignoring unknown stored filter %r for %s", stored, collection_key)
        return parse_filter(self._config.threads.default_filter)

    def select_filter(self, collection_key: str, thread_filter: Optional[ThreadFilter]) -> None:
        if self._thread_state is None:
            raise RuntimeError("Selecting a filter requires a thread state store")
        self._thread_state.set_filter(
            collection_key, thread_filter.value if thread_filter is not None else None
        )

    def archive_thread(self, thread_id: str) -> None:
        if self._thread_state is None:
            raise RuntimeError("Archiving requires a thread state store")
        self._thread_state.archive_thread(thread_id)

    def unarchive_thread(self, thread_id: str) -> None:
        if self._thread_state is None:
            raise RuntimeError("Archiving requires a thread state store")
        self._thread_state.unarchive_thread(thread_id)

    def thread_messages(self, thread_id: str) -> list[ThreadMessage]:
        return self._ledger.messages(thread_id)

    def ledger_stats(self) -> LedgerStats:
        return self._ledger.stats()

    # Inbox views

    def inbox_items(self) -> list[InboxItem]:
        return self._inbox.items()

    def unread_count(self) -> int:
        return self._inbox.unread_count()

    def mark_inbox_read(self) -> bool:
        return self._inbox.mark_read(self._clock())

    def inbox_cursor(self) -> float:
        return self._cursor.cursor()
