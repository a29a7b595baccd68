"""JSON Lines record feed adapter.

Reads one JSON event per line and yields the records matching a query. With
``follow`` enabled the file is tailed like a live subscription until
``close()`` is called; otherwise the subscription ends at end of file.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import AsyncIterator

from adapters.record_mapper import RecordFormatError, record_from_line
from core.models import Record
from core.ports import FeedQuery

LOGGER = logging.getLogger(__name__)


class JsonlRecordFeed:
    """RecordFeed backed by a JSONL file."""

    def __init__(self, path: str, follow: bool = False, poll_interval: float = 1.0) -> None:
        self._path = path
        self._follow = follow
        self._poll_interval = poll_interval
        self._closed = False

    def close(self) -> None:
        self._closed = True

    async def subscribe(self, query: FeedQuery) -> AsyncIterator[Record]:
        if not os.path.exists(self._path):
            LOGGER.warning("Feed file not found: %s", self._path)
            return

        with open(self._path, "r", encoding="utf-8") as handle:
            line_number = 0
            pending = ""
            while not self._closed:
                chunk = handle.readline()
                if not chunk:
                    if not self._follow:
                        break
                    await asyncio.sleep(self._poll_interval)
                    continue
                pending += chunk
                # A line without a newline may still be being written.
                if self._follow and not pending.endswith("\n"):
                    continue
                line, pending = pending.strip(), ""
                line_number += 1
                if not line:
                    continue
                try:
                    record = record_from_line(line)
                except RecordFormatError as exc:
                    LOGGER.warning("Skipping line %s of %s: %s", line_number, self._path, exc)
                    continue
                if query.matches(record):
                    yield record
