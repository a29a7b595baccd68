"""Read cursor tracking (core domain).

A cursor is one "last visited" timestamp per logical view. The store is
injected; failures there degrade to the in-memory value instead of
propagating.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from core.models import Record
from core.ports import CursorStore

LOGGER = logging.getLogger(__name__)


class ReadCursorTracker:
    """Owns the read cursor for a single view key."""

    def __init__(
        self,
        store: CursorStore,
        key: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._key = key
        self._clock = clock
        self._lock = threading.Lock()
        self._value: Optional[float] = None

    @property
    def key(self) -> str:
        return self._key

    def cursor(self) -> float:
        """Return the cursor, loading it or defaulting to now on first access."""

        with self._lock:
            if self._value is None:
                self._value = self._load()
            return self._value

    def _load(self) -> float:
        try:
            stored = self._store.load(self._key)
        except Exception:
            LOGGER.warning("Failed to load cursor %s, defaulting to now", self._key, exc_info=True)
            stored = None
        if stored is not None:
            return float(stored)
        # First use: the default is persisted so later runs keep the same cursor.
        default = self._clock()
        try:
            self._store.save(self._key, default)
        except Exception:
            LOGGER.warning("Failed to persist default cursor %s", self._key, exc_info=True)
        return default

    def mark_read(self, at: Optional[float] = None) -> bool:
        """Move the cursor to ``at`` (default now) and persist it.

        The in-memory value is updated even when persistence fails; the
        return value reports whether the store accepted the write. Earlier
        timestamps are accepted as-is.
        """

        value = self._clock() if at is None else float(at)
        with self._lock:
            self._value = value
        try:
            self._store.save(self._key, value)
        except Exception:
            LOGGER.warning("Failed to persist cursor %s", self._key, exc_info=True)
            return False
        LOGGER.info("Cursor %s marked read at %s", self._key, value)
        return True

    def is_unread(self, record: Record) -> bool:
        return record.created_at > self.cursor()
