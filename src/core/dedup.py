"""Deduplication helpers (core domain)."""

from __future__ import annotations

from typing import Optional

from core.models import Record
from core.tags import TagIndex


def is_newer(candidate: Record, current: Optional[Record]) -> bool:
    """Return True if ``candidate`` should replace ``current``.

    Newest createdAt wins; equal timestamps fall back to the larger id so the
    winner does not depend on arrival order. The same record never replaces
    itself.
    """

    if current is None:
        return True
    return (candidate.created_at, candidate.id) > (current.created_at, current.id)


def group_key(record: Record) -> str:
    """Return the dedup group for a record.

    Records sharing a reference collapse together; a record without one is
    its own group, keyed by id.
    """

    reference = TagIndex.of(record).reference()
    if reference.present:
        return f"ref:{reference.value}"
    return f"id:{record.id}"
