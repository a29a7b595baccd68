"""Helpers for working with collection coordinates.

A coordinate has the shape ``<kind>:<author>:<identifier>`` and is what
records carry in their collection tag to say which collection (and which
roster scope) they belong to.
"""

from __future__ import annotations

from typing import Optional, Tuple

from core.models import Record
from core.tags import TAG_COLLECTION, TAG_IDENTIFIER, TagIndex

SEPARATOR = ":"


def build_coordinate(kind: int, author: str, identifier: str) -> str:
    """Return the coordinate string for a collection."""

    return f"{kind}{SEPARATOR}{author}{SEPARATOR}{identifier}"


def split_coordinate(coordinate: str) -> Optional[Tuple[int, str, str]]:
    """Split a coordinate into (kind, author, identifier), or None if malformed."""

    parts = coordinate.split(SEPARATOR, 2)
    if len(parts) != 3 or not parts[1]:
        return None
    try:
        kind = int(parts[0])
    except ValueError:
        return None
    return kind, parts[1], parts[2]


def collection_key(record: Record) -> Optional[str]:
    """Return the collection a record belongs to, if it names one."""

    return TagIndex.of(record).first_value(TAG_COLLECTION).non_empty().value


def scope_key(record: Record) -> Optional[str]:
    """Return the roster scope of a status record.

    The collection coordinate wins; a bare identifier tag is accepted for
    status records that only carry the collection's identifier.
    """

    index = TagIndex.of(record)
    coordinate = index.first_value(TAG_COLLECTION).non_empty()
    if coordinate.present:
        return coordinate.value
    return index.first_value(TAG_IDENTIFIER).non_empty().value
