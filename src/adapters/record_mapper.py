"""JSON-to-core record mapping adapter.

This keeps the wire shape of events (``pubkey``, ``created_at``, nested tag
lists) out of the core pipeline.
"""

from __future__ import annotations

import json
from typing import Any

from core.models import Record


class RecordFormatError(ValueError):
    """Raised when a JSON event cannot be mapped to a Record."""


def _require(payload: dict, *names: str) -> Any:
    for name in names:
        if name in payload:
            return payload[name]
    raise RecordFormatError(f"Missing field: {names[0]}")


def _normalize_tags(raw_tags: Any) -> tuple[tuple[str, ...], ...]:
    if raw_tags is None:
        return ()
    if not isinstance(raw_tags, list):
        raise RecordFormatError("tags must be a list")
    tags = []
    for raw in raw_tags:
        # Non-list entries are dropped rather than failing the whole record.
        if not isinstance(raw, list) or not raw:
            continue
        tags.append(tuple(str(value) for value in raw))
    return tuple(tags)


def record_from_json(payload: Any) -> Record:
    """Build a core Record from a decoded JSON event."""

    if not isinstance(payload, dict):
        raise RecordFormatError("event must be a JSON object")

    record_id = _require(payload, "id")
    author = _require(payload, "pubkey", "author")
    if not isinstance(record_id, str) or not record_id:
        raise RecordFormatError("id must be a non-empty string")
    if not isinstance(author, str) or not author:
        raise RecordFormatError("pubkey must be a non-empty string")

    try:
        kind = int(_require(payload, "kind"))
        created_at = int(_require(payload, "created_at", "createdAt"))
    except (TypeError, ValueError) as exc:
        raise RecordFormatError(f"kind/created_at must be integers: {exc}") from exc

    content = payload.get("content") or ""
    if not isinstance(content, str):
        raise RecordFormatError("content must be a string")

    return Record(
        id=record_id,
        author=author,
        kind=kind,
        created_at=created_at,
        content=content,
        tags=_normalize_tags(payload.get("tags")),
    )


def record_from_line(line: str) -> Record:
    """Decode one JSON line into a Record."""

    try:
        payload = json.loads(line)
    except ValueError as exc:
        raise RecordFormatError(f"invalid JSON: {exc}") from exc
    return record_from_json(payload)


def record_to_json(record: Record) -> dict:
    """Inverse of ``record_from_json`` using the wire field names."""

    return {
        "id": record.id,
        "pubkey": record.author,
        "kind": record.kind,
        "created_at": record.created_at,
        "content": record.content,
        "tags": [list(tag) for tag in record.tags],
    }
