from __future__ import annotations

from core.coordinates import build_coordinate, collection_key, scope_key, split_coordinate
from core.models import Record


def _record(tags: list[list[str]]) -> Record:
    return Record(
        id="r1",
        author="pk",
        kind=24010,
        created_at=100,
        content="",
        tags=tuple(tuple(tag) for tag in tags),
    )


def test_build_and_split_coordinate_roundtrip() -> None:
    coordinate = build_coordinate(31933, "pk-owner", "my-project")
    assert coordinate == "31933:pk-owner:my-project"
    assert split_coordinate(coordinate) == (31933, "pk-owner", "my-project")


def test_split_coordinate_keeps_colons_in_identifier() -> None:
    assert split_coordinate("31933:pk:a:b") == (31933, "pk", "a:b")


def test_split_coordinate_rejects_malformed() -> None:
    assert split_coordinate("not-a-coordinate") is None
    assert split_coordinate("x:pk:id") is None
    assert split_coordinate("31933::id") is None


def test_collection_key_reads_a_tag() -> None:
    assert collection_key(_record([["a", "31933:pk:proj"]])) == "31933:pk:proj"
    assert collection_key(_record([["a", ""]])) is None
    assert collection_key(_record([])) is None


def test_scope_key_prefers_coordinate_over_identifier() -> None:
    assert scope_key(_record([["d", "proj"], ["a", "31933:pk:proj"]])) == "31933:pk:proj"
    assert scope_key(_record([["d", "proj"]])) == "proj"
    assert scope_key(_record([["title", "x"]])) is None
