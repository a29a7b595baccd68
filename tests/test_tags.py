from __future__ import annotations

from core.tags import (
    CapabilityATag,
    CapabilityBTag,
    MembershipTag,
    MentionTag,
    ParsedValue,
    ReferenceTag,
    SuggestionTag,
    TagIndex,
    parse_tags,
)


def test_first_value_and_absent_tags() -> None:
    index = TagIndex([["title", "Hello"], ["title", "Second"], ["empty"]])

    assert index.first_value("title") == ParsedValue("Hello")
    assert not index.first_value("missing").present
    # A bare name without values is treated as absent.
    assert not index.first_value("empty").present
    assert not index.has("empty")


def test_all_values_flattens_every_tag() -> None:
    index = TagIndex([["p", "a", "relay"], ["p", "b"], ["x"]])

    assert index.all_values("p") == ["a", "relay", "b"]
    assert index.all_values("x") == []


def test_tags_named_and_positional_access() -> None:
    index = TagIndex([["tool", "search", "Alice", "Bob"], ["tool", "shell", "Alice"]])

    assert index.tags_named("tool") == [("tool", "search", "Alice", "Bob"), ("tool", "shell", "Alice")]
    assert index.value_at("tool", 3).value == "Bob"
    assert not index.value_at("tool", 9).present
    assert not index.value_at("tool", 0).present


def test_reference_prefers_root_tag_and_skips_empty() -> None:
    assert TagIndex([["e", "parent"], ["E", "root"]]).reference().value == "root"
    assert TagIndex([["E", ""], ["e", "parent"]]).reference().value == "parent"
    assert not TagIndex([["p", "someone"]]).reference().present


def test_parsed_value_helpers() -> None:
    assert ParsedValue("12").as_int() == 12
    assert ParsedValue("twelve").as_int() is None
    assert ParsedValue.absent().or_else("fallback") == "fallback"
    assert not ParsedValue("").non_empty().present


def test_parse_tags_builds_typed_records_in_order() -> None:
    parsed = parse_tags(
        [
            ["agent", "pk1", "Alice", "global"],
            ["model", "gpt-4", "Alice", "Bob"],
            ["tool", "search", "Alice"],
            ["E", "root-1"],
            ["p", "viewer", "", "agent"],
            ["suggestion", "Option A"],
            ["unknown", "value"],
        ]
    )

    assert parsed == (
        MembershipTag(identity="pk1", display_name="Alice", is_global=True),
        CapabilityATag(value="gpt-4", targets=("Alice", "Bob")),
        CapabilityBTag(value="search", targets=("Alice",)),
        ReferenceTag(name="E", value="root-1"),
        MentionTag(identity="viewer", marker="agent"),
        SuggestionTag(value="Option A"),
    )


def test_parse_tags_rejects_short_shapes() -> None:
    parsed = parse_tags(
        [
            ["agent", "pk1"],
            ["agent", "", "Alice"],
            ["model", "gpt-4"],
            ["tool", "", "Alice"],
            ["E"],
            ["p", ""],
        ]
    )

    assert parsed == ()
