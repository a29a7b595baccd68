"""Tag lookup and typed tag parsing (core domain).

Raw tags are loosely-typed positional lists. ``TagIndex`` gives uniform
lookups that return ``ParsedValue`` instead of raising, and ``parse_tags``
converts the tag families the engine cares about into typed records so the
aggregators never index into raw lists themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Union

from core.models import Record

TAG_MEMBERSHIP = "agent"
TAG_CAPABILITY_A = "model"
TAG_CAPABILITY_B = "tool"
TAG_MENTION = "p"
TAG_SUGGESTION = "suggestion"
TAG_COLLECTION = "a"
TAG_IDENTIFIER = "d"
TAG_TITLE = "title"
TAG_SUMMARY = "summary"
TAG_PHASE = "phase"
TAG_REPLY_COUNT = "reply_count"
TAG_CLIENT = "client"

TAG_ROOT = "E"
TAG_PARENT = "e"

# Root reference first, parent reference as the fallback.
REFERENCE_TAG_NAMES = (TAG_ROOT, TAG_PARENT)

GLOBAL_FLAG = "global"
AGENT_MARKER = "agent"


@dataclass(frozen=True)
class ParsedValue:
    """A tag value that is either present or absent."""

    value: Optional[str] = None

    @classmethod
    def absent(cls) -> "ParsedValue":
        return cls(None)

    @property
    def present(self) -> bool:
        return self.value is not None

    def or_else(self, default: Optional[str] = None) -> Optional[str]:
        return self.value if self.value is not None else default

    def non_empty(self) -> "ParsedValue":
        """Treat an empty string as absent."""

        return self if self.value else ParsedValue.absent()

    def as_int(self) -> Optional[int]:
        if self.value is None:
            return None
        try:
            return int(self.value)
        except ValueError:
            return None


class TagIndex:
    """Read-only lookups over one record's tags.

    A tag with fewer than two elements (name plus at least one value) is
    treated as absent for every lookup.
    """

    def __init__(self, tags: Iterable[Iterable[str]]) -> None:
        self._by_name: dict[str, list[tuple[str, ...]]] = {}
        for raw in tags:
            tag = tuple(raw)
            if len(tag) < 2:
                continue
            self._by_name.setdefault(tag[0], []).append(tag)

    @classmethod
    def of(cls, record: Record) -> "TagIndex":
        return cls(record.tags)

    def has(self, name: str) -> bool:
        return name in self._by_name

    def first_value(self, name: str) -> ParsedValue:
        tags = self._by_name.get(name)
        if not tags:
            return ParsedValue.absent()
        return ParsedValue(tags[0][1])

    def value_at(self, name: str, position: int) -> ParsedValue:
        """Return the element at ``position`` of the first tag named ``name``."""

        tags = self._by_name.get(name)
        if not tags or position < 1 or position >= len(tags[0]):
            return ParsedValue.absent()
        return ParsedValue(tags[0][position])

    def all_values(self, name: str) -> list[str]:
        values: list[str] = []
        for tag in self._by_name.get(name, []):
            values.extend(tag[1:])
        return values

    def tags_named(self, name: str) -> list[tuple[str, ...]]:
        return list(self._by_name.get(name, []))

    def reference(self, names: Iterable[str] = REFERENCE_TAG_NAMES) -> ParsedValue:
        """Return the first non-empty reference value, trying ``names`` in order."""

        for name in names:
            value = self.first_value(name).non_empty()
            if value.present:
                return value
        return ParsedValue.absent()


@dataclass(frozen=True)
class MembershipTag:
    identity: str
    display_name: str
    is_global: bool


@dataclass(frozen=True)
class CapabilityATag:
    value: str
    targets: tuple[str, ...]


@dataclass(frozen=True)
class CapabilityBTag:
    value: str
    targets: tuple[str, ...]


@dataclass(frozen=True)
class ReferenceTag:
    name: str
    value: str


@dataclass(frozen=True)
class MentionTag:
    identity: str
    marker: Optional[str]


@dataclass(frozen=True)
class SuggestionTag:
    value: str


ParsedTag = Union[
    MembershipTag, CapabilityATag, CapabilityBTag, ReferenceTag, MentionTag, SuggestionTag
]


def _parse_membership(tag: tuple[str, ...]) -> Optional[ParsedTag]:
    # ["agent", <identity>, <display name>, "global"?]
    if len(tag) < 3 or not tag[1] or not tag[2]:
        return None
    return MembershipTag(
        identity=tag[1],
        display_name=tag[2],
        is_global=len(tag) > 3 and tag[3] == GLOBAL_FLAG,
    )


def _parse_capability(factory) -> Callable[[tuple[str, ...]], Optional[ParsedTag]]:
    # [<name>, <value>, <display name>, ...]: value first, then its targets.
    def parse(tag: tuple[str, ...]) -> Optional[ParsedTag]:
        if len(tag) < 3 or not tag[1]:
            return None
        return factory(value=tag[1], targets=tuple(tag[2:]))

    return parse


def _parse_reference(tag: tuple[str, ...]) -> Optional[ParsedTag]:
    if not tag[1]:
        return None
    return ReferenceTag(name=tag[0], value=tag[1])


def _parse_mention(tag: tuple[str, ...]) -> Optional[ParsedTag]:
    # ["p", <identity>, <relay hint>?, <marker>?]
    if not tag[1]:
        return None
    marker = tag[3] if len(tag) > 3 and tag[3] else None
    return MentionTag(identity=tag[1], marker=marker)


def _parse_suggestion(tag: tuple[str, ...]) -> Optional[ParsedTag]:
    return SuggestionTag(value=tag[1])


_PARSERS: dict[str, Callable[[tuple[str, ...]], Optional[ParsedTag]]] = {
    TAG_MEMBERSHIP: _parse_membership,
    TAG_CAPABILITY_A: _parse_capability(CapabilityATag),
    TAG_CAPABILITY_B: _parse_capability(CapabilityBTag),
    TAG_MENTION: _parse_mention,
    TAG_SUGGESTION: _parse_suggestion,
}
for _name in REFERENCE_TAG_NAMES:
    _PARSERS[_name] = _parse_reference


def parse_tags(tags: Iterable[Iterable[str]]) -> tuple[ParsedTag, ...]:
    """Convert raw tags into typed tag records, dropping unknown shapes.

    Tag order is preserved so later passes can rely on it.
    """

    parsed: list[ParsedTag] = []
    for raw in tags:
        tag = tuple(raw)
        if len(tag) < 2:
            continue
        parser = _PARSERS.get(tag[0])
        if parser is None:
            continue
        item = parser(tag)
        if item is not None:
            parsed.append(item)
    return tuple(parsed)


def of_type(parsed: Iterable[ParsedTag], tag_type: type) -> list:
    return [item for item in parsed if isinstance(item, tag_type)]
