"""Roster aggregation (core domain).

Status records describe who is active in a scope using three tag families:
membership, capability A (model) and capability B (tool). Each scope keeps
a folded tag state, and the roster is rebuilt from it in a fixed pass order.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Iterable, Optional

from core.config import KIND_ROSTER_STATUS, RosterConfig
from core.coordinates import scope_key
from core.models import CompositeEntity, Record, Roster
from core.tags import (
    CapabilityATag,
    CapabilityBTag,
    MembershipTag,
    ParsedTag,
    of_type,
    parse_tags,
)

LOGGER = logging.getLogger(__name__)


def fold_entities(parsed: Iterable[ParsedTag]) -> dict[str, CompositeEntity]:
    """Fold typed tags into entities keyed by display name.

    Passes run membership -> capability A -> capability B because the
    capability passes only update entities the membership pass created.
    Capability targets without a membership entry are dropped.
    """

    parsed = list(parsed)
    entities: dict[str, CompositeEntity] = {}

    for tag in of_type(parsed, MembershipTag):
        entities[tag.display_name] = CompositeEntity(
            identity=tag.identity,
            display_name=tag.display_name,
            is_global=tag.is_global,
        )

    for tag in of_type(parsed, CapabilityATag):
        for name in tag.targets:
            entity = entities.get(name)
            if entity is not None:
                entities[name] = replace(entity, capability_a=tag.value)

    for tag in of_type(parsed, CapabilityBTag):
        for name in tag.targets:
            entity = entities.get(name)
            if entity is not None:
                entities[name] = replace(entity, capabilities_b=entity.capabilities_b | {tag.value})

    return entities


class ScopeState:
    """Folded tag state of one scope.

    Only the newest membership per display name, the newest capability A per
    target and the distinct capability B pairs are kept, so memory is bounded
    by the roster's size rather than by how many status records arrived.
    Ordering uses ``(created_at, id, tag position)``, which makes the result
    independent of arrival order and re-ingesting a record a no-op.
    """

    def __init__(self) -> None:
        self.created_at = 0
        self.memberships: dict[str, tuple[tuple, MembershipTag]] = {}
        self.capability_a: dict[str, tuple[tuple, str]] = {}
        self.capability_b: set[tuple[str, str]] = set()

    def __len__(self) -> int:
        return len(self.memberships) + len(self.capability_a) + len(self.capability_b)

    def apply(self, record: Record) -> bool:
        """Fold one status record in; return True when the state changed."""

        changed = False
        if record.created_at > self.created_at:
            self.created_at = record.created_at
            changed = True

        for position, tag in enumerate(parse_tags(record.tags)):
            order = (record.created_at, record.id, position)
            if isinstance(tag, MembershipTag):
                current = self.memberships.get(tag.display_name)
                if current is None or order > current[0]:
                    self.memberships[tag.display_name] = (order, tag)
                    changed = True
            elif isinstance(tag, CapabilityATag):
                for name in tag.targets:
                    current = self.capability_a.get(name)
                    if current is None or order > current[0]:
                        self.capability_a[name] = (order, tag.value)
                        changed = True
            elif isinstance(tag, CapabilityBTag):
                for name in tag.targets:
                    pair = (tag.value, name)
                    if pair not in self.capability_b:
                        self.capability_b.add(pair)
                        changed = True
        return changed

    def parsed(self) -> list[ParsedTag]:
        """Typed tags equivalent to the folded state, in fold order."""

        parsed: list[ParsedTag] = [
            tag for _, tag in sorted(self.memberships.values(), key=lambda item: item[0])
        ]
        parsed.extend(
            CapabilityATag(value=value, targets=(name,))
            for name, (_, value) in sorted(self.capability_a.items())
        )
        parsed.extend(
            CapabilityBTag(value=value, targets=(name,))
            for value, name in sorted(self.capability_b)
        )
        return parsed


def build_roster(scope: str, state: ScopeState, stale_after_seconds: int) -> Roster:
    return Roster(
        scope_key=scope,
        entities=fold_entities(state.parsed()),
        created_at=state.created_at,
        stale_after_seconds=stale_after_seconds,
    )


class RosterAggregator:
    """Keeps one roster per scope and swaps snapshots atomically."""

    def __init__(self, config: Optional[RosterConfig] = None) -> None:
        self._config = config or RosterConfig()
        self._lock = threading.Lock()
        self._states: dict[str, ScopeState] = {}
        self._snapshot: dict[str, Roster] = {}

    def ingest(self, record: Record) -> Optional[Roster]:
        """Add a status record; return the updated roster, or None if nothing changed."""

        if record.kind != KIND_ROSTER_STATUS:
            return None
        scope = scope_key(record)
        if scope is None:
            LOGGER.debug("Roster record %s has no scope tag, skipping", record.id)
            return None

        with self._lock:
            state = self._states.get(scope)
            is_new = state is None
            if state is None:
                state = self._states[scope] = ScopeState()
            if not state.apply(record) and not is_new:
                return None
            roster = build_roster(scope, state, self._config.stale_after_seconds)
            snapshot = dict(self._snapshot)
            snapshot[scope] = roster
            self._snapshot = snapshot
        return roster

    def retained_size(self, scope: str) -> int:
        """Number of folded tag entries held for a scope."""

        state = self._states.get(scope)
        return len(state) if state is not None else 0

    def roster(self, scope: str) -> Optional[Roster]:
        return self._snapshot.get(scope)

    def rosters(self) -> dict[str, Roster]:
        return self._snapshot

    def current_roster(self, scope: str) -> list[CompositeEntity]:
        roster = self._snapshot.get(scope)
        if roster is None:
            return []
        return sorted(roster.entities.values(), key=lambda entity: entity.display_name)

    def is_online(self, scope: str, now: float) -> bool:
        roster = self._snapshot.get(scope)
        return roster is not None and roster.is_online(now)

    def agent_name(self, identity: str) -> Optional[str]:
        """Resolve an identity to its display name across all scopes."""

        for scope in sorted(self._snapshot):
            for entity in self._snapshot[scope].entities.values():
                if entity.identity == identity:
                    return entity.display_name
        return None
