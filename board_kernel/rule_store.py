"""
Board Kernel — Compatibility Rule Store

Keyed, immutable tables of the two global rule kinds:

  MagnetRuleTable   (source_type, target_type) -> MagnetInteractionRule
  DropRuleTable     row_type                   -> DropRule

Lookups are by key. Mutation is wholesale and returns a new table
(upsert / remove / replace_all); the original table is never touched.
Iteration order is stable (sorted by key) so encoders and hashes are
deterministic.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from .catalog import ResourceType, RowType
from .domain_types import DropRule, MagnetInteractionRule

PairKey = Tuple[ResourceType, ResourceType]


class MagnetRuleTable:
    """Global magnet interaction rules keyed by ordered (source, target) pair."""

    def __init__(self, rules: Iterable[MagnetInteractionRule] = ()) -> None:
        index: Dict[PairKey, MagnetInteractionRule] = {}
        for rule in rules:
            # Later entries win, matching replace-by-key semantics.
            index[rule.key] = rule
        self._index = index

    # ── Queries ──────────────────────────────────────────────

    def get(self, source, target) -> Optional[MagnetInteractionRule]:
        try:
            key = (ResourceType(source), ResourceType(target))
        except ValueError:
            return None
        return self._index.get(key)

    def for_target(self, target) -> List[MagnetInteractionRule]:
        """Rules whose target is ``target``, sorted by source."""
        t = ResourceType(target)
        return [r for r in self if r.target_type == t]

    def for_source(self, source) -> List[MagnetInteractionRule]:
        s = ResourceType(source)
        return [r for r in self if r.source_type == s]

    def rules(self) -> List[MagnetInteractionRule]:
        return list(self)

    # ── Wholesale mutation (returns new tables) ──────────────

    def upsert(self, rule: MagnetInteractionRule) -> "MagnetRuleTable":
        return MagnetRuleTable(list(self._index.values()) + [rule])

    def remove(self, source, target) -> "MagnetRuleTable":
        key = (ResourceType(source), ResourceType(target))
        return MagnetRuleTable(r for k, r in self._index.items() if k != key)

    def replace_all(self, rules: Iterable[MagnetInteractionRule]) -> "MagnetRuleTable":
        return MagnetRuleTable(rules)

    # ── Container protocol ───────────────────────────────────

    def __iter__(self) -> Iterator[MagnetInteractionRule]:
        for key in sorted(self._index, key=lambda k: (k[0].value, k[1].value)):
            yield self._index[key]

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, key) -> bool:
        try:
            source, target = key
        except (TypeError, ValueError):
            return False
        return self.get(source, target) is not None

    def __eq__(self, other) -> bool:
        if not isinstance(other, MagnetRuleTable):
            return NotImplemented
        return self._index == other._index

    def __repr__(self) -> str:
        return f"MagnetRuleTable({len(self)} rules)"


class DropRuleTable:
    """Row-level drop allow-lists keyed by RowType."""

    def __init__(self, rules: Iterable[DropRule] = ()) -> None:
        index: Dict[RowType, DropRule] = {}
        for rule in rules:
            index[rule.row_type] = rule
        self._index = index

    def get(self, row_type) -> Optional[DropRule]:
        try:
            return self._index.get(RowType(row_type))
        except ValueError:
            return None

    def allowed_types(self, row_type) -> FrozenSet[ResourceType]:
        """Allowed types for a row; empty when no rule exists (closed world)."""
        rule = self.get(row_type)
        return rule.allowed_types if rule is not None else frozenset()

    def rules(self) -> List[DropRule]:
        return list(self)

    def upsert(self, rule: DropRule) -> "DropRuleTable":
        return DropRuleTable(list(self._index.values()) + [rule])

    def remove(self, row_type) -> "DropRuleTable":
        rtype = RowType(row_type)
        return DropRuleTable(r for k, r in self._index.items() if k != rtype)

    def replace_all(self, rules: Iterable[DropRule]) -> "DropRuleTable":
        return DropRuleTable(rules)

    def __iter__(self) -> Iterator[DropRule]:
        for key in sorted(self._index, key=lambda k: k.value):
            yield self._index[key]

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, row_type) -> bool:
        return self.get(row_type) is not None

    def __eq__(self, other) -> bool:
        if not isinstance(other, DropRuleTable):
            return NotImplemented
        return self._index == other._index

    def __repr__(self) -> str:
        return f"DropRuleTable({len(self)} rows)"


def as_magnet_table(rules) -> MagnetRuleTable:
    """Accept a table or any iterable of rules."""
    if isinstance(rules, MagnetRuleTable):
        return rules
    return MagnetRuleTable(rules or ())


def as_drop_table(rules) -> DropRuleTable:
    if isinstance(rules, DropRuleTable):
        return rules
    return DropRuleTable(rules or ())
