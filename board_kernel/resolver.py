"""
Board Kernel — Compatibility Resolver

Decides whether one resource may attach to another and how many more
instances are permitted. Closed world: a pair with no rule is never
eligible.

Evaluation order (first match wins):
  1. no rule for (source, target)          -> no_rule
  2. rule.can_attach is False              -> attach_forbidden
  3. max_count > 0 and current >= max      -> capacity_exceeded
  4. otherwise                             -> ok

is_required never blocks an attachment; it only feeds the
required-attachment queries and group validation below.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .catalog import ResourceType
from .domain_types import Assignment, BoxAttachmentRule, JobRowBox, LeafBox, Resource
from .rule_store import as_magnet_table

# ── Decision reasons ─────────────────────────────────────────
OK = "ok"
NO_RULE = "no_rule"
ATTACH_FORBIDDEN = "attach_forbidden"
CAPACITY_EXCEEDED = "capacity_exceeded"


@dataclass(frozen=True)
class AttachmentDecision:
    """
    eligible:     may one more ``source`` attach to ``target`` now
    max_allowed:  rule's max_count (0 = unlimited, also 0 when no rule)
    remaining:    slots left, None when unlimited
    """

    eligible: bool
    reason: str
    max_allowed: int = 0
    remaining: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "eligible": self.eligible,
            "reason": self.reason,
            "maxAllowed": self.max_allowed,
            "remaining": self.remaining,
        }


@dataclass(frozen=True)
class GroupValidation:
    is_valid: bool
    errors: Tuple[str, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Single-pair resolution
# ---------------------------------------------------------------------------

def resolve_attachment(rules, source, target, current_count: int = 0) -> AttachmentDecision:
    """Evaluate one (source -> target) attachment against the global rules."""
    _check_count(current_count)
    source, target = ResourceType(source), ResourceType(target)
    rule = as_magnet_table(rules).get(source, target)
    if rule is None:
        return AttachmentDecision(eligible=False, reason=NO_RULE, remaining=0)
    return _decide(rule.can_attach, rule.max_count, current_count)


def resolve_box_attachment(
    rules,
    box: JobRowBox,
    source,
    target,
    current_count: int = 0,
) -> AttachmentDecision:
    """
    Like resolve_attachment, but a leaf's local rule for the pair (both
    types allowed in the box) overrides can_attach. Capacity still comes
    from the global rule; a local rule without a global one is unlimited.
    Split boxes have no active local rules.
    """
    _check_count(current_count)
    source, target = ResourceType(source), ResourceType(target)
    local = _local_rule(box, source, target)
    if local is None:
        return resolve_attachment(rules, source, target, current_count)
    glob = as_magnet_table(rules).get(source, target)
    max_count = glob.max_count if glob is not None else 0
    return _decide(local.can_attach, max_count, current_count)


# ---------------------------------------------------------------------------
# Target-centric queries
# ---------------------------------------------------------------------------

def get_required_attachments(rules, target) -> List[ResourceType]:
    """Source types whose rule onto ``target`` is marked required."""
    return [r.source_type for r in as_magnet_table(rules).for_target(target) if r.is_required]


def get_valid_attachment_types(rules, target) -> List[ResourceType]:
    """Source types that may attach to ``target`` at all."""
    return [r.source_type for r in as_magnet_table(rules).for_target(target) if r.can_attach]


def has_required_attachments(rules, target, attached_types: Iterable) -> bool:
    present = {ResourceType(t) for t in attached_types}
    return all(t in present for t in get_required_attachments(rules, target))


def validate_attachment_group(rules, main_type, attached_types: Sequence) -> GroupValidation:
    """
    Check a target and the types attached to it: required sources present,
    every attached type allowed, no type over its max_count.
    """
    table = as_magnet_table(rules)
    attached = [ResourceType(t) for t in attached_types]
    errors: List[str] = []

    missing = [t for t in get_required_attachments(table, main_type) if t not in attached]
    if missing:
        errors.append(f"Missing required attachments: {', '.join(t.value for t in missing)}")

    counts = Counter(attached)
    for rtype in sorted(counts, key=lambda t: t.value):
        rule = table.get(rtype, main_type)
        if rule is None or not rule.can_attach:
            errors.append(f"{rtype.value} cannot attach to {ResourceType(main_type).value}")
        elif rule.max_count and counts[rtype] > rule.max_count:
            errors.append(f"Too many {rtype.value} attachments (max: {rule.max_count})")

    return GroupValidation(is_valid=not errors, errors=tuple(errors))


def count_attached(
    assignments: Iterable[Assignment],
    resources_by_id: Mapping[str, Resource],
    target_assignment_id: str,
    source_type,
) -> int:
    """Number of assignments of ``source_type`` attached to the target assignment."""
    stype = ResourceType(source_type)
    n = 0
    for a in assignments:
        if a.attached_to != target_assignment_id:
            continue
        res = resources_by_id.get(a.resource_id)
        if res is not None and res.type == stype:
            n += 1
    return n


def auto_attach_targets(box: JobRowBox, source) -> List[ResourceType]:
    """
    Targets a dropped ``source`` should auto-attach to inside ``box``:
    local rules with is_auto_attach, highest priority first.
    """
    if not isinstance(box, LeafBox):
        return []
    stype = ResourceType(source)
    picks: List[BoxAttachmentRule] = [
        r for r in box.attachment_rules
        if r.source_type == stype and r.is_auto_attach and r.can_attach
    ]
    picks.sort(key=lambda r: (-r.priority, r.target_type.value))
    return [r.target_type for r in picks]


def attachment_matrix(rules) -> Dict[str, Dict[str, AttachmentDecision]]:
    """source -> target -> decision for every configured pair (count 0)."""
    table = as_magnet_table(rules)
    out: Dict[str, Dict[str, AttachmentDecision]] = {}
    for rule in table:
        out.setdefault(rule.source_type.value, {})[rule.target_type.value] = (
            _decide(rule.can_attach, rule.max_count, 0)
        )
    return out


# ---------------------------------------------------------------------------
# Helpers (private)
# ---------------------------------------------------------------------------

def _decide(can_attach: bool, max_count: int, current_count: int) -> AttachmentDecision:
    if not can_attach:
        return AttachmentDecision(
            eligible=False, reason=ATTACH_FORBIDDEN, max_allowed=max_count, remaining=0,
        )
    if max_count == 0:
        return AttachmentDecision(eligible=True, reason=OK, max_allowed=0, remaining=None)
    remaining = max(max_count - current_count, 0)
    if current_count >= max_count:
        return AttachmentDecision(
            eligible=False, reason=CAPACITY_EXCEEDED, max_allowed=max_count, remaining=0,
        )
    return AttachmentDecision(eligible=True, reason=OK, max_allowed=max_count, remaining=remaining)


def _local_rule(box: JobRowBox, source, target) -> Optional[BoxAttachmentRule]:
    if not isinstance(box, LeafBox):
        return None
    key = (ResourceType(source), ResourceType(target))
    if key[0] not in box.allowed_types or key[1] not in box.allowed_types:
        return None
    for rule in box.attachment_rules:
        if rule.key == key:
            return rule
    return None


def _check_count(current_count: int) -> None:
    if isinstance(current_count, bool) or not isinstance(current_count, int):
        raise ValueError(f"current_count must be an int, got {current_count!r}")
    if current_count < 0:
        raise ValueError(f"current_count must be >= 0, got {current_count}")
