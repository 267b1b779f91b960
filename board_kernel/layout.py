"""
Board Kernel — Row/Box Layout Mutations

ALL layout-tree mutation logic lives here.
Every operation is pure: (config, args) -> MutationResult.

Contract:
  - The input config is never modified (all types are frozen).
  - An applied mutation returns a new config with version + 1.
  - Anything else (unchanged / invalid_path / rejected) returns the
    caller's config object itself. Nothing is ever partially applied.
  - Paths that do not resolve are a defined no-op (invalid_path),
    never an exception.
  - Malformed update payloads (unknown keys, bad values, attachment
    rules outside the box's allow-list) raise LayoutValidationError.

A resource type is allowed by at most one box of a row. Allowing a type
on one box strips it from every other box at every nesting level,
including dormant settings of split boxes.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable, Mapping, Optional, Tuple

from .catalog import EQUIPMENT_TYPES, PERSONNEL_TYPES, ResourceType
from .domain_types import (
    APPLIED,
    INVALID_PATH,
    REJECTED,
    UNCHANGED,
    BoxAttachmentRule,
    JobRowBox,
    JobRowConfig,
    LeafBox,
    MutationResult,
    SplitBox,
)
from .invariants import InvariantViolationError, check_attachment_rules
from .tree import Path, iter_boxes, normalize_path, replace_at, resolve_path

# ── Defaults ──────────────────────────────────────────────────
SPLIT_ROW_MAX_COUNT: int = 10
NEW_BOX_MAX_COUNT: int = 5
SUB_BOX_NAMES: Tuple[str, str] = ("Left", "Right")

UPDATABLE_FIELDS = frozenset({"name", "max_count", "allowed_types", "attachment_rules"})


class LayoutValidationError(InvariantViolationError):
    """Raised when a layout update payload is malformed."""


# ---------------------------------------------------------------------------
# Row-level operations
# ---------------------------------------------------------------------------

def split_row(
    config: JobRowConfig,
    first_name: str = "Equipment",
    second_name: str = "Personnel",
    default_partition: bool = True,
) -> MutationResult:
    """
    Split an unsplit row into exactly two boxes.

    With default_partition the first box allows every equipment/vehicle
    type and the second every personnel type; the halves are disjoint.
    """
    op = "split_row"
    if config.is_split:
        return _noop(config, REJECTED, "row is already split", op)
    _require_name(first_name)
    _require_name(second_name)

    prefix = f"{config.job_id}-{config.row_type.value}"
    first = LeafBox(
        id=f"{prefix}-box1",
        name=first_name,
        allowed_types=EQUIPMENT_TYPES if default_partition else frozenset(),
        max_count=SPLIT_ROW_MAX_COUNT,
    )
    second = LeafBox(
        id=f"{prefix}-box2",
        name=second_name,
        allowed_types=PERSONNEL_TYPES if default_partition else frozenset(),
        max_count=SPLIT_ROW_MAX_COUNT,
    )
    return _applied(config, (first, second), op)


def unsplit_row(config: JobRowConfig) -> MutationResult:
    """Discard every box. Destructive: configured box rules are lost."""
    op = "unsplit_row"
    if not config.is_split:
        return _noop(config, UNCHANGED, "row is not split", op)
    return _applied(config, (), op)


def add_box(config: JobRowConfig, name: Optional[str] = None) -> MutationResult:
    """Append an empty top-level box (max_count 5)."""
    op = "add_box"
    taken = {b.id for _, b in iter_boxes(config.boxes)}
    n = len(config.boxes) + 1
    box_id = f"{config.job_id}-{config.row_type.value}-box{n}"
    while box_id in taken:
        n += 1
        box_id = f"{config.job_id}-{config.row_type.value}-box{n}"
    if name is None:
        name = f"Box {len(config.boxes) + 1}"
    _require_name(name)
    box = LeafBox(id=box_id, name=name, max_count=NEW_BOX_MAX_COUNT)
    return _applied(config, config.boxes + (box,), op)


def remove_box(config: JobRowConfig, index: int) -> MutationResult:
    """Remove a top-level box. The last box of a split row cannot be removed."""
    op = "remove_box"
    norm = normalize_path((index,))
    if norm is None or index >= len(config.boxes):
        return _noop(config, INVALID_PATH, f"no top-level box at index {index!r}", op)
    if len(config.boxes) == 1:
        return _noop(
            config, REJECTED,
            "cannot remove the last box of a split row; unsplit the row instead", op,
        )
    boxes = config.boxes[:index] + config.boxes[index + 1:]
    return _applied(config, boxes, op)


# ---------------------------------------------------------------------------
# Path-addressed operations
# ---------------------------------------------------------------------------

def split_box(config: JobRowConfig, path) -> MutationResult:
    """
    Split the leaf at ``path`` into Left/Right children.

    Children get empty allow-lists and ceil(N/2) / floor(N/2) of the
    parent's max_count. The leaf's own settings become dormant.
    """
    op = "split_box"
    norm, box = _locate(config, path)
    if box is None:
        return _noop(config, INVALID_PATH, f"path {_fmt(path)} does not resolve", op)
    if isinstance(box, SplitBox):
        return _noop(config, REJECTED, f"box {box.id!r} is already split", op)

    taken = {b.id for _, b in iter_boxes(config.boxes)}
    left_max = (box.max_count + 1) // 2
    right_max = box.max_count // 2
    children = (
        LeafBox(id=_unique_id(f"{box.id}-1", taken), name=SUB_BOX_NAMES[0], max_count=left_max),
        LeafBox(id=_unique_id(f"{box.id}-2", taken), name=SUB_BOX_NAMES[1], max_count=right_max),
    )
    split = SplitBox(
        id=box.id,
        name=box.name,
        sub_boxes=children,
        max_count=box.max_count,
        dormant_allowed_types=box.allowed_types,
        dormant_attachment_rules=box.attachment_rules,
    )
    return _applied(config, replace_at(config.boxes, norm, lambda _b: split), op)


def unsplit_box(config: JobRowConfig, path) -> MutationResult:
    """Collapse the split box at ``path`` back to a leaf; its subtree is discarded."""
    op = "unsplit_box"
    norm, box = _locate(config, path)
    if box is None:
        return _noop(config, INVALID_PATH, f"path {_fmt(path)} does not resolve", op)
    if isinstance(box, LeafBox):
        return _noop(config, UNCHANGED, f"box {box.id!r} is not split", op)

    leaf = LeafBox(
        id=box.id,
        name=box.name,
        allowed_types=box.dormant_allowed_types,
        max_count=box.max_count,
        attachment_rules=box.dormant_attachment_rules,
    )
    return _applied(config, replace_at(config.boxes, norm, lambda _b: leaf), op)


def remove_sub_box(config: JobRowConfig, path) -> MutationResult:
    """
    Remove the box at ``path``. Top-level paths behave like remove_box;
    the last child of a split box cannot be removed (unsplit it instead).
    """
    op = "remove_sub_box"
    norm, box = _locate(config, path)
    if box is None:
        return _noop(config, INVALID_PATH, f"path {_fmt(path)} does not resolve", op)
    if len(norm) == 1:
        result = remove_box(config, norm[0])
        return replace(result, operation=op)

    parent = resolve_path(config.boxes, norm[:-1])
    if len(parent.sub_boxes) == 1:
        return _noop(
            config, REJECTED,
            f"cannot remove the last sub-box of {parent.id!r}; unsplit it instead", op,
        )
    idx = norm[-1]

    def _drop(p: JobRowBox) -> JobRowBox:
        return replace(p, sub_boxes=p.sub_boxes[:idx] + p.sub_boxes[idx + 1:])

    return _applied(config, replace_at(config.boxes, norm[:-1], _drop), op)


def update_box(
    config: JobRowConfig,
    path,
    updates: Optional[Mapping[str, Any]] = None,
    **fields: Any,
) -> MutationResult:
    """
    Apply a partial update to the box at ``path``.

    Fields may be passed as a mapping, as keywords, or both.
    Updatable fields: name, max_count, allowed_types, attachment_rules.
    allowed_types / attachment_rules are rejected on split boxes (inert).
    Narrowing allowed_types drops attachment rules that mention removed
    types, unless attachment_rules is part of the same update.
    """
    op = "update_box"
    updates = {**(updates or {}), **fields}
    norm, box = _locate(config, path)
    if box is None:
        return _noop(config, INVALID_PATH, f"path {_fmt(path)} does not resolve", op)

    unknown = set(updates) - UPDATABLE_FIELDS
    if unknown:
        raise LayoutValidationError(
            "update_fields",
            f"Unknown box fields {sorted(unknown)}; allowed: {sorted(UPDATABLE_FIELDS)}",
        )

    changes: dict = {}
    if "name" in updates:
        _require_name(updates["name"])
        changes["name"] = updates["name"]
    if "max_count" in updates:
        changes["max_count"] = _require_count(updates["max_count"])

    touches_types = "allowed_types" in updates or "attachment_rules" in updates
    if touches_types and isinstance(box, SplitBox):
        return _noop(
            config, REJECTED,
            f"box {box.id!r} is split; its allow-list and rules are inert", op,
        )

    added: frozenset = frozenset()
    if isinstance(box, LeafBox) and touches_types:
        allowed = box.allowed_types
        if "allowed_types" in updates:
            allowed = _coerce_types(updates["allowed_types"])
            changes["allowed_types"] = allowed
            added = allowed
        if "attachment_rules" in updates:
            rules = _coerce_rules(updates["attachment_rules"])
        else:
            rules = tuple(
                r for r in box.attachment_rules
                if r.source_type in allowed and r.target_type in allowed
            )
        try:
            check_attachment_rules(rules, allowed, box.id)
        except InvariantViolationError as exc:
            raise LayoutValidationError(exc.rule, exc.detail) from exc
        changes["attachment_rules"] = rules

    new_box = replace(box, **changes)
    if new_box == box:
        return _noop(config, UNCHANGED, "update matches current values", op)

    boxes = replace_at(config.boxes, norm, lambda _b: new_box)
    if added:
        boxes = _strip_types(boxes, (), norm, added)
    return _applied(config, boxes, op)


def upsert_box_attachment_rule(
    config: JobRowConfig, path, rule: BoxAttachmentRule | Mapping[str, Any],
) -> MutationResult:
    """
    Replace-or-append a leaf's local rule, keyed by (source, target).
    A field mapping is accepted in place of a BoxAttachmentRule.
    """
    op = "upsert_box_attachment_rule"
    norm, box = _locate(config, path)
    if box is None:
        return _noop(config, INVALID_PATH, f"path {_fmt(path)} does not resolve", op)
    if isinstance(box, SplitBox):
        return _noop(config, REJECTED, f"box {box.id!r} is split; its rules are inert", op)

    rule = _coerce_rules([rule])[0]
    rules = [r for r in box.attachment_rules if r.key != rule.key]
    if len(rules) == len(box.attachment_rules):
        rules.append(rule)
    else:
        at = next(i for i, r in enumerate(box.attachment_rules) if r.key == rule.key)
        rules.insert(at, rule)
    result = update_box(config, norm, {"attachment_rules": rules})
    return replace(result, operation=op)


# ---------------------------------------------------------------------------
# Helpers (private)
# ---------------------------------------------------------------------------

def _locate(config: JobRowConfig, path) -> Tuple[Optional[Path], Optional[JobRowBox]]:
    norm = normalize_path(path)
    if not norm:
        return None, None
    return norm, resolve_path(config.boxes, norm)


def _applied(config: JobRowConfig, boxes, op: str) -> MutationResult:
    new_config = JobRowConfig(
        job_id=config.job_id,
        row_type=config.row_type,
        boxes=tuple(boxes),
        version=config.version + 1,
    )
    return MutationResult(config=new_config, status=APPLIED, operation=op)


def _noop(config: JobRowConfig, status: str, reason: str, op: str) -> MutationResult:
    return MutationResult(config=config, status=status, reason=reason, operation=op)


def _strip_types(
    boxes: Tuple[JobRowBox, ...],
    prefix: Path,
    keep: Path,
    types: frozenset,
) -> Tuple[JobRowBox, ...]:
    """Remove ``types`` from every box except the one at ``keep``."""
    out = []
    changed = False
    for i, box in enumerate(boxes):
        here = prefix + (i,)
        new_box = box
        if here != keep:
            if isinstance(box, LeafBox):
                new_box = _without_types(box, "allowed_types", "attachment_rules", types)
            else:
                new_box = _without_types(
                    box, "dormant_allowed_types", "dormant_attachment_rules", types,
                )
        if isinstance(new_box, SplitBox):
            subs = _strip_types(new_box.sub_boxes, here, keep, types)
            if subs is not new_box.sub_boxes:
                new_box = replace(new_box, sub_boxes=subs)
        changed = changed or new_box is not box
        out.append(new_box)
    return tuple(out) if changed else boxes


def _without_types(box: JobRowBox, types_field: str, rules_field: str, types: frozenset):
    current = getattr(box, types_field)
    if not current & types:
        return box
    remaining = current - types
    rules = tuple(
        r for r in getattr(box, rules_field)
        if r.source_type in remaining and r.target_type in remaining
    )
    return replace(box, **{types_field: remaining, rules_field: rules})


def _unique_id(candidate: str, taken: set) -> str:
    box_id, n = candidate, 1
    while box_id in taken:
        n += 1
        box_id = f"{candidate}.{n}"
    taken.add(box_id)
    return box_id


def _require_name(name: Any) -> None:
    if not isinstance(name, str) or not name.strip():
        raise LayoutValidationError("box_name", f"Box name must be a non-empty string, got {name!r}")


def _require_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise LayoutValidationError(
            "box_max_count", f"max_count must be an int >= 0 (0 = unlimited), got {value!r}"
        )
    return value


def _coerce_types(values: Iterable[Any]) -> frozenset:
    if isinstance(values, str):
        raise LayoutValidationError("allowed_types", "allowed_types must be a collection, not a string")
    try:
        return frozenset(ResourceType(v) for v in values)
    except (TypeError, ValueError) as exc:
        raise LayoutValidationError("allowed_types", f"Invalid resource type: {exc}") from exc


def _coerce_rules(values: Iterable[Any]) -> Tuple[BoxAttachmentRule, ...]:
    rules = []
    for v in values:
        try:
            rules.append(v if isinstance(v, BoxAttachmentRule) else BoxAttachmentRule(**v))
        except (TypeError, ValueError) as exc:
            raise LayoutValidationError("attachment_rules", f"Invalid attachment rule {v!r}: {exc}") from exc
    return tuple(rules)


def _fmt(path) -> str:
    try:
        return str(list(path))
    except TypeError:
        return repr(path)
