"""
Board Kernel — Drop Validator

Decides whether a resource type may be dropped on a target:

  RowType    unsplit row  -> the row's DropRule (missing rule: nothing allowed)
  LeafBox    leaf box     -> the leaf's own allowed_types, nothing else
  SplitBox   split box    -> never (its allow-list is dormant)

Box allow-lists never inherit from the row's drop rule or from parents.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

from .catalog import ResourceType, RowType
from .domain_types import LeafBox, SplitBox
from .rule_store import as_drop_table
from .tree import resolve_path

if TYPE_CHECKING:
    from .context import BoardContext

DropTarget = Union[RowType, LeafBox, SplitBox]

# ── Decision reasons ─────────────────────────────────────────
OK = "ok"
NOT_ALLOWED = "type_not_allowed"
NO_DROP_RULE = "no_drop_rule"
SPLIT_TARGET = "split_box"
BOX_FULL = "box_full"
ROW_IS_SPLIT = "row_is_split"
INVALID_PATH = "invalid_path"


@dataclass(frozen=True)
class DropDecision:
    allowed: bool
    reason: str

    def to_dict(self) -> dict:
        return {"allowed": self.allowed, "reason": self.reason}


def is_allowed(target: DropTarget, resource_type, drop_rules=None) -> bool:
    """True when ``resource_type`` may be dropped on ``target``."""
    return check_drop(target, resource_type, drop_rules).allowed


def check_drop(
    target: DropTarget,
    resource_type,
    drop_rules=None,
    current_count: int = 0,
) -> DropDecision:
    """
    is_allowed with a reason, plus the leaf's capacity:
    a leaf with max_count > 0 holding current_count >= max_count is full.
    """
    rtype = ResourceType(resource_type)

    if isinstance(target, SplitBox):
        return DropDecision(False, SPLIT_TARGET)

    if isinstance(target, LeafBox):
        if rtype not in target.allowed_types:
            return DropDecision(False, NOT_ALLOWED)
        if target.max_count and current_count >= target.max_count:
            return DropDecision(False, BOX_FULL)
        return DropDecision(True, OK)

    row_type = RowType(target)
    rule = as_drop_table(drop_rules).get(row_type)
    if rule is None:
        return DropDecision(False, NO_DROP_RULE)
    if rtype not in rule.allowed_types:
        return DropDecision(False, NOT_ALLOWED)
    return DropDecision(True, OK)


def can_drop_on_row(
    context: "BoardContext",
    job_id: str,
    row_type,
    resource_type,
    path=(),
    current_count: int = 0,
) -> DropDecision:
    """
    Resolve the row's layout through the context and validate the drop.

    Unsplit row: the row's drop rule. Split row: ``path`` must address a
    leaf box; an empty or unresolvable path is not a valid target.
    """
    rtype = RowType(row_type)
    config = context.get_job_row_config(job_id, rtype)
    if config is None or not config.is_split:
        return check_drop(rtype, resource_type, context.drop_rules)

    if not path:
        return DropDecision(False, ROW_IS_SPLIT)
    box: Optional[Union[LeafBox, SplitBox]] = resolve_path(config.boxes, path)
    if box is None:
        return DropDecision(False, INVALID_PATH)
    return check_drop(box, resource_type, current_count=current_count)
