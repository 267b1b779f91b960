"""
Board Kernel — Invariant Checks

Hard-fail validation. Every check raises InvariantViolationError on failure.

Row layout (validate_row_config):
  - box ids unique within the row
  - max_count >= 0 on every box
  - leaf attachment rules reference only the leaf's allowed types,
    never attach a type to itself, at most one rule per pair
  - a resource type is allowed by at most one leaf of the row

Job types (validate_job_type):
  - non-empty id and name, at least one row, no duplicate row types
  - required_resources ⊆ allowed_resources on every row
  - max_count >= 0 on every row
"""

from __future__ import annotations

from typing import Dict, Tuple

from .catalog import ResourceType, sorted_types
from .domain_types import (
    JobRowConfig,
    JobRowConfiguration,
    JobTypeConfiguration,
    LeafBox,
)
from .tree import iter_boxes


class InvariantViolationError(Exception):
    """Raised when a board configuration invariant is violated."""

    def __init__(self, rule: str, detail: str) -> None:
        self.rule = rule
        self.detail = detail
        super().__init__(f"[INVARIANT:{rule}] {detail}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_row_config(config: JobRowConfig) -> None:
    """Run all row layout checks. Raises on the first failure."""
    _check_unique_box_ids(config)
    _check_box_max_counts(config)
    _check_leaf_attachment_rules(config)
    _check_unique_type_per_row(config)


def validate_job_type(config: JobTypeConfiguration) -> None:
    """Run all job-type checks. Raises on the first failure."""
    if not config.id:
        raise InvariantViolationError("job_type_id", "Job type id must be non-empty")
    if not config.name:
        raise InvariantViolationError(
            "job_type_name", f"Job type {config.id!r} has an empty name"
        )
    if not config.default_rows:
        raise InvariantViolationError(
            "job_type_rows", f"Job type {config.id!r} has no rows"
        )
    seen = set()
    for row in config.default_rows:
        if row.row_type in seen:
            raise InvariantViolationError(
                "duplicate_row_type",
                f"Job type {config.id!r} defines row {row.row_type.value!r} twice",
            )
        seen.add(row.row_type)
        validate_job_row(row, context=config.id)


def validate_job_row(row: JobRowConfiguration, context: str = "") -> None:
    """required ⊆ allowed and max_count >= 0 for one row."""
    where = f"{context}/{row.row_type.value}" if context else row.row_type.value
    stray = row.required_resources - row.allowed_resources
    if stray:
        raise InvariantViolationError(
            "required_subset_allowed",
            f"Row {where}: required types {sorted_types(stray)} "
            f"are not in allowed types {sorted_types(row.allowed_resources)}",
        )
    if row.max_count < 0:
        raise InvariantViolationError(
            "row_max_count", f"Row {where}: max_count must be >= 0, got {row.max_count}"
        )


# ---------------------------------------------------------------------------
# Individual checks (private)
# ---------------------------------------------------------------------------

def _check_unique_box_ids(config: JobRowConfig) -> None:
    seen: Dict[str, Tuple[int, ...]] = {}
    for path, box in iter_boxes(config.boxes):
        if box.id in seen:
            raise InvariantViolationError(
                "duplicate_box_id",
                f"Box id {box.id!r} used at {list(seen[box.id])} and {list(path)}",
            )
        seen[box.id] = path


def _check_box_max_counts(config: JobRowConfig) -> None:
    for path, box in iter_boxes(config.boxes):
        if box.max_count < 0:
            raise InvariantViolationError(
                "box_max_count",
                f"Box {box.id!r} at {list(path)} has max_count={box.max_count}",
            )


def _check_leaf_attachment_rules(config: JobRowConfig) -> None:
    for path, box in iter_boxes(config.boxes):
        if not isinstance(box, LeafBox):
            continue
        check_attachment_rules(box.attachment_rules, box.allowed_types, box.id)


def check_attachment_rules(rules, allowed_types, box_id: str) -> None:
    """Validate a leaf's local attachment rules against its allow-list."""
    pairs = set()
    for rule in rules:
        if rule.source_type == rule.target_type:
            raise InvariantViolationError(
                "self_attachment",
                f"Box {box_id!r}: {rule.source_type.value} cannot attach to itself",
            )
        for t in (rule.source_type, rule.target_type):
            if t not in allowed_types:
                raise InvariantViolationError(
                    "attachment_rule_scope",
                    f"Box {box_id!r}: rule {rule.source_type.value} -> "
                    f"{rule.target_type.value} references {t.value}, "
                    f"which the box does not allow",
                )
        if rule.key in pairs:
            raise InvariantViolationError(
                "duplicate_attachment_rule",
                f"Box {box_id!r}: more than one rule for "
                f"{rule.source_type.value} -> {rule.target_type.value}",
            )
        pairs.add(rule.key)


def _check_unique_type_per_row(config: JobRowConfig) -> None:
    owner: Dict[ResourceType, str] = {}
    for _path, box in iter_boxes(config.boxes):
        if not isinstance(box, LeafBox):
            continue
        for t in box.allowed_types:
            if t in owner:
                raise InvariantViolationError(
                    "type_unique_per_row",
                    f"Row {config.job_id}/{config.row_type.value}: "
                    f"{t.value} allowed in both {owner[t]!r} and {box.id!r}",
                )
            owner[t] = box.id
