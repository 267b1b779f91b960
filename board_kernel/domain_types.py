"""
Board Kernel — Core Domain Types

Pure data. No behaviour, no mutation logic.
Every type is a frozen dataclass: mutators in layout.py and job_types.py
return new instances and never touch their inputs.

Ratios (coverage) are int fixed-point (SCALE = 10_000). No float.

────────────────────────────────────────────────
DOMAIN GLOSSARY
────────────────────────────────────────────────

Magnet:
    Draggable token representing one resource instance.

Attachment:
    Dependent linkage of one resource to another (operator → excavator),
    governed by a MagnetInteractionRule.

Box:
    Named partition of a row with its own allow-list and capacity,
    optionally split further into sub-boxes.

Dormant settings:
    The allow-list and attachment rules a box had before it was split.
    Inert while split, restored on unsplit.

────────────────────────────────────────────────
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union

from .catalog import PERSONNEL_TYPES, ResourceType, RowType, sorted_types


# ── Fixed-Point Scale ──────────────────────────────────────────
SCALE: int = 10_000


def _as_type_set(values) -> FrozenSet[ResourceType]:
    return frozenset(ResourceType(v) for v in values)


# ── Attachment Rules ──────────────────────────────────────────

@dataclass(frozen=True)
class BoxAttachmentRule:
    """Box-local override of the global attachment policy for one pair."""

    source_type: ResourceType
    target_type: ResourceType
    can_attach: bool = True
    is_auto_attach: bool = False
    priority: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "source_type", ResourceType(self.source_type))
        object.__setattr__(self, "target_type", ResourceType(self.target_type))

    @property
    def key(self) -> Tuple[ResourceType, ResourceType]:
        return (self.source_type, self.target_type)

    def to_dict(self) -> dict:
        return {
            "sourceType": self.source_type.value,
            "targetType": self.target_type.value,
            "canAttach": self.can_attach,
            "isAutoAttach": self.is_auto_attach,
            "priority": self.priority,
        }


@dataclass(frozen=True)
class MagnetInteractionRule:
    """
    Global attachment policy for an ordered (source → target) pair.

    max_count == 0 means unlimited. is_required is advisory: the health
    and rule validators report it, the resolver never blocks on it.
    """

    source_type: ResourceType
    target_type: ResourceType
    can_attach: bool = True
    is_required: bool = False
    max_count: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "source_type", ResourceType(self.source_type))
        object.__setattr__(self, "target_type", ResourceType(self.target_type))
        if self.max_count < 0:
            raise ValueError(
                f"max_count must be >= 0, got {self.max_count} "
                f"for {self.source_type.value} -> {self.target_type.value}"
            )

    @property
    def key(self) -> Tuple[ResourceType, ResourceType]:
        return (self.source_type, self.target_type)

    def to_dict(self) -> dict:
        return {
            "sourceType": self.source_type.value,
            "targetType": self.target_type.value,
            "canAttach": self.can_attach,
            "isRequired": self.is_required,
            "maxCount": self.max_count,
        }


@dataclass(frozen=True)
class DropRule:
    """Row-level allow-list used while a row is not split."""

    row_type: RowType
    allowed_types: FrozenSet[ResourceType] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "row_type", RowType(self.row_type))
        object.__setattr__(self, "allowed_types", _as_type_set(self.allowed_types))

    def to_dict(self) -> dict:
        return {
            "rowType": self.row_type.value,
            "allowedTypes": sorted_types(self.allowed_types),
        }


# ── Layout Tree ───────────────────────────────────────────────

@dataclass(frozen=True)
class LeafBox:
    """A box that owns its allow-list. max_count == 0 means unlimited."""

    id: str
    name: str
    allowed_types: FrozenSet[ResourceType] = frozenset()
    max_count: int = 5
    attachment_rules: Tuple[BoxAttachmentRule, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "allowed_types", _as_type_set(self.allowed_types))
        object.__setattr__(self, "attachment_rules", tuple(self.attachment_rules))

    @property
    def is_split(self) -> bool:
        return False

    @property
    def sub_boxes(self) -> Tuple["JobRowBox", ...]:
        return ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "allowedTypes": sorted_types(self.allowed_types),
            "maxCount": self.max_count,
            "attachmentRules": [r.to_dict() for r in self.attachment_rules],
            "isSplit": False,
            "subBoxes": [],
        }


@dataclass(frozen=True)
class SplitBox:
    """
    A box partitioned into children. Its own allow-list is dormant:
    kept only so unsplit can restore it, never consulted for drops.
    """

    id: str
    name: str
    sub_boxes: Tuple["JobRowBox", ...]
    max_count: int = 5
    dormant_allowed_types: FrozenSet[ResourceType] = frozenset()
    dormant_attachment_rules: Tuple[BoxAttachmentRule, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "sub_boxes", tuple(self.sub_boxes))
        if not self.sub_boxes:
            raise ValueError(f"SplitBox {self.id!r} must have at least one sub-box")
        object.__setattr__(
            self, "dormant_allowed_types", _as_type_set(self.dormant_allowed_types),
        )
        object.__setattr__(
            self, "dormant_attachment_rules", tuple(self.dormant_attachment_rules),
        )

    @property
    def is_split(self) -> bool:
        return True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "allowedTypes": sorted_types(self.dormant_allowed_types),
            "maxCount": self.max_count,
            "attachmentRules": [r.to_dict() for r in self.dormant_attachment_rules],
            "isSplit": True,
            "subBoxes": [b.to_dict() for b in self.sub_boxes],
        }


JobRowBox = Union[LeafBox, SplitBox]


@dataclass(frozen=True)
class JobRowConfig:
    """
    Root of the layout tree for one (job, row) pair.

    version increments on every applied mutation; the context refuses
    to store a config older than the one it holds.
    """

    job_id: str
    row_type: RowType
    boxes: Tuple[JobRowBox, ...] = ()
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "row_type", RowType(self.row_type))
        object.__setattr__(self, "boxes", tuple(self.boxes))

    @property
    def is_split(self) -> bool:
        return bool(self.boxes)

    @property
    def key(self) -> Tuple[str, RowType]:
        return (self.job_id, self.row_type)

    def to_dict(self) -> dict:
        return {
            "jobId": self.job_id,
            "rowType": self.row_type.value,
            "isSplit": self.is_split,
            "boxes": [b.to_dict() for b in self.boxes],
            "version": self.version,
        }


# ── Job-Type Configuration ────────────────────────────────────

@dataclass(frozen=True)
class JobRowConfiguration:
    """
    Default row setup of a job type.

    required_resources must stay a subset of allowed_resources;
    invariants.validate_job_type enforces it.
    """

    row_type: RowType
    enabled: bool = True
    required: bool = False
    allowed_resources: FrozenSet[ResourceType] = frozenset()
    required_resources: FrozenSet[ResourceType] = frozenset()
    max_count: int = 0
    description: str = ""
    custom_name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "row_type", RowType(self.row_type))
        object.__setattr__(self, "allowed_resources", _as_type_set(self.allowed_resources))
        object.__setattr__(self, "required_resources", _as_type_set(self.required_resources))

    @property
    def display_name(self) -> str:
        return self.custom_name or self.row_type.value

    def to_dict(self) -> dict:
        return {
            "rowType": self.row_type.value,
            "enabled": self.enabled,
            "required": self.required,
            "allowedResources": sorted_types(self.allowed_resources),
            "requiredResources": sorted_types(self.required_resources),
            "maxCount": self.max_count,
            "description": self.description,
            "customName": self.custom_name,
        }


@dataclass(frozen=True)
class JobTypeConfiguration:
    """A job type (paving, milling, ...) and its default rows."""

    id: str
    name: str
    description: str = ""
    default_rows: Tuple[JobRowConfiguration, ...] = ()
    is_custom: bool = False
    job_type: str = "custom"

    def __post_init__(self) -> None:
        object.__setattr__(self, "default_rows", tuple(self.default_rows))

    def row(self, row_type: RowType) -> Optional[JobRowConfiguration]:
        rtype = RowType(row_type)
        for r in self.default_rows:
            if r.row_type == rtype:
                return r
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.job_type,
            "defaultRows": [r.to_dict() for r in self.default_rows],
            "isCustom": self.is_custom,
        }


# ── Operational Inputs (read-only views of the board) ─────────

@dataclass(frozen=True)
class Resource:
    id: str
    type: ResourceType
    name: str = ""
    class_type: str = ""  # employee | equipment

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", ResourceType(self.type))
        if not self.class_type:
            object.__setattr__(
                self,
                "class_type",
                "employee" if self.type in PERSONNEL_TYPES else "equipment",
            )


@dataclass(frozen=True)
class Job:
    id: str
    name: str = ""
    job_type: str = "other"
    status: str = "active"  # active | completed | cancelled


@dataclass(frozen=True)
class Assignment:
    id: str
    resource_id: str
    job_id: str
    row: RowType
    attached_to: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "row", RowType(self.row))


# ── Mutation Outcome ──────────────────────────────────────────

APPLIED = "applied"
UNCHANGED = "unchanged"
INVALID_PATH = "invalid_path"
REJECTED = "rejected"


@dataclass(frozen=True)
class MutationResult:
    """
    Structured outcome of a layout mutation.

    On any status other than APPLIED, ``config`` is the caller's input
    object itself: nothing was partially applied.
    """

    config: JobRowConfig
    status: str = APPLIED
    reason: str = ""
    operation: str = ""

    @property
    def applied(self) -> bool:
        return self.status == APPLIED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "status": self.status,
            "reason": self.reason,
            "config": self.config.to_dict(),
        }
