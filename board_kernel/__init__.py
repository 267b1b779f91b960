"""
Board Kernel
Deterministic, in-memory layout and compatibility rules of a scheduling board.
Ratios: int fixed-point (SCALE = 10_000).
"""

from .catalog import (
    ResourceType, RowType, PERSONNEL_TYPES, EQUIPMENT_TYPES, VEHICLE_TYPES,
    ALL_RESOURCE_TYPES, resource_category,
)
from .domain_types import (
    BoxAttachmentRule,
    MagnetInteractionRule,
    DropRule,
    LeafBox,
    SplitBox,
    JobRowBox,
    JobRowConfig,
    JobRowConfiguration,
    JobTypeConfiguration,
    Resource,
    Job,
    Assignment,
    MutationResult,
    SCALE,
    APPLIED,
    UNCHANGED,
    INVALID_PATH,
    REJECTED,
)
from .invariants import InvariantViolationError, validate_row_config, validate_job_type
from .tree import get_box, resolve_path, iter_boxes, leaf_paths
from .layout import (
    LayoutValidationError,
    split_row,
    unsplit_row,
    add_box,
    remove_box,
    remove_sub_box,
    split_box,
    unsplit_box,
    update_box,
    upsert_box_attachment_rule,
)
from .rule_store import MagnetRuleTable, DropRuleTable
from .resolver import (
    AttachmentDecision,
    GroupValidation,
    resolve_attachment,
    resolve_box_attachment,
    get_required_attachments,
    get_valid_attachment_types,
    has_required_attachments,
    validate_attachment_group,
    count_attached,
    auto_attach_targets,
)
from .drop_validator import DropDecision, is_allowed, check_drop, can_drop_on_row
from .context import BoardContext, StaleConfigError
from .health import HealthReport, analyze
from .hashing import canonical_serialize, canonical_hash
from .snapshot import (
    SnapshotError,
    SerializationError,
    DeserializationError,
    InvariantViolationSnapshotError,
    export_settings,
    import_settings,
)

__all__ = [
    "ResourceType",
    "RowType",
    "PERSONNEL_TYPES",
    "EQUIPMENT_TYPES",
    "VEHICLE_TYPES",
    "ALL_RESOURCE_TYPES",
    "resource_category",
    "BoxAttachmentRule",
    "MagnetInteractionRule",
    "DropRule",
    "LeafBox",
    "SplitBox",
    "JobRowBox",
    "JobRowConfig",
    "JobRowConfiguration",
    "JobTypeConfiguration",
    "Resource",
    "Job",
    "Assignment",
    "MutationResult",
    "SCALE",
    "APPLIED",
    "UNCHANGED",
    "INVALID_PATH",
    "REJECTED",
    "InvariantViolationError",
    "validate_row_config",
    "validate_job_type",
    "get_box",
    "resolve_path",
    "iter_boxes",
    "leaf_paths",
    "LayoutValidationError",
    "split_row",
    "unsplit_row",
    "add_box",
    "remove_box",
    "remove_sub_box",
    "split_box",
    "unsplit_box",
    "update_box",
    "upsert_box_attachment_rule",
    "MagnetRuleTable",
    "DropRuleTable",
    "AttachmentDecision",
    "GroupValidation",
    "resolve_attachment",
    "resolve_box_attachment",
    "get_required_attachments",
    "get_valid_attachment_types",
    "has_required_attachments",
    "validate_attachment_group",
    "count_attached",
    "auto_attach_targets",
    "DropDecision",
    "is_allowed",
    "check_drop",
    "can_drop_on_row",
    "BoardContext",
    "StaleConfigError",
    "HealthReport",
    "analyze",
    "canonical_serialize",
    "canonical_hash",
    "SnapshotError",
    "SerializationError",
    "DeserializationError",
    "InvariantViolationSnapshotError",
    "export_settings",
    "import_settings",
]
