"""
Board Kernel — Document Encoder / Decoder

Canonical JSON for the four independently persisted board documents:

  job_types     {"jobTypes":    [JobTypeConfiguration, ...]}
  magnet_rules  {"magnetRules": [MagnetInteractionRule, ...]}
  drop_rules    {"dropRules":   [DropRule, ...]}
  row_configs   {"rowConfigs":  [JobRowConfig, ...]}

plus a combined settings bundle (export_settings / import_settings).

Rules:
  - Keys are camelCase, the format stored documents already use.
  - Encoding is canonical: sort_keys, no whitespace, lists in table order.
  - Decoding is strict: missing or unknown fields, wrong JSON types,
    floats, and unknown enum values raise DeserializationError.
  - No defaults injected. No partial recovery.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Iterable, List, Tuple

from .catalog import ResourceType, RowType
from .context import BoardContext
from .domain_types import (
    BoxAttachmentRule,
    DropRule,
    JobRowBox,
    JobRowConfig,
    JobRowConfiguration,
    JobTypeConfiguration,
    LeafBox,
    MagnetInteractionRule,
    SplitBox,
)
from .invariants import InvariantViolationError, validate_job_type, validate_row_config

FORMAT_VERSION: int = 1

DOCUMENT_NAMES: Tuple[str, ...] = ("job_types", "magnet_rules", "drop_rules", "row_configs")


# ══════════════════════════════════════════════════════════════
# Exception Hierarchy
# ══════════════════════════════════════════════════════════════

class SnapshotError(Exception):
    """Base exception for all document codec operations."""


class SerializationError(SnapshotError):
    """Raised when encoding a document to JSON fails."""


class DeserializationError(SnapshotError):
    """Raised when a JSON document is malformed."""


class InvariantViolationSnapshotError(DeserializationError):
    """A well-formed document whose contents violate a board invariant."""

    def __init__(self, original: InvariantViolationError) -> None:
        self.original = original
        super().__init__(f"Invariant violation in imported document: {original}")


# ══════════════════════════════════════════════════════════════
# Encoder
# ══════════════════════════════════════════════════════════════

def _dumps(obj: Any) -> str:
    try:
        return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), sort_keys=True)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Failed to encode document: {exc}") from exc


def encode_job_types(configs: Iterable[JobTypeConfiguration]) -> str:
    return _dumps({"jobTypes": [c.to_dict() for c in configs]})


def encode_magnet_rules(rules: Iterable[MagnetInteractionRule]) -> str:
    return _dumps({"magnetRules": [r.to_dict() for r in rules]})


def encode_drop_rules(rules: Iterable[DropRule]) -> str:
    return _dumps({"dropRules": [r.to_dict() for r in rules]})


def encode_row_configs(configs: Iterable[JobRowConfig]) -> str:
    return _dumps({"rowConfigs": [c.to_dict() for c in configs]})


def settings_dict(context: BoardContext) -> Dict[str, Any]:
    """Combined settings bundle of a BoardContext as a plain dict."""
    return {
        "formatVersion": FORMAT_VERSION,
        "jobTypes": [c.to_dict() for c in context.job_types()],
        "magnetRules": [r.to_dict() for r in context.magnet_rules],
        "dropRules": [r.to_dict() for r in context.drop_rules],
        "rowConfigs": [c.to_dict() for c in context.row_configs()],
    }


def export_settings(context: BoardContext) -> str:
    return _dumps(settings_dict(context))


# ══════════════════════════════════════════════════════════════
# Decoder
# ══════════════════════════════════════════════════════════════

# -- Field whitelists (exact sets, no extras, no omissions) --

_BOX_RULE_FIELDS = frozenset({"sourceType", "targetType", "canAttach", "isAutoAttach", "priority"})
_MAGNET_FIELDS = frozenset({"sourceType", "targetType", "canAttach", "isRequired", "maxCount"})
_DROP_FIELDS = frozenset({"rowType", "allowedTypes"})
_BOX_FIELDS = frozenset({
    "id", "name", "allowedTypes", "maxCount", "attachmentRules", "isSplit", "subBoxes",
})
_ROW_CONFIG_FIELDS = frozenset({"jobId", "rowType", "isSplit", "boxes", "version"})
_JOB_ROW_FIELDS = frozenset({
    "rowType", "enabled", "required", "allowedResources", "requiredResources",
    "maxCount", "description", "customName",
})
_JOB_TYPE_FIELDS = frozenset({"id", "name", "description", "type", "defaultRows", "isCustom"})
_SETTINGS_FIELDS = frozenset({"formatVersion", "jobTypes", "magnetRules", "dropRules", "rowConfigs"})


def decode_job_types(json_str: str) -> List[JobTypeConfiguration]:
    items = _load_document(json_str, "jobTypes")
    return _validated([_job_type(d, f"jobTypes[{i}]") for i, d in enumerate(items)], validate_job_type)


def decode_magnet_rules(json_str: str) -> List[MagnetInteractionRule]:
    items = _load_document(json_str, "magnetRules")
    return [_magnet_rule(d, f"magnetRules[{i}]") for i, d in enumerate(items)]


def decode_drop_rules(json_str: str) -> List[DropRule]:
    items = _load_document(json_str, "dropRules")
    return [_drop_rule(d, f"dropRules[{i}]") for i, d in enumerate(items)]


def decode_row_configs(json_str: str) -> List[JobRowConfig]:
    items = _load_document(json_str, "rowConfigs")
    return _validated(
        [_row_config(d, f"rowConfigs[{i}]") for i, d in enumerate(items)], validate_row_config,
    )


def import_settings(json_str: str) -> BoardContext:
    """
    Decode a settings bundle into a new BoardContext.
    All-or-nothing: any malformed part fails the whole import.
    """
    raw = _parse(json_str)
    _check_fields(raw, _SETTINGS_FIELDS, "settings")
    if _int(raw["formatVersion"], "settings.formatVersion") != FORMAT_VERSION:
        raise DeserializationError(
            f"Unsupported settings formatVersion {raw['formatVersion']}, expected {FORMAT_VERSION}"
        )
    job_types = _validated(
        [_job_type(d, f"jobTypes[{i}]") for i, d in enumerate(_list(raw["jobTypes"], "jobTypes"))],
        validate_job_type,
    )
    magnet = [_magnet_rule(d, f"magnetRules[{i}]")
              for i, d in enumerate(_list(raw["magnetRules"], "magnetRules"))]
    drop = [_drop_rule(d, f"dropRules[{i}]")
            for i, d in enumerate(_list(raw["dropRules"], "dropRules"))]
    rows = _validated(
        [_row_config(d, f"rowConfigs[{i}]") for i, d in enumerate(_list(raw["rowConfigs"], "rowConfigs"))],
        validate_row_config,
    )
    _no_duplicates([r.key for r in magnet], "magnetRules")
    _no_duplicates([r.row_type for r in drop], "dropRules")
    _no_duplicates([r.key for r in rows], "rowConfigs")
    _no_duplicates([j.id for j in job_types], "jobTypes")
    return BoardContext(magnet_rules=magnet, drop_rules=drop, row_configs=rows, job_types=job_types)


# -- Per-record decoders --

def _magnet_rule(d: Any, ctx: str) -> MagnetInteractionRule:
    _check_fields(_obj(d, ctx), _MAGNET_FIELDS, ctx)
    max_count = _int(d["maxCount"], f"{ctx}.maxCount")
    if max_count < 0:
        raise DeserializationError(f"{ctx}.maxCount must be >= 0, got {max_count}")
    return MagnetInteractionRule(
        source_type=_resource(d["sourceType"], f"{ctx}.sourceType"),
        target_type=_resource(d["targetType"], f"{ctx}.targetType"),
        can_attach=_bool(d["canAttach"], f"{ctx}.canAttach"),
        is_required=_bool(d["isRequired"], f"{ctx}.isRequired"),
        max_count=max_count,
    )


def _drop_rule(d: Any, ctx: str) -> DropRule:
    _check_fields(_obj(d, ctx), _DROP_FIELDS, ctx)
    return DropRule(
        row_type=_row_type(d["rowType"], f"{ctx}.rowType"),
        allowed_types=_resources(d["allowedTypes"], f"{ctx}.allowedTypes"),
    )


def _box_rule(d: Any, ctx: str) -> BoxAttachmentRule:
    _check_fields(_obj(d, ctx), _BOX_RULE_FIELDS, ctx)
    return BoxAttachmentRule(
        source_type=_resource(d["sourceType"], f"{ctx}.sourceType"),
        target_type=_resource(d["targetType"], f"{ctx}.targetType"),
        can_attach=_bool(d["canAttach"], f"{ctx}.canAttach"),
        is_auto_attach=_bool(d["isAutoAttach"], f"{ctx}.isAutoAttach"),
        priority=_int(d["priority"], f"{ctx}.priority"),
    )


def _box(d: Any, ctx: str) -> JobRowBox:
    _check_fields(_obj(d, ctx), _BOX_FIELDS, ctx)
    box_id = _str(d["id"], f"{ctx}.id")
    name = _str(d["name"], f"{ctx}.name")
    max_count = _int(d["maxCount"], f"{ctx}.maxCount")
    allowed = _resources(d["allowedTypes"], f"{ctx}.allowedTypes")
    rules = tuple(
        _box_rule(r, f"{ctx}.attachmentRules[{i}]")
        for i, r in enumerate(_list(d["attachmentRules"], f"{ctx}.attachmentRules"))
    )
    subs = tuple(
        _box(s, f"{ctx}.subBoxes[{i}]")
        for i, s in enumerate(_list(d["subBoxes"], f"{ctx}.subBoxes"))
    )
    is_split = _bool(d["isSplit"], f"{ctx}.isSplit")
    if is_split != bool(subs):
        raise DeserializationError(
            f"{ctx}: isSplit={is_split} but it has {len(subs)} sub-boxes"
        )
    if is_split:
        return SplitBox(
            id=box_id, name=name, sub_boxes=subs, max_count=max_count,
            dormant_allowed_types=allowed, dormant_attachment_rules=rules,
        )
    return LeafBox(
        id=box_id, name=name, allowed_types=allowed, max_count=max_count, attachment_rules=rules,
    )


def _row_config(d: Any, ctx: str) -> JobRowConfig:
    _check_fields(_obj(d, ctx), _ROW_CONFIG_FIELDS, ctx)
    boxes = tuple(
        _box(b, f"{ctx}.boxes[{i}]") for i, b in enumerate(_list(d["boxes"], f"{ctx}.boxes"))
    )
    is_split = _bool(d["isSplit"], f"{ctx}.isSplit")
    if is_split != bool(boxes):
        raise DeserializationError(f"{ctx}: isSplit={is_split} but it has {len(boxes)} boxes")
    version = _int(d["version"], f"{ctx}.version")
    if version < 0:
        raise DeserializationError(f"{ctx}.version must be >= 0, got {version}")
    return JobRowConfig(
        job_id=_str(d["jobId"], f"{ctx}.jobId"),
        row_type=_row_type(d["rowType"], f"{ctx}.rowType"),
        boxes=boxes,
        version=version,
    )


def _job_row(d: Any, ctx: str) -> JobRowConfiguration:
    _check_fields(_obj(d, ctx), _JOB_ROW_FIELDS, ctx)
    return JobRowConfiguration(
        row_type=_row_type(d["rowType"], f"{ctx}.rowType"),
        enabled=_bool(d["enabled"], f"{ctx}.enabled"),
        required=_bool(d["required"], f"{ctx}.required"),
        allowed_resources=_resources(d["allowedResources"], f"{ctx}.allowedResources"),
        required_resources=_resources(d["requiredResources"], f"{ctx}.requiredResources"),
        max_count=_int(d["maxCount"], f"{ctx}.maxCount"),
        description=_str(d["description"], f"{ctx}.description"),
        custom_name=_str(d["customName"], f"{ctx}.customName"),
    )


def _job_type(d: Any, ctx: str) -> JobTypeConfiguration:
    _check_fields(_obj(d, ctx), _JOB_TYPE_FIELDS, ctx)
    return JobTypeConfiguration(
        id=_str(d["id"], f"{ctx}.id"),
        name=_str(d["name"], f"{ctx}.name"),
        description=_str(d["description"], f"{ctx}.description"),
        default_rows=tuple(
            _job_row(r, f"{ctx}.defaultRows[{i}]")
            for i, r in enumerate(_list(d["defaultRows"], f"{ctx}.defaultRows"))
        ),
        is_custom=_bool(d["isCustom"], f"{ctx}.isCustom"),
        job_type=_str(d["type"], f"{ctx}.type"),
    )


# ══════════════════════════════════════════════════════════════
# Internal Validation Helpers
# ══════════════════════════════════════════════════════════════

def _parse(json_str: str) -> Dict[str, Any]:
    if not isinstance(json_str, (str, bytes, bytearray)):
        raise DeserializationError(f"Document must be a JSON string, got {type(json_str).__name__}")
    try:
        raw = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise DeserializationError(f"Invalid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise DeserializationError(f"Top-level JSON must be object, got {type(raw).__name__}")
    return raw


def _load_document(json_str: str, key: str) -> list:
    raw = _parse(json_str)
    _check_fields(raw, frozenset({key}), "document")
    return _list(raw[key], key)


def _validated(items: list, check: Callable[[Any], None]) -> list:
    for item in items:
        try:
            check(item)
        except InvariantViolationError as exc:
            raise InvariantViolationSnapshotError(exc) from exc
    return items


def _no_duplicates(keys: list, context: str) -> None:
    seen = set()
    for k in keys:
        if k in seen:
            raise DeserializationError(f"Duplicate entry in {context}: {k!r}")
        seen.add(k)


def _check_fields(data: dict, expected: frozenset, context: str) -> None:
    """Fail if data has missing or unknown fields vs expected set."""
    actual = set(data.keys())
    missing = expected - actual
    unknown = actual - expected
    if missing:
        raise DeserializationError(f"Missing fields in {context}: {sorted(missing)}")
    if unknown:
        raise DeserializationError(f"Unknown fields in {context}: {sorted(unknown)}")


def _obj(value: Any, ctx: str) -> dict:
    if not isinstance(value, dict):
        raise DeserializationError(f"{ctx} must be a JSON object, got {type(value).__name__}")
    return value


def _list(value: Any, ctx: str) -> list:
    if not isinstance(value, list):
        raise DeserializationError(f"{ctx} must be a JSON array, got {type(value).__name__}")
    return value


def _str(value: Any, ctx: str) -> str:
    if not isinstance(value, str):
        raise DeserializationError(f"{ctx} must be string, got {type(value).__name__}")
    return value


def _bool(value: Any, ctx: str) -> bool:
    if not isinstance(value, bool):
        raise DeserializationError(f"{ctx} must be boolean, got {type(value).__name__}")
    return value


def _int(value: Any, ctx: str) -> int:
    # bool is an int subclass; floats are prohibited.
    if isinstance(value, bool) or not isinstance(value, int):
        raise DeserializationError(f"{ctx} must be int, got {type(value).__name__}")
    return value


def _resource(value: Any, ctx: str) -> ResourceType:
    try:
        return ResourceType(_str(value, ctx))
    except ValueError as exc:
        raise DeserializationError(f"{ctx}: unknown resource type {value!r}") from exc


def _resources(value: Any, ctx: str) -> frozenset:
    items = _list(value, ctx)
    types = [_resource(v, f"{ctx}[{i}]") for i, v in enumerate(items)]
    if len(set(types)) != len(types):
        raise DeserializationError(f"{ctx} contains duplicate resource types")
    return frozenset(types)


def _row_type(value: Any, ctx: str) -> RowType:
    try:
        return RowType(_str(value, ctx))
    except ValueError as exc:
        raise DeserializationError(f"{ctx}: unknown row type {value!r}") from exc
