"""
Board Kernel — Rule Validator

Consistency checks over raw rule lists (before they are loaded into a
table, so duplicates are still visible). Nothing here raises; findings
come back as a ValidationResult of errors, warnings and suggestions.

errors      make the rule set invalid (duplicates, contradictions)
warnings    likely mistakes (equipment without an operator rule, ...)
suggestions follow-ups for warnings
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from .catalog import ResourceType, RowType
from .domain_types import DropRule, MagnetInteractionRule

HIGH_MAX_COUNT: int = 5

OPERATED_EQUIPMENT: Tuple[ResourceType, ...] = (
    ResourceType.PAVER,
    ResourceType.ROLLER,
    ResourceType.EXCAVATOR,
    ResourceType.SWEEPER,
    ResourceType.MILLING_MACHINE,
    ResourceType.DOZER,
    ResourceType.PAYLOADER,
    ResourceType.SKIDSTEER,
    ResourceType.GRADER,
    ResourceType.EQUIPMENT,
)

ESSENTIAL_ROWS: Tuple[RowType, ...] = (
    RowType.FORMAN,
    RowType.EQUIPMENT,
    RowType.CREW,
    RowType.TRUCKS,
)


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: Tuple[str, ...] = field(default_factory=tuple)
    warnings: Tuple[str, ...] = field(default_factory=tuple)
    suggestions: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True)
class RuleConflict:
    kind: str  # duplicate | contradiction | missing_required
    description: str
    affected_rules: Tuple[MagnetInteractionRule, ...] = ()

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "description": self.description,
            "affectedRules": [r.to_dict() for r in self.affected_rules],
        }


def _result(errors: List[str], warnings: List[str], suggestions: List[str]) -> ValidationResult:
    return ValidationResult(
        is_valid=not errors,
        errors=tuple(errors),
        warnings=tuple(warnings),
        suggestions=tuple(suggestions),
    )


def _arrow(rule: MagnetInteractionRule) -> str:
    return f"{rule.source_type.value} → {rule.target_type.value}"


# ---------------------------------------------------------------------------
# Magnet rules
# ---------------------------------------------------------------------------

def validate_magnet_rules(rules: Sequence[MagnetInteractionRule]) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []
    suggestions: List[str] = []

    counts = Counter(r.key for r in rules)
    for (src, tgt), n in counts.items():
        if n > 1:
            errors.append(f"Duplicate rules found for {src.value} → {tgt.value}")

    for rule in rules:
        if rule.is_required and not rule.can_attach:
            errors.append(f"Rule marked as required but can_attach is false: {_arrow(rule)}")

    attachable = {r.key for r in rules if r.can_attach}
    for equipment in OPERATED_EQUIPMENT:
        if (ResourceType.OPERATOR, equipment) not in attachable:
            warnings.append(
                f"No operator rule found for {equipment.value} - equipment may not be operable"
            )
            suggestions.append(f"Add operator rule for {equipment.value}")

    drivers = (ResourceType.DRIVER, ResourceType.PRIVATE_DRIVER)
    if not any((d, ResourceType.TRUCK) in attachable for d in drivers):
        warnings.append("No driver rule found for trucks - vehicles may not be drivable")
        suggestions.append("Add driver rule for trucks")

    for rule in rules:
        if rule.max_count > HIGH_MAX_COUNT:
            warnings.append(
                f"High max_count ({rule.max_count}) for {_arrow(rule)} - verify if intentional"
            )
        elif rule.can_attach and rule.max_count == 0:
            warnings.append(f"Rule allows unlimited attachments: {_arrow(rule)}")

    return _result(errors, warnings, suggestions)


# ---------------------------------------------------------------------------
# Drop rules
# ---------------------------------------------------------------------------

def validate_drop_rules(rules: Sequence[DropRule]) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []
    suggestions: List[str] = []

    counts = Counter(r.row_type for r in rules)
    for row_type, n in counts.items():
        if n > 1:
            errors.append(f"Multiple drop rules found for row type: {row_type.value}")

    for rule in rules:
        if not rule.allowed_types:
            warnings.append(
                f"Row type {rule.row_type.value} has no allowed resource types "
                f"- nothing can be dropped here"
            )

    defined = set(counts)
    for row_type in ESSENTIAL_ROWS:
        if row_type not in defined:
            warnings.append(f"Missing drop rule for essential row type: {row_type.value}")
            suggestions.append(f"Add drop rule for {row_type.value} row")

    return _result(errors, warnings, suggestions)


# ---------------------------------------------------------------------------
# Cross-table checks
# ---------------------------------------------------------------------------

def detect_rule_conflicts(
    magnet_rules: Sequence[MagnetInteractionRule],
    drop_rules: Sequence[DropRule],
) -> List[RuleConflict]:
    """Magnet rules that mention a type no row accepts."""
    droppable = set()
    for rule in drop_rules:
        droppable |= rule.allowed_types

    conflicts: List[RuleConflict] = []
    for rule in magnet_rules:
        for t in (rule.source_type, rule.target_type):
            if t not in droppable:
                conflicts.append(RuleConflict(
                    kind="missing_required",
                    description=f"Magnet rule references {t.value} but it's not allowed in any row",
                    affected_rules=(rule,),
                ))
        if rule.source_type == rule.target_type:
            conflicts.append(RuleConflict(
                kind="contradiction",
                description=f"Magnet rule attaches {rule.source_type.value} to itself",
                affected_rules=(rule,),
            ))
    return conflicts


def full_validation_report(
    magnet_rules: Sequence[MagnetInteractionRule],
    drop_rules: Sequence[DropRule],
) -> dict:
    magnet = validate_magnet_rules(magnet_rules)
    drop = validate_drop_rules(drop_rules)
    conflicts = detect_rule_conflicts(magnet_rules, drop_rules)
    return {
        "magnetValidation": magnet.to_dict(),
        "dropValidation": drop.to_dict(),
        "conflicts": [c.to_dict() for c in conflicts],
        "overallValid": magnet.is_valid and drop.is_valid and not conflicts,
    }


def rule_statistics(
    magnet_rules: Sequence[MagnetInteractionRule],
    drop_rules: Sequence[DropRule],
) -> Dict[str, object]:
    attachable = [r for r in magnet_rules if r.can_attach]
    total_allowed = sum(len(r.allowed_types) for r in drop_rules)
    # Half-up rounding of the average, int only.
    avg = (2 * total_allowed + len(drop_rules)) // (2 * len(drop_rules)) if drop_rules else 0
    return {
        "totalMagnetRules": len(magnet_rules),
        "attachableRules": len(attachable),
        "requiredRules": sum(1 for r in magnet_rules if r.is_required),
        "dropRules": len(drop_rules),
        "averageTypesPerRow": avg,
        "coverage": {
            "hasOperatorRules": any(r.source_type == ResourceType.OPERATOR for r in attachable),
            "hasDriverRules": any(r.source_type == ResourceType.DRIVER for r in attachable),
            "hasLaborerRules": any(r.source_type == ResourceType.LABORER for r in attachable),
            "hasTruckRules": any(r.target_type == ResourceType.TRUCK for r in attachable),
            "hasPaverRules": any(r.target_type == ResourceType.PAVER for r in attachable),
        },
    }


def find_unused_resource_types(
    magnet_rules: Sequence[MagnetInteractionRule],
    drop_rules: Sequence[DropRule],
) -> Dict[str, List[str]]:
    in_magnet = set()
    for r in magnet_rules:
        in_magnet.update((r.source_type, r.target_type))
    in_drop = set()
    for r in drop_rules:
        in_drop |= r.allowed_types
    return {
        "unusedInMagnetRules": [t.value for t in ResourceType if t not in in_magnet],
        "unusedInDropRules": [t.value for t in ResourceType if t not in in_drop],
    }
