"""
Board Kernel — Default Templates

Built-in job types, global magnet rules, and row drop rules that a
fresh board starts with. Pure data plus small constructors.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from .catalog import ResourceType as R
from .catalog import RowType
from .domain_types import (
    DropRule,
    JobRowConfiguration,
    JobTypeConfiguration,
    MagnetInteractionRule,
)

# ── Row building blocks ──────────────────────────────────────
# (row_type, required, allowed, required_resources, max_count, description)
_RowSpec = Tuple[RowType, bool, Tuple[R, ...], Tuple[R, ...], int, str]

_TRUCKS = (R.TRUCK, R.DRIVER)


def _rows(specs: Iterable[_RowSpec]) -> Tuple[JobRowConfiguration, ...]:
    return tuple(
        JobRowConfiguration(
            row_type=row_type,
            enabled=True,
            required=required,
            allowed_resources=allowed,
            required_resources=req,
            max_count=max_count,
            description=desc,
        )
        for row_type, required, allowed, req, max_count, desc in specs
    )


def _forman(what: str) -> _RowSpec:
    return (RowType.FORMAN, True, (R.FOREMAN,), (R.FOREMAN,), 1, f"Foreman to supervise {what}")


# ── Job types ────────────────────────────────────────────────
# id -> (name, description, rows, extra drop-rule types per row)

_TEMPLATES: Dict[str, Tuple[str, str, Tuple[_RowSpec, ...], Dict[RowType, Tuple[R, ...]]]] = {
    "paving": ("Paving", "Asphalt paving operations", (
        _forman("paving operations"),
        (RowType.EQUIPMENT, True, (R.PAVER, R.ROLLER, R.OPERATOR), (R.PAVER, R.OPERATOR), 0,
         "Paver and compaction equipment with operators"),
        (RowType.CREW, True, (R.LABORER, R.STRIPER), (R.LABORER,), 0,
         "Ground crew for paving support and quality control"),
        (RowType.TRUCKS, True, _TRUCKS, _TRUCKS, 0, "Material haul trucks with drivers"),
        (RowType.TACK, False, _TRUCKS, (), 0, "Tack coat application (optional)"),
    ), {}),
    "milling": ("Milling", "Asphalt milling and removal operations", (
        _forman("milling operations"),
        (RowType.EQUIPMENT, True, (R.MILLING_MACHINE, R.OPERATOR), (R.MILLING_MACHINE, R.OPERATOR), 0,
         "Milling machine with certified operator"),
        (RowType.CREW, True, (R.LABORER,), (R.LABORER,), 0,
         "Ground crew for traffic control and cleanup"),
        (RowType.TRUCKS, True, _TRUCKS, _TRUCKS, 0, "Haul trucks for millings removal"),
        (RowType.SWEEPER, True, (R.SWEEPER, R.OPERATOR), (R.SWEEPER, R.OPERATOR), 0,
         "Street sweeper for cleanup operations"),
    ), {}),
    "both": ("Mill & Pave", "Combined milling and paving operations", (
        _forman("both milling and paving"),
        (RowType.EQUIPMENT, True, (R.MILLING_MACHINE, R.PAVER, R.ROLLER, R.OPERATOR),
         (R.MILLING_MACHINE, R.PAVER, R.OPERATOR), 0,
         "Milling machine, paver, and compaction equipment"),
        (RowType.CREW, True, (R.LABORER, R.STRIPER), (R.LABORER,), 0,
         "Ground crew for both operations"),
        (RowType.TRUCKS, True, _TRUCKS, _TRUCKS, 0,
         "Trucks for millings removal and material delivery"),
        (RowType.SWEEPER, True, (R.SWEEPER, R.OPERATOR), (R.SWEEPER, R.OPERATOR), 0,
         "Sweeper for cleanup between operations"),
        (RowType.TACK, False, _TRUCKS, (), 0, "Tack coat application before paving"),
    ), {RowType.EQUIPMENT: (R.SWEEPER,)}),
    "drainage": ("Drainage", "Storm drain installation and maintenance", (
        _forman("drainage work"),
        (RowType.EQUIPMENT, True, (R.EXCAVATOR, R.OPERATOR), (R.EXCAVATOR, R.OPERATOR), 0,
         "Excavator for trenching and pipe installation"),
        (RowType.CREW, True, (R.LABORER,), (R.LABORER,), 0, "Crew for pipe laying and backfill"),
        (RowType.TRUCKS, True, _TRUCKS, _TRUCKS, 0, "Material delivery and spoils removal"),
    ), {}),
    "concrete": ("Concrete", "Concrete paving and structures", (
        _forman("concrete operations"),
        (RowType.EQUIPMENT, False, (R.EQUIPMENT, R.OPERATOR), (), 0,
         "Concrete finishing equipment (optional)"),
        (RowType.CREW, True, (R.LABORER,), (R.LABORER,), 0, "Concrete finishing crew"),
        (RowType.TRUCKS, True, _TRUCKS, _TRUCKS, 0, "Concrete delivery trucks"),
    ), {}),
    "excavation": ("Excavation", "General excavation and earthwork", (
        _forman("excavation work"),
        (RowType.EQUIPMENT, True, (R.EXCAVATOR, R.DOZER, R.OPERATOR), (R.EXCAVATOR, R.OPERATOR), 0,
         "Heavy equipment for excavation and grading"),
        (RowType.CREW, True, (R.LABORER,), (R.LABORER,), 0, "Ground crew for support operations"),
        (RowType.TRUCKS, True, _TRUCKS, _TRUCKS, 0, "Haul trucks for material transport"),
    ), {}),
    "stripping": ("Stripping", "Pavement marking and striping operations", (
        _forman("striping operations"),
        (RowType.EQUIPMENT, False, (R.EQUIPMENT, R.OPERATOR), (), 0,
         "Striping equipment (if mechanical)"),
        (RowType.CREW, True, (R.STRIPER, R.LABORER), (R.STRIPER,), 0,
         "Striping crew for line painting"),
        (RowType.TRUCKS, True, _TRUCKS, _TRUCKS, 0, "Equipment and material transport"),
    ), {}),
}

STANDARD_JOB_TYPE_IDS: Tuple[str, ...] = tuple(_TEMPLATES)

# Minimal layout used by create_custom_configuration when no base is given.
BASIC_ROWS: Tuple[JobRowConfiguration, ...] = _rows((
    (RowType.FORMAN, True, (R.FOREMAN,), (R.FOREMAN,), 0, ""),
    (RowType.CREW, True, (R.LABORER,), (R.LABORER,), 0, ""),
))


def default_job_types() -> List[JobTypeConfiguration]:
    return [
        JobTypeConfiguration(
            id=type_id,
            name=name,
            description=desc,
            default_rows=_rows(rows),
            is_custom=False,
            job_type=type_id,
        )
        for type_id, (name, desc, rows, _extra) in _TEMPLATES.items()
    ]


def default_job_type(type_id: str) -> Optional[JobTypeConfiguration]:
    for cfg in default_job_types():
        if cfg.id == type_id:
            return cfg
    return None


def template_drop_rules(type_id: str) -> List[DropRule]:
    """Drop rules a template ships with: its rows' allow-lists plus extras."""
    if type_id not in _TEMPLATES:
        return []
    _name, _desc, rows, extra = _TEMPLATES[type_id]
    return [
        DropRule(row_type=row_type, allowed_types=set(allowed) | set(extra.get(row_type, ())))
        for row_type, _req, allowed, _rr, _mc, _d in rows
    ]


def default_drop_rules() -> List[DropRule]:
    """Union of every template's drop rules, one rule per row type."""
    merged: Dict[RowType, set] = {}
    for type_id in _TEMPLATES:
        for rule in template_drop_rules(type_id):
            merged.setdefault(rule.row_type, set()).update(rule.allowed_types)
    return [DropRule(row_type=rt, allowed_types=types) for rt, types in merged.items()]


# ── Global magnet rules ──────────────────────────────────────

_OPERATED = (
    R.PAVER, R.ROLLER, R.MILLING_MACHINE, R.EXCAVATOR, R.DOZER,
    R.PAYLOADER, R.SWEEPER, R.SKIDSTEER, R.GRADER,
)


def default_magnet_rules() -> List[MagnetInteractionRule]:
    rules = [MagnetInteractionRule(R.OPERATOR, t, max_count=1) for t in _OPERATED]
    rules += [
        MagnetInteractionRule(R.DRIVER, R.TRUCK, max_count=1),
        MagnetInteractionRule(R.LABORER, R.PAVER, max_count=2),
        MagnetInteractionRule(R.LABORER, R.MILLING_MACHINE, max_count=1),
        MagnetInteractionRule(R.LABORER, R.EXCAVATOR, max_count=1),
        MagnetInteractionRule(R.FOREMAN, R.PAVER, max_count=1),
        MagnetInteractionRule(R.FOREMAN, R.TRUCK, max_count=1),
        MagnetInteractionRule(R.STRIPER, R.TRUCK, max_count=1),
    ]
    return rules
