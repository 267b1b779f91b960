"""
Board Kernel — Type Catalog

Closed enumerations of resource types and row types.
Pure data. No behaviour beyond membership and category lookup.

Values are the exact strings used in persisted documents, so
``ResourceType("millingMachine")`` round-trips with stored JSON.
"""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Iterable


class ResourceType(str, Enum):
    """Kind of a schedulable resource (one magnet on the board)."""

    # Personnel
    OPERATOR = "operator"
    DRIVER = "driver"
    PRIVATE_DRIVER = "privateDriver"
    STRIPER = "striper"
    FOREMAN = "foreman"
    LABORER = "laborer"
    # Equipment
    SKIDSTEER = "skidsteer"
    PAVER = "paver"
    EXCAVATOR = "excavator"
    SWEEPER = "sweeper"
    MILLING_MACHINE = "millingMachine"
    GRADER = "grader"
    DOZER = "dozer"
    PAYLOADER = "payloader"
    ROLLER = "roller"
    EQUIPMENT = "equipment"
    # Vehicle
    TRUCK = "truck"

    def __str__(self) -> str:
        return self.value


class RowType(str, Enum):
    """Lane of a job's schedule."""

    FORMAN = "Forman"
    EQUIPMENT = "Equipment"
    SWEEPER = "Sweeper"
    TACK = "Tack"
    MPT = "MPT"
    CREW = "crew"
    TRUCKS = "trucks"

    def __str__(self) -> str:
        return self.value


# ── Categories ────────────────────────────────────────────────

PERSONNEL_TYPES: FrozenSet[ResourceType] = frozenset({
    ResourceType.OPERATOR,
    ResourceType.DRIVER,
    ResourceType.PRIVATE_DRIVER,
    ResourceType.STRIPER,
    ResourceType.FOREMAN,
    ResourceType.LABORER,
})

VEHICLE_TYPES: FrozenSet[ResourceType] = frozenset({ResourceType.TRUCK})

# Equipment half of the default row split includes vehicles.
EQUIPMENT_TYPES: FrozenSet[ResourceType] = frozenset(
    t for t in ResourceType if t not in PERSONNEL_TYPES
)

ALL_RESOURCE_TYPES: FrozenSet[ResourceType] = frozenset(ResourceType)


def resource_category(resource_type: ResourceType) -> str:
    """Return ``personnel``, ``vehicle`` or ``equipment``."""
    rtype = ResourceType(resource_type)
    if rtype in PERSONNEL_TYPES:
        return "personnel"
    if rtype in VEHICLE_TYPES:
        return "vehicle"
    return "equipment"


def parse_resource_types(values: Iterable[str]) -> FrozenSet[ResourceType]:
    """Convert raw strings to a frozenset of ResourceType. Hard fail on unknown."""
    return frozenset(ResourceType(v) for v in values)


def sorted_types(types: Iterable[ResourceType]) -> list[str]:
    """Stable string ordering used by encoders and messages."""
    return sorted(ResourceType(t).value for t in types)
