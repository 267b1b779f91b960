"""
Board Kernel — Configuration Health Analyzer

Scans job-type configurations against the live resource inventory.

A rule is one (configuration, enabled row, required type) triple.
A rule is satisfied when the inventory holds at least one resource
of that type. coverage = satisfied * SCALE // total (SCALE when there
are no rules): a heuristic, not a correctness gate.

Read-only. Never mutates its inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .catalog import ResourceType, sorted_types
from .domain_types import SCALE, Assignment, Job, JobTypeConfiguration, Resource


@dataclass(frozen=True)
class HealthReport:
    total_rules: int
    satisfied_rules: int
    coverage: int  # fixed-point, SCALE = 100%
    missing_required_types: Tuple[str, ...] = field(default_factory=tuple)
    issues: Tuple[str, ...] = field(default_factory=tuple)
    total_resources: int = 0
    jobs_without_assignments: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def coverage_percent(self) -> int:
        """Whole percent, rounded down."""
        return self.coverage * 100 // SCALE

    @property
    def healthy(self) -> bool:
        return not self.issues

    def to_dict(self) -> dict:
        return {
            "totalRules": self.total_rules,
            "satisfiedRules": self.satisfied_rules,
            "coverage": self.coverage,
            "coveragePercent": self.coverage_percent,
            "missingRequiredTypes": list(self.missing_required_types),
            "issues": list(self.issues),
            "totalResources": self.total_resources,
            "jobsWithoutAssignments": list(self.jobs_without_assignments),
        }


def analyze(
    job_type_configurations: Iterable[JobTypeConfiguration],
    inventory: Sequence[Resource],
    jobs: Iterable[Job] = (),
    assignments: Iterable[Assignment] = (),
    magnet_rules: Optional[Sequence] = None,
) -> HealthReport:
    """
    Build a HealthReport.

    Issues, in order:
      - "No resources configured"              inventory is empty
      - "No compatibility rules configured"    magnet_rules given and empty
      - "{n} active jobs without resource assignments"
      - "Missing required resource types: a, b"
    """
    available: Set[ResourceType] = {r.type for r in inventory}

    total = 0
    satisfied = 0
    missing: Set[ResourceType] = set()
    for config in job_type_configurations:
        for row in config.default_rows:
            if not row.enabled:
                continue
            for rtype in row.required_resources:
                total += 1
                if rtype in available:
                    satisfied += 1
                else:
                    missing.add(rtype)

    coverage = SCALE if total == 0 else satisfied * SCALE // total

    assigned_jobs = {a.job_id for a in assignments}
    idle: List[str] = [
        j.id for j in jobs if j.status == "active" and j.id not in assigned_jobs
    ]

    issues: List[str] = []
    if not inventory:
        issues.append("No resources configured")
    if magnet_rules is not None and len(magnet_rules) == 0:
        issues.append("No compatibility rules configured")
    if idle:
        issues.append(f"{len(idle)} active jobs without resource assignments")
    missing_sorted = tuple(sorted_types(missing))
    if missing_sorted:
        issues.append(f"Missing required resource types: {', '.join(missing_sorted)}")

    return HealthReport(
        total_rules=total,
        satisfied_rules=satisfied,
        coverage=coverage,
        missing_required_types=missing_sorted,
        issues=tuple(issues),
        total_resources=len(inventory),
        jobs_without_assignments=tuple(idle),
    )
