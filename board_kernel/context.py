"""
Board Kernel — Board Context

The single configuration context of a board. Owns:

  magnet_rules   MagnetRuleTable
  drop_rules     DropRuleTable
  row configs    (job_id, row_type) -> JobRowConfig
  job types      id -> JobTypeConfiguration

All values it holds are immutable snapshots; the context only swaps
references. Writes are validated before they are stored, so a failed
update leaves the context exactly as it was.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .catalog import ResourceType, RowType
from .domain_types import (
    DropRule,
    JobRowConfig,
    JobTypeConfiguration,
    MagnetInteractionRule,
)
from .invariants import validate_job_type, validate_row_config
from .rule_store import DropRuleTable, MagnetRuleTable, as_drop_table, as_magnet_table
from .templates import default_drop_rules, default_job_types, default_magnet_rules


class StaleConfigError(Exception):
    """Raised when a row config older than the stored one is written back."""

    def __init__(self, key: Tuple[str, RowType], stored: int, incoming: int) -> None:
        self.key = key
        self.stored = stored
        self.incoming = incoming
        super().__init__(
            f"Stale row config for {key[0]}/{key[1].value}: "
            f"stored version {stored}, incoming version {incoming}"
        )


class BoardContext:

    def __init__(
        self,
        magnet_rules=None,
        drop_rules=None,
        row_configs: Iterable[JobRowConfig] = (),
        job_types: Iterable[JobTypeConfiguration] = (),
    ) -> None:
        self.magnet_rules: MagnetRuleTable = as_magnet_table(magnet_rules)
        self.drop_rules: DropRuleTable = as_drop_table(drop_rules)
        self._rows: Dict[Tuple[str, RowType], JobRowConfig] = {}
        self._job_types: Dict[str, JobTypeConfiguration] = {}
        for cfg in row_configs:
            self.update_job_row_config(cfg)
        for jt in job_types:
            self.upsert_job_type(jt)

    @classmethod
    def with_defaults(cls) -> "BoardContext":
        """Context seeded with the built-in job types and rule tables."""
        return cls(
            magnet_rules=default_magnet_rules(),
            drop_rules=default_drop_rules(),
            job_types=default_job_types(),
        )

    # ── Job-row layouts ──────────────────────────────────────

    def get_job_row_config(self, job_id: str, row_type) -> Optional[JobRowConfig]:
        try:
            key = (job_id, RowType(row_type))
        except ValueError:
            return None
        return self._rows.get(key)

    def get_or_create_row_config(self, job_id: str, row_type) -> JobRowConfig:
        """Stored config, or a fresh unsplit one (not stored until updated)."""
        cfg = self.get_job_row_config(job_id, row_type)
        return cfg if cfg is not None else JobRowConfig(job_id=job_id, row_type=row_type)

    def update_job_row_config(self, config: JobRowConfig) -> None:
        """
        Store ``config`` for its (job_id, row_type), replacing any previous one.

        Raises InvariantViolationError for an invalid layout and
        StaleConfigError when the incoming version is older than the stored one.
        """
        validate_row_config(config)
        current = self._rows.get(config.key)
        if current is not None and config.version < current.version:
            raise StaleConfigError(config.key, current.version, config.version)
        self._rows[config.key] = config

    def remove_job_row_config(self, job_id: str, row_type) -> bool:
        """Drop the stored layout; the row reverts to unsplit. True if one existed."""
        try:
            key = (job_id, RowType(row_type))
        except ValueError:
            return False
        return self._rows.pop(key, None) is not None

    def row_configs(self) -> List[JobRowConfig]:
        return [self._rows[k] for k in sorted(self._rows, key=lambda k: (k[0], k[1].value))]

    # ── Drop rules ───────────────────────────────────────────

    def get_drop_rule(self, row_type) -> FrozenSet[ResourceType]:
        return self.drop_rules.allowed_types(row_type)

    def update_drop_rule(self, row_type, allowed_types: Iterable) -> None:
        self.drop_rules = self.drop_rules.upsert(
            DropRule(row_type=row_type, allowed_types=allowed_types)
        )

    def replace_drop_rules(self, rules: Iterable[DropRule]) -> None:
        self.drop_rules = self.drop_rules.replace_all(rules)

    # ── Magnet interaction rules ─────────────────────────────

    def get_magnet_interaction_rule(self, source, target) -> Optional[MagnetInteractionRule]:
        return self.magnet_rules.get(source, target)

    def get_max_attachments_for_type(self, source, target) -> int:
        """max_count of the pair's rule; 0 (unlimited / none) when absent."""
        rule = self.magnet_rules.get(source, target)
        return rule.max_count if rule is not None else 0

    def update_magnet_interaction_rule(self, rule: MagnetInteractionRule) -> None:
        self.magnet_rules = self.magnet_rules.upsert(rule)

    def replace_magnet_rules(self, rules: Iterable[MagnetInteractionRule]) -> None:
        self.magnet_rules = self.magnet_rules.replace_all(rules)

    # ── Job types ────────────────────────────────────────────

    def get_job_type(self, type_id: str) -> Optional[JobTypeConfiguration]:
        return self._job_types.get(type_id)

    def upsert_job_type(self, config: JobTypeConfiguration) -> None:
        validate_job_type(config)
        self._job_types[config.id] = config

    def remove_job_type(self, type_id: str) -> bool:
        return self._job_types.pop(type_id, None) is not None

    def job_types(self) -> List[JobTypeConfiguration]:
        return [self._job_types[k] for k in sorted(self._job_types)]
