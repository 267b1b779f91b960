"""
Board Kernel — Job-Type Configuration Editor

Pure edits of JobTypeConfiguration rows. Each function returns a new
configuration and validates the result before returning it.

Invariant: required_resources ⊆ allowed_resources on every row.
  - add_required_resources rejects types the row does not allow.
  - remove_allowed_resource also removes the type from required.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterable, Optional

from .catalog import ResourceType, parse_resource_types, sorted_types
from .domain_types import JobRowConfiguration, JobTypeConfiguration
from .invariants import InvariantViolationError, validate_job_type
from .templates import BASIC_ROWS


def validate_configuration(config: JobTypeConfiguration) -> None:
    """Raise InvariantViolationError if ``config`` is not a valid job type."""
    validate_job_type(config)


def add_allowed_resources(
    config: JobTypeConfiguration, row_index: int, types: Iterable,
) -> JobTypeConfiguration:
    new = _types(types)
    return _edit_row(
        config, row_index,
        lambda r: replace(r, allowed_resources=r.allowed_resources | new),
    )


def remove_allowed_resource(
    config: JobTypeConfiguration, row_index: int, resource_type,
) -> JobTypeConfiguration:
    t = ResourceType(resource_type)
    return _edit_row(
        config, row_index,
        lambda r: replace(
            r,
            allowed_resources=r.allowed_resources - {t},
            required_resources=r.required_resources - {t},
        ),
    )


def add_required_resources(
    config: JobTypeConfiguration, row_index: int, types: Iterable,
) -> JobTypeConfiguration:
    new = _types(types)
    row = _row_at(config, row_index)
    stray = new - row.allowed_resources
    if stray:
        raise InvariantViolationError(
            "required_subset_allowed",
            f"Row {row.row_type.value} of {config.id!r} does not allow "
            f"{sorted_types(stray)}; add them to allowed resources first",
        )
    return _edit_row(
        config, row_index,
        lambda r: replace(r, required_resources=r.required_resources | new),
    )


def remove_required_resource(
    config: JobTypeConfiguration, row_index: int, resource_type,
) -> JobTypeConfiguration:
    t = ResourceType(resource_type)
    return _edit_row(
        config, row_index,
        lambda r: replace(r, required_resources=r.required_resources - {t}),
    )


def toggle_row_enabled(config: JobTypeConfiguration, row_index: int) -> JobTypeConfiguration:
    return _edit_row(config, row_index, lambda r: replace(r, enabled=not r.enabled))


def set_row_max_count(
    config: JobTypeConfiguration, row_index: int, max_count: int,
) -> JobTypeConfiguration:
    if isinstance(max_count, bool) or not isinstance(max_count, int):
        raise InvariantViolationError("row_max_count", f"max_count must be an int, got {max_count!r}")
    return _edit_row(config, row_index, lambda r: replace(r, max_count=max_count))


def rename_row(
    config: JobTypeConfiguration, row_index: int, custom_name: str,
) -> JobTypeConfiguration:
    """Set a row's display name; an empty name falls back to the row type."""
    return _edit_row(config, row_index, lambda r: replace(r, custom_name=custom_name.strip()))


def create_custom_configuration(
    id: str,
    name: str,
    description: str = "",
    base: Optional[JobTypeConfiguration] = None,
) -> JobTypeConfiguration:
    """
    New custom job type. Rows are copied from ``base`` when given,
    otherwise a minimal Forman + crew layout.
    """
    rows = base.default_rows if base is not None else BASIC_ROWS
    config = JobTypeConfiguration(
        id=id,
        name=name,
        description=description,
        default_rows=rows,
        is_custom=True,
        job_type="custom",
    )
    validate_job_type(config)
    return config


# ---------------------------------------------------------------------------
# Helpers (private)
# ---------------------------------------------------------------------------

def _types(values: Iterable) -> frozenset:
    if isinstance(values, str):
        values = [values]
    try:
        return parse_resource_types(values)
    except ValueError as exc:
        raise InvariantViolationError("resource_type", str(exc)) from exc


def _row_at(config: JobTypeConfiguration, row_index: int) -> JobRowConfiguration:
    if (
        isinstance(row_index, bool)
        or not isinstance(row_index, int)
        or not 0 <= row_index < len(config.default_rows)
    ):
        raise InvariantViolationError(
            "row_index",
            f"Job type {config.id!r} has no row at index {row_index!r} "
            f"({len(config.default_rows)} rows)",
        )
    return config.default_rows[row_index]


def _edit_row(
    config: JobTypeConfiguration,
    row_index: int,
    fn: Callable[[JobRowConfiguration], JobRowConfiguration],
) -> JobTypeConfiguration:
    row = _row_at(config, row_index)
    rows = list(config.default_rows)
    rows[row_index] = fn(row)
    new_config = replace(config, default_rows=tuple(rows))
    validate_job_type(new_config)
    return new_config
