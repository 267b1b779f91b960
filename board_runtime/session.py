# file: board_runtime/session.py
"""
Board Session — orchestrates the kernel context + document persistence.

Apply-before-persist order:
  1. kernel operation on the in-memory BoardContext — may raise
     (InvariantViolationError, StaleConfigError, DeserializationError)
  2. encode and save the ONE document the operation touched
     — only if step 1 succeeded

A failed operation therefore leaves both memory and storage untouched.
Absent documents mean "use the built-in defaults".
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from board_kernel import job_types as job_type_editor
from board_kernel.catalog import RowType
from board_kernel.context import BoardContext
from board_kernel.domain_types import (
    JobTypeConfiguration,
    MagnetInteractionRule,
    MutationResult,
)
from board_kernel.hashing import canonical_hash, document_hash
from board_kernel.layout import (
    add_box,
    remove_box,
    remove_sub_box,
    split_box,
    split_row,
    unsplit_box,
    unsplit_row,
    update_box,
    upsert_box_attachment_rule,
)
from board_kernel.snapshot import (
    DOCUMENT_NAMES,
    decode_drop_rules,
    decode_job_types,
    decode_magnet_rules,
    decode_row_configs,
    encode_drop_rules,
    encode_job_types,
    encode_magnet_rules,
    encode_row_configs,
    import_settings,
    export_settings,
)

from .document_repository import DocumentRepository

logger = logging.getLogger(__name__)


# Layout operations addressable by name (HTTP path segment).
ROW_OPERATIONS: Dict[str, Callable[..., MutationResult]] = {
    "split-row": split_row,
    "unsplit-row": unsplit_row,
    "add-box": add_box,
    "remove-box": remove_box,
    "remove-sub-box": remove_sub_box,
    "split-box": split_box,
    "unsplit-box": unsplit_box,
    "update-box": update_box,
    "upsert-box-rule": upsert_box_attachment_rule,
}

# Job-type editor operations addressable by name.
JOB_TYPE_OPERATIONS: Dict[str, Callable[..., JobTypeConfiguration]] = {
    "add-allowed": job_type_editor.add_allowed_resources,
    "remove-allowed": job_type_editor.remove_allowed_resource,
    "add-required": job_type_editor.add_required_resources,
    "remove-required": job_type_editor.remove_required_resource,
    "toggle-enabled": job_type_editor.toggle_row_enabled,
    "set-max-count": job_type_editor.set_row_max_count,
    "rename": job_type_editor.rename_row,
}


class UnknownOperationError(Exception):
    """Raised when an operation name is not registered."""

    def __init__(self, kind: str, name: str, known: Iterable[str]) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"Unknown {kind} operation {name!r}; expected one of {sorted(known)}")


class DocumentInconsistencyError(Exception):
    """Raised when stored documents no longer match the in-memory context."""

    def __init__(self, board_id: str, names: List[str]) -> None:
        self.board_id = board_id
        self.names = names
        super().__init__(f"Board {board_id!r}: stored documents {names} differ from memory")


class BoardSession:
    """
    Owns one board's BoardContext and keeps its documents persisted.
    Single writer: callers serialize access.
    """

    def __init__(self, board_id: str, repo: DocumentRepository) -> None:
        self._board_id = board_id
        self._repo = repo
        self._context: BoardContext = BoardContext.with_defaults()

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Load every stored document over the defaults.
        A malformed stored document raises DeserializationError; no repair.
        """
        ctx = BoardContext.with_defaults()
        loaded = []

        body = self._repo.load_document(self._board_id, "job_types")
        if body is not None:
            for jt in ctx.job_types():
                ctx.remove_job_type(jt.id)
            for jt in decode_job_types(body):
                ctx.upsert_job_type(jt)
            loaded.append("job_types")

        body = self._repo.load_document(self._board_id, "magnet_rules")
        if body is not None:
            ctx.replace_magnet_rules(decode_magnet_rules(body))
            loaded.append("magnet_rules")

        body = self._repo.load_document(self._board_id, "drop_rules")
        if body is not None:
            ctx.replace_drop_rules(decode_drop_rules(body))
            loaded.append("drop_rules")

        body = self._repo.load_document(self._board_id, "row_configs")
        if body is not None:
            for cfg in decode_row_configs(body):
                ctx.update_job_row_config(cfg)
            loaded.append("row_configs")

        self._context = ctx
        logger.info(
            "Board %s initialized (stored documents: %s)",
            self._board_id, ", ".join(loaded) or "none",
        )

    # ------------------------------------------------------------------
    # Row layouts
    # ------------------------------------------------------------------

    def apply_row_operation(
        self, job_id: str, row_type, operation: str, *args: Any, **kwargs: Any,
    ) -> MutationResult:
        """
        Run a named layout operation on the stored (or fresh) row config.
        Persists row_configs only when the mutation was applied.
        """
        fn = ROW_OPERATIONS.get(operation)
        if fn is None:
            raise UnknownOperationError("row", operation, ROW_OPERATIONS)
        config = self._context.get_or_create_row_config(job_id, RowType(row_type))
        result = fn(config, *args, **kwargs)
        if not result.applied:
            logger.info(
                "Row %s/%s %s: %s (%s)",
                job_id, config.row_type.value, operation, result.status, result.reason,
            )
            return result
        self._context.update_job_row_config(result.config)
        self._persist("row_configs")
        logger.info(
            "Row %s/%s %s applied (version %d)",
            job_id, config.row_type.value, operation, result.config.version,
        )
        return result

    def remove_row_config(self, job_id: str, row_type) -> bool:
        removed = self._context.remove_job_row_config(job_id, row_type)
        if removed:
            self._persist("row_configs")
        return removed

    # ------------------------------------------------------------------
    # Rule tables
    # ------------------------------------------------------------------

    def update_drop_rule(self, row_type, allowed_types: Iterable) -> None:
        self._context.update_drop_rule(row_type, allowed_types)
        self._persist("drop_rules")

    def update_magnet_rule(self, rule: MagnetInteractionRule) -> None:
        self._context.update_magnet_interaction_rule(rule)
        self._persist("magnet_rules")

    def replace_magnet_rules(self, rules: Iterable[MagnetInteractionRule]) -> None:
        self._context.replace_magnet_rules(rules)
        self._persist("magnet_rules")

    # ------------------------------------------------------------------
    # Job types
    # ------------------------------------------------------------------

    def apply_job_type_operation(
        self, type_id: str, operation: str, *args: Any,
    ) -> Optional[JobTypeConfiguration]:
        """Edit a job type by name; None when the job type does not exist."""
        return self.apply_job_type_operations(type_id, [(operation, args)])

    def apply_job_type_operations(
        self, type_id: str, steps: Sequence[Tuple[str, Sequence[Any]]],
    ) -> Optional[JobTypeConfiguration]:
        """
        Fold several editor operations into one write. If any step
        raises, nothing is stored.
        """
        fns = []
        for operation, args in steps:
            fn = JOB_TYPE_OPERATIONS.get(operation)
            if fn is None:
                raise UnknownOperationError("job type", operation, JOB_TYPE_OPERATIONS)
            fns.append((fn, tuple(args)))
        current = self._context.get_job_type(type_id)
        if current is None:
            return None
        updated = current
        for fn, args in fns:
            updated = fn(updated, *args)
        self._context.upsert_job_type(updated)
        self._persist("job_types")
        logger.info("Job type %s: %s applied", type_id, ", ".join(op for op, _ in steps))
        return updated

    def upsert_job_type(self, config: JobTypeConfiguration) -> None:
        self._context.upsert_job_type(config)
        self._persist("job_types")

    # ------------------------------------------------------------------
    # Settings bundle
    # ------------------------------------------------------------------

    def export_settings(self) -> str:
        return export_settings(self._context)

    def import_settings(self, text: str) -> None:
        """Replace the whole context. A malformed bundle changes nothing."""
        ctx = import_settings(text)
        self._context = ctx
        for name in DOCUMENT_NAMES:
            self._persist(name)
        logger.info("Board %s settings imported", self._board_id)

    # ------------------------------------------------------------------
    # Consistency verification
    # ------------------------------------------------------------------

    def verify_persisted(self) -> bool:
        """
        Compare each stored document hash with the hash of the
        in-memory document. Raises DocumentInconsistencyError on mismatch;
        documents never saved are skipped.
        """
        diverged = []
        for name in DOCUMENT_NAMES:
            stored = self._repo.load_hash(self._board_id, name)
            if stored is None:
                continue
            fresh = document_hash(self._encode(name))
            if fresh != stored:
                diverged.append(name)
        if diverged:
            raise DocumentInconsistencyError(self._board_id, diverged)
        return True

    # ------------------------------------------------------------------
    # Delegates
    # ------------------------------------------------------------------

    @property
    def context(self) -> BoardContext:
        return self._context

    @property
    def board_id(self) -> str:
        return self._board_id

    def state_hash(self) -> str:
        return canonical_hash(self._context)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _encode(self, name: str) -> str:
        ctx = self._context
        if name == "job_types":
            return encode_job_types(ctx.job_types())
        if name == "magnet_rules":
            return encode_magnet_rules(ctx.magnet_rules)
        if name == "drop_rules":
            return encode_drop_rules(ctx.drop_rules)
        if name == "row_configs":
            return encode_row_configs(ctx.row_configs())
        raise ValueError(f"Unknown document {name!r}")

    def _persist(self, name: str) -> None:
        doc_hash = self._repo.save_document(self._board_id, name, self._encode(name))
        logger.debug("Saved %s/%s (%s)", self._board_id, name, doc_hash[:12])
