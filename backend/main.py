# file: backend/main.py
"""
FastAPI Backend — Scheduling Board Configuration API.

One BoardSession per board id, loaded from sqlite on first use and
kept in memory; every successful change is persisted before the
response is returned.

Endpoints:
  GET  /health
  GET  /boards/{board_id}/drop-rules[/{row_type}]     PUT .../drop-rules/{row_type}
  GET  /boards/{board_id}/magnet-rules                PUT .../magnet-rules
  POST /boards/{board_id}/resolve-attachment
  GET  /boards/{board_id}/attachment-matrix
  GET  /boards/{board_id}/rows/{job_id}/{row_type}
  POST /boards/{board_id}/rows/{job_id}/{row_type}/can-drop
  POST /boards/{board_id}/rows/{job_id}/{row_type}/{operation}
  GET  /boards/{board_id}/job-types[/{type_id}]
  POST /boards/{board_id}/job-types/{type_id}/rows/{index}/required|allowed
  PATCH /boards/{board_id}/job-types/{type_id}/rows/{index}
  POST /boards/{board_id}/health
  GET  /boards/{board_id}/rule-report
  GET  /boards/{board_id}/export                      POST .../import
"""
from __future__ import annotations

import json
import logging
import os
import sys
import threading
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

# Add project root to path for kernel imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend import config
from board_kernel.catalog import RowType
from board_kernel.context import StaleConfigError
from board_kernel.domain_types import (
    Assignment,
    Job,
    MagnetInteractionRule,
    Resource,
)
from board_kernel.drop_validator import can_drop_on_row
from board_kernel.health import analyze
from board_kernel.invariants import InvariantViolationError
from board_kernel.layout import LayoutValidationError
from board_kernel.resolver import attachment_matrix, resolve_attachment, resolve_box_attachment
from board_kernel.rule_validator import full_validation_report
from board_kernel.snapshot import DeserializationError, SerializationError
from board_kernel.tree import resolve_path
from board_runtime.document_repository import DocumentRepository
from board_runtime.session import BoardSession, DocumentInconsistencyError, UnknownOperationError

config.configure_logging()
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Board API",
    version="1.0.0",
    description="Scheduling board layout and compatibility rules",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_URL,
        "http://localhost:3000",
        "http://localhost:3001",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Error mapping (most specific class wins)
# ---------------------------------------------------------------------------

CUSTOM_ERRORS = {
    DeserializationError: 400,
    SerializationError: 500,
    LayoutValidationError: 422,
    InvariantViolationError: 422,
    StaleConfigError: 409,
    UnknownOperationError: 404,
    DocumentInconsistencyError: 500,
    ValueError: 400,
}


def _http_error(exc: Exception) -> HTTPException:
    for cls in type(exc).__mro__:
        if cls in CUSTOM_ERRORS:
            return HTTPException(status_code=CUSTOM_ERRORS[cls], detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

_lock = threading.Lock()
_sessions: Dict[str, BoardSession] = {}
_repo: Optional[DocumentRepository] = None


def _get_session(board_id: str) -> BoardSession:
    """Caller holds _lock."""
    global _repo
    session = _sessions.get(board_id)
    if session is not None:
        return session
    if _repo is None:
        _repo = DocumentRepository(config.BOARD_DB_PATH)
        logger.info("Opened board database %s", config.BOARD_DB_PATH)
    session = BoardSession(board_id, _repo)
    try:
        session.initialize()
    except tuple(CUSTOM_ERRORS) as exc:
        logger.error("Board %s failed to load: %s", board_id, exc)
        raise _http_error(exc)
    _sessions[board_id] = session
    return session


def _row_type(value: str) -> RowType:
    try:
        return RowType(value)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown row type: {value!r}")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class DropRuleRequest(BaseModel):
    allowed_types: List[str]


class MagnetRuleModel(BaseModel):
    source_type: str
    target_type: str
    can_attach: bool = True
    is_required: bool = False
    max_count: int = 0


class MagnetRulesRequest(BaseModel):
    rules: List[MagnetRuleModel]


class ResolveAttachmentRequest(BaseModel):
    source_type: str
    target_type: str
    current_count: int = 0
    # Optional box scope: local rules of the leaf at path override can_attach
    job_id: Optional[str] = None
    row_type: Optional[str] = None
    path: List[int] = []


class BoxRuleModel(BaseModel):
    source_type: str
    target_type: str
    can_attach: bool = True
    is_auto_attach: bool = False
    priority: int = 1


class BoxUpdateModel(BaseModel):
    name: Optional[str] = None
    max_count: Optional[int] = None
    allowed_types: Optional[List[str]] = None
    attachment_rules: Optional[List[BoxRuleModel]] = None


class RowOperationRequest(BaseModel):
    path: List[int] = []
    index: Optional[int] = None
    name: Optional[str] = None
    updates: Optional[BoxUpdateModel] = None
    rule: Optional[BoxRuleModel] = None


class CanDropRequest(BaseModel):
    resource_type: str
    path: List[int] = []
    current_count: int = 0


class ResourceSetRequest(BaseModel):
    add: List[str] = []
    remove: List[str] = []


class RowSettingsRequest(BaseModel):
    enabled: Optional[bool] = None
    max_count: Optional[int] = None
    display_name: Optional[str] = None


class ResourceModel(BaseModel):
    id: str
    type: str
    name: str = ""


class JobModel(BaseModel):
    id: str
    name: str = ""
    job_type: str = "other"
    status: str = "active"


class AssignmentModel(BaseModel):
    id: str
    resource_id: str
    job_id: str
    row: str
    attached_to: Optional[str] = None


class HealthRequest(BaseModel):
    inventory: List[ResourceModel] = []
    jobs: List[JobModel] = []
    assignments: List[AssignmentModel] = []
    job_type_ids: Optional[List[str]] = None


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get("/health")
def health():
    return {"status": "ok", "default_board": config.BOARD_ID}


# ---------------------------------------------------------------------------
# Drop rules
# ---------------------------------------------------------------------------


@app.get("/boards/{board_id}/drop-rules")
def list_drop_rules(board_id: str):
    with _lock:
        session = _get_session(board_id)
        return [r.to_dict() for r in session.context.drop_rules]


@app.get("/boards/{board_id}/drop-rules/{row_type}")
def get_drop_rule(board_id: str, row_type: str):
    rtype = _row_type(row_type)
    with _lock:
        session = _get_session(board_id)
        rule = session.context.drop_rules.get(rtype)
    if rule is None:
        raise HTTPException(status_code=404, detail=f"No drop rule for row type {rtype.value!r}")
    return rule.to_dict()


@app.put("/boards/{board_id}/drop-rules/{row_type}")
def put_drop_rule(board_id: str, row_type: str, req: DropRuleRequest):
    rtype = _row_type(row_type)
    with _lock:
        session = _get_session(board_id)
        try:
            session.update_drop_rule(rtype, req.allowed_types)
        except tuple(CUSTOM_ERRORS) as exc:
            raise _http_error(exc)
        return session.context.drop_rules.get(rtype).to_dict()


# ---------------------------------------------------------------------------
# Magnet rules
# ---------------------------------------------------------------------------


@app.get("/boards/{board_id}/magnet-rules")
def list_magnet_rules(board_id: str):
    with _lock:
        session = _get_session(board_id)
        return [r.to_dict() for r in session.context.magnet_rules]


@app.put("/boards/{board_id}/magnet-rules")
def put_magnet_rules(board_id: str, req: MagnetRulesRequest):
    with _lock:
        session = _get_session(board_id)
        try:
            rules = [MagnetInteractionRule(**r.model_dump()) for r in req.rules]
            keys = [r.key for r in rules]
            if len(set(keys)) != len(keys):
                raise ValueError("Duplicate (source_type, target_type) pairs in magnet rules")
            session.replace_magnet_rules(rules)
        except tuple(CUSTOM_ERRORS) as exc:
            raise _http_error(exc)
        return [r.to_dict() for r in session.context.magnet_rules]


@app.post("/boards/{board_id}/resolve-attachment")
def post_resolve_attachment(board_id: str, req: ResolveAttachmentRequest):
    with _lock:
        session = _get_session(board_id)
        ctx = session.context
        try:
            if req.job_id is None or req.row_type is None or not req.path:
                decision = resolve_attachment(
                    ctx.magnet_rules, req.source_type, req.target_type, req.current_count,
                )
            else:
                cfg = ctx.get_job_row_config(req.job_id, _row_type(req.row_type))
                box = resolve_path(cfg.boxes, req.path) if cfg is not None else None
                if box is None:
                    raise HTTPException(status_code=404, detail=f"No box at path {req.path}")
                decision = resolve_box_attachment(
                    ctx.magnet_rules, box, req.source_type, req.target_type, req.current_count,
                )
        except tuple(CUSTOM_ERRORS) as exc:
            raise _http_error(exc)
    return decision.to_dict()


@app.get("/boards/{board_id}/attachment-matrix")
def get_attachment_matrix(board_id: str):
    """source -> target -> decision at count 0, for every configured pair."""
    with _lock:
        session = _get_session(board_id)
        matrix = attachment_matrix(session.context.magnet_rules)
    return {
        source: {target: decision.to_dict() for target, decision in row.items()}
        for source, row in matrix.items()
    }


# ---------------------------------------------------------------------------
# Row layouts
# ---------------------------------------------------------------------------


@app.get("/boards/{board_id}/rows/{job_id}/{row_type}")
def get_row(board_id: str, job_id: str, row_type: str):
    rtype = _row_type(row_type)
    with _lock:
        session = _get_session(board_id)
        return session.context.get_or_create_row_config(job_id, rtype).to_dict()


@app.post("/boards/{board_id}/rows/{job_id}/{row_type}/can-drop")
def post_can_drop(board_id: str, job_id: str, row_type: str, req: CanDropRequest):
    rtype = _row_type(row_type)
    with _lock:
        session = _get_session(board_id)
        try:
            decision = can_drop_on_row(
                session.context, job_id, rtype, req.resource_type,
                path=tuple(req.path), current_count=req.current_count,
            )
        except tuple(CUSTOM_ERRORS) as exc:
            raise _http_error(exc)
    return decision.to_dict()


@app.post("/boards/{board_id}/rows/{job_id}/{row_type}/{operation}")
def post_row_operation(
    board_id: str, job_id: str, row_type: str, operation: str,
    req: Optional[RowOperationRequest] = None,
):
    """
    Apply a layout operation. Non-applied outcomes (unchanged,
    invalid_path, rejected) are returned with 200 and their status.
    """
    rtype = _row_type(row_type)
    req = req or RowOperationRequest()
    args: list = []
    kwargs: Dict[str, Any] = {}
    if operation == "add-box":
        kwargs["name"] = req.name
    elif operation == "remove-box":
        if req.index is None:
            raise HTTPException(status_code=422, detail="remove-box requires 'index'")
        args.append(req.index)
    elif operation in ("split-box", "unsplit-box", "remove-sub-box"):
        args.append(tuple(req.path))
    elif operation == "update-box":
        # Rule mappings are coerced by the kernel; bad types surface as 422.
        updates = req.updates.model_dump(exclude_unset=True) if req.updates else {}
        args.extend([tuple(req.path), updates])
    elif operation == "upsert-box-rule":
        if req.rule is None:
            raise HTTPException(status_code=422, detail="upsert-box-rule requires 'rule'")
        args.extend([tuple(req.path), req.rule.model_dump()])

    with _lock:
        session = _get_session(board_id)
        try:
            result = session.apply_row_operation(job_id, rtype, operation, *args, **kwargs)
        except tuple(CUSTOM_ERRORS) as exc:
            raise _http_error(exc)
    return result.to_dict()


# ---------------------------------------------------------------------------
# Job types
# ---------------------------------------------------------------------------


@app.get("/boards/{board_id}/job-types")
def list_job_types(board_id: str):
    with _lock:
        session = _get_session(board_id)
        return [jt.to_dict() for jt in session.context.job_types()]


@app.get("/boards/{board_id}/job-types/{type_id}")
def get_job_type(board_id: str, type_id: str):
    with _lock:
        session = _get_session(board_id)
        jt = session.context.get_job_type(type_id)
    if jt is None:
        raise HTTPException(status_code=404, detail=f"Job type {type_id!r} not found")
    return jt.to_dict()


def _edit_job_type(board_id: str, type_id: str, steps: list) -> dict:
    with _lock:
        session = _get_session(board_id)
        try:
            updated = session.apply_job_type_operations(type_id, steps)
        except tuple(CUSTOM_ERRORS) as exc:
            raise _http_error(exc)
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Job type {type_id!r} not found")
    return updated.to_dict()


@app.post("/boards/{board_id}/job-types/{type_id}/rows/{index}/required")
def post_required_resources(board_id: str, type_id: str, index: int, req: ResourceSetRequest):
    steps = [("remove-required", (index, t)) for t in req.remove]
    if req.add:
        steps.append(("add-required", (index, req.add)))
    return _edit_job_type(board_id, type_id, steps)


@app.post("/boards/{board_id}/job-types/{type_id}/rows/{index}/allowed")
def post_allowed_resources(board_id: str, type_id: str, index: int, req: ResourceSetRequest):
    steps = [("remove-allowed", (index, t)) for t in req.remove]
    if req.add:
        steps.append(("add-allowed", (index, req.add)))
    return _edit_job_type(board_id, type_id, steps)


@app.patch("/boards/{board_id}/job-types/{type_id}/rows/{index}")
def patch_job_type_row(board_id: str, type_id: str, index: int, req: RowSettingsRequest):
    steps = []
    if req.enabled is not None:
        with _lock:
            current = _get_session(board_id).context.get_job_type(type_id)
        in_range = current is not None and 0 <= index < len(current.default_rows)
        # out-of-range index is left for the editor to reject
        if not in_range or current.default_rows[index].enabled != req.enabled:
            steps.append(("toggle-enabled", (index,)))
    if req.max_count is not None:
        steps.append(("set-max-count", (index, req.max_count)))
    if req.display_name is not None:
        steps.append(("rename", (index, req.display_name)))
    return _edit_job_type(board_id, type_id, steps)


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


@app.post("/boards/{board_id}/health")
def post_health(board_id: str, req: HealthRequest):
    with _lock:
        session = _get_session(board_id)
        ctx = session.context
        configs = ctx.job_types()
        if req.job_type_ids is not None:
            wanted = set(req.job_type_ids)
            configs = [c for c in configs if c.id in wanted]
        try:
            report = analyze(
                configs,
                [Resource(**r.model_dump()) for r in req.inventory],
                [Job(**j.model_dump()) for j in req.jobs],
                [Assignment(**a.model_dump()) for a in req.assignments],
                magnet_rules=ctx.magnet_rules.rules(),
            )
        except tuple(CUSTOM_ERRORS) as exc:
            raise _http_error(exc)
    return report.to_dict()


@app.get("/boards/{board_id}/rule-report")
def get_rule_report(board_id: str):
    with _lock:
        ctx = _get_session(board_id).context
        return full_validation_report(ctx.magnet_rules.rules(), ctx.drop_rules.rules())


# ---------------------------------------------------------------------------
# Settings bundle
# ---------------------------------------------------------------------------


@app.get("/boards/{board_id}/export")
def export_board(board_id: str):
    with _lock:
        text = _get_session(board_id).export_settings()
    return Response(content=text, media_type="application/json")


@app.post("/boards/{board_id}/import")
def import_board(board_id: str, bundle: Dict[str, Any]):
    with _lock:
        session = _get_session(board_id)
        try:
            session.import_settings(json.dumps(bundle))
        except tuple(CUSTOM_ERRORS) as exc:
            raise _http_error(exc)
        return {"status": "imported", "state_hash": session.state_hash()}
