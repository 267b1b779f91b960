"""
Board Kernel — Canonical Hashing

Deterministic canonical serialization + SHA-256 hashing of a board's
settings. Used by the runtime to detect whether anything changed
between load and save.

Rules:
  - Rule tables in key order, row configs by (job_id, row_type),
    job types by id
  - Type sets sorted
  - UTF-8 JSON, no whitespace, no float
"""

from __future__ import annotations

import hashlib
import json

from .context import BoardContext
from .snapshot import settings_dict


def canonical_serialize(context: BoardContext) -> bytes:
    """Canonical UTF-8 JSON bytes of the whole settings bundle."""
    obj = settings_dict(context)
    return json.dumps(obj, ensure_ascii=True, separators=(",", ":"), sort_keys=True).encode("utf-8")


def canonical_hash(context: BoardContext) -> str:
    """SHA-256 of canonical serialization. Lowercase hex string."""
    return hashlib.sha256(canonical_serialize(context)).hexdigest()


def document_hash(json_str: str) -> str:
    """SHA-256 of one encoded document."""
    return hashlib.sha256(json_str.encode("utf-8")).hexdigest()
