# file: board_runtime/__init__.py
"""
Board Runtime — Persistence Layer

Keeps a board's configuration documents in sqlite3 around the
Board Kernel. The kernel never touches storage; the session applies
every change in memory first and persists only what succeeded.
"""

from .document_repository import DocumentRepository
from .session import (
    JOB_TYPE_OPERATIONS,
    ROW_OPERATIONS,
    BoardSession,
    DocumentInconsistencyError,
    UnknownOperationError,
)

__all__ = [
    "DocumentRepository",
    "BoardSession",
    "DocumentInconsistencyError",
    "UnknownOperationError",
    "ROW_OPERATIONS",
    "JOB_TYPE_OPERATIONS",
]
