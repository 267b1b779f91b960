# file: board_runtime/document_repository.py
"""
Document Repository — sqlite3-backed board documents.

Each board stores up to four independent documents
(job_types, magnet_rules, drop_rules, row_configs), keyed by
(board_id, name). Bodies are opaque canonical JSON strings; the
repository never parses them. There is no cross-document transaction:
every save touches exactly one row.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from board_kernel.hashing import document_hash

_SCHEMA_PATH = Path(__file__).parent / "schema.sql"


class DocumentRepository:
    """Document store backed by sqlite3 (WAL)."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        # FastAPI runs sync handlers on a thread pool; the session is single-writer.
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        schema_sql = _SCHEMA_PATH.read_text(encoding="utf-8")
        self._conn.executescript(schema_sql)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save_document(self, board_id: str, name: str, body: str) -> str:
        """
        Insert or replace one document. Returns its SHA-256 hash.
        """
        doc_hash = document_hash(body)
        now = datetime.now(timezone.utc).isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO documents
                    (board_id, name, body, doc_hash, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (board_id, name, body, doc_hash, now),
            )
        return doc_hash

    def delete_document(self, board_id: str, name: str) -> bool:
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM documents WHERE board_id = ? AND name = ?",
                (board_id, name),
            )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load_document(self, board_id: str, name: str) -> Optional[str]:
        """Document body, or None if it was never saved."""
        cursor = self._conn.execute(
            "SELECT body FROM documents WHERE board_id = ? AND name = ?",
            (board_id, name),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return row[0]

    def load_hash(self, board_id: str, name: str) -> Optional[str]:
        cursor = self._conn.execute(
            "SELECT doc_hash FROM documents WHERE board_id = ? AND name = ?",
            (board_id, name),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return row[0]

    def list_documents(self, board_id: str) -> List[str]:
        cursor = self._conn.execute(
            "SELECT name FROM documents WHERE board_id = ? ORDER BY name",
            (board_id,),
        )
        return [row[0] for row in cursor.fetchall()]

    def close(self) -> None:
        self._conn.close()
