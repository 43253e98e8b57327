"""SQLite-backed document store.

Persists :class:`~src.models.document.Document` records to a local SQLite
database (``data/corpusflow.db`` by default) using ``aiosqlite`` for async
I/O.  Metadata is stored as a JSON text column.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.document_store import IDocumentStore
from src.models.document import Document, DocumentStatus
from src.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/corpusflow.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id                  TEXT    PRIMARY KEY,
    file_name           TEXT    NOT NULL,
    file_type           TEXT    NOT NULL DEFAULT '',
    mime_type           TEXT    NOT NULL DEFAULT '',
    file_size           INTEGER NOT NULL DEFAULT 0,
    content_hash        TEXT    NOT NULL DEFAULT '',
    file_ref            TEXT    NOT NULL,
    title               TEXT,
    status              TEXT    NOT NULL,
    error               TEXT,
    chunk_count         INTEGER NOT NULL DEFAULT 0,
    processing_time_ms  INTEGER,
    metadata            TEXT    NOT NULL DEFAULT '{}',
    created_at          TEXT    NOT NULL,
    updated_at          TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status);",
    "CREATE INDEX IF NOT EXISTS idx_documents_hash ON documents(content_hash);",
]

_UPSERT_SQL = """\
INSERT INTO documents (
    id, file_name, file_type, mime_type, file_size, content_hash, file_ref,
    title, status, error, chunk_count, processing_time_ms, metadata,
    created_at, updated_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id)
DO UPDATE SET file_name          = excluded.file_name,
              file_type          = excluded.file_type,
              mime_type          = excluded.mime_type,
              file_size          = excluded.file_size,
              content_hash       = excluded.content_hash,
              file_ref           = excluded.file_ref,
              title              = excluded.title,
              status             = excluded.status,
              error              = excluded.error,
              chunk_count        = excluded.chunk_count,
              processing_time_ms = excluded.processing_time_ms,
              metadata           = excluded.metadata,
              updated_at         = excluded.updated_at;
"""

_SELECT_COLUMNS = (
    "id, file_name, file_type, mime_type, file_size, content_hash, file_ref, "
    "title, status, error, chunk_count, processing_time_ms, metadata, "
    "created_at, updated_at"
)


class SQLiteDocumentStore(IDocumentStore):
    """SQLite-backed document persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the documents table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    async def create(self, document: Document) -> Document:
        await self._upsert(document)
        logger.debug("document_saved", document_id=document.id, status=document.status.value)
        return document

    async def get(self, document_id: str) -> Document | None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    f"SELECT {_SELECT_COLUMNS} FROM documents WHERE id = ?",  # noqa: S608
                    (document_id,),
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to load document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return self._row_to_document(row) if row else None

    async def list(self, limit: int = 50) -> list[Document]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    f"SELECT {_SELECT_COLUMNS} FROM documents "  # noqa: S608
                    "ORDER BY created_at DESC LIMIT ?",
                    (limit,),
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to list documents: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return [self._row_to_document(r) for r in rows]

    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        error: str | None = None,
    ) -> Document | None:
        current = await self.get(document_id)
        if current is None:
            return None
        updated = current.model_copy(
            update={"status": status, "error": error, "updated_at": _utcnow()}
        )
        await self._upsert(updated)
        return updated

    async def update_processing_complete(
        self,
        document_id: str,
        chunk_count: int,
        processing_time_ms: int,
        metadata: dict[str, Any],
    ) -> Document | None:
        current = await self.get(document_id)
        if current is None:
            return None
        updated = current.model_copy(
            update={
                "status": DocumentStatus.COMPLETED,
                "error": None,
                "chunk_count": chunk_count,
                "processing_time_ms": processing_time_ms,
                "metadata": {**current.metadata, **metadata},
                "updated_at": _utcnow(),
            }
        )
        await self._upsert(updated)
        logger.info(
            "document_processing_recorded",
            document_id=document_id,
            chunk_count=chunk_count,
            processing_time_ms=processing_time_ms,
        )
        return updated

    def get_provider_name(self) -> str:
        return "sqlite"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _upsert(self, document: Document) -> None:
        params = (
            document.id,
            document.file_name,
            document.file_type,
            document.mime_type,
            document.file_size,
            document.content_hash,
            document.file_ref,
            document.title,
            document.status.value,
            document.error,
            document.chunk_count,
            document.processing_time_ms,
            json.dumps(document.metadata, default=str),
            document.created_at.isoformat(),
            document.updated_at.isoformat(),
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_UPSERT_SQL, params)
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to save document {document.id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    @staticmethod
    def _row_to_document(row: aiosqlite.Row) -> Document:
        data = dict(row)
        data["metadata"] = json.loads(data.get("metadata") or "{}")
        data["status"] = DocumentStatus(data["status"])
        data["created_at"] = datetime.fromisoformat(data["created_at"])
        data["updated_at"] = datetime.fromisoformat(data["updated_at"])
        return Document(**data)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017
