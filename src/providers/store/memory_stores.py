"""In-memory implementations of the document, job, chunk and query stores.

Used by the test suite and by ``STORAGE_BACKEND=memory`` deployments where
persistence across restarts is not needed.  All state lives in plain dicts
owned by the instance; nothing is module-global.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Any

import structlog

from src.interfaces.chunk_store import IChunkStore
from src.interfaces.document_store import IDocumentStore
from src.interfaces.job_store import IJobStore
from src.interfaces.query_history import IQueryHistory
from src.models.chunk import Chunk
from src.models.document import Document, DocumentStatus
from src.models.pipeline import STAGE_PROGRESS, ProcessingJob, Stage
from src.models.search import QueryRecord
from src.utils.errors import StoreError
from src.utils.similarity import rank_by_similarity

logger = structlog.get_logger(logger_name=__name__)

# Unscoped keyword scans stop after this many chunks.
KEYWORD_SCAN_LIMIT = 1000


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class MemoryDocumentStore(IDocumentStore):
    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}

    async def create(self, document: Document) -> Document:
        self._documents[document.id] = document
        return document

    async def get(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    async def list(self, limit: int = 50) -> list[Document]:
        ordered = sorted(self._documents.values(), key=lambda d: d.created_at, reverse=True)
        return ordered[:limit]

    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        error: str | None = None,
    ) -> Document | None:
        current = self._documents.get(document_id)
        if current is None:
            return None
        updated = current.model_copy(
            update={"status": status, "error": error, "updated_at": _utcnow()}
        )
        self._documents[document_id] = updated
        return updated

    async def update_processing_complete(
        self,
        document_id: str,
        chunk_count: int,
        processing_time_ms: int,
        metadata: dict[str, Any],
    ) -> Document | None:
        current = self._documents.get(document_id)
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
        self._documents[document_id] = updated
        return updated

    def get_provider_name(self) -> str:
        return "memory"


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


class MemoryJobStore(IJobStore):
    def __init__(self) -> None:
        self._jobs: dict[str, ProcessingJob] = {}

    async def create(self, document_id: str) -> ProcessingJob:
        job = ProcessingJob(
            document_id=document_id,
            stage=Stage.DOWNLOADING,
            progress=STAGE_PROGRESS[Stage.DOWNLOADING],
        )
        self._jobs[document_id] = job
        return job

    async def get(self, document_id: str) -> ProcessingJob | None:
        return self._jobs.get(document_id)

    async def update_progress(
        self,
        document_id: str,
        stage: Stage,
        progress: int,
    ) -> ProcessingJob:
        job = self._require(document_id)
        updated = job.model_copy(update={"stage": stage, "progress": progress})
        self._jobs[document_id] = updated
        return updated

    async def complete(
        self,
        document_id: str,
        stage_timings: dict[str, float] | None = None,
    ) -> ProcessingJob:
        job = self._require(document_id)
        updated = job.model_copy(
            update={
                "stage": Stage.COMPLETED,
                "progress": STAGE_PROGRESS[Stage.COMPLETED],
                "completed_at": _utcnow(),
                "stage_timings": dict(stage_timings or {}),
            }
        )
        self._jobs[document_id] = updated
        return updated

    async def set_error(self, document_id: str, error: str) -> ProcessingJob:
        job = self._jobs.get(document_id) or ProcessingJob(document_id=document_id)
        updated = job.model_copy(
            update={"stage": Stage.ERROR, "error": error, "completed_at": _utcnow()}
        )
        self._jobs[document_id] = updated
        return updated

    def get_provider_name(self) -> str:
        return "memory"

    def _require(self, document_id: str) -> ProcessingJob:
        job = self._jobs.get(document_id)
        if job is None:
            raise StoreError(
                message=f"No processing job for document {document_id}",
                provider_name=self.get_provider_name(),
            )
        return job


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------


class MemoryChunkStore(IChunkStore):
    """Brute-force chunk store: every vector search scores all candidates."""

    def __init__(self) -> None:
        self._chunks: dict[str, Chunk] = {}

    async def create(self, chunk: Chunk) -> Chunk:
        self._chunks[chunk.id] = chunk
        return chunk

    async def vector_search(
        self,
        embedding: list[float],
        limit: int,
        document_id: str | None = None,
    ) -> list[Chunk]:
        candidates = [
            c
            for c in self._chunks.values()
            if c.embedding is not None and (document_id is None or c.document_id == document_id)
        ]
        ranked = rank_by_similarity(embedding, [c.embedding or [] for c in candidates])
        return [candidates[i] for i, _ in ranked[:limit]]

    async def keyword_search(
        self,
        query: str,
        limit: int,
        document_id: str | None = None,
    ) -> list[Chunk]:
        needle = query.lower()
        if not needle:
            return []

        if document_id is None:
            pool = list(self._chunks.values())[:KEYWORD_SCAN_LIMIT]
        else:
            pool = sorted(
                (c for c in self._chunks.values() if c.document_id == document_id),
                key=lambda c: c.chunk_index,
            )

        matches = [c for c in pool if needle in c.content.lower()]
        return matches[:limit]

    async def count(self, document_id: str | None = None) -> int:
        if document_id is None:
            return len(self._chunks)
        return sum(1 for c in self._chunks.values() if c.document_id == document_id)

    async def delete_by_document(self, document_id: str) -> int:
        doomed = [cid for cid, c in self._chunks.items() if c.document_id == document_id]
        for cid in doomed:
            del self._chunks[cid]
        logger.debug("memory_chunks_deleted", document_id=document_id, count=len(doomed))
        return len(doomed)

    def get_provider_name(self) -> str:
        return "memory"


# ---------------------------------------------------------------------------
# Query history
# ---------------------------------------------------------------------------


class MemoryQueryHistory(IQueryHistory):
    """Bounded ring buffer of recent queries."""

    def __init__(self, max_records: int = 1000) -> None:
        self._records: deque[QueryRecord] = deque(maxlen=max_records)

    async def record(self, record: QueryRecord) -> None:
        self._records.append(record)

    async def recent(self, limit: int = 20) -> list[QueryRecord]:
        return list(reversed(self._records))[:limit]

    def get_provider_name(self) -> str:
        return "memory"
