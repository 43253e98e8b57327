"""Unit tests for the in-memory stores and both blob stores."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from src.models.chunk import Chunk
from src.models.document import Document, DocumentStatus
from src.models.pipeline import Stage
from src.models.search import QueryRecord
from src.providers.blob.local_blob_store import LocalBlobStore
from src.providers.blob.memory_blob_store import MemoryBlobStore
from src.providers.store.memory_stores import (
    MemoryChunkStore,
    MemoryDocumentStore,
    MemoryJobStore,
    MemoryQueryHistory,
)
from src.utils.errors import StoreError


def _chunk(document_id: str, index: int, content: str, embedding: list[float] | None) -> Chunk:
    return Chunk(document_id=document_id, content=content, chunk_index=index, embedding=embedding)


# ---------------------------------------------------------------------------
# Blobs
# ---------------------------------------------------------------------------


class TestMemoryBlobStore:
    @pytest.mark.asyncio
    async def test_put_then_get(self) -> None:
        store = MemoryBlobStore()
        ref = await store.put(b"payload", "a.txt")
        assert await store.get(ref) == b"payload"

    @pytest.mark.asyncio
    async def test_refs_are_unique(self) -> None:
        store = MemoryBlobStore()
        assert await store.put(b"x", "a.txt") != await store.put(b"x", "a.txt")

    @pytest.mark.asyncio
    async def test_missing(self) -> None:
        with pytest.raises(StoreError):
            await MemoryBlobStore().get("nope")


class TestLocalBlobStore:
    @pytest.mark.asyncio
    async def test_round_trip_on_disk(self, tmp_path: Path) -> None:
        store = LocalBlobStore(root_dir=tmp_path / "blobs")

        ref = await store.put(b"payload", "../../etc/passwd report.pdf")

        assert "/" not in ref
        assert ref.endswith("passwd_report.pdf")
        assert (tmp_path / "blobs" / ref).read_bytes() == b"payload"
        assert await store.get(ref) == b"payload"

    @pytest.mark.asyncio
    async def test_rejects_path_like_refs(self, tmp_path: Path) -> None:
        with pytest.raises(StoreError):
            await LocalBlobStore(root_dir=tmp_path).get("../secret")

    @pytest.mark.asyncio
    async def test_missing(self, tmp_path: Path) -> None:
        with pytest.raises(StoreError, match="not found"):
            await LocalBlobStore(root_dir=tmp_path).get("absent.bin")


# ---------------------------------------------------------------------------
# Documents and jobs
# ---------------------------------------------------------------------------


class TestMemoryDocumentStore:
    @pytest.mark.asyncio
    async def test_status_and_completion(self) -> None:
        store = MemoryDocumentStore()
        document = await store.create(
            Document(file_name="a.txt", file_ref="ref", metadata={"source": "upload"})
        )

        processing = await store.update_status(document.id, DocumentStatus.PROCESSING)
        assert processing is not None
        assert processing.status == DocumentStatus.PROCESSING

        done = await store.update_processing_complete(
            document.id, chunk_count=4, processing_time_ms=12, metadata={"format": "plain"}
        )
        assert done is not None
        assert done.status == DocumentStatus.COMPLETED
        assert done.chunk_count == 4
        assert done.metadata == {"source": "upload", "format": "plain"}

    @pytest.mark.asyncio
    async def test_unknown_document(self) -> None:
        store = MemoryDocumentStore()
        assert await store.get("missing") is None
        assert await store.update_status("missing", DocumentStatus.ERROR, "x") is None

    @pytest.mark.asyncio
    async def test_list_newest_first(self) -> None:
        store = MemoryDocumentStore()
        older = datetime(2024, 1, 1, tzinfo=timezone.utc)  # noqa: UP017
        newer = datetime(2024, 6, 1, tzinfo=timezone.utc)  # noqa: UP017
        first = await store.create(Document(file_name="1.txt", file_ref="1", created_at=older))
        second = await store.create(Document(file_name="2.txt", file_ref="2", created_at=newer))

        listed = await store.list(limit=10)

        assert [d.id for d in listed] == [second.id, first.id]
        assert len(await store.list(limit=1)) == 1


class TestMemoryJobStore:
    @pytest.mark.asyncio
    async def test_lifecycle(self) -> None:
        store = MemoryJobStore()
        job = await store.create("doc-1")
        assert job.stage == Stage.DOWNLOADING

        await store.update_progress("doc-1", Stage.PARSING, 20)
        done = await store.complete("doc-1", {"parsing": 1.5})

        assert done.stage == Stage.COMPLETED
        assert done.progress == 100
        assert done.completed_at is not None
        assert done.stage_timings == {"parsing": 1.5}

    @pytest.mark.asyncio
    async def test_update_without_job(self) -> None:
        with pytest.raises(StoreError):
            await MemoryJobStore().update_progress("ghost", Stage.PARSING, 20)

    @pytest.mark.asyncio
    async def test_set_error_creates_missing_job(self) -> None:
        job = await MemoryJobStore().set_error("ghost", "boom")
        assert job.stage == Stage.ERROR
        assert job.error == "boom"


# ---------------------------------------------------------------------------
# Chunks and history
# ---------------------------------------------------------------------------


class TestMemoryChunkStore:
    @pytest.mark.asyncio
    async def test_vector_search_ranks_and_scopes(self) -> None:
        store = MemoryChunkStore()
        await store.create(_chunk("d1", 0, "east", [1.0, 0.0]))
        await store.create(_chunk("d1", 1, "north", [0.0, 1.0]))
        await store.create(_chunk("d2", 0, "north-east", [0.7, 0.7]))
        await store.create(_chunk("d2", 1, "unembedded", None))

        ranked = await store.vector_search([1.0, 0.1], limit=3)
        assert [c.content for c in ranked] == ["east", "north-east", "north"]

        scoped = await store.vector_search([1.0, 0.1], limit=3, document_id="d2")
        assert [c.content for c in scoped] == ["north-east"]

    @pytest.mark.asyncio
    async def test_keyword_search_is_case_insensitive_substring(self) -> None:
        store = MemoryChunkStore()
        await store.create(_chunk("d1", 1, "Revenue rose", None))
        await store.create(_chunk("d1", 0, "revenues fell", None))
        await store.create(_chunk("d1", 2, "costs flat", None))

        matches = await store.keyword_search("REVENUE", limit=10, document_id="d1")

        assert [c.chunk_index for c in matches] == [0, 1]
        assert await store.keyword_search("", limit=10) == []

    @pytest.mark.asyncio
    async def test_count_and_delete(self) -> None:
        store = MemoryChunkStore()
        await store.create(_chunk("d1", 0, "a", None))
        await store.create(_chunk("d1", 1, "b", None))
        await store.create(_chunk("d2", 0, "c", None))

        assert await store.count() == 3
        assert await store.count("d1") == 2
        assert await store.delete_by_document("d1") == 2
        assert await store.count() == 1


class TestMemoryQueryHistory:
    @pytest.mark.asyncio
    async def test_recent_is_newest_first_and_bounded(self) -> None:
        history = MemoryQueryHistory(max_records=3)
        for i in range(5):
            await history.record(QueryRecord(query_text=f"q{i}", result_count=0, response_time_ms=1.0))

        recent = await history.recent(limit=10)

        assert [r.query_text for r in recent] == ["q4", "q3", "q2"]
        assert len(await history.recent(limit=1)) == 1
