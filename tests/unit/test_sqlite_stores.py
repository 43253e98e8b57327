"""Unit tests for the SQLite document, job and query-history stores.

Each test uses a temporary SQLite database to ensure isolation.  All three
stores share one database file, as they do in production.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from src.models.document import Document, DocumentStatus
from src.models.pipeline import Stage
from src.models.search import QueryRecord, QueryResultSummary
from src.providers.store.sqlite_document_store import SQLiteDocumentStore
from src.providers.store.sqlite_job_store import SQLiteJobStore
from src.providers.store.sqlite_query_history import SQLiteQueryHistory
from src.utils.errors import StoreError


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "nested" / "corpusflow.db"


@pytest_asyncio.fixture
async def documents(db_path: Path) -> SQLiteDocumentStore:
    store = SQLiteDocumentStore(db_path=db_path)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def jobs(db_path: Path) -> SQLiteJobStore:
    store = SQLiteJobStore(db_path=db_path)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def history(db_path: Path) -> SQLiteQueryHistory:
    store = SQLiteQueryHistory(db_path=db_path)
    await store.initialize()
    return store


def _document(**overrides) -> Document:
    defaults = {
        "file_name": "report.pdf",
        "file_type": "pdf",
        "mime_type": "application/pdf",
        "file_size": 2048,
        "content_hash": "abc123",
        "file_ref": "ref_report.pdf",
        "title": "Report",
        "metadata": {"source": "upload", "tags": ["q3"]},
    }
    defaults.update(overrides)
    return Document(**defaults)


# ─── Documents ───────────────────────────────────────────────────────


class TestSQLiteDocumentStore:
    @pytest.mark.asyncio
    async def test_initialize_creates_parent_directory(self, documents, db_path: Path) -> None:
        assert db_path.exists()

    @pytest.mark.asyncio
    async def test_create_and_get(self, documents: SQLiteDocumentStore) -> None:
        document = await documents.create(_document())

        loaded = await documents.get(document.id)

        assert loaded is not None
        assert loaded.id == document.id
        assert loaded.title == "Report"
        assert loaded.status == DocumentStatus.PENDING
        assert loaded.metadata == {"source": "upload", "tags": ["q3"]}
        assert loaded.created_at == document.created_at

    @pytest.mark.asyncio
    async def test_get_missing(self, documents: SQLiteDocumentStore) -> None:
        assert await documents.get("nope") is None

    @pytest.mark.asyncio
    async def test_status_transitions(self, documents: SQLiteDocumentStore) -> None:
        document = await documents.create(_document())

        await documents.update_status(document.id, DocumentStatus.ERROR, error="parse failed")
        failed = await documents.get(document.id)
        assert failed is not None
        assert failed.status == DocumentStatus.ERROR
        assert failed.error == "parse failed"

        done = await documents.update_processing_complete(
            document.id, chunk_count=7, processing_time_ms=321, metadata={"page_count": 3}
        )
        assert done is not None
        reloaded = await documents.get(document.id)
        assert reloaded is not None
        assert reloaded.status == DocumentStatus.COMPLETED
        assert reloaded.error is None
        assert reloaded.chunk_count == 7
        assert reloaded.processing_time_ms == 321
        assert reloaded.metadata["page_count"] == 3
        assert reloaded.metadata["source"] == "upload"

    @pytest.mark.asyncio
    async def test_update_missing_returns_none(self, documents: SQLiteDocumentStore) -> None:
        assert await documents.update_status("nope", DocumentStatus.PROCESSING) is None

    @pytest.mark.asyncio
    async def test_list_newest_first(self, documents: SQLiteDocumentStore) -> None:
        from datetime import datetime, timezone

        older = await documents.create(
            _document(created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))  # noqa: UP017
        )
        newer = await documents.create(
            _document(created_at=datetime(2024, 2, 1, tzinfo=timezone.utc))  # noqa: UP017
        )

        listed = await documents.list(limit=5)

        assert [d.id for d in listed] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_uninitialized_database_raises_store_error(self, tmp_path: Path) -> None:
        store = SQLiteDocumentStore(db_path=tmp_path / "empty.db")
        with pytest.raises(StoreError):
            await store.get("anything")


# ─── Jobs ────────────────────────────────────────────────────────────


class TestSQLiteJobStore:
    @pytest.mark.asyncio
    async def test_lifecycle(self, jobs: SQLiteJobStore) -> None:
        created = await jobs.create("doc-1")
        assert created.stage == Stage.DOWNLOADING

        await jobs.update_progress("doc-1", Stage.EMBEDDING, 60)
        in_flight = await jobs.get("doc-1")
        assert in_flight is not None
        assert (in_flight.stage, in_flight.progress) == (Stage.EMBEDDING, 60)

        await jobs.complete("doc-1", {"parsing": 2.5, "embedding": 10.0})
        done = await jobs.get("doc-1")
        assert done is not None
        assert done.stage == Stage.COMPLETED
        assert done.progress == 100
        assert done.completed_at is not None
        assert done.stage_timings == {"parsing": 2.5, "embedding": 10.0}

    @pytest.mark.asyncio
    async def test_rerun_overwrites_row(self, jobs: SQLiteJobStore) -> None:
        await jobs.create("doc-1")
        await jobs.set_error("doc-1", "boom")

        fresh = await jobs.create("doc-1")
        loaded = await jobs.get("doc-1")

        assert loaded is not None
        assert loaded.stage == Stage.DOWNLOADING
        assert loaded.error is None
        assert loaded.started_at == fresh.started_at

    @pytest.mark.asyncio
    async def test_update_missing_job(self, jobs: SQLiteJobStore) -> None:
        with pytest.raises(StoreError):
            await jobs.update_progress("ghost", Stage.PARSING, 20)

    @pytest.mark.asyncio
    async def test_set_error(self, jobs: SQLiteJobStore) -> None:
        await jobs.create("doc-1")
        failed = await jobs.set_error("doc-1", "embedding failed")

        assert failed.stage == Stage.ERROR
        loaded = await jobs.get("doc-1")
        assert loaded is not None
        assert loaded.error == "embedding failed"


# ─── Query history ───────────────────────────────────────────────────


class TestSQLiteQueryHistory:
    @pytest.mark.asyncio
    async def test_record_and_recent(self, history: SQLiteQueryHistory) -> None:
        await history.record(
            QueryRecord(query_text="first", result_count=0, response_time_ms=1.0)
        )
        await history.record(
            QueryRecord(
                query_text="second",
                result_count=1,
                top_score=0.87,
                response_time_ms=4.2,
                results=[
                    QueryResultSummary(
                        chunk_id="c1", document_id="d1", score=0.87, content="Revenue grew."
                    )
                ],
                search_type="hybrid",
            )
        )

        recent = await history.recent(limit=10)

        assert [r.query_text for r in recent] == ["second", "first"]
        assert recent[0].search_type == "hybrid"
        assert recent[0].top_score == pytest.approx(0.87)
        assert recent[0].results[0].content == "Revenue grew."
        assert recent[1].top_score is None

    @pytest.mark.asyncio
    async def test_recent_limit(self, history: SQLiteQueryHistory) -> None:
        for i in range(3):
            await history.record(
                QueryRecord(query_text=f"q{i}", result_count=0, response_time_ms=1.0)
            )
        assert [r.query_text for r in await history.recent(limit=2)] == ["q2", "q1"]
