"""SQLite-backed processing-job store.

One row per document id; re-running a document overwrites its row.
``stage_timings`` is stored as JSON.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.job_store import IJobStore
from src.models.pipeline import STAGE_PROGRESS, ProcessingJob, Stage
from src.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/corpusflow.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS processing_jobs (
    document_id    TEXT    PRIMARY KEY,
    stage          TEXT    NOT NULL,
    progress       INTEGER NOT NULL DEFAULT 0,
    started_at     TEXT    NOT NULL,
    completed_at   TEXT,
    error          TEXT,
    stage_timings  TEXT    NOT NULL DEFAULT '{}'
);
"""

_UPSERT_SQL = """\
INSERT INTO processing_jobs (
    document_id, stage, progress, started_at, completed_at, error, stage_timings
)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(document_id)
DO UPDATE SET stage         = excluded.stage,
              progress      = excluded.progress,
              started_at    = excluded.started_at,
              completed_at  = excluded.completed_at,
              error         = excluded.error,
              stage_timings = excluded.stage_timings;
"""

_SELECT_SQL = """\
SELECT document_id, stage, progress, started_at, completed_at, error, stage_timings
FROM processing_jobs
WHERE document_id = ?;
"""


class SQLiteJobStore(IJobStore):
    """SQLite-backed job persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the processing_jobs table if it doesn't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.commit()
        logger.info("job_db_initialized", path=str(self._db_path))

    async def create(self, document_id: str) -> ProcessingJob:
        job = ProcessingJob(
            document_id=document_id,
            stage=Stage.DOWNLOADING,
            progress=STAGE_PROGRESS[Stage.DOWNLOADING],
        )
        await self._save(job)
        return job

    async def get(self, document_id: str) -> ProcessingJob | None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_SELECT_SQL, (document_id,))
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to load job {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if row is None:
            return None

        data = dict(row)
        return ProcessingJob(
            document_id=data["document_id"],
            stage=Stage(data["stage"]),
            progress=data["progress"],
            started_at=datetime.fromisoformat(data["started_at"]),
            completed_at=(
                datetime.fromisoformat(data["completed_at"]) if data["completed_at"] else None
            ),
            error=data["error"],
            stage_timings=json.loads(data["stage_timings"] or "{}"),
        )

    async def update_progress(
        self,
        document_id: str,
        stage: Stage,
        progress: int,
    ) -> ProcessingJob:
        job = await self._require(document_id)
        updated = job.model_copy(update={"stage": stage, "progress": progress})
        await self._save(updated)
        return updated

    async def complete(
        self,
        document_id: str,
        stage_timings: dict[str, float] | None = None,
    ) -> ProcessingJob:
        job = await self._require(document_id)
        updated = job.model_copy(
            update={
                "stage": Stage.COMPLETED,
                "progress": STAGE_PROGRESS[Stage.COMPLETED],
                "completed_at": _utcnow(),
                "stage_timings": dict(stage_timings or {}),
            }
        )
        await self._save(updated)
        return updated

    async def set_error(self, document_id: str, error: str) -> ProcessingJob:
        job = await self.get(document_id) or ProcessingJob(document_id=document_id)
        updated = job.model_copy(
            update={"stage": Stage.ERROR, "error": error, "completed_at": _utcnow()}
        )
        await self._save(updated)
        return updated

    def get_provider_name(self) -> str:
        return "sqlite"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _require(self, document_id: str) -> ProcessingJob:
        job = await self.get(document_id)
        if job is None:
            raise StoreError(
                message=f"No processing job for document {document_id}",
                provider_name=self.get_provider_name(),
            )
        return job

    async def _save(self, job: ProcessingJob) -> None:
        params = (
            job.document_id,
            job.stage.value,
            job.progress,
            job.started_at.isoformat(),
            job.completed_at.isoformat() if job.completed_at else None,
            job.error,
            json.dumps(job.stage_timings),
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_UPSERT_SQL, params)
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to save job {job.document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017
