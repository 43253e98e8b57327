"""SQLite-backed query history.

Every executed search is appended to ``query_history`` with its top
results serialized as JSON.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.query_history import IQueryHistory
from src.models.search import QueryRecord, QueryResultSummary
from src.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/corpusflow.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS query_history (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    query_text        TEXT    NOT NULL,
    result_count      INTEGER NOT NULL,
    top_score         REAL,
    response_time_ms  REAL    NOT NULL,
    results           TEXT    NOT NULL DEFAULT '[]',
    search_type       TEXT    NOT NULL DEFAULT 'vector',
    created_at        TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_query_history_created ON query_history(created_at);",
]

_INSERT_SQL = """\
INSERT INTO query_history (
    query_text, result_count, top_score, response_time_ms, results, search_type, created_at
)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""


class SQLiteQueryHistory(IQueryHistory):
    """SQLite-backed query log."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the query_history table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("query_history_db_initialized", path=str(self._db_path))

    async def record(self, record: QueryRecord) -> None:
        params = (
            record.query_text,
            record.result_count,
            record.top_score,
            record.response_time_ms,
            json.dumps([r.model_dump() for r in record.results]),
            record.search_type,
            record.created_at.isoformat(),
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_INSERT_SQL, params)
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to record query: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def recent(self, limit: int = 20) -> list[QueryRecord]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    "SELECT query_text, result_count, top_score, response_time_ms, "
                    "results, search_type, created_at "
                    "FROM query_history ORDER BY id DESC LIMIT ?",
                    (limit,),
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to read query history: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        records: list[QueryRecord] = []
        for row in rows:
            data = dict(row)
            records.append(
                QueryRecord(
                    query_text=data["query_text"],
                    result_count=data["result_count"],
                    top_score=data["top_score"],
                    response_time_ms=data["response_time_ms"],
                    results=[QueryResultSummary(**r) for r in json.loads(data["results"])],
                    search_type=data["search_type"],
                    created_at=datetime.fromisoformat(data["created_at"]),
                )
            )
        return records

    def get_provider_name(self) -> str:
        return "sqlite"
