"""Search result and query-history models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.models.document import DocumentContext

SearchType = Literal["vector", "hybrid"]


class SearchResult(BaseModel):
    """One ranked chunk returned by the retrieval engine."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    content: str
    score: float
    chunk_index: int
    metadata: dict[str, Any] = Field(default_factory=dict)
    document: DocumentContext | None = None
    # 1-indexed positions in the individual rankings; None when absent.
    vector_rank: int | None = None
    keyword_rank: int | None = None


class SearchResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    results: list[SearchResult] = Field(default_factory=list)
    total_results: int = Field(default=0, ge=0)
    execution_time_ms: float = Field(default=0.0, ge=0.0)
    search_type: SearchType = "vector"
    alpha: float | None = None


class QueryResultSummary(BaseModel):
    """Compact form of a result kept in the query history."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    score: float
    content: str = Field(description="First 200 characters of the chunk.")


class QueryRecord(BaseModel):
    """A single executed search, as persisted in the query history."""

    model_config = ConfigDict(frozen=True)

    query_text: str
    result_count: int = Field(ge=0)
    top_score: float | None = None
    response_time_ms: float = Field(ge=0.0)
    results: list[QueryResultSummary] = Field(default_factory=list, max_length=10)
    search_type: SearchType = "vector"
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
