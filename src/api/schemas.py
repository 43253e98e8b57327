"""Pydantic request/response schemas for the corpusFlow API.

Defines the public contract for upload, document and job status, search,
query history and health endpoints.

# ─── HOW SCHEMAS WORK ─────────────────────────────────────────────────
#
# FastAPI uses these models to validate request bodies (invalid JSON gets
# a 422 with details), to serialize responses (via response_model=...) and
# to generate the OpenAPI docs at /docs.
#
# Convention: Request schemas end with "Request", response schemas
# end with "Response".
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.models.document import DocumentStatus, FileInfo
from src.models.pipeline import Stage
from src.models.search import QueryRecord


class UploadResponse(BaseModel):
    """Returned immediately after an upload is accepted; processing runs in the background."""

    document_id: str
    status: DocumentStatus
    file_info: FileInfo


class DocumentResponse(BaseModel):
    """A document record as exposed over HTTP (no blob reference)."""

    id: str
    file_name: str
    file_type: str
    mime_type: str
    file_size: int
    title: str | None = None
    status: DocumentStatus
    error: str | None = None
    chunk_count: int = 0
    processing_time_ms: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse]
    total: int


class JobStatusResponse(BaseModel):
    """Current stage and progress of a document's ingestion run."""

    document_id: str
    stage: Stage
    progress: int = Field(ge=0, le=100)
    started_at: datetime
    completed_at: datetime | None = None
    error: str | None = None
    stage_timings: dict[str, float] = Field(default_factory=dict)


class SearchRequest(BaseModel):
    """Vector search request."""

    query: str = Field(..., max_length=2000)
    limit: int = Field(default=10, ge=1, le=100)
    document_id: str | None = None
    threshold: float = Field(default=0.0, ge=-1.0, le=1.0)


class HybridSearchRequest(BaseModel):
    """Hybrid search request; ``alpha`` weights the vector side."""

    query: str = Field(..., max_length=2000)
    limit: int = Field(default=10, ge=1, le=100)
    document_id: str | None = None
    alpha: float = 0.7


class RecentQueriesResponse(BaseModel):
    queries: list[QueryRecord]


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
