"""FastAPI API routes for corpusFlow.

Provides REST endpoints for document upload, document and job status,
vector and hybrid search, query history and health checks.  Service
dependencies are resolved from ``app.state`` via FastAPI's ``Depends``
using the ``Annotated`` pattern.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                              Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/documents                     POST    Upload → validate → ingest in background
# /api/v1/documents                     GET     List documents (newest first)
# /api/v1/documents/{id}                GET     One document record
# /api/v1/documents/{id}/job            GET     Poll ingestion stage + progress
# /api/v1/search                        POST    Vector search
# /api/v1/search/hybrid                 POST    Vector + keyword fusion
# /api/v1/queries/recent                GET     Recent query history
# /api/v1/health                        GET     Health check + provider status
#
# Each route declares its dependencies as Annotated params; FastAPI
# resolves them from app.state (populated at startup in main.py).
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Form, HTTPException, Query, Request, UploadFile

from src.api.schemas import (
    DocumentListResponse,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    HybridSearchRequest,
    JobStatusResponse,
    RecentQueriesResponse,
    SearchRequest,
    UploadResponse,
)
from src.interfaces.document_store import IDocumentStore
from src.interfaces.job_store import IJobStore
from src.interfaces.query_history import IQueryHistory
from src.models.document import Document
from src.models.search import SearchResponse
from src.pipeline.ingestion_pipeline import IngestionPipeline
from src.services.retrieval_engine import RetrievalEngine
from src.utils.file_types import FileTypeResolver
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.pipeline


def _get_engine(request: Request) -> RetrievalEngine:
    return request.app.state.retrieval_engine


def _get_document_store(request: Request) -> IDocumentStore:
    return request.app.state.document_store


def _get_job_store(request: Request) -> IJobStore:
    return request.app.state.job_store


def _get_query_history(request: Request) -> IQueryHistory:
    return request.app.state.query_history


def _get_file_types(request: Request) -> FileTypeResolver:
    return request.app.state.file_types


PipelineDep = Annotated[IngestionPipeline, Depends(_get_pipeline)]
EngineDep = Annotated[RetrievalEngine, Depends(_get_engine)]
DocumentStoreDep = Annotated[IDocumentStore, Depends(_get_document_store)]
JobStoreDep = Annotated[IJobStore, Depends(_get_job_store)]
QueryHistoryDep = Annotated[IQueryHistory, Depends(_get_query_history)]
FileTypesDep = Annotated[FileTypeResolver, Depends(_get_file_types)]


def _to_response(document: Document) -> DocumentResponse:
    return DocumentResponse(**document.model_dump(exclude={"file_ref", "content_hash"}))


async def _process_in_background(pipeline: IngestionPipeline, document_id: str) -> None:
    """Run the pipeline after the upload response has been sent.

    The pipeline has already marked the document and job as failed when it
    raises, so the error is only logged here.
    """
    try:
        await pipeline.run(document_id)
    except Exception as exc:
        _logger.error(
            "background_ingestion_failed",
            document_id=document_id,
            error=str(exc),
            error_type=type(exc).__name__,
        )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=UploadResponse,
    status_code=202,
    responses={413: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Upload a document for ingestion",
)
async def upload_document(
    file: UploadFile,
    background_tasks: BackgroundTasks,
    pipeline: PipelineDep,
    file_types: FileTypesDep,
    title: Annotated[str | None, Form()] = None,
) -> UploadResponse:
    """Accept a file, store it, and schedule ingestion in the background."""
    limit = file_types.default_max_size
    parts: list[bytes] = []
    total = 0
    while True:
        part = await file.read(_UPLOAD_CHUNK_SIZE)
        if not part:
            break
        total += len(part)
        parts.append(part)
        # Stop buffering once the limit is exceeded; validate() raises below.
        if total > limit:
            break
    buffer = b"".join(parts)

    document = await pipeline.register_upload(buffer, file.filename or "upload", title=title)
    background_tasks.add_task(_process_in_background, pipeline, document.id)

    return UploadResponse(
        document_id=document.id,
        status=document.status,
        file_info=document.file_info(),
    )


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    summary="List documents",
)
async def list_documents(
    documents: DocumentStoreDep,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> DocumentListResponse:
    records = await documents.list(limit=limit)
    return DocumentListResponse(
        documents=[_to_response(d) for d in records],
        total=len(records),
    )


@router.get(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get a document record",
)
async def get_document(document_id: str, documents: DocumentStoreDep) -> DocumentResponse:
    document = await documents.get(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail=f"Document not found: {document_id}")
    return _to_response(document)


@router.get(
    "/documents/{document_id}/job",
    response_model=JobStatusResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get ingestion progress for a document",
)
async def get_job(document_id: str, jobs: JobStoreDep) -> JobStatusResponse:
    """Return the current stage, progress percentage, timings and any error."""
    job = await jobs.get(document_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"No job for document: {document_id}")
    return JobStatusResponse(**job.model_dump())


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Semantic vector search",
)
async def search(body: SearchRequest, engine: EngineDep) -> SearchResponse:
    return await engine.search(
        body.query,
        limit=body.limit,
        document_id=body.document_id,
        threshold=body.threshold,
    )


@router.post(
    "/search/hybrid",
    response_model=SearchResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Hybrid vector + keyword search",
)
async def hybrid_search(body: HybridSearchRequest, engine: EngineDep) -> SearchResponse:
    return await engine.hybrid_search(
        body.query,
        limit=body.limit,
        document_id=body.document_id,
        alpha=body.alpha,
    )


@router.get(
    "/queries/recent",
    response_model=RecentQueriesResponse,
    summary="Recent search queries",
)
async def recent_queries(
    history: QueryHistoryDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> RecentQueriesResponse:
    return RecentQueriesResponse(queries=await history.recent(limit))


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability."""
    providers: dict[str, Any] = {}
    if hasattr(request.app.state, "provider_registry"):
        providers = dict(request.app.state.provider_registry)

    chunk_store = getattr(request.app.state, "chunk_store", None)
    if chunk_store is not None:
        try:
            providers["chunks"] = await chunk_store.count()
        except Exception as exc:
            _logger.warning("health_chunk_count_failed", error=str(exc))
            providers["chunks"] = None

    if not providers.get("embedding", False):
        status = "unhealthy"
    elif providers.get("chunks") is None:
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        version=getattr(request.app.state, "version", "0.1.0"),
        providers=providers,
    )
