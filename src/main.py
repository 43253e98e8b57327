"""corpusFlow FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Settings come from ``.env`` / environment variables; ``build_components``
constructs every collaborator explicitly so nothing lives in a module-level
client singleton.

``build_components`` is also used by the CLI (``python -m src.cli``).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.settings import Settings
from src.interfaces.blob_store import IBlobStore
from src.interfaces.chunk_store import IChunkStore
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.extraction_provider import IExtractionProvider
from src.pipeline.ingestion_pipeline import IngestionPipeline
from src.providers.blob.local_blob_store import LocalBlobStore
from src.providers.blob.memory_blob_store import MemoryBlobStore
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.embedding.voyage_embedding_provider import VoyageEmbeddingProvider
from src.providers.extraction.pdfco_extraction_provider import PDFCoExtractionProvider
from src.providers.store.memory_stores import (
    MemoryChunkStore,
    MemoryDocumentStore,
    MemoryJobStore,
    MemoryQueryHistory,
)
from src.providers.store.sqlite_document_store import SQLiteDocumentStore
from src.providers.store.sqlite_job_store import SQLiteJobStore
from src.providers.store.sqlite_query_history import SQLiteQueryHistory
from src.services.ingestion.chunker import SentenceChunker
from src.services.ingestion.embedding_batcher import EmbeddingBatcher
from src.services.ingestion.parsers import PdfParser, build_default_registry
from src.services.retrieval_engine import RetrievalEngine
from src.utils.errors import ConfigurationError
from src.utils.file_types import FileTypeResolver
from src.utils.logging import configure_logging, get_logger

_VERSION = "0.1.0"

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_embedding_provider(
    app_settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> IEmbeddingProvider:
    """Select the embedding provider.

    ``EMBEDDING_PROVIDER=auto`` prefers Voyage, then OpenAI (or an
    OpenAI-compatible endpoint), by which API key is configured.

    Raises
    ------
    ConfigurationError
        If the selected provider has no API key.
    """
    choice = app_settings.embedding_provider
    if choice == "auto":
        available = app_settings.get_available_embedding_providers()
        if not available:
            raise ConfigurationError(
                message="No embedding provider configured: set VOYAGE_API_KEY or OPENAI_API_KEY"
            )
        choice = available[0]

    if choice == "voyage":
        if not app_settings.voyage_api_key:
            raise ConfigurationError(message="EMBEDDING_PROVIDER=voyage requires VOYAGE_API_KEY")
        return VoyageEmbeddingProvider(
            api_key=app_settings.voyage_api_key,
            default_model=app_settings.embedding_model,
            multimodal_model=app_settings.multimodal_model,
            base_url=app_settings.voyage_base_url,
            http_client=http_client,
            timeout=app_settings.http_timeout,
        )

    if not app_settings.openai_api_key:
        raise ConfigurationError(message="EMBEDDING_PROVIDER=openai requires OPENAI_API_KEY")
    return OpenAIEmbeddingProvider(
        api_key=app_settings.openai_api_key,
        base_url=app_settings.openai_base_url,
        default_model=app_settings.openai_embedding_model,
    )


def _build_extraction_provider(
    app_settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> IExtractionProvider | None:
    """Return the PDF.co provider, or ``None`` when no key is configured."""
    if not app_settings.pdfco_api_key:
        _logger.warning(
            "pdf_extraction_disabled",
            msg="PDFCO_API_KEY not set; PDFs will use local fallback text.",
        )
        return None
    return PDFCoExtractionProvider(
        api_key=app_settings.pdfco_api_key,
        base_url=app_settings.pdfco_base_url,
        http_client=http_client,
        timeout=app_settings.http_timeout,
        max_concurrency=app_settings.extraction_max_concurrency,
        poll_interval=app_settings.poll_interval,
        poll_max_attempts=app_settings.poll_max_attempts,
    )


def _build_chunk_store(app_settings: Settings) -> IChunkStore:
    if app_settings.chunk_store == "chromadb":
        from src.providers.vector_store.chromadb_chunk_store import ChromaDBChunkStore

        return ChromaDBChunkStore(
            persist_directory=app_settings.chromadb_persist_dir,
            collection_name=app_settings.chromadb_collection,
        )
    return MemoryChunkStore()


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings,
    embedding_provider: IEmbeddingProvider | None = None,
) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    An *embedding_provider* may be passed in to bypass provider selection.
    """
    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=app_settings.http_timeout)

    # -- Storage --
    if app_settings.storage_backend == "sqlite":
        document_store = SQLiteDocumentStore(db_path=app_settings.sqlite_db_path)
        job_store = SQLiteJobStore(db_path=app_settings.sqlite_db_path)
        query_history = SQLiteQueryHistory(db_path=app_settings.sqlite_db_path)
    else:
        document_store = MemoryDocumentStore()
        job_store = MemoryJobStore()
        query_history = MemoryQueryHistory()
    chunk_store = _build_chunk_store(app_settings)
    blob_store: IBlobStore = (
        LocalBlobStore(root_dir=app_settings.blob_dir)
        if app_settings.storage_backend == "sqlite"
        else MemoryBlobStore()
    )

    # -- External providers --
    embedder = embedding_provider or _build_embedding_provider(app_settings, http_client)
    extraction = _build_extraction_provider(app_settings, http_client)

    # -- Services --
    file_types = FileTypeResolver(default_max_size=app_settings.max_file_size)
    batcher = EmbeddingBatcher(
        provider=embedder,
        batch_size=app_settings.embedding_batch_size,
        max_concurrency=app_settings.embedding_max_concurrency,
        multimodal_prefix=app_settings.multimodal_prefix,
        default_model=app_settings.embedding_model,
    )
    parsers = build_default_registry(pdf_parser=PdfParser(extraction_provider=extraction))
    chunker = SentenceChunker(
        chunk_size=app_settings.chunk_size,
        chunk_overlap=app_settings.chunk_overlap,
    )

    pipeline = IngestionPipeline(
        blob_store=blob_store,
        document_store=document_store,
        job_store=job_store,
        chunk_store=chunk_store,
        file_types=file_types,
        parsers=parsers,
        chunker=chunker,
        batcher=batcher,
        default_options=app_settings.processing_options(),
        store_batch_size=app_settings.store_batch_size,
        multimodal_chunk_cap=app_settings.multimodal_chunk_cap,
    )
    retrieval_engine = RetrievalEngine(
        batcher=batcher,
        chunk_store=chunk_store,
        document_store=document_store,
        query_history=query_history,
    )

    # -- Provider registry for /health --
    provider_registry: dict[str, Any] = {
        "embedding": embedder.is_available(),
        "embedding_provider": embedder.get_provider_name(),
        "multimodal": embedder.supports_multimodal(),
        "extraction": extraction is not None and extraction.is_available(),
        "chunk_store": chunk_store.get_provider_name(),
        "document_store": document_store.get_provider_name(),
    }

    return {
        "http_client": http_client,
        "blob_store": blob_store,
        "document_store": document_store,
        "job_store": job_store,
        "chunk_store": chunk_store,
        "query_history": query_history,
        "file_types": file_types,
        "pipeline": pipeline,
        "retrieval_engine": retrieval_engine,
        "provider_registry": provider_registry,
        "version": _VERSION,
    }


async def initialize_components(components: dict[str, Any]) -> None:
    """Create tables for any store that needs it (SQLite backends)."""
    for key in ("document_store", "job_store", "query_history"):
        store = components.get(key)
        initialize = getattr(store, "initialize", None)
        if initialize is not None:
            await initialize()


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


def _make_lifespan(app_settings: Settings):  # noqa: ANN202
    @asynccontextmanager
    async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
        """Build all components on startup, close the HTTP client on shutdown."""
        components = build_components(app_settings)
        await initialize_components(components)

        for key, value in components.items():
            setattr(application.state, key, value)

        _logger.info(
            "app_startup",
            version=_VERSION,
            environment=app_settings.app_env,
            embedding_provider=components["provider_registry"]["embedding_provider"],
            storage_backend=app_settings.storage_backend,
            chunk_store=app_settings.chunk_store,
        )

        yield

        http_client: httpx.AsyncClient = components["http_client"]
        await http_client.aclose()
        _logger.info("app_shutdown", message="HTTP client closed")

    return _lifespan


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    app_settings = app_settings or Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    application = FastAPI(
        title="corpusFlow API",
        version=_VERSION,
        description=(
            "Upload documents, extract and chunk their text, embed the chunks, "
            "and search them semantically or with hybrid vector + keyword ranking."
        ),
        lifespan=_make_lifespan(app_settings),
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


def main() -> None:
    app_settings = Settings()
    uvicorn.run(
        create_app(app_settings),
        host=app_settings.app_host,
        port=app_settings.app_port,
    )


if __name__ == "__main__":
    main()
