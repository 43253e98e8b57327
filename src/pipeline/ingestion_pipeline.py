"""Document ingestion pipeline -- the stage machine behind every upload.

# ─── HOW A RUN PROGRESSES ─────────────────────────────────────────────
#
#   pending → downloading → parsing → chunking → embedding → storing → completed
#                  │            │          │           │          │
#                  └────────────┴──────────┴───────────┴──────────┴──→ error
#
#   Each arrow is checked against STAGE_TRANSITIONS and persisted through
#   the job store at its fixed progress checkpoint (0/20/40/60/80/100),
#   so a client polling the job sees monotonic progress.
#
#   On any failure the document AND the job are marked ``error`` with the
#   same message and the original exception propagates to the caller.
#   Nothing is retried and chunks already written are left in place.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path

import structlog

from src.interfaces.blob_store import IBlobStore
from src.interfaces.chunk_store import IChunkStore
from src.interfaces.document_store import IDocumentStore
from src.interfaces.job_store import IJobStore
from src.models.chunk import Chunk, ChunkDraft
from src.models.document import Document, DocumentStatus
from src.models.pipeline import (
    STAGE_PROGRESS,
    IngestionResult,
    ProcessingJob,
    ProcessingOptions,
    Stage,
    can_transition,
)
from src.services.ingestion.chunker import SentenceChunker
from src.services.ingestion.embedding_batcher import EmbeddedBatch, EmbeddingBatcher
from src.services.ingestion.parsers.registry import ParserRegistry
from src.utils.concurrency import gather_in_batches
from src.utils.errors import EmbeddingError, PipelineError
from src.utils.file_types import FileTypeResolver
from src.utils.logging import document_context
from src.utils.timing import ProcessingTimer

logger = structlog.get_logger(logger_name=__name__)


class IngestionPipeline:
    """Drives one document at a time through parse, chunk, embed and store.

    Parameters
    ----------
    blob_store, document_store, job_store, chunk_store:
        Persistence collaborators.
    file_types:
        Validates size and detects the format of downloaded bytes.
    parsers:
        Registry choosing a parser per detected file type.
    chunker:
        Sentence chunker producing chunk drafts.
    batcher:
        Embedding batcher producing one vector per draft.
    default_options:
        Options used when a run does not pass its own.
    store_batch_size:
        Chunks written concurrently per batch (default 10).
    multimodal_chunk_cap:
        Multimodal embedding is only attempted for documents with at most
        this many chunks (default 50).
    max_file_size:
        Size limit passed to the resolver; ``None`` uses its default.
    """

    def __init__(
        self,
        blob_store: IBlobStore,
        document_store: IDocumentStore,
        job_store: IJobStore,
        chunk_store: IChunkStore,
        file_types: FileTypeResolver,
        parsers: ParserRegistry,
        chunker: SentenceChunker,
        batcher: EmbeddingBatcher,
        default_options: ProcessingOptions | None = None,
        store_batch_size: int = 10,
        multimodal_chunk_cap: int = 50,
        max_file_size: int | str | None = None,
    ) -> None:
        self._blobs = blob_store
        self._documents = document_store
        self._jobs = job_store
        self._chunks = chunk_store
        self._file_types = file_types
        self._parsers = parsers
        self._chunker = chunker
        self._batcher = batcher
        self._default_options = default_options or ProcessingOptions()
        self._store_batch_size = store_batch_size
        self._multimodal_chunk_cap = multimodal_chunk_cap
        self._max_file_size = max_file_size

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def register_upload(
        self,
        buffer: bytes,
        file_name: str,
        title: str | None = None,
    ) -> Document:
        """Validate an upload, store its bytes and create a ``pending`` Document.

        Raises
        ------
        ValidationError
            If the buffer is too large; no blob or document is written.
        """
        info = self._file_types.validate(buffer, file_name, self._max_file_size)
        file_ref = await self._blobs.put(buffer, file_name)
        document = Document.from_file_info(info, file_ref, title=title or Path(file_name).stem)
        await self._documents.create(document)
        logger.info(
            "document_registered",
            document_id=document.id,
            file_name=file_name,
            file_type=info.file_type,
            file_size=info.file_size,
        )
        return document

    async def ingest_upload(
        self,
        buffer: bytes,
        file_name: str,
        title: str | None = None,
        options: ProcessingOptions | None = None,
    ) -> IngestionResult:
        """Register an upload and run the pipeline on it immediately."""
        document = await self.register_upload(buffer, file_name, title)
        return await self.run(document.id, options)

    async def run_many(
        self,
        document_ids: Sequence[str],
        options: ProcessingOptions | None = None,
    ) -> list[IngestionResult | BaseException]:
        """Run independent documents concurrently.

        Failures are returned in place of results rather than raised, so one
        bad document does not abort the others.
        """
        results = await asyncio.gather(
            *(self.run(document_id, options) for document_id in document_ids),
            return_exceptions=True,
        )
        failed = sum(1 for r in results if isinstance(r, BaseException))
        logger.info("batch_ingestion_complete", documents=len(results), failed=failed)
        return list(results)

    async def run(
        self,
        document_id: str,
        options: ProcessingOptions | None = None,
    ) -> IngestionResult:
        """Process one stored document end to end.

        Raises
        ------
        PipelineError
            If the document does not exist or a stage transition is illegal.
        CorpusFlowError
            Whatever failed in a stage, after the document and job have been
            marked ``error``.
        """
        opts = options or self._default_options
        with document_context(document_id):
            document = await self._documents.get(document_id)
            if document is None:
                raise PipelineError(message=f"Document {document_id} not found")

            timer = ProcessingTimer()
            job: ProcessingJob | None = None
            try:
                await self._documents.update_status(document_id, DocumentStatus.PROCESSING)
                job = await self._jobs.create(document_id)
                logger.info("ingestion_started", file_name=document.file_name)

                with timer.stage(Stage.DOWNLOADING.value):
                    buffer = await self._blobs.get(document.file_ref)
                    info = self._file_types.validate(
                        buffer, document.file_name, self._max_file_size
                    )

                job = await self._advance(job, Stage.PARSING)
                with timer.stage(Stage.PARSING.value):
                    parsed = await self._parsers.parse(
                        buffer, info.file_type, opts, mime_type=info.mime_type
                    )

                job = await self._advance(job, Stage.CHUNKING)
                with timer.stage(Stage.CHUNKING.value):
                    drafts = self._chunker.chunk(
                        parsed.content,
                        tables=parsed.tables if opts.extract_tables else None,
                        options=opts,
                    )

                job = await self._advance(job, Stage.EMBEDDING)
                with timer.stage(Stage.EMBEDDING.value):
                    multimodal = bool(parsed.images) and len(drafts) <= self._multimodal_chunk_cap
                    embedded = await self._batcher.embed_chunks(
                        drafts,
                        parsed.images,
                        model=opts.embedding_model,
                        multimodal_model=opts.multimodal_model,
                        multimodal=multimodal,
                    )

                job = await self._advance(job, Stage.STORING)
                with timer.stage(Stage.STORING.value):
                    chunks = self._build_chunks(document_id, drafts, embedded)
                    # A re-run replaces the previous run's chunks.
                    await self._chunks.delete_by_document(document_id)
                    await gather_in_batches(chunks, self._chunks.create, self._store_batch_size)

                processing_time_ms = timer.elapsed_ms()
                await self._documents.update_processing_complete(
                    document_id,
                    chunk_count=len(chunks),
                    processing_time_ms=processing_time_ms,
                    metadata=parsed.metadata,
                )
                await self._jobs.complete(document_id, timer.timings)
            except Exception as exc:
                stage = job.stage.value if job else Stage.PENDING.value
                logger.error(
                    "ingestion_failed",
                    stage=stage,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                await self._record_failure(document_id, str(exc))
                raise

            models = sorted({m for m in embedded.models if m})
            logger.info(
                "ingestion_completed",
                chunk_count=len(chunks),
                processing_time_ms=processing_time_ms,
                stage_timings=timer.timings,
            )
            return IngestionResult(
                document_id=document_id,
                chunk_count=len(chunks),
                processing_time_ms=processing_time_ms,
                stage_timings=timer.timings,
                embedding_models=models,
            )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _advance(self, job: ProcessingJob, stage: Stage) -> ProcessingJob:
        if not can_transition(job.stage, stage):
            raise PipelineError(
                message=f"Illegal stage transition {job.stage.value} -> {stage.value}"
            )
        updated = await self._jobs.update_progress(job.document_id, stage, STAGE_PROGRESS[stage])
        logger.info("stage_advanced", stage=stage.value, progress=updated.progress)
        return updated

    async def _record_failure(self, document_id: str, message: str) -> None:
        # The original error is what the caller needs; store failures here are only logged.
        try:
            await self._documents.update_status(document_id, DocumentStatus.ERROR, error=message)
        except Exception as exc:
            logger.error("document_error_status_failed", error=str(exc))
        try:
            await self._jobs.set_error(document_id, message)
        except Exception as exc:
            logger.error("job_error_status_failed", error=str(exc))

    @staticmethod
    def _build_chunks(
        document_id: str,
        drafts: Sequence[ChunkDraft],
        embedded: EmbeddedBatch,
    ) -> list[Chunk]:
        if len(embedded.vectors) != len(drafts):
            raise EmbeddingError(
                message=f"Got {len(embedded.vectors)} embeddings for {len(drafts)} chunks"
            )
        return [
            Chunk(
                document_id=document_id,
                content=draft.content,
                chunk_index=index,
                tokens=draft.tokens,
                embedding=vector,
                embedding_model=model or None,
                embedding_dimension=len(vector),
                metadata=draft.to_metadata(),
            )
            for index, (draft, vector, model) in enumerate(
                zip(drafts, embedded.vectors, embedded.models, strict=True)
            )
        ]
