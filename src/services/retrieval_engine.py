"""Semantic and hybrid search over stored chunks.

The engine embeds the query with the same :class:`EmbeddingBatcher` used at
ingestion time, pulls candidates from the chunk store and scores them with
exact cosine similarity.  Every successful search is written to the query
history; a failure to write it is logged and never surfaces to the caller.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

import structlog

from src.interfaces.chunk_store import IChunkStore
from src.interfaces.document_store import IDocumentStore
from src.interfaces.query_history import IQueryHistory
from src.models.chunk import Chunk
from src.models.document import DocumentContext
from src.models.search import (
    QueryRecord,
    QueryResultSummary,
    SearchResponse,
    SearchResult,
    SearchType,
)
from src.services.ingestion.embedding_batcher import EmbeddingBatcher
from src.utils.errors import ValidationError
from src.utils.similarity import cosine_similarity

logger = structlog.get_logger(logger_name=__name__)

_HISTORY_RESULTS = 10
_HISTORY_CONTENT_CHARS = 200
DEFAULT_ALPHA = 0.7

__all__ = ["DEFAULT_ALPHA", "RetrievalEngine", "cosine_similarity"]


class RetrievalEngine:
    """Answers vector and hybrid queries against the chunk store.

    Parameters
    ----------
    batcher:
        Embeds the query text.
    chunk_store:
        Source of candidate chunks (vector and keyword).
    document_store:
        Used to attach document context to each result.
    query_history:
        Receives one :class:`QueryRecord` per search; optional.
    """

    def __init__(
        self,
        batcher: EmbeddingBatcher,
        chunk_store: IChunkStore,
        document_store: IDocumentStore,
        query_history: IQueryHistory | None = None,
    ) -> None:
        self._batcher = batcher
        self._chunks = chunk_store
        self._documents = document_store
        self._history = query_history

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        limit: int = 10,
        document_id: str | None = None,
        threshold: float = 0.0,
    ) -> SearchResponse:
        """Rank chunks by cosine similarity to *query*.

        A blank query returns an empty response without touching the
        embedding provider.
        """
        start = time.perf_counter()
        if not query or not query.strip():
            return SearchResponse(query=query or "")

        results = await self._vector_results(query, limit, document_id, threshold)
        results = await self._attach_documents(results)
        elapsed = _elapsed_ms(start)

        await self._record(query, results, elapsed, "vector")
        logger.info(
            "vector_search_complete",
            result_count=len(results),
            execution_time_ms=elapsed,
            scoped=document_id is not None,
        )
        return SearchResponse(
            query=query,
            results=results,
            total_results=len(results),
            execution_time_ms=elapsed,
            search_type="vector",
        )

    async def hybrid_search(
        self,
        query: str,
        limit: int = 10,
        document_id: str | None = None,
        alpha: float = DEFAULT_ALPHA,
    ) -> SearchResponse:
        """Fuse vector similarity with keyword rank.

        Each chunk scores ``alpha * cosine`` from the vector side plus
        ``(1 - alpha) / rank`` from the keyword side.  Ties keep the better
        vector rank first, then the better keyword rank.

        Raises
        ------
        ValidationError
            If *alpha* is outside ``[0, 1]``.
        """
        if not 0.0 <= alpha <= 1.0:
            raise ValidationError(message=f"alpha must be between 0 and 1, got {alpha}")

        start = time.perf_counter()
        if not query or not query.strip():
            return SearchResponse(query=query or "", search_type="hybrid", alpha=alpha)

        vector_hits, keyword_hits = await asyncio.gather(
            self._vector_results(query, limit, document_id, threshold=0.0),
            self._chunks.keyword_search(query, limit, document_id),
        )

        fused = self._fuse(vector_hits, keyword_hits, alpha)[:limit]
        fused = await self._attach_documents(fused)
        elapsed = _elapsed_ms(start)

        await self._record(query, fused, elapsed, "hybrid")
        logger.info(
            "hybrid_search_complete",
            vector_hits=len(vector_hits),
            keyword_hits=len(keyword_hits),
            result_count=len(fused),
            alpha=alpha,
            execution_time_ms=elapsed,
        )
        return SearchResponse(
            query=query,
            results=fused,
            total_results=len(fused),
            execution_time_ms=elapsed,
            search_type="hybrid",
            alpha=alpha,
        )

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    async def _vector_results(
        self,
        query: str,
        limit: int,
        document_id: str | None,
        threshold: float,
    ) -> list[SearchResult]:
        query_vector = await self._batcher.embed_query(query)
        candidates = await self._chunks.vector_search(query_vector, limit * 2, document_id)

        scored = [
            (chunk, cosine_similarity(query_vector, chunk.embedding or []))
            for chunk in candidates
        ]
        scored = [pair for pair in scored if pair[1] >= threshold]
        scored.sort(key=lambda pair: pair[1], reverse=True)

        return [
            _to_result(chunk, score, vector_rank=rank)
            for rank, (chunk, score) in enumerate(scored[:limit], start=1)
        ]

    @staticmethod
    def _fuse(
        vector_hits: Sequence[SearchResult],
        keyword_hits: Sequence[Chunk],
        alpha: float,
    ) -> list[SearchResult]:
        fused: dict[str, SearchResult] = {}
        for result in vector_hits:
            fused[result.chunk_id] = result.model_copy(update={"score": alpha * result.score})

        for rank, chunk in enumerate(keyword_hits, start=1):
            contribution = (1 - alpha) / rank
            existing = fused.get(chunk.id)
            if existing is not None:
                fused[chunk.id] = existing.model_copy(
                    update={"score": existing.score + contribution, "keyword_rank": rank}
                )
            else:
                fused[chunk.id] = _to_result(chunk, contribution, keyword_rank=rank)

        missing = float("inf")
        return sorted(
            fused.values(),
            key=lambda r: (
                -r.score,
                r.vector_rank if r.vector_rank is not None else missing,
                r.keyword_rank if r.keyword_rank is not None else missing,
            ),
        )

    # ------------------------------------------------------------------
    # Enrichment and history
    # ------------------------------------------------------------------

    async def _attach_documents(self, results: list[SearchResult]) -> list[SearchResult]:
        contexts: dict[str, DocumentContext | None] = {}
        for document_id in {r.document_id for r in results}:
            document = await self._documents.get(document_id)
            contexts[document_id] = DocumentContext.from_document(document) if document else None
        return [r.model_copy(update={"document": contexts.get(r.document_id)}) for r in results]

    async def _record(
        self,
        query: str,
        results: Sequence[SearchResult],
        elapsed_ms: float,
        search_type: SearchType,
    ) -> None:
        if self._history is None:
            return
        record = QueryRecord(
            query_text=query,
            result_count=len(results),
            top_score=results[0].score if results else None,
            response_time_ms=elapsed_ms,
            results=[
                QueryResultSummary(
                    chunk_id=r.chunk_id,
                    document_id=r.document_id,
                    score=r.score,
                    content=r.content[:_HISTORY_CONTENT_CHARS],
                )
                for r in results[:_HISTORY_RESULTS]
            ],
            search_type=search_type,
        )
        try:
            await self._history.record(record)
        except Exception as exc:
            logger.warning("query_history_record_failed", error=str(exc))


def _to_result(
    chunk: Chunk,
    score: float,
    vector_rank: int | None = None,
    keyword_rank: int | None = None,
) -> SearchResult:
    return SearchResult(
        chunk_id=chunk.id,
        document_id=chunk.document_id,
        content=chunk.content,
        score=score,
        chunk_index=chunk.chunk_index,
        metadata=chunk.metadata.model_dump(mode="json"),
        vector_rank=vector_rank,
        keyword_rank=keyword_rank,
    )


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)
