"""ChromaDB chunk store adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IChunkStore`.
Vectors are always pre-computed by the embedding batcher, so the
collection is opened with a no-op embedding function.  ChromaDB's client
is synchronous; every call is pushed to a worker thread.

ChromaDB metadata values must be scalars and may not be ``None``, so
optional fields are omitted when unset and ``extra`` is stored as JSON.
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime
from typing import Any

# Must be set before chromadb is imported.
os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb
import structlog

from src.interfaces.chunk_store import IChunkStore
from src.models.chunk import Chunk, ChunkMetadata, ChunkType
from src.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_KEYWORD_SCAN_LIMIT = 1000
_INCLUDE = ["documents", "metadatas", "embeddings"]


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Prevents ChromaDB from loading its default ONNX embedding model."""

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "corpusFlow stores pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBChunkStore(IChunkStore):
    """Chunk store backed by a persistent ChromaDB collection (cosine space)."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "corpusflow_chunks",
        client: Any | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections created by another embedding function reject ours.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    # ------------------------------------------------------------------
    # IChunkStore implementation
    # ------------------------------------------------------------------

    async def create(self, chunk: Chunk) -> Chunk:
        if chunk.embedding is None:
            raise StoreError(
                message=f"Chunk {chunk.id} has no embedding",
                provider_name=self.get_provider_name(),
            )
        try:
            await asyncio.to_thread(
                self._collection.upsert,
                ids=[chunk.id],
                embeddings=[chunk.embedding],
                documents=[chunk.content],
                metadatas=[self._chunk_to_metadata(chunk)],
            )
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return chunk

    async def vector_search(
        self,
        embedding: list[float],
        limit: int,
        document_id: str | None = None,
    ) -> list[Chunk]:
        try:
            total = await asyncio.to_thread(self._collection.count)
            if total == 0 or limit <= 0:
                return []

            kwargs: dict[str, Any] = {
                "query_embeddings": [embedding],
                "n_results": min(limit, total),
                "include": _INCLUDE,
            }
            if document_id is not None:
                kwargs["where"] = {"document_id": document_id}

            results = await asyncio.to_thread(self._collection.query, **kwargs)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results.get("ids") or not results["ids"][0]:
            return []

        chunks = self._rows_to_chunks(
            results["ids"][0],
            results["documents"][0],
            results["metadatas"][0],
            results["embeddings"][0] if results.get("embeddings") is not None else None,
        )
        logger.debug(
            "chromadb_vector_search",
            candidates=len(chunks),
            scoped=document_id is not None,
        )
        return chunks

    async def keyword_search(
        self,
        query: str,
        limit: int,
        document_id: str | None = None,
    ) -> list[Chunk]:
        needle = query.lower()
        if not needle:
            return []

        kwargs: dict[str, Any] = {"include": _INCLUDE}
        if document_id is None:
            kwargs["limit"] = _KEYWORD_SCAN_LIMIT
        else:
            kwargs["where"] = {"document_id": document_id}

        try:
            rows = await asyncio.to_thread(self._collection.get, **kwargs)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB get failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        pool = self._rows_to_chunks(
            rows.get("ids") or [],
            rows.get("documents") or [],
            rows.get("metadatas") or [],
            rows.get("embeddings"),
        )
        if document_id is not None:
            pool.sort(key=lambda c: c.chunk_index)

        return [c for c in pool if needle in c.content.lower()][:limit]

    async def count(self, document_id: str | None = None) -> int:
        try:
            if document_id is None:
                return await asyncio.to_thread(self._collection.count)
            rows = await asyncio.to_thread(
                self._collection.get, where={"document_id": document_id}, include=[]
            )
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(rows.get("ids") or [])

    async def delete_by_document(self, document_id: str) -> int:
        try:
            existing = await asyncio.to_thread(
                self._collection.get, where={"document_id": document_id}, include=[]
            )
            count = len(existing.get("ids") or [])
            if count > 0:
                await asyncio.to_thread(
                    self._collection.delete, where={"document_id": document_id}
                )
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_by_document", document_id=document_id, deleted_count=count)
        return count

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Metadata mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _chunk_to_metadata(chunk: Chunk) -> dict[str, str | int | float | bool]:
        meta: dict[str, str | int | float | bool] = {
            "document_id": chunk.document_id,
            "chunk_index": chunk.chunk_index,
            "tokens": chunk.tokens,
            "chunk_type": chunk.metadata.chunk_type.value,
            "created_at": chunk.created_at.isoformat(),
            "extra_json": json.dumps(chunk.metadata.extra, default=str),
        }
        if chunk.embedding_model:
            meta["embedding_model"] = chunk.embedding_model
        if chunk.embedding_dimension is not None:
            meta["embedding_dimension"] = chunk.embedding_dimension
        if chunk.metadata.start_index is not None:
            meta["start_index"] = chunk.metadata.start_index
        if chunk.metadata.end_index is not None:
            meta["end_index"] = chunk.metadata.end_index
        return meta

    @staticmethod
    def _rows_to_chunks(
        ids: list[str],
        documents: list[str | None],
        metadatas: list[dict[str, Any] | None],
        embeddings: Any | None,
    ) -> list[Chunk]:
        chunks: list[Chunk] = []
        for i, chunk_id in enumerate(ids):
            meta = metadatas[i] or {}
            vector = None
            if embeddings is not None and len(embeddings) > i and embeddings[i] is not None:
                vector = [float(x) for x in embeddings[i]]
            created_at = meta.get("created_at")
            chunks.append(
                Chunk(
                    id=chunk_id,
                    document_id=str(meta.get("document_id", "")),
                    content=documents[i] or "",
                    chunk_index=int(meta.get("chunk_index", 0)),
                    tokens=int(meta.get("tokens", 0)),
                    embedding=vector,
                    embedding_model=meta.get("embedding_model"),
                    embedding_dimension=meta.get("embedding_dimension"),
                    metadata=ChunkMetadata(
                        chunk_type=ChunkType(meta.get("chunk_type", "text")),
                        start_index=meta.get("start_index"),
                        end_index=meta.get("end_index"),
                        extra=json.loads(meta.get("extra_json") or "{}"),
                    ),
                    **({"created_at": datetime.fromisoformat(created_at)} if created_at else {}),
                )
            )
        return chunks
