"""Abstract base class for chunk (and vector) persistence.

The retrieval engine re-scores candidates with exact cosine similarity, so
:meth:`IChunkStore.vector_search` returns chunks *with* their stored
embeddings rather than backend-specific scores.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.chunk import Chunk


# Concrete implementations:
#   MemoryChunkStore    -- brute-force cosine ranking (src/providers/store/)
#   ChromaDBChunkStore  -- persistent HNSW index (src/providers/vector_store/)
class IChunkStore(ABC):
    """Contract for storing embedded chunks and finding candidates."""

    @abstractmethod
    async def create(self, chunk: Chunk) -> Chunk:
        """Store *chunk* (idempotent by chunk id)."""

    @abstractmethod
    async def vector_search(
        self,
        embedding: list[float],
        limit: int,
        document_id: str | None = None,
    ) -> list[Chunk]:
        """Return up to *limit* nearest chunks, each carrying its embedding.

        Parameters
        ----------
        embedding:
            Query vector.
        limit:
            Maximum number of candidates.
        document_id:
            Restrict candidates to one document when given.
        """

    @abstractmethod
    async def keyword_search(
        self,
        query: str,
        limit: int,
        document_id: str | None = None,
    ) -> list[Chunk]:
        """Return up to *limit* chunks whose content contains *query*.

        Matching is a case-insensitive substring test.  Unscoped searches
        scan at most 1000 chunks; scoped searches scan all of the
        document's chunks.  Unscoped results follow insertion order; scoped
        results follow ``chunk_index``.
        """

    @abstractmethod
    async def count(self, document_id: str | None = None) -> int:
        """Return the number of stored chunks (optionally for one document)."""

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> int:
        """Delete every chunk of *document_id* and return how many were removed."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"chromadb"``."""
