"""Abstract base class for document record persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.document import Document, DocumentStatus


# Concrete implementations: MemoryDocumentStore, SQLiteDocumentStore
# Located in: src/providers/store/
class IDocumentStore(ABC):
    """Contract for storing :class:`Document` records.

    Writes are idempotent by document id: creating an existing id replaces
    the record instead of duplicating it.
    """

    @abstractmethod
    async def create(self, document: Document) -> Document:
        """Insert (or replace) *document* and return the stored copy."""

    @abstractmethod
    async def get(self, document_id: str) -> Document | None:
        """Return the document with *document_id*, or ``None``."""

    @abstractmethod
    async def list(self, limit: int = 50) -> list[Document]:
        """Return up to *limit* documents, newest first."""

    @abstractmethod
    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        error: str | None = None,
    ) -> Document | None:
        """Set the lifecycle status (and error message) of a document.

        Returns the updated document, or ``None`` if it does not exist.
        """

    @abstractmethod
    async def update_processing_complete(
        self,
        document_id: str,
        chunk_count: int,
        processing_time_ms: int,
        metadata: dict[str, Any],
    ) -> Document | None:
        """Mark a document ``completed`` with its chunk count and timings.

        *metadata* is merged over the document's existing metadata.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"sqlite"``."""
