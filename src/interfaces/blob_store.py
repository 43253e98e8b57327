"""Abstract base class for raw-upload blob storage."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: LocalBlobStore, MemoryBlobStore (src/providers/blob/)
class IBlobStore(ABC):
    """Contract for storing and retrieving uploaded file bytes by key."""

    @abstractmethod
    async def put(self, data: bytes, file_name: str) -> str:
        """Persist *data* and return the ``file_ref`` key for later retrieval."""

    @abstractmethod
    async def get(self, file_ref: str) -> bytes:
        """Return the bytes stored under *file_ref*.

        Raises
        ------
        src.utils.errors.StoreError
            If no blob exists for *file_ref* or it cannot be read.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"local"``."""
