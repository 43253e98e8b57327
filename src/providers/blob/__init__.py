"""Blob storage adapters for raw uploads."""

from src.providers.blob.local_blob_store import LocalBlobStore
from src.providers.blob.memory_blob_store import MemoryBlobStore

__all__ = ["LocalBlobStore", "MemoryBlobStore"]
