"""Document, job, chunk and query-history store adapters."""

from src.providers.store.memory_stores import (
    MemoryChunkStore,
    MemoryDocumentStore,
    MemoryJobStore,
    MemoryQueryHistory,
)
from src.providers.store.sqlite_document_store import SQLiteDocumentStore
from src.providers.store.sqlite_job_store import SQLiteJobStore
from src.providers.store.sqlite_query_history import SQLiteQueryHistory

__all__ = [
    "MemoryChunkStore",
    "MemoryDocumentStore",
    "MemoryJobStore",
    "MemoryQueryHistory",
    "SQLiteDocumentStore",
    "SQLiteJobStore",
    "SQLiteQueryHistory",
]
