"""corpusFlow domain models -- re-exports all public model classes.

Submodules by concern:
    - document.py -- uploaded document records and file info
    - pipeline.py -- stage machine, processing job, processing options
    - parsed.py   -- normalized parser output (text, pages, tables, images)
    - chunk.py    -- chunk drafts and stored chunks
    - search.py   -- search results and query history records
"""

from __future__ import annotations

from src.models.chunk import Chunk, ChunkDraft, ChunkMetadata, ChunkType
from src.models.document import Document, DocumentContext, DocumentStatus, FileInfo
from src.models.parsed import ParsedContent, ParsedImage, ParsedPage, ParsedTable
from src.models.pipeline import (
    STAGE_PROGRESS,
    STAGE_TRANSITIONS,
    IngestionResult,
    ProcessingJob,
    ProcessingOptions,
    Stage,
    can_transition,
)
from src.models.search import (
    QueryRecord,
    QueryResultSummary,
    SearchResponse,
    SearchResult,
)

__all__ = [
    "STAGE_PROGRESS",
    "STAGE_TRANSITIONS",
    "Chunk",
    "ChunkDraft",
    "ChunkMetadata",
    "ChunkType",
    "Document",
    "DocumentContext",
    "DocumentStatus",
    "FileInfo",
    "IngestionResult",
    "ParsedContent",
    "ParsedImage",
    "ParsedPage",
    "ParsedTable",
    "ProcessingJob",
    "ProcessingOptions",
    "QueryRecord",
    "QueryResultSummary",
    "SearchResponse",
    "SearchResult",
    "Stage",
    "can_transition",
]
