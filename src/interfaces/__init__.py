"""Public interface definitions for every corpusFlow collaborator.

Business logic (pipeline, retrieval engine, parsers) depends only on these
abstract base classes.  Concrete adapters live in ``src/providers/`` and are
wired together in ``src/main.py::build_components``.

CONCRETE PROVIDER MAP:
    Interface              →  Concrete implementations
    ─────────────────────────────────────────────────────────────────────
    IBlobStore             →  LocalBlobStore, MemoryBlobStore
    IDocumentStore         →  MemoryDocumentStore, SQLiteDocumentStore
    IJobStore              →  MemoryJobStore, SQLiteJobStore
    IChunkStore            →  MemoryChunkStore, ChromaDBChunkStore
    IQueryHistory          →  MemoryQueryHistory, SQLiteQueryHistory
    IEmbeddingProvider     →  VoyageEmbeddingProvider, OpenAIEmbeddingProvider
    IExtractionProvider    →  PDFCoExtractionProvider
    IFormatParser          →  TextParser, SpreadsheetParser, DocxParser, PdfParser
"""

from src.interfaces.blob_store import IBlobStore
from src.interfaces.chunk_store import IChunkStore
from src.interfaces.document_store import IDocumentStore
from src.interfaces.embedding_provider import IEmbeddingProvider, MultimodalInput
from src.interfaces.extraction_provider import ExtractedText, IExtractionProvider
from src.interfaces.format_parser import IFormatParser
from src.interfaces.job_store import IJobStore
from src.interfaces.query_history import IQueryHistory

__all__ = [
    "ExtractedText",
    "IBlobStore",
    "IChunkStore",
    "IDocumentStore",
    "IEmbeddingProvider",
    "IExtractionProvider",
    "IFormatParser",
    "IJobStore",
    "IQueryHistory",
    "MultimodalInput",
]
