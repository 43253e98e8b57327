"""Utility modules for corpusFlow.

Available utility modules:

- **errors** -- Domain-specific exception hierarchy rooted at CorpusFlowError;
  each pipeline stage raises its own subclass so callers (and the API error
  middleware) can map failures to the right response.
- **concurrency** -- asyncio semaphore throttling and sequential-batch
  fan-out that keep embedding and store calls under provider limits.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **similarity** -- cosine similarity and ranking over plain float vectors.
- **timing** -- per-stage wall-clock timer for ingestion runs.
- **file_types** (not re-exported here) -- content sniffing, hashing and
  size-limit validation for uploads.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ConfigurationError,
    CorpusFlowError,
    EmbeddingError,
    ExtractionError,
    ExtractionTimeoutError,
    FileTooLargeError,
    FormatError,
    ParseError,
    PipelineError,
    StoreError,
    ValidationError,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import gather_in_batches, throttled_gather

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, document_context, get_logger

# -- Vector math and timing ------------------------------------------------
from src.utils.similarity import cosine_similarity, rank_by_similarity
from src.utils.timing import ProcessingTimer

__all__ = [
    "ConfigurationError",
    "CorpusFlowError",
    "EmbeddingError",
    "ExtractionError",
    "ExtractionTimeoutError",
    "FileTooLargeError",
    "FormatError",
    "ParseError",
    "PipelineError",
    "ProcessingTimer",
    "StoreError",
    "ValidationError",
    "configure_logging",
    "cosine_similarity",
    "document_context",
    "gather_in_batches",
    "get_logger",
    "rank_by_similarity",
    "throttled_gather",
]
