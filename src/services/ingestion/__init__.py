"""Document ingestion building blocks.

1. **Parse** (parsers/) -- format-specific readers turn raw bytes into
   :class:`~src.models.parsed.ParsedContent`.
2. **Chunk** (chunker.py / SentenceChunker) -- sentence packing into
   token-budgeted chunks with overlap; tables become standalone chunks.
3. **Embed** (embedding_batcher.py / EmbeddingBatcher) -- rate-limited,
   order-preserving batch embedding.

The stage machine that drives them lives in
``src/pipeline/ingestion_pipeline.py``.
"""

from src.services.ingestion.chunker import SentenceChunker
from src.services.ingestion.embedding_batcher import EmbeddedBatch, EmbeddingBatcher

__all__ = [
    "EmbeddedBatch",
    "EmbeddingBatcher",
    "SentenceChunker",
]
