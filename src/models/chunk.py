"""Chunk models: the searchable unit of the corpus.

The chunker emits :class:`ChunkDraft` objects (no id, no vector).  The
pipeline turns them into :class:`Chunk` records once embeddings exist,
assigning a contiguous ``chunk_index`` per document.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChunkType(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    TEXT = "text"
    TABLE = "table"


class ChunkMetadata(BaseModel):
    """Position and provenance of a chunk within its source text.

    ``start_index``/``end_index`` are character offsets into the parsed
    content; ``None`` means the chunk has no position (table chunks).
    """

    model_config = ConfigDict(frozen=True)

    chunk_type: ChunkType = ChunkType.TEXT
    start_index: int | None = None
    end_index: int | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class ChunkDraft(BaseModel):
    """Chunker output before embedding."""

    model_config = ConfigDict(frozen=True)

    content: str
    tokens: int = Field(ge=0)
    chunk_type: ChunkType = ChunkType.TEXT
    start_index: int | None = None
    end_index: int | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    def to_metadata(self) -> ChunkMetadata:
        return ChunkMetadata(
            chunk_type=self.chunk_type,
            start_index=self.start_index,
            end_index=self.end_index,
            extra=dict(self.extra),
        )


class Chunk(BaseModel):
    """A stored, embedded chunk of a document."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    document_id: str
    content: str
    chunk_index: int = Field(ge=0)
    tokens: int = Field(default=0, ge=0)
    embedding: list[float] | None = None
    embedding_model: str | None = None
    embedding_dimension: int | None = None
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("chunk content must not be empty")
        return value
