"""Document lifecycle models.

A :class:`Document` is the record of one uploaded file.  Its ``status``
moves ``pending -> processing -> completed`` (or ``error``); a new
pipeline run may move a finished document back to ``processing``.
All models are frozen; stores hand back updated copies produced with
``model_copy(update={...})``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class DocumentStatus(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Coarse lifecycle status shown to API clients."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class FileInfo(BaseModel):
    """Result of validating an uploaded buffer."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    file_type: str = Field(description="Detected extension, e.g. 'pdf' or 'txt'.")
    mime_type: str
    file_size: int = Field(ge=0, description="Size of the buffer in bytes.")
    hash: str = Field(description="SHA-256 hex digest of the buffer.")


class Document(BaseModel):
    """An uploaded file and the outcome of its most recent ingestion run."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    file_name: str
    file_type: str = ""
    mime_type: str = ""
    file_size: int = Field(default=0, ge=0)
    content_hash: str = ""
    file_ref: str = Field(description="Blob-store key of the raw upload.")
    title: str | None = None
    status: DocumentStatus = DocumentStatus.PENDING
    error: str | None = None
    chunk_count: int = Field(default=0, ge=0)
    processing_time_ms: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_file_info(
        cls,
        info: FileInfo,
        file_ref: str,
        title: str | None = None,
    ) -> Document:
        return cls(
            file_name=info.file_name,
            file_type=info.file_type,
            mime_type=info.mime_type,
            file_size=info.file_size,
            content_hash=info.hash,
            file_ref=file_ref,
            title=title,
        )

    def file_info(self) -> FileInfo:
        return FileInfo(
            file_name=self.file_name,
            file_type=self.file_type,
            mime_type=self.mime_type,
            file_size=self.file_size,
            hash=self.content_hash,
        )


class DocumentContext(BaseModel):
    """The slice of a Document attached to each search result."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    file_name: str
    file_type: str

    @classmethod
    def from_document(cls, document: Document) -> DocumentContext:
        return cls(
            title=document.title,
            file_name=document.file_name,
            file_type=document.file_type,
        )
