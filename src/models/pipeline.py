"""Ingestion pipeline state models.

:class:`Stage` is the closed set of states a :class:`ProcessingJob` moves
through.  Legal moves are listed in :data:`STAGE_TRANSITIONS`; ``error``
can be entered from any non-terminal stage and is absorbing.  Progress is
not free-form: each stage maps to a fixed checkpoint in
:data:`STAGE_PROGRESS`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


# ---------------------------------------------------------------------------
# Stage -- the state machine that drives one ingestion run.
# ---------------------------------------------------------------------------
class Stage(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Stages of a document ingestion run, in execution order."""

    PENDING = "pending"
    DOWNLOADING = "downloading"  # Raw bytes fetched from the blob store
    PARSING = "parsing"          # Format parser turning bytes into text/tables
    CHUNKING = "chunking"        # Sentence packing into token-budgeted chunks
    EMBEDDING = "embedding"      # Batched vector generation
    STORING = "storing"          # Chunks written to the chunk store
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.COMPLETED, Stage.ERROR)


STAGE_TRANSITIONS: dict[Stage, frozenset[Stage]] = {
    Stage.PENDING: frozenset({Stage.DOWNLOADING, Stage.ERROR}),
    Stage.DOWNLOADING: frozenset({Stage.PARSING, Stage.ERROR}),
    Stage.PARSING: frozenset({Stage.CHUNKING, Stage.ERROR}),
    Stage.CHUNKING: frozenset({Stage.EMBEDDING, Stage.ERROR}),
    Stage.EMBEDDING: frozenset({Stage.STORING, Stage.ERROR}),
    Stage.STORING: frozenset({Stage.COMPLETED, Stage.ERROR}),
    Stage.COMPLETED: frozenset(),
    Stage.ERROR: frozenset(),
}

STAGE_PROGRESS: dict[Stage, int] = {
    Stage.PENDING: 0,
    Stage.DOWNLOADING: 0,
    Stage.PARSING: 20,
    Stage.CHUNKING: 40,
    Stage.EMBEDDING: 60,
    Stage.STORING: 80,
    Stage.COMPLETED: 100,
}


def can_transition(current: Stage, target: Stage) -> bool:
    """Return True when *target* is a legal next stage after *current*."""
    return target in STAGE_TRANSITIONS[current]


# ---------------------------------------------------------------------------
# ProcessingJob -- progress record for the active run of one document.
# ---------------------------------------------------------------------------
class ProcessingJob(BaseModel):
    """Progress of the current ingestion run for a single document."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    stage: Stage = Stage.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None
    error: str | None = None
    stage_timings: dict[str, float] = Field(
        default_factory=dict,
        description="Milliseconds spent in each stage, keyed by stage value.",
    )


# ---------------------------------------------------------------------------
# ProcessingOptions -- per-run knobs, defaults come from Settings.
# ---------------------------------------------------------------------------
class ProcessingOptions(BaseModel):
    """Options controlling how a single document is processed."""

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(default=1000, gt=0, description="Token budget per chunk.")
    chunk_overlap: int = Field(default=200, ge=0, description="Tokens of overlap between chunks.")
    embedding_model: str = "voyage-3"
    multimodal_model: str = "voyage-multimodal-3"
    extract_tables: bool = True
    extract_images: bool = False
    extract_structured: bool = False
    ocr_enabled: bool = False
    ocr_language: str = "eng"

    @model_validator(mode="after")
    def _check_overlap(self) -> ProcessingOptions:
        if self.chunk_overlap > self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must not exceed "
                f"chunk_size ({self.chunk_size})"
            )
        return self


class IngestionResult(BaseModel):
    """Summary returned by a successful pipeline run."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    chunk_count: int = Field(ge=0)
    processing_time_ms: int = Field(ge=0)
    stage_timings: dict[str, float] = Field(default_factory=dict)
    embedding_models: list[str] = Field(default_factory=list)
