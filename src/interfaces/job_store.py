"""Abstract base class for processing-job persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.pipeline import ProcessingJob, Stage


# Concrete implementations: MemoryJobStore, SQLiteJobStore (src/providers/store/)
class IJobStore(ABC):
    """Contract for the per-document progress record of the active run.

    There is at most one job per document id; :meth:`create` on an existing
    id restarts it.
    """

    @abstractmethod
    async def create(self, document_id: str) -> ProcessingJob:
        """Start a job at ``downloading``/0 for *document_id*."""

    @abstractmethod
    async def get(self, document_id: str) -> ProcessingJob | None:
        """Return the job for *document_id*, or ``None``."""

    @abstractmethod
    async def update_progress(
        self,
        document_id: str,
        stage: Stage,
        progress: int,
    ) -> ProcessingJob:
        """Persist the job's current stage and progress checkpoint."""

    @abstractmethod
    async def complete(
        self,
        document_id: str,
        stage_timings: dict[str, float] | None = None,
    ) -> ProcessingJob:
        """Mark the job ``completed`` at 100 with its stage timings."""

    @abstractmethod
    async def set_error(self, document_id: str, error: str) -> ProcessingJob:
        """Move the job to ``error`` with *error* as its message."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"memory"``."""
