"""Abstract base class for the search query log."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.search import QueryRecord


# Concrete implementations: MemoryQueryHistory, SQLiteQueryHistory
class IQueryHistory(ABC):
    """Append-only log of executed searches."""

    @abstractmethod
    async def record(self, record: QueryRecord) -> None:
        """Append *record* to the log."""

    @abstractmethod
    async def recent(self, limit: int = 20) -> list[QueryRecord]:
        """Return the *limit* most recent records, newest first."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"sqlite"``."""
