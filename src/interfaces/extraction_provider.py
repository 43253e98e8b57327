"""Abstract base class for remote PDF extraction services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.parsed import ParsedPage


class ExtractedText(BaseModel):
    """Text returned by a remote extraction call."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    pages: list[ParsedPage] = Field(default_factory=list)
    page_count: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)


# Concrete implementation: PDFCoExtractionProvider (src/providers/extraction/)
class IExtractionProvider(ABC):
    """Contract for an OCR-capable PDF extraction API.

    Every call accepts the hosted URL returned by :meth:`upload`.  Errors
    reported by the service raise
    :class:`~src.utils.errors.ExtractionError`; polling that never reaches a
    terminal state raises :class:`~src.utils.errors.ExtractionTimeoutError`.
    """

    @abstractmethod
    async def upload(self, buffer: bytes, file_name: str) -> str:
        """Upload *buffer* and return the URL the service can read it from."""

    @abstractmethod
    async def extract_text(
        self,
        url: str,
        language: str = "eng",
        unwrap: bool = True,
        pages: str | None = None,
        run_async: bool = False,
    ) -> ExtractedText:
        """Extract (OCR-capable) plain text, split into pages."""

    @abstractmethod
    async def get_info(self, url: str) -> dict[str, Any]:
        """Return document information (page count, title, author, ...)."""

    @abstractmethod
    async def extract_json(self, url: str) -> dict[str, Any]:
        """Return the structured JSON rendering of the document."""

    @abstractmethod
    async def extract_tables(self, url: str) -> list[list[list[str]]]:
        """Return each detected table as a matrix of cell strings."""

    @abstractmethod
    async def render_pages(
        self,
        url: str,
        pages: str = "0-2",
        resolution: int = 150,
    ) -> list[str]:
        """Render *pages* to PNG and return the hosted image URLs."""

    @abstractmethod
    async def poll_job(self, job_id: str) -> dict[str, Any]:
        """Poll an async job until it succeeds, fails, or times out."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"pdfco"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
