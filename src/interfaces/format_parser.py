"""Abstract base class for per-format document parsers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.parsed import ParsedContent
from src.models.pipeline import ProcessingOptions


# Concrete implementations (src/services/ingestion/parsers/):
#   TextParser, SpreadsheetParser, DocxParser, PdfParser
class IFormatParser(ABC):
    """Turns the raw bytes of one file format into :class:`ParsedContent`."""

    @abstractmethod
    def can_handle(self, file_type: str) -> bool:
        """Return ``True`` if this parser accepts *file_type*.

        *file_type* may be an extension (``"csv"``) or a MIME type
        (``"text/csv"``).
        """

    @abstractmethod
    async def parse(self, buffer: bytes, options: ProcessingOptions) -> ParsedContent:
        """Parse *buffer*.

        Raises
        ------
        src.utils.errors.ParseError
            If the input cannot be parsed.
        """

    @abstractmethod
    def get_parser_name(self) -> str:
        """Return the format name reported in ``ParseError.format``."""
