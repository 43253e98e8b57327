"""Format parsers and the registry that dispatches to them."""

from src.services.ingestion.parsers.docx_parser import DocxParser
from src.services.ingestion.parsers.pdf_parser import PdfParser
from src.services.ingestion.parsers.registry import ParserRegistry
from src.services.ingestion.parsers.spreadsheet_parser import SpreadsheetParser
from src.services.ingestion.parsers.text_parser import TextParser


def build_default_registry(pdf_parser: PdfParser | None = None) -> ParserRegistry:
    """Registry with every built-in parser; plain text is the fallback."""
    text = TextParser()
    return ParserRegistry(
        parsers=[pdf_parser or PdfParser(), DocxParser(), SpreadsheetParser(), text],
        default=text,
    )


__all__ = [
    "DocxParser",
    "ParserRegistry",
    "PdfParser",
    "SpreadsheetParser",
    "TextParser",
    "build_default_registry",
]
