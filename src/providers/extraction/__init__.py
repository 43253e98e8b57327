"""Remote document extraction adapters."""

from src.providers.extraction.pdfco_extraction_provider import PDFCoExtractionProvider

__all__ = ["PDFCoExtractionProvider"]
