"""PDF parsing through a remote OCR-capable extraction service.

The upload, text, info and (optionally) structured-JSON steps are
required; if any of them fails, or no extraction provider is configured,
the parser degrades to a crude local scan of the PDF's content streams.
Page renders and tables are optional: their failures are logged and the
parse continues without them.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from typing import Any

import structlog

from src.interfaces.extraction_provider import ExtractedText, IExtractionProvider
from src.interfaces.format_parser import IFormatParser
from src.models.parsed import ParsedContent, ParsedImage, ParsedTable
from src.models.pipeline import ProcessingOptions

logger = structlog.get_logger(logger_name=__name__)

_STREAM_RE = re.compile(r"stream\s*([\s\S]*?)\s*endstream")
_READABLE_RUN_RE = re.compile(r"[a-zA-Z0-9\s,.!?;:'\"()\-]{20,}")
_PAREN_TEXT_RE = re.compile(r"\(([^)]+)\)")
_LETTER_RE = re.compile(r"[a-zA-Z]")
_WHITESPACE_RE = re.compile(r"\s+")

FALLBACK_CHAR_LIMIT = 10_000
FALLBACK_MIN_CHARS = 50
FALLBACK_MESSAGE = (
    "Unable to extract text from PDF. The document may be scanned or image-based "
    "(requires OCR), password protected, corrupted, or using an unsupported "
    "encoding. Check that the PDF extraction service is configured."
)

_INFO_FIELDS = (
    "title",
    "author",
    "subject",
    "keywords",
    "creator",
    "producer",
    "creation_date",
    "modification_date",
)


def extract_fallback_text(buffer: bytes) -> str:
    """Scrape readable ASCII from raw PDF bytes.

    Collects long printable runs inside ``stream ... endstream`` blocks and
    parenthesized string literals longer than 10 characters.
    """
    raw = buffer.decode("latin-1")
    pieces: list[str] = []

    for match in _STREAM_RE.finditer(raw):
        readable = _READABLE_RUN_RE.findall(match.group(1))
        if readable:
            pieces.append(" ".join(readable))

    for match in _PAREN_TEXT_RE.finditer(raw):
        literal = match.group(1)
        if len(literal) > 10 and _LETTER_RE.search(literal):
            pieces.append(literal)

    text = _WHITESPACE_RE.sub(" ", " ".join(pieces)).strip()[:FALLBACK_CHAR_LIMIT]
    if len(text) < FALLBACK_MIN_CHARS:
        return FALLBACK_MESSAGE
    return text


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _info_value(info: dict[str, Any], field: str) -> Any:
    """Look up *field* in PDF info, tolerating snake, camel and Pascal keys."""
    camel = _camel(field)
    for key in (field, camel, camel[:1].upper() + camel[1:]):
        if info.get(key):
            return info[key]
    return None


class PdfParser(IFormatParser):
    """Parser for PDF documents.

    Parameters
    ----------
    extraction_provider:
        Remote extraction service.  ``None`` (or an unconfigured provider)
        sends every PDF straight to the local fallback.
    """

    def __init__(self, extraction_provider: IExtractionProvider | None = None) -> None:
        self._provider = extraction_provider

    def can_handle(self, file_type: str) -> bool:
        return file_type in ("pdf", "application/pdf")

    async def parse(self, buffer: bytes, options: ProcessingOptions) -> ParsedContent:
        provider = self._provider
        if provider is None or not provider.is_available():
            return self._fallback(buffer, reason="extraction provider not configured")

        logger.info("pdf_remote_extraction_started", size=len(buffer))
        try:
            url = await provider.upload(buffer, f"document-{uuid.uuid4().hex}.pdf")
            extracted, info, structured = await asyncio.gather(
                provider.extract_text(url, language=options.ocr_language, unwrap=True),
                provider.get_info(url),
                self._maybe_structured(provider, url, options),
            )
        except Exception as exc:
            logger.warning(
                "pdf_remote_extraction_failed",
                error=str(exc),
                provider=provider.get_provider_name(),
            )
            return self._fallback(buffer, reason=str(exc))

        images = await self._render_images(provider, url) if options.extract_images else []
        matrices = await self._extract_tables(provider, url) if options.extract_tables else []

        content = self._combine(extracted, structured, matrices)
        tables = [
            ParsedTable(
                headers=matrix[0],
                rows=matrix[1:],
                metadata={
                    "format": "pdf",
                    "table_index": index,
                    "row_count": len(matrix) - 1,
                    "column_count": len(matrix[0]),
                },
            )
            for index, matrix in enumerate(matrices)
            if matrix
        ]

        metadata: dict[str, Any] = {
            "format": "pdf",
            "page_count": extracted.page_count or _info_value(info, "page_count") or 1,
        }
        for field in _INFO_FIELDS:
            metadata[field] = _info_value(info, field) or extracted.metadata.get(field)
        metadata.update(
            {
                "has_images": bool(images),
                "has_tables": bool(matrices),
                "table_count": len(matrices),
                "extracted_via": provider.get_provider_name(),
                "word_count": len(content.split()),
                "file_size": len(buffer),
            }
        )

        logger.info(
            "pdf_parsed",
            pages=metadata["page_count"],
            tables=len(tables),
            images=len(images),
        )
        return ParsedContent(
            content=content,
            pages=list(extracted.pages),
            tables=tables,
            images=images,
            metadata=metadata,
        )

    def get_parser_name(self) -> str:
        return "pdf"

    # ------------------------------------------------------------------
    # Remote helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _maybe_structured(
        provider: IExtractionProvider,
        url: str,
        options: ProcessingOptions,
    ) -> dict[str, Any] | None:
        if not options.extract_structured:
            return None
        return await provider.extract_json(url)

    @staticmethod
    async def _render_images(provider: IExtractionProvider, url: str) -> list[ParsedImage]:
        try:
            urls = await provider.render_pages(url, pages="0-2", resolution=150)
        except Exception as exc:
            logger.warning("pdf_page_render_failed", error=str(exc))
            return []
        return [
            ParsedImage(url=u, page_number=i + 1, mime_type="image/png", kind="page_render")
            for i, u in enumerate(urls)
        ]

    @staticmethod
    async def _extract_tables(provider: IExtractionProvider, url: str) -> list[list[list[str]]]:
        try:
            return await provider.extract_tables(url)
        except Exception as exc:
            logger.warning("pdf_table_extraction_failed", error=str(exc))
            return []

    @staticmethod
    def _combine(
        extracted: ExtractedText,
        structured: dict[str, Any] | None,
        matrices: list[list[list[str]]],
    ) -> str:
        parts = [extracted.text]

        pages = (structured or {}).get("pages") or []
        if pages:
            parts.append("\n\n--- Structured Data ---\n")
            for index, page in enumerate(pages):
                page_text = page.get("text") if isinstance(page, dict) else None
                if page_text:
                    parts.append(f"\nPage {index + 1}:\n{page_text}\n")

        if matrices:
            parts.append("\n\n--- Tables ---\n")
            for index, matrix in enumerate(matrices):
                parts.append(f"\nTable {index + 1}:\n")
                parts.extend(" | ".join(row) + "\n" for row in matrix)

        return "".join(parts)

    # ------------------------------------------------------------------
    # Local fallback
    # ------------------------------------------------------------------

    @staticmethod
    def _fallback(buffer: bytes, reason: str) -> ParsedContent:
        text = extract_fallback_text(buffer)
        logger.warning("pdf_fallback_extraction", reason=reason, chars=len(text))
        return ParsedContent(
            content=text,
            metadata={
                "format": "pdf",
                "page_count": 1,
                "file_size": len(buffer),
                "word_count": len(text.split()),
                "warning": "Fallback extraction used; remote PDF extraction was unavailable.",
                "extracted_via": "local-fallback",
                "fallback_reason": reason,
            },
        )
