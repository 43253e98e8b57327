"""Word (.docx) parsing with python-docx.

The document is loaded once; body text and tables are then pulled
out concurrently on worker threads.
"""

from __future__ import annotations

import asyncio
import io
from datetime import datetime
from typing import Any

import docx
import structlog
from docx.table import Table

from src.interfaces.format_parser import IFormatParser
from src.models.parsed import ParsedContent, ParsedTable
from src.models.pipeline import ProcessingOptions
from src.utils.errors import ParseError

logger = structlog.get_logger(logger_name=__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class DocxParser(IFormatParser):
    """Parser for Office Open XML word-processing documents."""

    def can_handle(self, file_type: str) -> bool:
        return file_type in ("docx", DOCX_MIME)

    async def parse(self, buffer: bytes, options: ProcessingOptions) -> ParsedContent:
        try:
            document = await asyncio.to_thread(docx.Document, io.BytesIO(buffer))
        except Exception as exc:
            raise ParseError(
                message=f"DOCX parsing failed: {exc}",
                format=self.get_parser_name(),
                cause=exc,
            ) from exc

        messages: list[str] = []
        if options.extract_tables:
            text, tables = await asyncio.gather(
                asyncio.to_thread(self._extract_text, document),
                asyncio.to_thread(self._extract_tables, document, messages),
            )
        else:
            text = await asyncio.to_thread(self._extract_text, document)
            tables = []

        if not text.strip():
            messages.append("Document contains no text")

        metadata: dict[str, Any] = {
            "format": "docx",
            "word_count": len(text.split()),
            "paragraph_count": sum(1 for p in document.paragraphs if p.text.strip()),
            **self._core_properties(document),
            "conversion_messages": messages,
        }
        logger.info(
            "docx_parsed",
            words=metadata["word_count"],
            tables=len(tables),
            messages=len(messages),
        )
        return ParsedContent(content=text, tables=tables, metadata=metadata)

    def get_parser_name(self) -> str:
        return "docx"

    # ------------------------------------------------------------------
    # Extraction helpers (run on worker threads)
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_text(document: Any) -> str:
        # Body order; table rows become tab-separated lines.
        blocks: list[str] = []
        for item in document.iter_inner_content():
            if isinstance(item, Table):
                for row in item.rows:
                    cells = [cell.text.strip() for cell in row.cells]
                    if any(cells):
                        blocks.append("\t".join(cells))
            elif item.text.strip():
                blocks.append(item.text)
        return "\n\n".join(blocks)

    @staticmethod
    def _extract_tables(document: Any, messages: list[str]) -> list[ParsedTable]:
        tables: list[ParsedTable] = []
        for index, table in enumerate(document.tables):
            matrix = [[cell.text.strip() for cell in row.cells] for row in table.rows]
            if not matrix:
                continue
            if len({len(row) for row in matrix}) > 1:
                messages.append(f"Table {index + 1} has rows with inconsistent cell counts")
            tables.append(
                ParsedTable(
                    headers=matrix[0],
                    rows=matrix[1:],
                    metadata={
                        "format": "docx",
                        "table_index": index,
                        "row_count": len(matrix) - 1,
                        "column_count": len(matrix[0]),
                    },
                )
            )
        return tables

    @staticmethod
    def _core_properties(document: Any) -> dict[str, Any]:
        props = document.core_properties
        found: dict[str, Any] = {}
        for key in ("title", "author", "created", "modified"):
            value = getattr(props, key, None)
            if not value:
                continue
            found[key] = value.isoformat() if isinstance(value, datetime) else value
        return found
