"""CSV and Excel workbook parsing.

CSV is parsed with the standard library's ``csv.DictReader`` (header row
as keys); workbooks go through ``openpyxl`` in read-only, values-only
mode on a worker thread.  Every sheet or CSV file becomes one
:class:`~src.models.parsed.ParsedTable`, and the document text is a
pipe-delimited rendering of those tables.
"""

from __future__ import annotations

import asyncio
import csv
import io
from typing import Any

import openpyxl
import structlog

from src.interfaces.format_parser import IFormatParser
from src.models.parsed import ParsedContent, ParsedTable
from src.models.pipeline import ProcessingOptions
from src.utils.errors import ParseError

logger = structlog.get_logger(logger_name=__name__)

_HANDLED_TYPES = frozenset({"xlsx", "xls", "csv"})
# Zip (xlsx) and OLE2 (xls) containers are never CSV, whatever bytes they hold.
_BINARY_SIGNATURES = (b"PK\x03\x04", b"\xd0\xcf\x11\xe0")


def looks_like_csv(buffer: bytes) -> bool:
    """True when the first 1000 bytes show a comma and more than one line."""
    if buffer.startswith(_BINARY_SIGNATURES):
        return False
    start = buffer[:1000].decode("utf-8", errors="ignore")
    lines = start.split("\n")[:5]
    return len(lines) > 1 and any("," in line for line in lines)


def table_to_text(table: ParsedTable) -> str:
    """Render a table as a header row, a ``---`` separator row and data rows."""
    lines: list[str] = []
    if table.headers:
        lines.append(" | ".join(table.headers))
        lines.append(" | ".join("---" for _ in table.headers))
    lines.extend(" | ".join(row) for row in table.rows)
    return "\n".join(lines) + "\n"


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


class SpreadsheetParser(IFormatParser):
    """Parser for CSV, XLSX and XLS uploads."""

    def can_handle(self, file_type: str) -> bool:
        return (
            file_type in _HANDLED_TYPES
            or "spreadsheet" in file_type
            or file_type == "text/csv"
        )

    async def parse(self, buffer: bytes, options: ProcessingOptions) -> ParsedContent:
        try:
            if looks_like_csv(buffer):
                return self._parse_csv(buffer)
            return await asyncio.to_thread(self._parse_workbook, buffer)
        except ParseError:
            raise
        except Exception as exc:
            raise ParseError(
                message=f"Spreadsheet parsing failed: {exc}",
                format=self.get_parser_name(),
                cause=exc,
            ) from exc

    def get_parser_name(self) -> str:
        return "spreadsheet"

    # ------------------------------------------------------------------
    # CSV
    # ------------------------------------------------------------------

    def _parse_csv(self, buffer: bytes) -> ParsedContent:
        text = buffer.decode("utf-8-sig", errors="replace")
        reader = csv.DictReader(io.StringIO(text))
        headers = [h or "" for h in (reader.fieldnames or [])]
        rows = [[_cell(record.get(h)) for h in headers] for record in reader]

        table = ParsedTable(
            headers=headers,
            rows=rows,
            metadata={
                "format": "csv",
                "row_count": len(rows),
                "column_count": len(headers),
            },
        )
        logger.info("csv_parsed", rows=len(rows), columns=len(headers))
        return ParsedContent(
            content=table_to_text(table).strip(),
            tables=[table],
            metadata={"format": "csv", "row_count": len(rows), "column_count": len(headers)},
        )

    # ------------------------------------------------------------------
    # Workbooks
    # ------------------------------------------------------------------

    def _parse_workbook(self, buffer: bytes) -> ParsedContent:
        workbook = openpyxl.load_workbook(io.BytesIO(buffer), read_only=True, data_only=True)
        try:
            sheet_names = list(workbook.sheetnames)
            tables: list[ParsedTable] = []
            sections: list[str] = []

            for sheet in workbook.worksheets:
                values = [
                    row
                    for row in sheet.iter_rows(values_only=True)
                    if any(cell is not None for cell in row)
                ]
                if not values:
                    continue

                headers = [_cell(v) for v in values[0]]
                rows = [[_cell(v) for v in row] for row in values[1:]]
                table = ParsedTable(
                    headers=headers,
                    rows=rows,
                    metadata={
                        "sheet_name": sheet.title,
                        "format": "excel",
                        "row_count": len(rows),
                        "column_count": len(headers),
                    },
                )
                tables.append(table)
                sections.append(f"\n\nSheet: {sheet.title}\n{table_to_text(table)}")
        finally:
            workbook.close()

        logger.info("workbook_parsed", sheets=len(sheet_names), tables=len(tables))
        return ParsedContent(
            content="".join(sections).strip(),
            tables=tables,
            metadata={"format": "excel", "sheet_count": len(sheet_names), "sheets": sheet_names},
        )
