"""Parser selection by file type.

One :class:`ParserRegistry` is built in ``src/main.py`` and handed to the
pipeline.  Parsers are consulted in registration order; the first whose
``can_handle`` accepts the file's extension (or, failing that, its MIME
type) wins, and anything unclaimed goes to the default plain-text parser.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from src.interfaces.format_parser import IFormatParser
from src.models.parsed import ParsedContent
from src.models.pipeline import ProcessingOptions
from src.utils.errors import ParseError

logger = structlog.get_logger(logger_name=__name__)


class ParserRegistry:
    """Ordered collection of format parsers with a fallback."""

    def __init__(self, parsers: Sequence[IFormatParser], default: IFormatParser) -> None:
        self._parsers = list(parsers)
        self._default = default

    @property
    def parsers(self) -> list[IFormatParser]:
        return list(self._parsers)

    def resolve(self, file_type: str, mime_type: str | None = None) -> IFormatParser:
        """Return the parser for *file_type*, trying *mime_type* second."""
        for key in (file_type, mime_type):
            if not key:
                continue
            for parser in self._parsers:
                if parser.can_handle(key):
                    return parser
        return self._default

    async def parse(
        self,
        buffer: bytes,
        file_type: str,
        options: ProcessingOptions,
        mime_type: str | None = None,
    ) -> ParsedContent:
        """Dispatch *buffer* to the matching parser.

        Raises
        ------
        ParseError
            For any parser failure; non-ParseError exceptions are wrapped
            with the parser's format name and the original as ``cause``.
        """
        parser = self.resolve(file_type, mime_type)
        name = parser.get_parser_name()
        logger.info("parser_selected", parser=name, file_type=file_type, mime_type=mime_type)

        try:
            return await parser.parse(buffer, options)
        except ParseError:
            raise
        except Exception as exc:
            raise ParseError(
                message=f"{name} parsing failed: {exc}",
                format=name,
                cause=exc,
            ) from exc
