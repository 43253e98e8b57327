"""Plain text, Markdown, HTML and JSON parsing.

The buffer is decoded as UTF-8 and its flavour is sniffed from content,
not from the file extension: valid bracketed JSON first, then HTML tags,
then Markdown syntax at the start of a line, otherwise plain text.
"""

from __future__ import annotations

import json
import re
from typing import Any

import markdown
import structlog
from bs4 import BeautifulSoup

from src.interfaces.format_parser import IFormatParser
from src.models.parsed import ParsedContent
from src.models.pipeline import ProcessingOptions
from src.utils.errors import ParseError

logger = structlog.get_logger(logger_name=__name__)

_HANDLED_TYPES = frozenset({"txt", "md", "markdown", "html", "htm", "json", "xml", "yaml", "yml"})

_HTML_RE = re.compile(r"<html|<body|<div|<p|<h[1-6]", re.IGNORECASE)
_MARKDOWN_RE = re.compile(r"^#{1,6}\s|^\*{1,2}[^*]+\*{1,2}|^\[.+\]\(.+\)|^```", re.MULTILINE)
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def detect_text_format(content: str) -> str:
    """Return ``"json"``, ``"html"``, ``"markdown"`` or ``"plain"``."""
    trimmed = content.strip()
    if (trimmed.startswith("{") and trimmed.endswith("}")) or (
        trimmed.startswith("[") and trimmed.endswith("]")
    ):
        try:
            json.loads(trimmed)
            return "json"
        except json.JSONDecodeError:
            pass

    if _HTML_RE.search(content):
        return "html"
    if _MARKDOWN_RE.search(content):
        return "markdown"
    return "plain"


def html_to_text(html: str) -> str:
    """Strip HTML to text, keeping headings, paragraphs and list items legible."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    for tag in soup.find_all(re.compile(r"^h[1-6]$")):
        tag.replace_with(f"\n\n## {tag.get_text()}\n\n")
    for tag in soup.find_all("p"):
        tag.replace_with(f"\n{tag.get_text()}\n")
    for tag in soup.find_all("li"):
        tag.replace_with(f"• {tag.get_text()}\n")
    return soup.get_text().replace("\xa0", " ").strip()


def markdown_to_text(source: str) -> str:
    html = markdown.markdown(source, extensions=["fenced_code", "tables"])
    return BeautifulSoup(html, "html.parser").get_text().strip()


def json_to_text(value: Any, indent: int = 0) -> str:
    """Render parsed JSON as an indented ``key: value`` outline."""
    spacing = "  " * indent
    lines: list[str] = []

    if isinstance(value, list):
        for index, item in enumerate(value):
            lines.append(f"{spacing}[{index}]:\n")
            lines.append(json_to_text(item, indent + 1))
    elif isinstance(value, dict):
        for key, item in value.items():
            if isinstance(item, (dict, list)):
                lines.append(f"{spacing}{key}:\n")
                lines.append(json_to_text(item, indent + 1))
            else:
                lines.append(f"{spacing}{key}: {_scalar(item)}\n")
    else:
        lines.append(f"{spacing}{_scalar(value)}\n")

    return "".join(lines)


def clean_plain_text(content: str) -> str:
    text = content.replace("\r\n", "\n").replace("\t", "  ")
    return _EXCESS_NEWLINES_RE.sub("\n\n", text).strip()


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class TextParser(IFormatParser):
    """Parser for text-like formats; also the registry's default parser."""

    def can_handle(self, file_type: str) -> bool:
        return file_type in _HANDLED_TYPES or file_type.startswith("text/")

    async def parse(self, buffer: bytes, options: ProcessingOptions) -> ParsedContent:
        content = buffer.decode("utf-8", errors="replace")
        text_format = detect_text_format(content)

        try:
            if text_format == "json":
                text = json_to_text(json.loads(content.strip()))
            elif text_format == "html":
                text = html_to_text(content)
            elif text_format == "markdown":
                text = markdown_to_text(content)
            else:
                text = clean_plain_text(content)
        except Exception as exc:
            raise ParseError(
                message=f"Failed to parse {text_format} text: {exc}",
                format=self.get_parser_name(),
                cause=exc,
            ) from exc

        metadata = {
            "format": text_format,
            "original_length": len(content),
            "word_count": len(text.split()),
            "line_count": text.count("\n") + 1,
        }
        logger.debug("text_parsed", **metadata)
        return ParsedContent(content=text, metadata=metadata)

    def get_parser_name(self) -> str:
        return "text"
