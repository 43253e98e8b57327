"""Normalized output of the format parsers."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ParsedPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    text: str


class ParsedTable(BaseModel):
    """A table as header row plus string rows."""

    model_config = ConfigDict(frozen=True)

    headers: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ParsedImage(BaseModel):
    """An image reference, e.g. a rendered PDF page hosted by the extractor."""

    model_config = ConfigDict(frozen=True)

    url: str
    page_number: int | None = None
    mime_type: str = "image/png"
    kind: str = Field(default="embedded", description='"page_render" or "embedded".')


class ParsedContent(BaseModel):
    """Everything a parser extracted from one buffer.

    ``content`` is always plain text suitable for sentence chunking; the
    structured pieces (pages, tables, images) ride alongside it.
    """

    model_config = ConfigDict(frozen=True)

    content: str = ""
    pages: list[ParsedPage] | None = None
    tables: list[ParsedTable] = Field(default_factory=list)
    images: list[ParsedImage] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
