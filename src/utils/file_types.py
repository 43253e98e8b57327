"""File-type detection, hashing and size validation for uploaded buffers.

Detection is content-first: the ``filetype`` library sniffs magic bytes.
When it cannot decide, the first 1000 bytes are decoded and the buffer is
treated as plain text if nearly every character is printable.  Zip-based
office formats (docx, xlsx) sniff as ``application/zip`` and are refined
using the file name's extension.
"""

from __future__ import annotations

import hashlib
import math
import re
from pathlib import PurePath

import filetype

from src.models.document import FileInfo
from src.utils.errors import FileTooLargeError, FormatError
from src.utils.logging import get_logger

logger = get_logger(__name__)

OCTET_STREAM = "application/octet-stream"

_SNIFF_WINDOW = 1000
_PRINTABLE_RATIO = 0.95
_PRINTABLE_RE = re.compile(r"[\x20-\x7E\n\r\t]")

_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*([KMG]?B)?$", re.IGNORECASE)
_SIZE_UNITS: dict[str, int] = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
}

MIME_BY_EXTENSION: dict[str, str] = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "doc": "application/msword",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "xls": "application/vnd.ms-excel",
    "csv": "text/csv",
    "txt": "text/plain",
    "md": "text/markdown",
    "html": "text/html",
    "htm": "text/html",
    "json": "application/json",
    "xml": "application/xml",
    "epub": "application/epub+zip",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
}

# Containers that sniff as zip but are really office/ebook formats.
_ZIP_REFINABLE = {"docx", "xlsx", "epub"}
# Text formats the sniffer can only ever report as plain text.
_TEXT_REFINABLE = {"csv", "md", "html", "htm", "json", "xml"}


# ------------------------------------------------------------------
# Module-level helpers
# ------------------------------------------------------------------


def extension_of(file_name: str) -> str:
    """Return the lower-cased extension of *file_name* without the dot."""
    return PurePath(file_name or "").suffix.lstrip(".").lower()


def mime_for_name(file_name: str) -> str:
    """Map a file name's extension to a MIME type (octet-stream if unknown)."""
    return MIME_BY_EXTENSION.get(extension_of(file_name), OCTET_STREAM)


def is_text_mime(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type in {
        "application/json",
        "application/xml",
    }


def is_image_mime(mime_type: str) -> bool:
    return mime_type.startswith("image/")


def is_office_mime(mime_type: str) -> bool:
    return (
        "officedocument" in mime_type
        or mime_type in {"application/msword", "application/vnd.ms-excel"}
    )


def parse_file_size(text: str) -> int:
    """Parse a human size such as ``"100MB"`` or ``"1.5 kb"`` into bytes.

    A bare number is bytes.  The result is floored to an integer.

    Raises
    ------
    FormatError
        If *text* does not match ``<number>[B|KB|MB|GB]``.
    """
    match = _SIZE_RE.match(str(text).strip())
    if not match:
        raise FormatError(message=f"Invalid file size format: {text!r}")

    value = float(match.group(1))
    unit = (match.group(2) or "B").upper()
    return math.floor(value * _SIZE_UNITS[unit])


def format_file_size(size: int | float) -> str:
    """Render a byte count as ``"1.50 MB"`` style text."""
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{value:.2f} {units[index]}"


# ------------------------------------------------------------------
# Resolver
# ------------------------------------------------------------------


class FileTypeResolver:
    """Classifies uploaded buffers and enforces the configured size limit.

    Parameters
    ----------
    default_max_size:
        Size cap applied when :meth:`validate` is called without an
        explicit ``max_size``.  Accepts bytes or a human string.
    """

    def __init__(self, default_max_size: int | str = "100MB") -> None:
        self._default_max_size = self._to_bytes(default_max_size)

    @property
    def default_max_size(self) -> int:
        return self._default_max_size

    # -- Public API ---------------------------------------------------------

    def detect(self, buffer: bytes, file_name: str = "") -> tuple[str, str]:
        """Return ``(mime_type, extension)`` for *buffer*.  Never returns None."""
        if not buffer:
            return OCTET_STREAM, "bin"

        name_ext = extension_of(file_name)
        kind = filetype.guess(buffer)

        if kind is not None:
            if kind.mime == "application/zip" and name_ext in _ZIP_REFINABLE:
                return MIME_BY_EXTENSION[name_ext], name_ext
            return kind.mime, kind.extension

        if self._looks_like_text(buffer):
            if name_ext in _TEXT_REFINABLE:
                return MIME_BY_EXTENSION[name_ext], name_ext
            return "text/plain", "txt"

        return OCTET_STREAM, "bin"

    @staticmethod
    def hash(buffer: bytes) -> str:
        """Return the SHA-256 hex digest of *buffer*."""
        return hashlib.sha256(buffer).hexdigest()

    def validate(
        self,
        buffer: bytes,
        file_name: str,
        max_size: int | str | None = None,
    ) -> FileInfo:
        """Check the size limit, then detect type and hash the buffer.

        Raises
        ------
        FileTooLargeError
            If the buffer exceeds *max_size* (or the resolver default).
        FormatError
            If *max_size* is a malformed human string.
        """
        limit = self._default_max_size if max_size is None else self._to_bytes(max_size)
        size = len(buffer)

        if size > limit:
            logger.warning(
                "file_rejected_oversize",
                file_name=file_name,
                file_size=size,
                max_size=limit,
            )
            raise FileTooLargeError(
                message=(
                    f"File size {format_file_size(size)} exceeds maximum "
                    f"allowed size of {format_file_size(limit)}"
                ),
                size=size,
                limit=limit,
            )

        mime_type, file_type = self.detect(buffer, file_name)
        return FileInfo(
            file_name=file_name,
            file_type=file_type,
            mime_type=mime_type,
            file_size=size,
            hash=self.hash(buffer),
        )

    # -- Private helpers ----------------------------------------------------

    @staticmethod
    def _to_bytes(value: int | str) -> int:
        if isinstance(value, int):
            return value
        return parse_file_size(value)

    @staticmethod
    def _looks_like_text(buffer: bytes) -> bool:
        sample = buffer[:_SNIFF_WINDOW].decode("utf-8", errors="replace")
        if not sample:
            return False
        printable = len(_PRINTABLE_RE.findall(sample))
        return printable / len(sample) > _PRINTABLE_RATIO
