"""Custom exception hierarchy for corpusFlow.

All application exceptions inherit from :class:`CorpusFlowError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "voyage", "pdfco", "chromadb") caused the failure.

The hierarchy follows the ingestion / retrieval domains:

    CorpusFlowError  (base -- catch-all for any corpusFlow error)
    +-- ValidationError          (oversized or malformed input)
    +-- FormatError              (malformed size string / format descriptor)
    +-- ParseError               (format-specific parsing failure)
    +-- ExtractionError          (remote extraction service returned an error)
    +-- ExtractionTimeoutError   (async extraction job polling exhausted)
    +-- EmbeddingError           (embedding batch failure, all-or-nothing)
    +-- StoreError               (blob / document / job / chunk persistence)
    +-- PipelineError            (illegal stage transition, missing document)
    +-- ConfigurationError       (startup / missing config)
"""

from __future__ import annotations


class CorpusFlowError(Exception):
    """Base exception for all corpusFlow errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for
    structured log output, e.g. ``[voyage] HTTP 429``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------

class ValidationError(CorpusFlowError):
    """Raised when an uploaded buffer or request argument is rejected."""

    def __init__(
        self,
        message: str = "Input validation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class FileTooLargeError(ValidationError):
    """Raised when a buffer exceeds the configured size limit."""

    def __init__(
        self,
        message: str = "File exceeds the maximum allowed size",
        size: int = 0,
        limit: int = 0,
    ) -> None:
        super().__init__(message=message)
        self._size = size
        self._limit = limit

    @property
    def size(self) -> int:
        return self._size

    @property
    def limit(self) -> int:
        return self._limit


class FormatError(CorpusFlowError):
    """Raised when a human-readable descriptor (e.g. ``"100MB"``) is malformed."""

    def __init__(
        self,
        message: str = "Malformed format descriptor",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Parsing / extraction errors
# ---------------------------------------------------------------------------

class ParseError(CorpusFlowError):
    """Raised when a format parser cannot turn a buffer into content.

    ``format`` names the parser variant (``"text"``, ``"spreadsheet"``,
    ``"docx"``, ``"pdf"``) and ``cause`` holds the underlying exception.
    """

    def __init__(
        self,
        message: str = "Document parsing failed",
        format: str = "unknown",
        cause: BaseException | None = None,
        provider_name: str | None = None,
    ) -> None:
        self._format = format
        self._cause = cause
        super().__init__(message=message, provider_name=provider_name)

    @property
    def format(self) -> str:
        return self._format

    @property
    def cause(self) -> BaseException | None:
        return self._cause


class ExtractionError(CorpusFlowError):
    """Raised when the remote extraction service reports an error payload."""

    def __init__(
        self,
        message: str = "Remote extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionTimeoutError(CorpusFlowError):
    """Raised when an async extraction job does not finish within the poll budget."""

    def __init__(
        self,
        message: str = "Extraction job timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Embedding / persistence errors
# ---------------------------------------------------------------------------

class EmbeddingError(CorpusFlowError):
    """Raised when any embedding batch fails; no partial vector set is returned."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreError(CorpusFlowError):
    """Raised when a blob, document, job, chunk or query-history write/read fails."""

    def __init__(
        self,
        message: str = "Store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(CorpusFlowError):
    """Raised when pipeline orchestration fails (invalid stage transition, etc.)."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(CorpusFlowError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
