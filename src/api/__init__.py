"""corpusFlow API layer -- routes, schemas, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    HybridSearchRequest,
    JobStatusResponse,
    SearchRequest,
    UploadResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "DocumentResponse",
    "ErrorResponse",
    "HealthResponse",
    "HybridSearchRequest",
    "JobStatusResponse",
    "SearchRequest",
    "UploadResponse",
]
