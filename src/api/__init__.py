"""Knowledge-base API layer: routes, schemas and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    ChatRequest,
    CreateFolderRequest,
    DocumentUploadResponse,
    ErrorResponse,
    FolderResponse,
    HealthResponse,
    IngestionStatusResponse,
    SearchRequest,
    SearchResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ChatRequest",
    "CreateFolderRequest",
    "DocumentUploadResponse",
    "ErrorResponse",
    "FolderResponse",
    "HealthResponse",
    "IngestionStatusResponse",
    "SearchRequest",
    "SearchResponse",
]
