"""Pydantic request/response schemas for the knowledge-base API.

Request schemas end with "Request", response schemas with "Response".
Domain models (:class:`~src.models.documents.Document`,
:class:`~src.models.deletion.DeletionReport`, ...) are returned as-is where
their shape is already the public contract.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from src.models.documents import Document, Folder
from src.models.ingestion import IngestionProgress
from src.models.rag import RetrievedChunk


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]
    ingestion_queue: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    code: str = "internal_error"
    detail: str | None = None


# ---------------------------------------------------------------------------
# Folders & documents
# ---------------------------------------------------------------------------


class CreateFolderRequest(BaseModel):
    """A new folder, optionally nested under *parent_id*."""

    tenant_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    parent_id: str | None = None
    created_by: str = ""


class FolderResponse(BaseModel):
    folder: Folder


class DocumentUploadResponse(BaseModel):
    """Returned with 202 once the file is stored and ingestion is queued."""

    document: Document
    ingestion: IngestionProgress


class IngestionStatusResponse(BaseModel):
    """Latest known ingestion state of a document."""

    document_id: str
    status: str = Field(description="Ingestion stage, or the persisted processing status.")
    detail: str | None = None
    error_code: str | None = None
    total_chunks: int = 0
    stored_chunks: int = 0


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


class SearchRequest(BaseModel):
    """Semantic search over one tenant's documents."""

    tenant_id: str = Field(..., min_length=1)
    query: str = Field(..., min_length=1, max_length=2000)
    top_k: int = Field(default=5, ge=1, le=50)


class SearchResponse(BaseModel):
    query: str
    results: list[RetrievedChunk] = Field(default_factory=list)
    total_results: int = 0


class ChatRequest(BaseModel):
    """A question to answer from one tenant's documents."""

    tenant_id: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1, max_length=1000)
    top_k: int = Field(default=5, ge=1, le=20)
