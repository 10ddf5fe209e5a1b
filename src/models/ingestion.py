"""Ingestion state-machine models.

A document moves through::

    queued -> downloaded -> extracted -> chunked -> embedding -> storing
           -> completed | partially_completed | failed

``IngestionProgress`` is the pollable snapshot kept by the progress
tracker; ``IngestionResult`` is what a finished run returns.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.models.documents import ProcessingStatus
from src.models.rag import ChunkFailure


class IngestionStage(str, Enum):
    QUEUED = "queued"
    DOWNLOADED = "downloaded"
    EXTRACTED = "extracted"
    CHUNKED = "chunked"
    EMBEDDING = "embedding"
    STORING = "storing"
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STAGES

    def to_processing_status(self) -> ProcessingStatus:
        """Collapse a stage into the status persisted on the document."""
        if self == IngestionStage.QUEUED:
            return ProcessingStatus.PENDING
        if self == IngestionStage.COMPLETED:
            return ProcessingStatus.COMPLETED
        if self == IngestionStage.PARTIALLY_COMPLETED:
            return ProcessingStatus.PARTIALLY_COMPLETED
        if self == IngestionStage.FAILED:
            return ProcessingStatus.FAILED
        return ProcessingStatus.PROCESSING


_TERMINAL_STAGES = frozenset(
    {IngestionStage.COMPLETED, IngestionStage.PARTIALLY_COMPLETED, IngestionStage.FAILED}
)


class IngestionProgress(BaseModel):
    """Latest known state of one document's ingestion."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    tenant_id: str
    stage: IngestionStage
    detail: str = ""
    error_code: str | None = None
    total_chunks: int = Field(default=0, ge=0)
    stored_chunks: int = Field(default=0, ge=0)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class IngestionResult(BaseModel):
    """Outcome of ingesting one document."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    tenant_id: str
    status: IngestionStage = Field(
        description="completed, partially_completed or failed."
    )
    total_chunks: int = Field(default=0, ge=0)
    stored_chunks: int = Field(default=0, ge=0)
    failed_chunks: list[ChunkFailure] = Field(default_factory=list)
    text_length: int = Field(default=0, ge=0)
    elapsed_seconds: float = Field(default=0.0, ge=0.0)
