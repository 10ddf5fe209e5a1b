"""Knowledge-base domain models, re-exported from their submodules.

    - documents.py -- folders, documents and their status enums
    - rag.py       -- chunks, embeddings and retrieval results
    - ingestion.py -- ingestion stages, progress snapshots and results
    - deletion.py  -- cascading-deletion saga reports
"""

from __future__ import annotations

from src.models.deletion import (
    DeletionReport,
    SagaStepResult,
    StorageDeletionWarning,
    TenantTeardownReport,
)
from src.models.documents import (
    ContentType,
    Document,
    Folder,
    ProcessingStatus,
    ResourceStatus,
)
from src.models.ingestion import (
    IngestionProgress,
    IngestionResult,
    IngestionStage,
)
from src.models.rag import (
    ChunkFailure,
    DocumentChunk,
    EmbeddedChunk,
    EmbeddingBatchResult,
    EmbeddingOptions,
    GroundedAnswer,
    RetrievedChunk,
    UpsertOutcome,
    VectorSearchHit,
)

__all__ = [
    # documents
    "ContentType",
    "Document",
    "Folder",
    "ProcessingStatus",
    "ResourceStatus",
    # rag
    "ChunkFailure",
    "DocumentChunk",
    "EmbeddedChunk",
    "EmbeddingBatchResult",
    "EmbeddingOptions",
    "GroundedAnswer",
    "RetrievedChunk",
    "UpsertOutcome",
    "VectorSearchHit",
    # ingestion
    "IngestionProgress",
    "IngestionResult",
    "IngestionStage",
    # deletion
    "DeletionReport",
    "SagaStepResult",
    "StorageDeletionWarning",
    "TenantTeardownReport",
]
