"""RAG pipeline data models for the knowledge base.

Defines Pydantic v2 models for document chunks, embedded chunks, vector
search hits and the ranked chunks handed to answer generation.  All models
are frozen; derived copies are made with ``model_copy(update=...)``.

Flow of these models through the pipeline:

    TextChunker      -> DocumentChunk
    EmbeddingClient  -> EmbeddedChunk        (chunk + vector)
    VectorStore      -> VectorSearchHit      (raw engine result)
    RetrievalService -> RetrievedChunk       (citation-ready result)
                     -> GroundedAnswer       (generated answer + sources)
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# DocumentChunk -- the unit of embedding and retrieval.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A bounded, overlap-aware segment of one document's extracted text.

    Chunks are never persisted relationally; they live only as the payload
    of a vector-store point.  ``text`` is what gets embedded (it carries a
    ``Title:`` header when the source had a section title), while
    ``original_text`` is the header-free text shown to users.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description='Stable identifier, "{document_id}_chunk_{index}".')
    document_id: str = Field(description="Owning document.")
    chunk_index: int = Field(ge=0, description="Zero-based sequence index.")
    text: str = Field(description="Text sent to the embedding model.")
    original_text: str = Field(description="Header-free chunk text for display.")
    start_offset: int = Field(ge=0, description="Start offset in the extracted text.")
    end_offset: int = Field(ge=0, description="End offset (exclusive) in the extracted text.")
    section_title: str | None = None
    total_chunks: int = Field(default=0, ge=0, description="Chunk count of the document.")
    file_name: str = ""
    file_url: str = ""
    file_type: str = ""


class EmbeddedChunk(BaseModel):
    """A chunk paired with its embedding vector."""

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk
    vector: list[float] = Field(min_length=1)
    model: str
    dimensions: int = Field(ge=1)


class ChunkFailure(BaseModel):
    """A chunk that could not be embedded or stored."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    chunk_index: int = Field(ge=0)
    stage: str = Field(description='"embedding" or "storage".')
    error: str


class EmbeddingOptions(BaseModel):
    """Per-call options for the embedding client."""

    model_config = ConfigDict(frozen=True)

    model: str | None = Field(default=None, description="Override the default model.")
    dimensions: int | None = Field(default=None, description="Requested output size.")
    use_cache: bool = True


class EmbeddingBatchResult(BaseModel):
    """Outcome of embedding a batch of chunks sequentially."""

    model_config = ConfigDict(frozen=True)

    embedded: list[EmbeddedChunk] = Field(default_factory=list)
    failures: list[ChunkFailure] = Field(default_factory=list)


class UpsertOutcome(BaseModel):
    """Result of writing one chunk's point into a tenant collection."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    point_id: int = Field(ge=0)
    collection: str
    created_collection: bool = False


# ---------------------------------------------------------------------------
# Retrieval side
# ---------------------------------------------------------------------------
class VectorSearchHit(BaseModel):
    """One raw similarity match returned by the vector store engine."""

    model_config = ConfigDict(frozen=True)

    point_id: str
    score: float = Field(description="Cosine similarity (1 - cosine distance).")
    document: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)


class RetrievedChunk(BaseModel):
    """A ranked chunk with everything needed to cite it."""

    model_config = ConfigDict(frozen=True)

    score: float
    chunk_text: str
    file_name: str = ""
    file_url: str = ""
    document_id: str
    chunk_index: int = Field(ge=0)


class GroundedAnswer(BaseModel):
    """A generated answer plus the chunks it was grounded on."""

    model_config = ConfigDict(frozen=True)

    answer: str
    sources: list[RetrievedChunk] = Field(default_factory=list)
    grounded: bool = Field(description="False when no chunk cleared the threshold.")
