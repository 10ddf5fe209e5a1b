"""Document ingestion orchestrator.

Runs one stored document through the pipeline::

    download -> extract -> chunk -> embed (sequential) -> store (concurrent)

and drives its state machine::

    queued -> downloaded -> extracted -> chunked -> embedding -> storing
           -> completed | partially_completed | failed

Failures are isolated per chunk: a chunk that cannot be embedded or stored
is recorded and skipped.  The document ends ``completed`` when every chunk
was stored, ``partially_completed`` when at least one was, and ``failed``
otherwise.  Fatal problems (missing file, unsupported type, no text, zero
chunks stored) mark the document failed and are re-raised to the caller,
normally the :class:`~src.pipeline.ingestion_queue.IngestionQueue` worker.

The locally downloaded copy of the file is removed on every exit path.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from pathlib import Path
from typing import Any

import structlog

from src.interfaces.metadata_store import IMetadataStore
from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.models.documents import Document
from src.models.ingestion import IngestionResult, IngestionStage
from src.models.rag import ChunkFailure, EmbeddedChunk
from src.pipeline.progress_tracker import ProgressTracker
from src.services.embedding_client import EmbeddingClient
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.text_extractor import TextExtractor
from src.services.vector_store_manager import VectorStoreManager
from src.utils.concurrency import throttled_gather
from src.utils.errors import StorageError, ValidationError
from src.utils.text_normalizer import sanitize_filename

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Orchestrates extraction, chunking, embedding and storage of a document.

    Parameters
    ----------
    storage:
        Object storage holding the uploaded file.
    text_extractor:
        Converts the downloaded file to plain text.
    chunker:
        Splits text into overlapping windows.
    embedding_client:
        Embeds chunks sequentially with caching.
    vector_store:
        Tenant-scoped vector collection manager.
    metadata_store:
        Receives the final processing status of the document.
    tracker:
        Optional progress tracker for status polling.
    tmp_dir:
        Directory for the downloaded working copy.
    max_chunk_chars / overlap_chars:
        Chunk window size and overlap in characters.
    upsert_concurrency:
        Maximum concurrent vector upserts per document.
    """

    def __init__(
        self,
        storage: IObjectStorageProvider,
        text_extractor: TextExtractor,
        chunker: TextChunker,
        embedding_client: EmbeddingClient,
        vector_store: VectorStoreManager,
        metadata_store: IMetadataStore,
        tracker: ProgressTracker | None = None,
        tmp_dir: str | Path = "data/tmp",
        max_chunk_chars: int = 2000,
        overlap_chars: int = 400,
        upsert_concurrency: int = 8,
    ) -> None:
        self._storage = storage
        self._extractor = text_extractor
        self._chunker = chunker
        self._embedding_client = embedding_client
        self._vector_store = vector_store
        self._metadata_store = metadata_store
        self._tracker = tracker or ProgressTracker()
        self._tmp_dir = Path(tmp_dir)
        self._max_chunk_chars = max_chunk_chars
        self._overlap_chars = overlap_chars
        self._upsert_concurrency = upsert_concurrency

    @property
    def tracker(self) -> ProgressTracker:
        return self._tracker

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_document(self, document: Document) -> IngestionResult:
        """Ingest *document* and return its outcome.

        Raises
        ------
        KnowledgeBaseError
            Any fatal failure, after the document has been marked failed.
        """
        start = time.monotonic()
        log = logger.bind(document_id=document.id, tenant_id=document.tenant_id)
        self._tmp_dir.mkdir(parents=True, exist_ok=True)
        local_path = self._tmp_dir / f"{uuid.uuid4().hex}-{sanitize_filename(document.name)}"

        try:
            data = await self._storage.get(document.file_url)
            await asyncio.to_thread(local_path.write_bytes, data)
            await self._advance(document, IngestionStage.DOWNLOADED, f"{len(data)} bytes")

            text = await self._extractor.extract(str(local_path), document.content_type)
            if not text or not text.strip():
                raise ValidationError("No text could be extracted from the document")
            await self._advance(document, IngestionStage.EXTRACTED, f"{len(text)} characters")

            chunks = self._chunker.split(
                text,
                max_chunk_chars=self._max_chunk_chars,
                overlap_chars=self._overlap_chars,
                metadata={
                    "document_id": document.id,
                    "file_name": document.name,
                    "file_url": document.file_url,
                    "file_type": document.content_type.value,
                },
            )
            if not chunks:
                raise ValidationError("No valid chunks created from the document text")
            await self._advance(
                document, IngestionStage.CHUNKED, f"{len(chunks)} chunks", total_chunks=len(chunks)
            )

            await self._advance(document, IngestionStage.EMBEDDING)
            batch = await self._embedding_client.embed_many(chunks)

            await self._advance(document, IngestionStage.STORING)
            storage_failures = await self._store_all(document, batch.embedded)
            stored = len(batch.embedded) - len(storage_failures)
            failures = [*batch.failures, *storage_failures]
            if stored == 0:
                raise StorageError(
                    f"Failed to store any of {len(chunks)} chunks",
                    provider_name="vector_store",
                )

            status = (
                IngestionStage.COMPLETED
                if stored == len(chunks)
                else IngestionStage.PARTIALLY_COMPLETED
            )
            result = IngestionResult(
                document_id=document.id,
                tenant_id=document.tenant_id,
                status=status,
                total_chunks=len(chunks),
                stored_chunks=stored,
                failed_chunks=failures,
                text_length=len(text),
                elapsed_seconds=round(time.monotonic() - start, 3),
            )
            await self._finish(document, status, f"{stored}/{len(chunks)} chunks stored", stored)
            log.info(
                "document_ingested",
                status=status.value,
                total_chunks=len(chunks),
                stored_chunks=stored,
                failed_chunks=len(failures),
                elapsed_seconds=result.elapsed_seconds,
            )
            return result

        except Exception as exc:
            code = getattr(exc, "code", "internal_error")
            log.error("document_ingestion_failed", error=str(exc), error_code=code)
            await self._finish(document, IngestionStage.FAILED, str(exc), error_code=code)
            raise

        finally:
            self._cleanup(local_path)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    async def _store_all(
        self, document: Document, embedded: list[EmbeddedChunk]
    ) -> list[ChunkFailure]:
        """Upsert every embedded chunk concurrently; return the failures."""
        semaphore = asyncio.Semaphore(self._upsert_concurrency)
        outcomes = await throttled_gather(
            [self._store_one(document, item) for item in embedded],
            semaphore=semaphore,
        )

        failures: list[ChunkFailure] = []
        for item, outcome in zip(embedded, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "chunk_storage_failed",
                    document_id=document.id,
                    chunk_id=item.chunk.chunk_id,
                    error=str(outcome),
                )
                failures.append(
                    ChunkFailure(
                        chunk_id=item.chunk.chunk_id,
                        chunk_index=item.chunk.chunk_index,
                        stage="storage",
                        error=str(outcome),
                    )
                )
        return failures

    async def _store_one(self, document: Document, item: EmbeddedChunk) -> Any:
        chunk = item.chunk
        return await self._vector_store.upsert(
            chunk_id=chunk.chunk_id,
            tenant_id=document.tenant_id,
            document_id=document.id,
            vector=item.vector,
            payload={
                "chunk": chunk.original_text,
                "chunk_index": chunk.chunk_index,
                "total_chunks": chunk.total_chunks,
                "chunk_length": len(chunk.original_text),
                "start_offset": chunk.start_offset,
                "end_offset": chunk.end_offset,
                "section_title": chunk.section_title,
                "file_name": document.name,
                "file_url": document.file_url,
                "file_type": document.content_type.value,
                "embedding_model": item.model,
            },
        )

    # ------------------------------------------------------------------
    # State machine helpers
    # ------------------------------------------------------------------

    async def _advance(
        self,
        document: Document,
        stage: IngestionStage,
        detail: str = "",
        total_chunks: int | None = None,
    ) -> None:
        await self._tracker.update(
            document.id,
            document.tenant_id,
            stage,
            detail=detail,
            total_chunks=total_chunks,
        )

    async def _finish(
        self,
        document: Document,
        stage: IngestionStage,
        detail: str,
        stored_chunks: int | None = None,
        error_code: str | None = None,
    ) -> None:
        await self._tracker.update(
            document.id,
            document.tenant_id,
            stage,
            detail=detail,
            error_code=error_code,
            stored_chunks=stored_chunks,
        )
        try:
            await self._metadata_store.update_processing_status(
                document.id,
                stage.to_processing_status(),
                detail=error_code or detail,
            )
        except Exception as exc:
            logger.warning(
                "processing_status_persist_failed",
                document_id=document.id,
                stage=stage.value,
                error=str(exc),
            )

    @staticmethod
    def _cleanup(local_path: Path) -> None:
        try:
            local_path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("temp_file_cleanup_failed", path=str(local_path), error=str(exc))
