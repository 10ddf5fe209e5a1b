"""Bounded background worker pool for document ingestion.

Uploads return as soon as the document record exists; the actual
extraction / embedding / storage work is handed to this queue and drained
by a fixed number of worker tasks.  Callers poll :meth:`get_status` for the
outcome.  A failed job never propagates out of a worker: the failure is
already recorded on the document's progress snapshot and metadata row.
Jobs that never reach a worker (refused by a full queue, or still waiting
at shutdown) are marked failed on both as well.
"""

from __future__ import annotations

import asyncio

import structlog

from src.interfaces.metadata_store import IMetadataStore
from src.models.documents import Document
from src.models.ingestion import IngestionProgress, IngestionStage
from src.pipeline.progress_tracker import ProgressTracker
from src.services.ingestion.ingestion_service import IngestionService
from src.utils.errors import KnowledgeBaseError, ServiceUnavailableError

logger = structlog.get_logger(logger_name=__name__)


class IngestionQueue:
    """Fixed-size pool of asyncio workers draining a bounded job queue.

    Parameters
    ----------
    ingestion_service:
        Runs one document through the pipeline.
    tracker:
        Progress tracker shared with the service; defaults to the service's.
    metadata_store:
        Where refused and abandoned jobs get their ``failed`` status
        persisted.  Without one those outcomes live only in the tracker.
    workers:
        Number of concurrent worker tasks.
    max_queue_size:
        Jobs that may wait before :meth:`submit` starts refusing work.
    """

    def __init__(
        self,
        ingestion_service: IngestionService,
        tracker: ProgressTracker | None = None,
        metadata_store: IMetadataStore | None = None,
        workers: int = 2,
        max_queue_size: int = 100,
    ) -> None:
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self._service = ingestion_service
        self._tracker = tracker or ingestion_service.tracker
        self._metadata_store = metadata_store
        self._worker_count = workers
        self._queue: asyncio.Queue[Document] = asyncio.Queue(maxsize=max_queue_size)
        self._workers: list[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.is_running:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"ingestion-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("ingestion_workers_started", workers=self._worker_count)

    async def stop(self) -> None:
        """Cancel the workers and fail every job still waiting in the queue."""
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        abandoned = 0
        while not self._queue.empty():
            document = self._queue.get_nowait()
            try:
                await self._mark_unavailable(document, "ingestion stopped before this job ran")
            finally:
                self._queue.task_done()
            abandoned += 1
        logger.info("ingestion_workers_stopped", abandoned_jobs=abandoned)

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        await self._queue.join()

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def submit(self, document: Document) -> IngestionProgress:
        """Queue *document* for ingestion and return its ``queued`` snapshot.

        Raises
        ------
        ServiceUnavailableError
            If the workers are not running or the queue is full.
        """
        if not self.is_running:
            raise ServiceUnavailableError("Ingestion workers are not running")

        progress = await self._tracker.update(
            document.id, document.tenant_id, IngestionStage.QUEUED, detail="waiting for a worker"
        )
        try:
            self._queue.put_nowait(document)
        except asyncio.QueueFull:
            await self._mark_unavailable(document, "ingestion queue is full")
            logger.warning("ingestion_queue_full", document_id=document.id)
            raise ServiceUnavailableError(
                f"Ingestion queue is full ({self._queue.maxsize} jobs waiting)"
            ) from None

        logger.info(
            "ingestion_job_queued",
            document_id=document.id,
            tenant_id=document.tenant_id,
            pending=self._queue.qsize(),
        )
        return progress

    def get_status(self, document_id: str) -> IngestionProgress | None:
        return self._tracker.get_status(document_id)

    async def _mark_unavailable(self, document: Document, detail: str) -> None:
        await self._tracker.update(
            document.id,
            document.tenant_id,
            IngestionStage.FAILED,
            detail=detail,
            error_code=ServiceUnavailableError.code,
        )
        if self._metadata_store is None:
            return
        try:
            await self._metadata_store.update_processing_status(
                document.id,
                IngestionStage.FAILED.to_processing_status(),
                detail=ServiceUnavailableError.code,
            )
        except Exception as exc:
            logger.warning(
                "processing_status_persist_failed",
                document_id=document.id,
                stage=IngestionStage.FAILED.value,
                error=str(exc),
            )

    async def _worker(self, worker_id: int) -> None:
        while True:
            document = await self._queue.get()
            try:
                await self._service.ingest_document(document)
            except KnowledgeBaseError as exc:
                logger.warning(
                    "ingestion_job_failed",
                    worker=worker_id,
                    document_id=document.id,
                    error_code=exc.code,
                    error=str(exc),
                )
            except Exception:
                logger.exception(
                    "ingestion_job_crashed", worker=worker_id, document_id=document.id
                )
            finally:
                self._queue.task_done()
