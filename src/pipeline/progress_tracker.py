"""Ingestion progress tracking with callback-based listener notification.

Keeps the latest :class:`~src.models.ingestion.IngestionProgress` snapshot
for every document that has been submitted for ingestion, so callers can
poll for the outcome instead of waiting on the background job.  Listeners
(e.g. a status-persisting hook) may be registered per document or for all
documents.

    IngestionService --update()--> ProgressTracker --callback()--> listeners
                                         ^
    API status endpoint --get_status()---+
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from collections.abc import Callable

import structlog

from src.models.ingestion import IngestionProgress, IngestionStage
from src.utils.logging import get_logger

_ALL_DOCUMENTS = "*"


class ProgressTracker:
    """Tracks and broadcasts per-document ingestion progress.

    Parameters
    ----------
    max_entries:
        Upper bound on remembered documents; the oldest finished entries
        are dropped first once it is exceeded.
    """

    def __init__(self, max_entries: int = 10_000) -> None:
        self._statuses: OrderedDict[str, IngestionProgress] = OrderedDict()
        self._listeners: dict[str, list[Callable]] = {}
        self._max_entries = max_entries
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def update(
        self,
        document_id: str,
        tenant_id: str,
        stage: IngestionStage,
        detail: str = "",
        error_code: str | None = None,
        total_chunks: int | None = None,
        stored_chunks: int | None = None,
    ) -> IngestionProgress:
        """Record a stage transition and notify listeners.

        Chunk counters not passed in are carried over from the previous
        snapshot of the same document.
        """
        previous = self._statuses.get(document_id)
        progress = IngestionProgress(
            document_id=document_id,
            tenant_id=tenant_id,
            stage=stage,
            detail=detail,
            error_code=error_code,
            total_chunks=(
                total_chunks
                if total_chunks is not None
                else (previous.total_chunks if previous else 0)
            ),
            stored_chunks=(
                stored_chunks
                if stored_chunks is not None
                else (previous.stored_chunks if previous else 0)
            ),
        )
        self._statuses[document_id] = progress
        self._statuses.move_to_end(document_id)
        self._evict()

        self._logger.debug(
            "ingestion_progress",
            document_id=document_id,
            stage=stage.value,
            detail=detail,
        )
        await self._notify_listeners(progress)
        return progress

    def get_status(self, document_id: str) -> IngestionProgress | None:
        """Return the latest snapshot for *document_id*, or ``None``."""
        return self._statuses.get(document_id)

    def register_listener(self, callback: Callable, document_id: str = _ALL_DOCUMENTS) -> None:
        """Register an async or sync ``callback(progress)``.

        Omitting *document_id* subscribes to every document.
        """
        listeners = self._listeners.setdefault(document_id, [])
        if callback not in listeners:
            listeners.append(callback)

    def unregister_listener(self, callback: Callable, document_id: str = _ALL_DOCUMENTS) -> None:
        listeners = self._listeners.get(document_id, [])
        if callback in listeners:
            listeners.remove(callback)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _evict(self) -> None:
        while len(self._statuses) > self._max_entries:
            oldest_id = next(
                (doc_id for doc_id, p in self._statuses.items() if p.stage.is_terminal),
                None,
            )
            if oldest_id is None:
                return
            del self._statuses[oldest_id]

    async def _notify_listeners(self, progress: IngestionProgress) -> None:
        """Invoke listeners; a failing listener is logged and skipped."""
        listeners = [
            *self._listeners.get(progress.document_id, []),
            *self._listeners.get(_ALL_DOCUMENTS, []),
        ]
        for callback in listeners:
            try:
                result = callback(progress)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    document_id=progress.document_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
