"""Background ingestion: the worker pool and per-document progress tracking."""

from src.pipeline.ingestion_queue import IngestionQueue
from src.pipeline.progress_tracker import ProgressTracker

__all__ = [
    "IngestionQueue",
    "ProgressTracker",
]
