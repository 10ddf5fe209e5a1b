"""Utility modules for the knowledge base.

- **errors** -- exception hierarchy rooted at KnowledgeBaseError; each class
  carries the taxonomy ``code`` surfaced by the API.
- **concurrency** -- semaphore-bounded ``gather`` used for per-chunk upserts
  and per-file deletions.
- **logging** -- structlog setup: coloured console output in development,
  structured JSON in production.
- **text_normalizer** -- embedding input cleaning and file name sanitisation.
"""

from src.utils.concurrency import throttled_gather
from src.utils.errors import (
    ConfigurationError,
    KnowledgeBaseError,
    NotFoundError,
    ProviderError,
    ServiceUnavailableError,
    StorageError,
    ValidationError,
)
from src.utils.logging import configure_logging, get_logger
from src.utils.text_normalizer import clean_embedding_text, sanitize_filename

__all__ = [
    "ConfigurationError",
    "KnowledgeBaseError",
    "NotFoundError",
    "ProviderError",
    "ServiceUnavailableError",
    "StorageError",
    "ValidationError",
    "clean_embedding_text",
    "configure_logging",
    "get_logger",
    "sanitize_filename",
    "throttled_gather",
]
