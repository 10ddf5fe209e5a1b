"""Dispatches extraction to the processor for a document's content type."""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from src.models.documents import ContentType
from src.services.ingestion.source_processors import (
    DocxProcessor,
    PDFProcessor,
    PlainTextProcessor,
)
from src.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)


class SourceProcessor(Protocol):
    def extract(self, file_path: str) -> str: ...


class TextExtractor:
    """Converts a downloaded file into plain text based on its content type.

    Processors are synchronous (PyMuPDF and python-docx block), so
    :meth:`extract` runs them in a worker thread.
    """

    def __init__(self, processors: dict[ContentType, SourceProcessor] | None = None) -> None:
        self._processors: dict[ContentType, SourceProcessor] = processors or {
            ContentType.PDF: PDFProcessor(),
            ContentType.DOCX: DocxProcessor(),
            ContentType.TXT: PlainTextProcessor(),
        }

    def supports(self, content_type: str | ContentType) -> bool:
        try:
            return ContentType(content_type) in self._processors
        except ValueError:
            return False

    async def extract(self, file_path: str, content_type: str | ContentType) -> str:
        """Return the text of *file_path*.

        Raises
        ------
        ValidationError
            If the content type is unsupported or the file is unreadable.
        """
        try:
            processor = self._processors[ContentType(content_type)]
        except (ValueError, KeyError) as exc:
            raise ValidationError(f"Unsupported file type: {content_type}") from exc

        text = await asyncio.to_thread(processor.extract, file_path)
        logger.info(
            "text_extracted",
            content_type=ContentType(content_type).value,
            text_length=len(text),
        )
        return text
