"""Source processor for PDF documents.

Reads PDF files using PyMuPDF (fitz) and returns the text of every page
that has an extractable text layer, pages separated by blank lines.
Scanned PDFs without a text layer yield an empty string, which the
ingestion service treats as "no usable content".
"""

from __future__ import annotations

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from src.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)


class PDFProcessor:
    """Extracts plain text from a PDF file page by page."""

    def extract(self, file_path: str) -> str:
        """Return the concatenated page text of *file_path*.

        Raises
        ------
        ValidationError
            If the file is not a readable PDF.
        """
        try:
            doc = fitz.open(file_path)
        except Exception as exc:
            logger.error("pdf_open_failed", file_path=file_path, error=str(exc))
            raise ValidationError(f"Could not open PDF: {exc}") from exc

        pages: list[str] = []
        try:
            for page in doc:
                text = page.get_text("text").strip()
                if text:
                    pages.append(text)
        finally:
            doc.close()

        if not pages:
            logger.warning("pdf_no_text_extracted", file_path=file_path)

        logger.debug("pdf_processed", file_path=file_path, pages_with_text=len(pages))
        return "\n\n".join(pages)
