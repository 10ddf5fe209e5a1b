"""Source processor for Word (.docx) documents.

Uses python-docx to read body paragraphs and table cells in document
order.  Formatting is dropped; paragraphs are separated by blank lines so
the chunker can snap to them.
"""

from __future__ import annotations

import zipfile

import structlog
from docx import Document as open_docx
from docx.opc.exceptions import PackageNotFoundError

from src.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)


class DocxProcessor:
    """Extracts raw text from a .docx file."""

    def extract(self, file_path: str) -> str:
        try:
            document = open_docx(file_path)
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
            logger.error("docx_open_failed", file_path=file_path, error=str(exc))
            raise ValidationError(f"Could not open DOCX: {exc}") from exc

        blocks: list[str] = [p.text.strip() for p in document.paragraphs if p.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    blocks.append(" | ".join(cells))

        logger.debug("docx_processed", file_path=file_path, blocks=len(blocks))
        return "\n\n".join(blocks)
