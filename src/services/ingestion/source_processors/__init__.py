"""Source processors for the ingestion pipeline.

Each processor converts one stored file format into plain text:

- **PDFProcessor**        -- PDF documents via PyMuPDF page extraction
- **DocxProcessor**       -- Word documents via python-docx
- **PlainTextProcessor**  -- UTF-8 / Latin-1 text files

:class:`~src.services.ingestion.text_extractor.TextExtractor` picks the
processor from the document's declared content type.
"""

from src.services.ingestion.source_processors.docx_processor import DocxProcessor
from src.services.ingestion.source_processors.pdf_processor import PDFProcessor
from src.services.ingestion.source_processors.text_processor import PlainTextProcessor

__all__ = [
    "DocxProcessor",
    "PDFProcessor",
    "PlainTextProcessor",
]
