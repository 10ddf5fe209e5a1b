"""Document ingestion pipeline for the knowledge base.

Orchestrates: **download -> extract -> chunk -> embed -> store**.

1. **Extract** (text_extractor.py / source_processors/) -- PDF, DOCX and
   plain-text files are converted to a single text string.

2. **Chunk** (chunker.py / TextChunker) -- Splits the text into ~500-token
   overlapping windows snapped to sentence, line or word boundaries.

3. **Embed** (src/services/embedding_client.py) -- Sequential, cached
   embedding of every chunk; failed chunks are skipped.

4. **Store** (src/services/vector_store_manager.py) -- Concurrent upserts
   into the tenant's collection.

The IngestionService class drives the per-document state machine.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.text_extractor import TextExtractor

__all__ = [
    "IngestionService",
    "TextChunker",
    "TextExtractor",
]
