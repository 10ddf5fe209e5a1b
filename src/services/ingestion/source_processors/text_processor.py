"""Source processor for plain-text files."""

from __future__ import annotations

from pathlib import Path

import structlog

logger = structlog.get_logger(logger_name=__name__)


class PlainTextProcessor:
    """Reads a text file as UTF-8, falling back to Latin-1 for legacy files."""

    def extract(self, file_path: str) -> str:
        raw = Path(file_path).read_bytes()
        try:
            return raw.decode("utf-8-sig")
        except UnicodeDecodeError:
            logger.info("text_file_not_utf8", file_path=file_path)
            return raw.decode("latin-1")
