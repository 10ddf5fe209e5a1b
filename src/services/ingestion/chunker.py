"""Text chunking with overlapping windows and boundary snapping.

Splits extracted document text into :class:`~src.models.rag.DocumentChunk`
objects sized for embedding models.  Sizes are expressed in characters
(roughly four per token): the defaults of 2000 / 400 characters correspond
to ~500-token windows with ~100 tokens of overlap.

The windowing is greedy:

1. **Window** -- take ``max_chunk_chars`` characters from the cursor.
2. **Snap** -- unless the window already reaches the end of the text, look
   back at most 500 characters for a sentence end, then a newline, then a
   space, and cut just after the first one found.  Periods that belong to
   common abbreviations ("Dr.", "vs.") are not treated as sentence ends.
3. **Overlap** -- the next window starts ``overlap_chars`` before the cut,
   but always at least one character after the previous start, so the loop
   terminates even when the overlap is larger than the window.

Every character of the input falls inside at least one window, and the
overlap between consecutive windows is between 0 and ``overlap_chars``.
"""

from __future__ import annotations

import re
from typing import Any

import structlog

from src.models.rag import DocumentChunk
from src.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)

# How far back from a naive window end the boundary search may go.
_BOUNDARY_SEARCH_WINDOW = 500

_SENTENCE_TERMINATORS = frozenset(".!?")
_TRAILING_WORD = re.compile(r"(\w+)$")

# Common abbreviations that should NOT count as a sentence end.
_ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "Prof",
        "Jr",
        "Sr",
        "St",
        "Inc",
        "Ltd",
        "Co",
        "Vol",
        "vs",
        "etc",
        "approx",
        "dept",
    }
)


class TextChunker:
    """Splits text into overlapping, boundary-aware chunks.

    Parameters
    ----------
    max_chunk_chars:
        Default maximum window size in characters (default 2000).
    overlap_chars:
        Default overlap between consecutive windows (default 400).
    """

    def __init__(self, max_chunk_chars: int = 2000, overlap_chars: int = 400) -> None:
        self._validate_sizes(max_chunk_chars, overlap_chars)
        self._max_chunk_chars = max_chunk_chars
        self._overlap_chars = overlap_chars

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(
        self,
        text: str,
        max_chunk_chars: int | None = None,
        overlap_chars: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> list[DocumentChunk]:
        """Split *text* into ordered :class:`DocumentChunk` objects.

        Parameters
        ----------
        text:
            The full extracted text.
        max_chunk_chars:
            Override of the window size for this call.
        overlap_chars:
            Override of the overlap for this call.
        metadata:
            Provenance copied into every chunk.  Recognised keys:
            ``document_id``, ``section_title``, ``file_name``, ``file_url``
            and ``file_type``.

        Returns
        -------
        list[DocumentChunk]
            Chunks with consecutive indices.  Empty or whitespace-only
            input returns an empty list.
        """
        max_chars = self._max_chunk_chars if max_chunk_chars is None else max_chunk_chars
        overlap = self._overlap_chars if overlap_chars is None else overlap_chars
        self._validate_sizes(max_chars, overlap)

        if not text or not text.strip():
            return []

        meta = metadata or {}
        document_id = str(meta.get("document_id") or "document")
        section_title = meta.get("section_title") or None

        windows: list[tuple[int, int, str]] = []
        length = len(text)
        start = 0
        while start < length:
            end = min(start + max_chars, length)
            if end < length:
                end = self._snap_boundary(text, start, end)

            body = text[start:end].strip()
            if body:
                windows.append((start, end, body))

            if end >= length:
                break
            start = max(end - overlap, start + 1)

        total = len(windows)
        chunks = [
            DocumentChunk(
                chunk_id=f"{document_id}_chunk_{index}",
                document_id=document_id,
                chunk_index=index,
                text=f"Title: {section_title}\n\n{body}" if section_title else body,
                original_text=body,
                start_offset=win_start,
                end_offset=win_end,
                section_title=section_title,
                total_chunks=total,
                file_name=str(meta.get("file_name", "")),
                file_url=str(meta.get("file_url", "")),
                file_type=str(meta.get("file_type", "")),
            )
            for index, (win_start, win_end, body) in enumerate(windows)
        ]

        logger.debug(
            "chunking_complete",
            document_id=document_id,
            num_chunks=total,
            text_length=length,
            max_chunk_chars=max_chars,
            overlap_chars=overlap,
        )
        return chunks

    # ------------------------------------------------------------------
    # Boundary snapping
    # ------------------------------------------------------------------

    def _snap_boundary(self, text: str, start: int, end: int) -> int:
        """Return the snapped exclusive end of the window ``[start, end)``.

        Candidate positions lie strictly after ``max(end - 500, start)`` and
        strictly before ``end``, so the snapped window is never longer than
        the naive one and always makes progress.
        """
        search_start = max(end - _BOUNDARY_SEARCH_WINDOW, start)

        cut = self._last_sentence_end(text, search_start, end)
        if cut is None:
            cut = self._last_index_of(text, "\n", search_start, end)
        if cut is None:
            cut = self._last_index_of(text, " ", search_start, end)
        return cut + 1 if cut is not None else end

    @staticmethod
    def _last_index_of(text: str, needle: str, search_start: int, end: int) -> int | None:
        idx = text.rfind(needle, search_start + 1, end)
        return idx if idx != -1 else None

    @staticmethod
    def _last_sentence_end(text: str, search_start: int, end: int) -> int | None:
        for idx in range(end - 1, search_start, -1):
            if text[idx] not in _SENTENCE_TERMINATORS:
                continue
            if text[idx] == ".":
                match = _TRAILING_WORD.search(text, max(0, idx - 12), idx)
                if match and match.group(1) in _ABBREVIATIONS:
                    continue
            return idx
        return None

    @staticmethod
    def _validate_sizes(max_chunk_chars: int, overlap_chars: int) -> None:
        if max_chunk_chars < 1:
            raise ValidationError(f"max_chunk_chars must be >= 1, got {max_chunk_chars}")
        if overlap_chars < 0:
            raise ValidationError(f"overlap_chars must be >= 0, got {overlap_chars}")
