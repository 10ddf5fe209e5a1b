"""Unit tests for the TextChunker -- overlapping, boundary-snapped windows."""

from __future__ import annotations

import pytest

from src.services.ingestion.chunker import TextChunker
from src.utils.errors import ValidationError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SENTENCE = "First sentence here. "  # 21 characters


def _long_text() -> str:
    words = ["policy", "refund", "holiday", "payroll", "access", "badge", "review"]
    parts = []
    for i in range(900):
        parts.append(words[i % len(words)])
        if i % 13 == 12:
            parts[-1] += "."
        if i % 40 == 39:
            parts[-1] += "\n"
    return " ".join(parts)


# ---------------------------------------------------------------------------
# Coverage and size
# ---------------------------------------------------------------------------


class TestCoverage:
    def test_every_non_whitespace_character_is_covered(self) -> None:
        text = _long_text()
        chunks = TextChunker(max_chunk_chars=300, overlap_chars=60).split(text)

        covered: set[int] = set()
        for chunk in chunks:
            covered.update(range(chunk.start_offset, chunk.end_offset))
        missing = [i for i, ch in enumerate(text) if not ch.isspace() and i not in covered]
        assert missing == []

    def test_no_chunk_exceeds_max(self) -> None:
        chunks = TextChunker(max_chunk_chars=250, overlap_chars=50).split(_long_text())
        assert len(chunks) > 1
        assert all(len(c.original_text) <= 250 for c in chunks)

    def test_chunk_text_matches_offsets(self) -> None:
        text = _long_text()
        for chunk in TextChunker(max_chunk_chars=200, overlap_chars=40).split(text):
            assert text[chunk.start_offset:chunk.end_offset].strip() == chunk.original_text

    def test_consecutive_overlap_is_bounded(self) -> None:
        chunks = TextChunker(max_chunk_chars=200, overlap_chars=40).split(_long_text())
        for prev, nxt in zip(chunks, chunks[1:]):
            overlap = prev.end_offset - nxt.start_offset
            assert 0 <= overlap <= 40
            assert nxt.start_offset > prev.start_offset

    def test_short_text_is_a_single_chunk(self) -> None:
        chunks = TextChunker().split("Only one short paragraph.")
        assert len(chunks) == 1
        assert chunks[0].original_text == "Only one short paragraph."
        assert chunks[0].start_offset == 0


# ---------------------------------------------------------------------------
# Boundary snapping
# ---------------------------------------------------------------------------


class TestBoundarySnapping:
    def test_cuts_after_sentence_end(self) -> None:
        text = _SENTENCE * 20
        chunks = TextChunker(max_chunk_chars=100, overlap_chars=20).split(text)

        assert chunks[0].original_text == (_SENTENCE * 4).strip()
        for chunk in chunks[:-1]:
            assert chunk.original_text.endswith(".")

    def test_next_window_starts_overlap_before_cut(self) -> None:
        chunks = TextChunker(max_chunk_chars=100, overlap_chars=20).split(_SENTENCE * 20)
        assert chunks[0].end_offset == 83
        assert chunks[1].start_offset == 63

    def test_abbreviation_is_not_a_sentence_end(self) -> None:
        text = "The visit is set. Then we call Dr. Smith about it and more words follow here."
        chunks = TextChunker(max_chunk_chars=40, overlap_chars=0).split(text)
        assert chunks[0].original_text == "The visit is set."

    def test_falls_back_to_newline_then_space(self) -> None:
        text = "alpha beta gamma\ndelta epsilon zeta eta theta iota kappa"
        chunks = TextChunker(max_chunk_chars=30, overlap_chars=0).split(text)
        assert chunks[0].original_text == "alpha beta gamma"

        spaced = "alpha beta gamma delta epsilon zeta"
        chunks = TextChunker(max_chunk_chars=20, overlap_chars=0).split(spaced)
        assert chunks[0].original_text == "alpha beta gamma"

    def test_hard_cut_without_any_boundary(self) -> None:
        chunks = TextChunker(max_chunk_chars=100, overlap_chars=0).split("a" * 250)
        assert [len(c.original_text) for c in chunks] == [100, 100, 50]


# ---------------------------------------------------------------------------
# Identity and metadata
# ---------------------------------------------------------------------------


class TestChunkIdentity:
    def test_ids_and_totals(self) -> None:
        chunks = TextChunker(max_chunk_chars=100, overlap_chars=10).split(
            _SENTENCE * 15, metadata={"document_id": "doc-9", "file_name": "a.txt"}
        )
        assert [c.chunk_id for c in chunks] == [f"doc-9_chunk_{i}" for i in range(len(chunks))]
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert all(c.total_chunks == len(chunks) for c in chunks)
        assert all(c.file_name == "a.txt" for c in chunks)

    def test_section_title_header_only_in_embedded_text(self) -> None:
        chunks = TextChunker().split("Hello world.", metadata={"section_title": "Policies"})
        assert chunks[0].text == "Title: Policies\n\nHello world."
        assert chunks[0].original_text == "Hello world."

    def test_per_call_size_override(self) -> None:
        chunker = TextChunker(max_chunk_chars=2000, overlap_chars=400)
        assert len(chunker.split(_SENTENCE * 20)) == 1
        assert len(chunker.split(_SENTENCE * 20, max_chunk_chars=100, overlap_chars=0)) > 1


# ---------------------------------------------------------------------------
# Edge cases
# ---------------------------------------------------------------------------


class TestEdgeCases:
    @pytest.mark.parametrize("text", ["", "   ", "\n\n\t"])
    def test_empty_input_returns_no_chunks(self, text: str) -> None:
        assert TextChunker().split(text) == []

    def test_overlap_larger_than_window_terminates(self) -> None:
        chunks = TextChunker(max_chunk_chars=10, overlap_chars=50).split("word " * 30)
        starts = [c.start_offset for c in chunks]
        assert starts == sorted(set(starts))

    @pytest.mark.parametrize(("size", "overlap"), [(0, 0), (-5, 0), (100, -1)])
    def test_invalid_sizes_rejected(self, size: int, overlap: int) -> None:
        with pytest.raises(ValidationError):
            TextChunker(max_chunk_chars=size, overlap_chars=overlap)
