"""Unit tests for TextExtractor content-type dispatch."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from src.models.documents import ContentType
from src.services.ingestion.text_extractor import TextExtractor
from src.utils.errors import ValidationError


class TestTextExtractor:
    def test_supports_known_types_only(self) -> None:
        extractor = TextExtractor()
        assert extractor.supports(ContentType.PDF)
        assert extractor.supports("docx")
        assert not extractor.supports("xlsx")

    @pytest.mark.asyncio
    async def test_dispatches_on_content_type(self) -> None:
        txt = MagicMock()
        txt.extract.return_value = "from txt"
        pdf = MagicMock()
        pdf.extract.return_value = "from pdf"
        extractor = TextExtractor({ContentType.TXT: txt, ContentType.PDF: pdf})

        assert await extractor.extract("/tmp/a.pdf", ContentType.PDF) == "from pdf"
        pdf.extract.assert_called_once_with("/tmp/a.pdf")
        txt.extract.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsupported_type_rejected(self) -> None:
        extractor = TextExtractor({ContentType.TXT: MagicMock()})
        with pytest.raises(ValidationError):
            await extractor.extract("/tmp/a.pdf", ContentType.PDF)
        with pytest.raises(ValidationError):
            await extractor.extract("/tmp/a.xlsx", "xlsx")

    @pytest.mark.asyncio
    async def test_default_processors_read_text_files(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("Vacation requests need two weeks notice.", encoding="utf-8")

        text = await TextExtractor().extract(str(path), "txt")

        assert text == "Vacation requests need two weeks notice."
