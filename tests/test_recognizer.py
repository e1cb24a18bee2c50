"""Tests for the Tesseract recognizer and the whole-document OCR service."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import pytesseract
from PIL import Image

from scan_organizer.config import OcrSettings
from scan_organizer.ocr.recognizer import OcrError, TesseractRecognizer
from scan_organizer.ocr.service import OcrService
from scan_organizer.schemas.ocr import PageRecognition

# image_to_data(output_type=DICT) rows for two lines of one block.
TESSERACT_DATA = {
    "text": ["", "Rechnung", "Nr.", "", "49,90", "  "],
    "conf": ["-1", "96.5", "91", "-1", 88, "-1"],
    "block_num": [1, 1, 1, 1, 1, 1],
    "par_num": [1, 1, 1, 1, 1, 1],
    "line_num": [0, 1, 1, 2, 2, 2],
    "left": [0, 100, 320, 0, 100, 0],
    "top": [0, 50, 50, 0, 150, 0],
    "width": [1000, 200, 60, 0, 100, 0],
    "height": [500, 25, 25, 0, 25, 0],
}


class TestTesseractRecognizer:
    def test_lines_and_regions(self) -> None:
        image = Image.new("RGB", (1000, 500), "white")
        with patch("scan_organizer.ocr.recognizer.pytesseract.image_to_data", return_value=TESSERACT_DATA) as m:
            result = TesseractRecognizer("deu").recognize(image)

        assert m.call_args.kwargs["lang"] == "deu"
        assert result.text == "Rechnung Nr.\n49,90"
        assert [r.text for r in result.regions] == ["Rechnung", "Nr.", "49,90"]
        first = result.regions[0]
        assert first.x == pytest.approx(0.1)
        assert first.y == pytest.approx(0.1)
        assert first.width == pytest.approx(0.2)
        assert first.height == pytest.approx(0.05)
        assert first.confidence == pytest.approx(0.965)

    def test_tesseract_missing(self) -> None:
        image = Image.new("RGB", (10, 10), "white")
        with patch(
            "scan_organizer.ocr.recognizer.pytesseract.image_to_data",
            side_effect=pytesseract.TesseractNotFoundError(),
        ):
            with pytest.raises(OcrError):
                TesseractRecognizer().recognize(image)


class TestOcrService:
    def _renderer(self, pages: int) -> MagicMock:
        renderer = MagicMock()
        renderer.page_count.return_value = pages
        renderer.render_page.return_value = Image.new("RGB", (10, 10), "white")
        return renderer

    @pytest.mark.asyncio()
    async def test_pages_joined_with_markers(self) -> None:
        recognizer = MagicMock()
        recognizer.recognize.side_effect = [
            PageRecognition(text="first"),
            PageRecognition(text=""),
            PageRecognition(text="third"),
        ]
        service = OcrService(self._renderer(3), recognizer, OcrSettings(ocr_max_dimension=500))

        text, pages = await service.recognize_document(Path("scan.pdf"))

        assert text == "first\n\n--- Page 3 ---\n\nthird"
        assert len(pages) == 3

    @pytest.mark.asyncio()
    async def test_page_cap(self) -> None:
        renderer = self._renderer(15)
        recognizer = MagicMock()
        recognizer.recognize.return_value = PageRecognition(text="page")
        service = OcrService(renderer, recognizer, OcrSettings(max_pages=10, ocr_max_dimension=500))

        _, pages = await service.recognize_document(Path("scan.pdf"))

        assert len(pages) == 10
        assert renderer.render_page.call_args.kwargs["max_dimension"] == 500
