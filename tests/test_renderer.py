"""Tests for PyMuPDF rendering and PDF rebuild, on PDFs built in tmp_path."""

from __future__ import annotations

import io
from pathlib import Path

import fitz
import pytest
from PIL import Image

from scan_organizer.pdf.renderer import PdfRenderer
from scan_organizer.schemas.ocr import PageRecognition, RecognizedText


@pytest.fixture()
def sample_pdf(tmp_path: Path) -> Path:
    path = tmp_path / "sample.pdf"
    doc = fitz.open()
    for n in range(3):
        page = doc.new_page(width=200, height=100)
        page.insert_text((20, 50), f"Embedded text {n + 1}")
    doc.save(path)
    doc.close()
    return path


class TestPdfRenderer:
    def test_page_count(self, sample_pdf: Path) -> None:
        assert PdfRenderer().page_count(sample_pdf) == 3

    def test_extract_text_respects_page_limit(self, sample_pdf: Path) -> None:
        text = PdfRenderer().extract_text(sample_pdf, max_pages=2)
        assert "Embedded text 1" in text
        assert "Embedded text 2" in text
        assert "Embedded text 3" not in text

    def test_render_page_by_scale(self, sample_pdf: Path) -> None:
        image = PdfRenderer().render_page(sample_pdf, 0, scale=2.0)
        assert image.mode == "RGB"
        assert image.size == (400, 200)

    def test_render_page_by_max_dimension(self, sample_pdf: Path) -> None:
        image = PdfRenderer().render_page(sample_pdf, 0, max_dimension=100)
        assert max(image.size) == 100

    def test_render_png(self, sample_pdf: Path) -> None:
        png = PdfRenderer().render_png(sample_pdf, 1, scale=1.0)
        assert Image.open(io.BytesIO(png)).format == "PNG"

    def test_missing_page(self, sample_pdf: Path) -> None:
        with pytest.raises(IndexError):
            PdfRenderer().render_png(sample_pdf, 5, scale=1.0)

    def test_rebuild_replaces_text_layer(self, sample_pdf: Path, tmp_path: Path) -> None:
        output = tmp_path / "out.pdf"
        recognitions = [
            PageRecognition(
                text="Kontoauszug",
                regions=[RecognizedText(text="Kontoauszug", x=0.1, y=0.3, width=0.5, height=0.15)],
            ),
        ]

        pages = PdfRenderer().rebuild_pdf(sample_pdf, output, recognitions, max_dimension=200)

        assert pages == 3
        with fitz.open(output) as doc:
            assert doc.page_count == 3
            assert doc[0].rect.width == pytest.approx(200)
            assert "Kontoauszug" in doc[0].get_text()
            assert "Embedded text" not in doc[0].get_text()
            assert doc[2].get_text().strip() == ""
