"""PDF rasterisation and rebuild with PyMuPDF.

Synchronous. Callers on the event loop wrap these calls in
`asyncio.to_thread`. Pages are rendered with the page rotation applied, so
OCR coordinates and rebuilt pages share the displayed orientation.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

import fitz  # PyMuPDF
from PIL import Image

from scan_organizer.schemas.ocr import PageRecognition

logger = logging.getLogger(__name__)

# Invisible text: neither fill nor stroke.
INVISIBLE_TEXT_MODE = 3
MIN_FONT_SIZE = 1.0


class PageRenderer(Protocol):
    """Rasterisation capability used by the pipeline."""

    def page_count(self, pdf_path: Path) -> int: ...

    def extract_text(self, pdf_path: Path, max_pages: int) -> str: ...

    def render_page(
        self, pdf_path: Path, page_index: int, *, scale: float | None = None, max_dimension: int | None = None
    ) -> Image.Image: ...

    def render_png(self, pdf_path: Path, page_index: int, *, scale: float) -> bytes: ...

    def rebuild_pdf(
        self,
        source: Path,
        output: Path,
        recognitions: Sequence[PageRecognition],
        *,
        max_dimension: int,
    ) -> int: ...


def _zoom_for(page: fitz.Page, scale: float | None, max_dimension: int | None) -> float:
    if scale is not None:
        return scale
    if max_dimension is not None:
        rect = page.rect
        return min(max_dimension / rect.width, max_dimension / rect.height)
    return 1.0


class PdfRenderer:
    """PyMuPDF-backed implementation of PageRenderer."""

    def page_count(self, pdf_path: Path) -> int:
        with fitz.open(pdf_path) as doc:
            return doc.page_count

    def extract_text(self, pdf_path: Path, max_pages: int) -> str:
        """Text already embedded in the PDF (its existing OCR layer), first `max_pages` pages."""
        chunks: list[str] = []
        with fitz.open(pdf_path) as doc:
            for page_index in range(min(doc.page_count, max_pages)):
                chunks.append(doc[page_index].get_text() + "\n")
        return "".join(chunks)

    def render_page(
        self, pdf_path: Path, page_index: int, *, scale: float | None = None, max_dimension: int | None = None
    ) -> Image.Image:
        """Render one page as an RGB Pillow image."""
        with fitz.open(pdf_path) as doc:
            page = doc[page_index]
            zoom = _zoom_for(page, scale, max_dimension)
            pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            return Image.frombytes("RGB", (pix.width, pix.height), pix.samples)

    def render_png(self, pdf_path: Path, page_index: int, *, scale: float) -> bytes:
        """Render one page and return PNG bytes."""
        with fitz.open(pdf_path) as doc:
            pix = doc[page_index].get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            return pix.tobytes("png")

    def rebuild_pdf(
        self,
        source: Path,
        output: Path,
        recognitions: Sequence[PageRecognition],
        *,
        max_dimension: int,
    ) -> int:
        """Write a clean image-only copy of `source` to `output` with an invisible text layer.

        Each page is re-rendered and placed on a page of the same size.
        `recognitions[i]`, when present, provides the text layer for page i.

        Returns:
            Number of pages written.
        """
        with fitz.open(source) as src, fitz.open() as dst:
            for page_index in range(src.page_count):
                page = src[page_index]
                zoom = _zoom_for(page, None, max_dimension)
                pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)

                rect = page.rect
                new_page = dst.new_page(width=rect.width, height=rect.height)
                new_page.insert_image(new_page.rect, stream=pix.tobytes("png"))

                if page_index < len(recognitions):
                    added = _add_text_layer(new_page, recognitions[page_index])
                    logger.debug("Page %d: %d invisible text regions", page_index + 1, added)

            dst.save(output, garbage=3, deflate=True)
            return dst.page_count


def _add_text_layer(page: fitz.Page, recognition: PageRecognition) -> int:
    """Place each recognized region as invisible text at its position."""
    width, height = page.rect.width, page.rect.height
    count = 0
    for region in recognition.regions:
        if not region.text.strip():
            continue
        box_height = region.height * height
        font_size = max(box_height * 0.8, MIN_FONT_SIZE)
        # insert_text anchors at the baseline (bottom-left of the box).
        origin = fitz.Point(region.x * width, (region.y + region.height) * height)
        page.insert_text(origin, region.text, fontsize=font_size, render_mode=INVISIBLE_TEXT_MODE)
        count += 1
    return count
