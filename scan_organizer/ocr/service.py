"""Whole-document OCR: render each page, recognize it, join the text.

Blocking rendering and recognition run in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from scan_organizer.config import OcrSettings, settings
from scan_organizer.ocr.recognizer import TextRecognizer
from scan_organizer.pdf.renderer import PageRenderer
from scan_organizer.schemas.ocr import PageRecognition

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n--- Page {number} ---\n\n"


class OcrService:
    """Runs the on-device recognizer over the first pages of a PDF."""

    def __init__(
        self,
        renderer: PageRenderer,
        recognizer: TextRecognizer,
        config: OcrSettings | None = None,
    ) -> None:
        self._renderer = renderer
        self._recognizer = recognizer
        self._config = config or settings.ocr

    async def recognize_document(self, pdf_path: Path) -> tuple[str, list[PageRecognition]]:
        """OCR up to `max_pages` pages.

        Returns:
            (joined text, per-page recognitions in page order)
        """
        return await asyncio.to_thread(self._recognize_sync, pdf_path)

    def _recognize_sync(self, pdf_path: Path) -> tuple[str, list[PageRecognition]]:
        page_count = min(self._renderer.page_count(pdf_path), self._config.max_pages)
        full_text = ""
        pages: list[PageRecognition] = []

        for page_index in range(page_count):
            image = self._renderer.render_page(
                pdf_path, page_index, max_dimension=self._config.ocr_max_dimension
            )
            recognition = self._recognizer.recognize(image)
            pages.append(recognition)

            if recognition.text:
                if full_text:
                    full_text += PAGE_SEPARATOR.format(number=page_index + 1)
                full_text += recognition.text

        logger.info("OCR finished for %s: %d pages, %d chars", pdf_path.name, page_count, len(full_text))
        return full_text, pages
