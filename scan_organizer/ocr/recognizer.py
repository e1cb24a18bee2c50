"""On-device OCR via Tesseract.

Returns the page text (one line per recognized line) and word-level regions
with normalized coordinates for the invisible text layer.
"""

from __future__ import annotations

import logging
from typing import Protocol

import pytesseract
from PIL import Image

from scan_organizer.schemas.ocr import PageRecognition, RecognizedText

logger = logging.getLogger(__name__)


class OcrError(Exception):
    """Raised when text recognition fails for a page image."""


class TextRecognizer(Protocol):
    """OCR capability: page image in, text and positions out."""

    def recognize(self, image: Image.Image) -> PageRecognition: ...


class TesseractRecognizer:
    """TextRecognizer backed by pytesseract."""

    def __init__(self, languages: str = "deu+eng") -> None:
        self._languages = languages

    def recognize(self, image: Image.Image) -> PageRecognition:
        try:
            data = pytesseract.image_to_data(image, lang=self._languages, output_type=pytesseract.Output.DICT)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as exc:
            raise OcrError(f"Text recognition failed: {exc}") from exc
        return _build_recognition(data, image.width, image.height)


def _build_recognition(data: dict, image_width: int, image_height: int) -> PageRecognition:
    """Group Tesseract word rows into lines and normalized regions."""
    lines: dict[tuple[int, int, int], list[str]] = {}
    regions: list[RecognizedText] = []

    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        if not word:
            continue
        try:
            confidence = float(data["conf"][i])
        except (KeyError, TypeError, ValueError):
            confidence = -1.0
        if confidence < 0:
            continue

        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(word)

        regions.append(RecognizedText(
            text=word,
            x=data["left"][i] / image_width,
            y=data["top"][i] / image_height,
            width=data["width"][i] / image_width,
            height=data["height"][i] / image_height,
            confidence=min(confidence / 100.0, 1.0),
        ))

    text = "\n".join(" ".join(words) for words in lines.values())
    return PageRecognition(text=text, regions=regions)
