"""Tests for OCR arbitration between embedded text and on-device OCR."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from scan_organizer.models.enums import OcrRecommendation
from scan_organizer.ocr.comparison import compare_ocr, compare_pdf_ocr, quality_score

GOOD_TEXT = "der Vertrag ist gut\n" * 200
EXISTING = "Existing text layer of the scan"
RECOGNIZED = "Recognized text from the device"


def _scores(existing: float, recognized: float):
    table = {EXISTING: existing, RECOGNIZED: recognized}
    return patch("scan_organizer.ocr.comparison.quality_score", side_effect=lambda text: table[text])


class TestQualityScore:
    def test_empty_text_scores_zero(self) -> None:
        assert quality_score("") == 0.0

    def test_rich_text_scores_maximum(self) -> None:
        assert quality_score(GOOD_TEXT) == pytest.approx(100.0)

    def test_short_text(self) -> None:
        # length 0.4 + words 0.4 + readability 20 + language 10 + structure 0
        assert quality_score("short text") == pytest.approx(30.8)

    @pytest.mark.parametrize(
        "text",
        ["a", "x" * 5000, "   \n\n\n   ", "the " * 1000, "ä ö ü " * 50, GOOD_TEXT * 3],
    )
    def test_score_bounded(self, text: str) -> None:
        score = quality_score(text)
        assert 0.0 <= score <= 100.0
        assert quality_score(text) == score

    def test_language_words_raise_score(self) -> None:
        assert quality_score("Rechnung für den Kunden") > quality_score("Rechnung fuer Kunden")


class TestCompareOcr:
    def test_missing_existing_uses_recognized(self) -> None:
        result = compare_ocr(None, RECOGNIZED)
        assert result.recommendation == OcrRecommendation.NO_EXISTING
        assert result.selected_text == RECOGNIZED
        assert result.existing_score == 0.0
        assert result.uses_recognized_text

    def test_short_existing_uses_recognized(self) -> None:
        result = compare_ocr("too short", RECOGNIZED)
        assert result.recommendation == OcrRecommendation.NO_EXISTING
        assert result.reason == "No existing OCR or too short"

    def test_ten_percent_improvement_is_not_enough(self) -> None:
        with _scores(existing=50.0, recognized=55.0):
            result = compare_ocr(EXISTING, RECOGNIZED)
        assert result.recommendation == OcrRecommendation.KEEP_EXISTING
        assert result.selected_text == EXISTING
        assert not result.uses_recognized_text

    def test_more_than_ten_percent_switches(self) -> None:
        with _scores(existing=50.0, recognized=56.0):
            result = compare_ocr(EXISTING, RECOGNIZED)
        assert result.recommendation == OcrRecommendation.USE_RECOGNIZED
        assert result.selected_text == RECOGNIZED
        assert "56.00 vs 50.00" in result.reason

    def test_equal_scores_keep_existing(self) -> None:
        result = compare_ocr(GOOD_TEXT, GOOD_TEXT)
        assert result.recommendation == OcrRecommendation.KEEP_EXISTING


class TestComparePdfOcr:
    def test_reads_embedded_text(self) -> None:
        renderer = MagicMock()
        renderer.extract_text.return_value = GOOD_TEXT
        result = compare_pdf_ocr(Path("scan.pdf"), "x", renderer, max_pages=10)
        renderer.extract_text.assert_called_once_with(Path("scan.pdf"), 10)
        assert result.recommendation == OcrRecommendation.KEEP_EXISTING

    def test_unreadable_pdf_counts_as_no_existing(self) -> None:
        renderer = MagicMock()
        renderer.extract_text.side_effect = RuntimeError("cannot open broken document")
        result = compare_pdf_ocr(Path("broken.pdf"), RECOGNIZED, renderer)
        assert result.recommendation == OcrRecommendation.NO_EXISTING
        assert result.selected_text == RECOGNIZED
