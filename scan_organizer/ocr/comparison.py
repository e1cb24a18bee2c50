"""OCR arbitration: decide between the PDF's embedded text and on-device OCR.

Scanners often ship their own OCR layer. It is kept unless the on-device
result scores at least 10% better, to avoid churn on comparable text.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from scan_organizer.models.enums import OcrRecommendation
from scan_organizer.pdf.renderer import PageRenderer
from scan_organizer.schemas.ocr import OCRComparisonResult

logger = logging.getLogger(__name__)

MIN_EXISTING_LENGTH = 10
IMPROVEMENT_FACTOR = 1.1
MAX_SUBSCORE = 20.0
DEFAULT_MAX_PAGES = 10

_GERMAN_RE = re.compile(r"\b(der|die|das|und|ist|von|mit|für|auf|den|ein|eine)\b", re.IGNORECASE)
_ENGLISH_RE = re.compile(r"\b(the|and|for|with|from|this|that|have|will)\b", re.IGNORECASE)


def quality_score(text: str) -> float:
    """Score OCR text 0..100 from five sub-scores of up to 20 points each.

    length, word count, average word length, presence of common German or
    English function words, and line structure.
    """
    if not text:
        return 0.0

    words = text.split()
    word_count = len(words)

    length_score = min(len(text) / 500 * MAX_SUBSCORE, MAX_SUBSCORE)
    word_score = min(word_count / 100 * MAX_SUBSCORE, MAX_SUBSCORE)

    non_space = len(text.replace(" ", ""))
    avg_word_length = non_space / word_count if word_count else 0.0
    readability_score = MAX_SUBSCORE if 3 < avg_word_length < 15 else 10.0

    has_language = bool(_GERMAN_RE.search(text) or _ENGLISH_RE.search(text))
    language_score = MAX_SUBSCORE if has_language else 10.0

    structure_score = min(text.count("\n") / 10 * MAX_SUBSCORE, MAX_SUBSCORE)

    return length_score + word_score + readability_score + language_score + structure_score


def compare_ocr(existing: str | None, recognized: str) -> OCRComparisonResult:
    """Pick between embedded text (`existing`) and on-device OCR (`recognized`)."""
    recognized_score = quality_score(recognized)

    if existing is None or len(existing) < MIN_EXISTING_LENGTH:
        return OCRComparisonResult(
            recommendation=OcrRecommendation.NO_EXISTING,
            reason="No existing OCR or too short",
            existing_score=0.0,
            recognized_score=recognized_score,
            selected_text=recognized,
        )

    existing_score = quality_score(existing)

    if recognized_score > existing_score * IMPROVEMENT_FACTOR:
        return OCRComparisonResult(
            recommendation=OcrRecommendation.USE_RECOGNIZED,
            reason=f"On-device OCR is better (score: {recognized_score:.2f} vs {existing_score:.2f})",
            existing_score=existing_score,
            recognized_score=recognized_score,
            selected_text=recognized,
        )

    return OCRComparisonResult(
        recommendation=OcrRecommendation.KEEP_EXISTING,
        reason=f"Existing OCR is sufficient (score: {existing_score:.2f} vs {recognized_score:.2f})",
        existing_score=existing_score,
        recognized_score=recognized_score,
        selected_text=existing,
    )


def compare_pdf_ocr(
    pdf_path: Path,
    recognized: str,
    renderer: PageRenderer,
    max_pages: int = DEFAULT_MAX_PAGES,
) -> OCRComparisonResult:
    """Compare the PDF's own text layer (first `max_pages` pages) with on-device OCR.

    An unreadable text layer counts as no existing OCR.
    """
    try:
        existing = renderer.extract_text(pdf_path, max_pages)
    except (RuntimeError, ValueError, OSError) as exc:
        logger.warning("Cannot read embedded text of %s: %s", pdf_path.name, exc)
        existing = None

    result = compare_ocr(existing, recognized)
    logger.info("OCR comparison for %s: %s (%s)", pdf_path.name, result.recommendation.value, result.reason)
    return result
