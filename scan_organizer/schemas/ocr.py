"""Pydantic schemas for OCR results and OCR-source arbitration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from scan_organizer.models.enums import OcrRecommendation


class RecognizedText(BaseModel):
    """One recognized word or line with its position on the page.

    The bounding box is normalized to 0..1 with the origin at the top-left
    corner of the page image.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    x: float
    y: float
    width: float
    height: float
    confidence: float = 1.0


class PageRecognition(BaseModel):
    """OCR output for a single page image."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    regions: list[RecognizedText] = Field(default_factory=list)


class OCRComparisonResult(BaseModel):
    """Which text source to trust, and why."""

    model_config = ConfigDict(frozen=True)

    recommendation: OcrRecommendation
    reason: str
    existing_score: float  # candidate A, 0..100
    recognized_score: float  # candidate B, 0..100
    selected_text: str

    @property
    def uses_recognized_text(self) -> bool:
        return self.recommendation != OcrRecommendation.KEEP_EXISTING
