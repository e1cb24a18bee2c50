"""Pydantic schemas for the two-stage AI classification result.

Components come from semi-structured model output, so every field is
coerced leniently: numbers become strings, confidences are clamped.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from scan_organizer.models.enums import DocumentType

FALLBACK_TITLE = "Document"
FALLBACK_CONFIDENCE = 0.5


class Component(BaseModel):
    """A labeled identifier the model considers useful for the file name."""

    model_config = ConfigDict(frozen=True)

    label: str = ""
    value: str = ""
    confidence: float | None = None  # None when the model omitted it

    @field_validator("label", "value", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any) -> float | None:
        if isinstance(v, bool) or v is None:
            return None
        try:
            return min(max(float(v), 0.0), 1.0)
        except (TypeError, ValueError):
            return None


class ClassificationComponents(BaseModel):
    """Parsed structured-extraction output."""

    model_config = ConfigDict(frozen=True)

    date: str
    title: str = ""
    type: str = DocumentType.UNKNOWN.value
    components: list[Component] = Field(default_factory=list)
    confidence: float = FALLBACK_CONFIDENCE

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return min(max(float(v), 0.0), 1.0)

    @classmethod
    def fallback(cls, file_date: str, title: str = FALLBACK_TITLE) -> ClassificationComponents:
        """Default result used when the model output cannot be parsed."""
        return cls(
            date=file_date,
            title=title,
            type=DocumentType.UNKNOWN.value,
            components=[],
            confidence=FALLBACK_CONFIDENCE,
        )


class Classification(BaseModel):
    """Result of `DocumentClassifier.classify`."""

    model_config = ConfigDict(frozen=True)

    document_type: DocumentType
    ai_type: str
    confidence: float
    vendor: str | None = None
    amount_minor: int | None = None
    document_date: str | None = None  # YYYY-MM-DD, only when the model found a valid date
    language: str = "UNKNOWN"
    vision_description: str = ""
    raw_response: str = ""
    file_name: str
    components: ClassificationComponents
