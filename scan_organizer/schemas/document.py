"""Pydantic schemas for a processed document and the pipeline result.

Documents are immutable values: each pipeline stage produces a new snapshot
via `Document.updated()`, which re-runs validation (confidence clamping).
Money is kept as integer minor units to avoid float drift.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from scan_organizer.models.enums import DocumentType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Document(BaseModel):
    """A scanned document moving through the pipeline."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    original_path: Path
    processed_path: Path | None = None
    document_type: DocumentType = DocumentType.UNKNOWN
    ai_type: str | None = None  # raw type string from the model, kept even when unmatched
    confidence: float = 0.0
    extracted_text: str = ""
    vendor: str | None = None
    amount_minor: int | None = None  # cents
    document_date: date | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    processed_at: datetime | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        """Confidence is always within [0.0, 1.0]."""
        return min(max(float(v), 0.0), 1.0)

    @property
    def amount(self) -> Decimal | None:
        """Amount in major units (e.g. euros), exact."""
        if self.amount_minor is None:
            return None
        return Decimal(self.amount_minor) / 100

    @property
    def display_type(self) -> str:
        """Known type name, or the model's own label when the type is unknown."""
        if self.document_type == DocumentType.UNKNOWN and self.ai_type:
            return self.ai_type
        return self.document_type.display_name

    def updated(self, **changes: Any) -> Document:
        """Return a validated copy with the given fields replaced."""
        return type(self).model_validate({**self.model_dump(), **changes})


class ProcessingResult(BaseModel):
    """Final, read-only outcome of one pipeline run."""

    model_config = ConfigDict(frozen=True)

    success: bool
    document: Document | None = None
    error: str | None = None
    processing_time: float = 0.0  # seconds
