"""Domain enums used across schemas, the pipeline and the queue.

All enums use the str mixin so they serialize cleanly to JSON.
"""

from __future__ import annotations

from enum import Enum


class DocumentType(str, Enum):
    """Known document categories. Anything else the model returns maps to UNKNOWN."""

    INVOICE = "invoice"
    RECEIPT = "receipt"
    CONTRACT = "contract"
    LETTER = "letter"
    REPORT = "report"
    STATEMENT = "statement"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_ai_type(cls, raw: str | None) -> DocumentType:
        """Exact, case-insensitive match of the model's type string; UNKNOWN otherwise."""
        if not raw:
            return cls.UNKNOWN
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.UNKNOWN


class QueueItemStatus(str, Enum):
    """Lifecycle of a queue item: pending → processing → completed | failed."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def is_finished(self) -> bool:
        return self in (QueueItemStatus.COMPLETED, QueueItemStatus.FAILED)


class OcrRecommendation(str, Enum):
    """Outcome of comparing embedded PDF text with on-device OCR."""

    USE_RECOGNIZED = "use_recognized"  # candidate B, on-device OCR
    KEEP_EXISTING = "keep_existing"  # candidate A, embedded text layer
    NO_EXISTING = "no_existing"


class PlacementPolicy(str, Enum):
    """Where the renamed file goes."""

    SAME_FOLDER = "same_folder"
    ARCHIVE = "archive"  # <archive_dir>/<year>/<type folder>
