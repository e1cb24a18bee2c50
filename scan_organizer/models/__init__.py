"""Domain enums shared by schemas, the pipeline and the queue."""

from __future__ import annotations

from scan_organizer.models.enums import (
    DocumentType,
    OcrRecommendation,
    PlacementPolicy,
    QueueItemStatus,
)

__all__ = [
    "DocumentType",
    "OcrRecommendation",
    "PlacementPolicy",
    "QueueItemStatus",
]
