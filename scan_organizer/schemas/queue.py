"""Immutable queue item snapshot.

Every status, progress or log change produces a new QueueItem that replaces
the previous one in the queue's item table, so readers always see a
consistent set of fields.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from scan_organizer.models.enums import QueueItemStatus
from scan_organizer.schemas.document import ProcessingResult


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueueItem(BaseModel):
    """One PDF waiting for, undergoing, or finished with processing."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    file_path: Path
    file_size: int = 0
    added_at: datetime = Field(default_factory=_utcnow)

    status: QueueItemStatus = QueueItemStatus.PENDING
    progress: float = 0.0
    current_step: str = ""
    log: tuple[str, ...] = ()
    error: str | None = None
    result: ProcessingResult | None = None
    processing_time: float | None = None
    preview_path: Path | None = None
    artifacts: dict[str, str] = Field(default_factory=dict)  # ocr_text, vision_response, ...

    @property
    def file_name(self) -> str:
        return self.file_path.name

    @property
    def current_path(self) -> Path:
        """Processed path once the original is gone, else the original path."""
        if self.result and self.result.document and self.result.document.processed_path:
            if not self.file_path.exists():
                return self.result.document.processed_path
        return self.file_path

    def with_log(self, message: str, at: datetime | None = None) -> QueueItem:
        """Return a copy with a timestamped log line appended."""
        stamp = (at or datetime.now()).strftime("%H:%M:%S")
        return self.model_copy(update={"log": (*self.log, f"[{stamp}] {message}")})
