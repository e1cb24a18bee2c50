"""SystemEvent schema: telemetry events emitted by the queue and the LLM client.

Subscribers consume these asynchronously; they never influence processing.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Queue lifecycle
    ITEM_ADDED = "queue.item_added"
    ITEM_STARTED = "queue.item_started"
    ITEM_COMPLETED = "queue.item_completed"
    ITEM_FAILED = "queue.item_failed"
    ITEM_RETRIED = "queue.item_retried"

    # Documents
    DOCUMENT_CLASSIFIED = "document.classified"

    # LLM
    LLM_REQUEST = "llm.request"
    LLM_RESPONSE = "llm.response"
    LLM_ERROR = "llm.error"


class SystemEvent(BaseModel):
    """A single telemetry event."""

    event_type: EventType
    item_id: uuid.UUID | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    source_module: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
