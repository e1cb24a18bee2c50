"""Tests for the async event pub/sub."""

from __future__ import annotations

import uuid

import pytest

from scan_organizer import events
from scan_organizer.schemas.events import EventType, SystemEvent


class TestEvents:
    @pytest.mark.asyncio()
    async def test_inline_dispatch_and_filtering(self) -> None:
        everything: list[SystemEvent] = []
        failures: list[SystemEvent] = []

        async def on_any(event: SystemEvent) -> None:
            everything.append(event)

        async def on_failed(event: SystemEvent) -> None:
            failures.append(event)

        events.subscribe(on_any)
        events.subscribe(on_failed, event_types=[EventType.ITEM_FAILED])
        try:
            await events.emit(SystemEvent(event_type=EventType.ITEM_ADDED, item_id=uuid.uuid4()))
            await events.emit(SystemEvent(event_type=EventType.ITEM_FAILED, data={"error": "boom"}))
        finally:
            events.unsubscribe(on_any)
            events.unsubscribe(on_failed)

        assert [e.event_type for e in everything] == [EventType.ITEM_ADDED, EventType.ITEM_FAILED]
        assert [e.data["error"] for e in failures] == ["boom"]

    @pytest.mark.asyncio()
    async def test_unsubscribed_handler_not_called(self) -> None:
        received: list[SystemEvent] = []

        async def handler(event: SystemEvent) -> None:
            received.append(event)

        events.subscribe(handler)
        events.unsubscribe(handler)
        await events.emit(SystemEvent(event_type=EventType.ITEM_ADDED))
        assert received == []

    @pytest.mark.asyncio()
    async def test_failing_handler_isolated(self) -> None:
        received: list[SystemEvent] = []

        async def broken(event: SystemEvent) -> None:
            raise ValueError("handler bug")

        async def healthy(event: SystemEvent) -> None:
            received.append(event)

        events.subscribe(broken)
        events.subscribe(healthy)
        try:
            await events.emit(SystemEvent(event_type=EventType.ITEM_COMPLETED))
        finally:
            events.unsubscribe(broken)
            events.unsubscribe(healthy)
        assert len(received) == 1

    @pytest.mark.asyncio()
    async def test_background_worker_flushes_on_stop(self) -> None:
        received: list[SystemEvent] = []

        async def handler(event: SystemEvent) -> None:
            received.append(event)

        events.subscribe(handler)
        await events.start_event_system()
        try:
            for _ in range(3):
                await events.emit(SystemEvent(event_type=EventType.LLM_REQUEST))
        finally:
            await events.stop_event_system()
            events.unsubscribe(handler)
        assert len(received) == 3
