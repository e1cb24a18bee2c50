"""Event emitter and subscriber system.

Async pub/sub for SystemEvents emitted by the queue and the LLM client.
Used for telemetry and for outer layers (CLI, notifications) that want to
react to finished items without polling.

Usage:
    from scan_organizer.events import emit, subscribe

    subscribe(my_handler)  # async def my_handler(event: SystemEvent) -> None
    await emit(SystemEvent(event_type=EventType.ITEM_ADDED, item_id=item.id))

Until `start_event_system()` is called, events are dispatched inline.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from scan_organizer.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]

# ── Internal state ───────────────────────────────────────────────────

_subscribers: list[EventHandler] = []
_type_subscribers: dict[EventType, list[EventHandler]] = {}
_queue: asyncio.Queue[SystemEvent] | None = None
_worker_task: asyncio.Task[None] | None = None


# ── Public API ───────────────────────────────────────────────────────


def subscribe(handler: EventHandler, event_types: list[EventType] | None = None) -> None:
    """Register an event handler.

    Args:
        handler: Async function that accepts a SystemEvent.
        event_types: If provided, handler only receives these event types.
                     If None, handler receives ALL events.
    """
    if event_types is None:
        _subscribers.append(handler)
        logger.debug("Registered global event subscriber: %s", handler.__name__)
    else:
        for et in event_types:
            _type_subscribers.setdefault(et, []).append(handler)
        logger.debug(
            "Registered event subscriber %s for types: %s",
            handler.__name__,
            [t.value for t in event_types],
        )


def unsubscribe(handler: EventHandler) -> None:
    """Remove a previously registered handler."""
    if handler in _subscribers:
        _subscribers.remove(handler)
    for handlers in _type_subscribers.values():
        if handler in handlers:
            handlers.remove(handler)


async def emit(event: SystemEvent) -> None:
    """Publish a SystemEvent to all subscribers.

    With the event system started, events go through a background worker so
    the emitter is never blocked by slow subscribers.
    """
    if _queue is None or _worker_task is None or _worker_task.done():
        await _dispatch(event)
        return
    await _queue.put(event)


# ── Background worker ────────────────────────────────────────────────


async def _event_worker(queue: asyncio.Queue[SystemEvent]) -> None:
    """Drain the event queue and dispatch to subscribers."""
    while True:
        try:
            event = await queue.get()
        except asyncio.CancelledError:
            logger.debug("Event worker shutting down")
            break
        try:
            await _dispatch(event)
        except Exception:
            logger.exception("Error in event worker")
        finally:
            queue.task_done()


async def _dispatch(event: SystemEvent) -> None:
    """Dispatch a single event to all matching subscribers."""
    handlers: list[EventHandler] = list(_subscribers)
    handlers.extend(_type_subscribers.get(event.event_type, []))

    if not handlers:
        return

    results = await asyncio.gather(
        *[_safe_call(handler, event) for handler in handlers],
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, Exception):
            logger.error("Event handler failed for %s: %s", event.event_type.value, result)


async def _safe_call(handler: EventHandler, event: SystemEvent) -> None:
    """Call a handler with error isolation."""
    try:
        await handler(event)
    except Exception:
        logger.exception("Handler %s failed for event %s", handler.__name__, event.event_type.value)
        raise


# ── Lifecycle ────────────────────────────────────────────────────────


async def start_event_system() -> None:
    """Start the background dispatcher."""
    global _queue, _worker_task
    if _worker_task is not None and not _worker_task.done():
        return
    _queue = asyncio.Queue()
    _worker_task = asyncio.create_task(_event_worker(_queue))
    logger.info(
        "Event system started with %d global + %d typed subscribers",
        len(_subscribers),
        sum(len(v) for v in _type_subscribers.values()),
    )


async def stop_event_system() -> None:
    """Deliver pending events, then stop the dispatcher."""
    global _worker_task, _queue

    if _queue is not None and _worker_task is not None and not _worker_task.done():
        await _queue.join()

    if _worker_task is not None and not _worker_task.done():
        _worker_task.cancel()
        try:
            await _worker_task
        except asyncio.CancelledError:
            pass

    _worker_task = None
    _queue = None
    logger.info("Event system stopped")
