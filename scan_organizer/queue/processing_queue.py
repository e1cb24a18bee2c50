"""Sequential processing queue.

One background worker task processes pending items in insertion order, one
at a time. Items are immutable snapshots stored in an id-keyed table; every
change replaces the snapshot, so readers never see half-applied updates.
Only the worker moves an item into processing, completed or failed.

The worker sleeps on a work-available event (bounded by `idle_timeout`)
when nothing is pending, and keeps running until `stop()`.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Iterable
from pathlib import Path

from scan_organizer.config import QueueSettings, settings
from scan_organizer.events import emit
from scan_organizer.models.enums import QueueItemStatus
from scan_organizer.pipeline.processor import DocumentProcessor
from scan_organizer.schemas.document import ProcessingResult
from scan_organizer.schemas.events import EventType, SystemEvent
from scan_organizer.schemas.queue import QueueItem

logger = logging.getLogger(__name__)

RETRY_MARKER = "--- RETRY ---"


class ProcessingQueue:
    """FIFO queue with a single worker driving a DocumentProcessor."""

    def __init__(self, processor: DocumentProcessor, config: QueueSettings | None = None) -> None:
        self._processor = processor
        self._config = config or settings.queue
        self._items: dict[uuid.UUID, QueueItem] = {}
        self._work = asyncio.Event()
        self._state_changed = asyncio.Condition()
        self._active = False
        self._auto_start = False
        self._worker: asyncio.Task[None] | None = None
        self._current_id: uuid.UUID | None = None
        self.processed_count = 0
        self.failed_count = 0

    # ── Read API ─────────────────────────────────────────────────────

    @property
    def items(self) -> list[QueueItem]:
        """Snapshot of all items in insertion order."""
        return list(self._items.values())

    @property
    def pending_items(self) -> list[QueueItem]:
        return [i for i in self._items.values() if i.status == QueueItemStatus.PENDING]

    @property
    def completed_items(self) -> list[QueueItem]:
        return [i for i in self._items.values() if i.status == QueueItemStatus.COMPLETED]

    @property
    def failed_items(self) -> list[QueueItem]:
        return [i for i in self._items.values() if i.status == QueueItemStatus.FAILED]

    @property
    def current_item(self) -> QueueItem | None:
        if self._current_id is None:
            return None
        return self._items.get(self._current_id)

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def get(self, item_id: uuid.UUID) -> QueueItem | None:
        return self._items.get(item_id)

    # ── Mutations ────────────────────────────────────────────────────

    async def add_file(self, path: Path | str) -> QueueItem | None:
        """Enqueue one PDF. Returns None for non-PDFs and paths already queued.

        Never waits for processing. Once `start()` has been called, adding a
        file also restarts a stopped worker. Paths are compared resolved.
        """
        path = Path(path).resolve()
        if path.suffix.lower() != ".pdf":
            logger.warning("Ignoring non-PDF file: %s", path)
            return None

        if any(i.file_path == path and i.status != QueueItemStatus.COMPLETED for i in self._items.values()):
            logger.debug("Already queued: %s", path)
            return None

        try:
            size = path.stat().st_size
        except OSError:
            size = 0

        item = QueueItem(file_path=path, file_size=size)
        self._items[item.id] = item
        self._work.set()
        logger.info("Queued %s (%d bytes)", path.name, size)

        await emit(SystemEvent(
            event_type=EventType.ITEM_ADDED,
            item_id=item.id,
            data={"file_path": str(path), "file_size": size},
            source_module="queue.processing_queue",
        ))

        if self._auto_start and not (self._active and self.is_running):
            await self.start()
        return item

    async def add_files(self, paths: Iterable[Path | str]) -> list[QueueItem]:
        added: list[QueueItem] = []
        for path in paths:
            item = await self.add_file(path)
            if item is not None:
                added.append(item)
        return added

    def remove_item(self, item_id: uuid.UUID) -> bool:
        """Drop an item from the queue. An in-flight item still runs to its end."""
        item = self._items.pop(item_id, None)
        if item is None:
            return False
        _discard_preview(item)
        self._work.set()
        return True

    def clear_completed(self) -> int:
        """Remove completed items. Returns how many were removed."""
        done = [i for i in self._items.values() if i.status == QueueItemStatus.COMPLETED]
        for item in done:
            del self._items[item.id]
            _discard_preview(item)
        return len(done)

    async def clear_all(self) -> None:
        """Stop the worker, drop every item and reset the counters."""
        await self.stop()
        for item in self._items.values():
            _discard_preview(item)
        self._items.clear()
        self.processed_count = 0
        self.failed_count = 0

    async def retry_item(self, item_id: uuid.UUID) -> QueueItem | None:
        """Put one failed item back at the end of the pending set.

        The log is kept with a retry marker. A stopped worker is not restarted.
        """
        item = self._items.get(item_id)
        if item is None or item.status != QueueItemStatus.FAILED:
            return None

        retried = item.model_copy(update={
            "status": QueueItemStatus.PENDING,
            "progress": 0.0,
            "current_step": "",
            "error": None,
            "result": None,
            "log": (*item.log, RETRY_MARKER),
        })
        # Re-insert so it sorts after items that were already pending.
        del self._items[item_id]
        self._items[item_id] = retried
        self._work.set()

        await emit(SystemEvent(
            event_type=EventType.ITEM_RETRIED,
            item_id=item_id,
            data={"file_path": str(item.file_path)},
            source_module="queue.processing_queue",
        ))
        return retried

    async def retry_failed(self) -> int:
        """Retry every failed item. Returns how many were reset."""
        count = 0
        for item in self.failed_items:
            if await self.retry_item(item.id) is not None:
                count += 1
        return count

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self) -> None:
        """Start the worker. Idempotent and never waits for processing.

        A stopped worker that is still finishing its item keeps running.
        """
        self._auto_start = True
        self._active = True
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run(), name="processing-queue-worker")
        logger.info("Processing queue started (%d pending)", len(self.pending_items))

    async def stop(self, wait: bool = True) -> None:
        """Stop picking up new items.

        The item in flight is not cancelled: it runs to completion or
        failure. With `wait`, returns once the worker has exited.
        """
        self._active = False
        self._work.set()
        worker = self._worker
        if wait and worker is not None and not worker.done():
            await worker
        logger.info("Processing queue stopped")

    async def wait_until_idle(self, timeout: float | None = None) -> None:
        """Wait until nothing is pending or processing.

        Raises:
            RuntimeError: If work is outstanding and the queue is stopped.
            TimeoutError: If `timeout` elapses first.
        """
        if not self._has_outstanding_work():
            return
        if self._active:
            async with asyncio.timeout(timeout):
                async with self._state_changed:
                    await self._state_changed.wait_for(
                        lambda: not self._active or not self._has_outstanding_work()
                    )
        if self._has_outstanding_work():
            msg = "Processing queue is stopped with work outstanding"
            raise RuntimeError(msg)

    # ── Worker ───────────────────────────────────────────────────────

    async def _run(self) -> None:
        while True:
            try:
                await self._drain()
            finally:
                self._current_id = None
                await self._notify()
            # No await between this check and returning: a concurrent start()
            # either lands before it or sees the worker as done.
            if not self._active:
                return

    async def _drain(self) -> None:
        while self._active:
            item = self._next_pending()
            if item is None:
                self._work.clear()
                await self._notify()
                try:
                    await asyncio.wait_for(self._work.wait(), timeout=self._config.idle_timeout)
                except TimeoutError:
                    continue
                continue

            await self._process_item(item)
            await self._notify()

            if self._active and self._config.inter_item_delay > 0:
                await asyncio.sleep(self._config.inter_item_delay)

    async def _notify(self) -> None:
        async with self._state_changed:
            self._state_changed.notify_all()

    def _next_pending(self) -> QueueItem | None:
        for item in self._items.values():
            if item.status == QueueItemStatus.PENDING:
                return item
        return None

    async def _process_item(self, item: QueueItem) -> None:
        self._current_id = item.id
        self._replace(item.model_copy(update={
            "status": QueueItemStatus.PROCESSING,
            "progress": 0.0,
            "current_step": "Starting processing...",
            "log": (),
            "error": None,
            "result": None,
        }))
        await emit(SystemEvent(
            event_type=EventType.ITEM_STARTED,
            item_id=item.id,
            data={"file_path": str(item.file_path)},
            source_module="queue.processing_queue",
        ))

        start = time.monotonic()
        try:
            result = await self._processor.process(item.file_path, _ItemDelegate(self, item.id))
        except Exception as exc:
            elapsed = time.monotonic() - start
            logger.warning("Processing failed for %s: %s", item.file_name, exc)
            self.failed_count += 1
            current = self._items.get(item.id)
            if current is not None:
                failed = current.with_log(f"ERROR: {exc}").model_copy(update={
                    "status": QueueItemStatus.FAILED,
                    "progress": 0.0,
                    "current_step": f"Error: {exc}",
                    "error": str(exc),
                    "result": ProcessingResult(success=False, error=str(exc), processing_time=elapsed),
                    "processing_time": elapsed,
                })
                self._replace(failed)
            await emit(SystemEvent(
                event_type=EventType.ITEM_FAILED,
                item_id=item.id,
                data={
                    "file_path": str(item.file_path),
                    "error": str(exc),
                    "step": getattr(exc, "step", None),
                },
                source_module="queue.processing_queue",
            ))
        else:
            elapsed = time.monotonic() - start
            self.processed_count += 1
            current = self._items.get(item.id)
            if current is not None:
                self._replace(current.model_copy(update={
                    "status": QueueItemStatus.COMPLETED,
                    "progress": 1.0,
                    "current_step": "Completed",
                    "result": result,
                    "processing_time": elapsed,
                }))
            document = result.document
            await emit(SystemEvent(
                event_type=EventType.ITEM_COMPLETED,
                item_id=item.id,
                data={
                    "file_path": str(item.file_path),
                    "processed_path": str(document.processed_path) if document and document.processed_path else None,
                    "document_type": document.document_type.value if document else None,
                    "confidence": document.confidence if document else None,
                    "processing_time": elapsed,
                },
                source_module="queue.processing_queue",
            ))
        finally:
            self._current_id = None

    # ── Internal helpers ─────────────────────────────────────────────

    def _replace(self, item: QueueItem) -> None:
        """Swap in a new snapshot, unless the item was removed meanwhile."""
        if item.id in self._items:
            self._items[item.id] = item

    def _update(self, item_id: uuid.UUID, **changes: object) -> None:
        current = self._items.get(item_id)
        if current is not None:
            self._items[item_id] = current.model_copy(update=changes)

    def _has_outstanding_work(self) -> bool:
        return any(not i.status.is_finished for i in self._items.values())


class _ItemDelegate:
    """Routes pipeline callbacks into snapshot replacements of one item."""

    def __init__(self, queue: ProcessingQueue, item_id: uuid.UUID) -> None:
        self._queue = queue
        self._item_id = item_id

    def on_status(self, message: str, progress: float) -> None:
        self._queue._update(self._item_id, current_step=message, progress=min(max(progress, 0.0), 1.0))

    def on_log(self, message: str) -> None:
        current = self._queue.get(self._item_id)
        if current is not None:
            self._queue._replace(current.with_log(message))

    def on_preview_image(self, path: Path) -> None:
        current = self._queue.get(self._item_id)
        if current is not None:
            _discard_preview(current)
            self._queue._replace(current.model_copy(update={"preview_path": path}))

    def on_artifact(self, name: str, value: str) -> None:
        current = self._queue.get(self._item_id)
        if current is not None:
            self._queue._replace(current.model_copy(update={"artifacts": {**current.artifacts, name: value}}))


def _discard_preview(item: QueueItem) -> None:
    if item.preview_path is not None:
        try:
            item.preview_path.unlink(missing_ok=True)
        except OSError as exc:
            logger.debug("Could not delete preview %s: %s", item.preview_path, exc)
