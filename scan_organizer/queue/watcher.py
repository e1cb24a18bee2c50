"""Folder monitoring: feed newly appearing PDFs into the queue.

Polls the directory listing at a fixed interval and enqueues files that
were not there on the previous poll. Files present when watching starts
are left alone unless `include_existing` is set.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from scan_organizer.queue.processing_queue import ProcessingQueue

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 2.0


class DirectoryWatcher:
    """Polling watcher for one directory (not recursive)."""

    def __init__(
        self,
        queue: ProcessingQueue,
        directory: Path,
        interval: float = DEFAULT_INTERVAL,
        include_existing: bool = False,
    ) -> None:
        self._queue = queue
        self._directory = Path(directory)
        self._interval = interval
        self._include_existing = include_existing
        self._known: set[Path] = set()
        self._task: asyncio.Task[None] | None = None

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        if not self._directory.is_dir():
            msg = f"Not a directory: {self._directory}"
            raise NotADirectoryError(msg)
        self._known = set() if self._include_existing else self._list_pdfs()
        self._task = asyncio.create_task(self._poll(), name=f"watcher:{self._directory.name}")
        logger.info("Watching %s every %.1fs", self._directory, self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped watching %s", self._directory)

    async def scan(self) -> list[Path]:
        """Enqueue PDFs that appeared since the last scan. Returns the files queued."""
        current = self._list_pdfs()
        new_files = sorted(current - self._known)
        self._known = current
        if not new_files:
            return []
        added = await self._queue.add_files(new_files)
        logger.info("Found %d new PDF(s) in %s", len(added), self._directory)
        return [item.file_path for item in added]

    async def _poll(self) -> None:
        while True:
            try:
                await self.scan()
            except OSError as exc:
                logger.warning("Cannot list %s: %s", self._directory, exc)
            await asyncio.sleep(self._interval)

    def _list_pdfs(self) -> set[Path]:
        return {
            p for p in self._directory.iterdir()
            if p.suffix.lower() == ".pdf" and not p.name.startswith(".") and p.is_file()
        }
