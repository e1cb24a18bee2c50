"""Tests for the polling directory watcher, feeding a real (unstarted) queue."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from scan_organizer.config import QueueSettings
from scan_organizer.queue.processing_queue import ProcessingQueue
from scan_organizer.queue.watcher import DirectoryWatcher


@pytest.fixture()
def queue():
    with patch("scan_organizer.queue.processing_queue.emit", new_callable=AsyncMock):
        yield ProcessingQueue(MagicMock(), QueueSettings(inter_item_delay=0, idle_timeout=0.05))


def _touch(path: Path) -> Path:
    path.write_bytes(b"%PDF-1.4")
    return path


class TestScan:
    @pytest.mark.asyncio()
    async def test_only_visible_pdfs(self, tmp_path: Path, queue: ProcessingQueue) -> None:
        _touch(tmp_path / "b.pdf")
        _touch(tmp_path / "a.PDF")
        _touch(tmp_path / ".hidden.pdf")
        _touch(tmp_path / "notes.txt")
        (tmp_path / "sub.pdf").mkdir()

        added = await DirectoryWatcher(queue, tmp_path).scan()

        assert added == [tmp_path / "a.PDF", tmp_path / "b.pdf"]
        assert [i.file_name for i in queue.pending_items] == ["a.PDF", "b.pdf"]

    @pytest.mark.asyncio()
    async def test_second_scan_finds_only_new(self, tmp_path: Path, queue: ProcessingQueue) -> None:
        watcher = DirectoryWatcher(queue, tmp_path)
        _touch(tmp_path / "first.pdf")
        await watcher.scan()

        _touch(tmp_path / "second.pdf")
        assert await watcher.scan() == [tmp_path / "second.pdf"]
        assert await watcher.scan() == []


class TestLifecycle:
    @pytest.mark.asyncio()
    async def test_existing_files_ignored_by_default(self, tmp_path: Path, queue: ProcessingQueue) -> None:
        _touch(tmp_path / "old.pdf")
        watcher = DirectoryWatcher(queue, tmp_path, interval=60)
        await watcher.start()
        assert watcher.is_running
        await watcher.stop()
        assert not watcher.is_running

        _touch(tmp_path / "new.pdf")
        assert await watcher.scan() == [tmp_path / "new.pdf"]
        assert [i.file_name for i in queue.items] == ["new.pdf"]

    @pytest.mark.asyncio()
    async def test_include_existing(self, tmp_path: Path, queue: ProcessingQueue) -> None:
        _touch(tmp_path / "old.pdf")
        watcher = DirectoryWatcher(queue, tmp_path, interval=60, include_existing=True)
        await watcher.start()
        try:
            async with asyncio.timeout(2):
                while not queue.items:
                    await asyncio.sleep(0.01)
        finally:
            await watcher.stop()
        assert [i.file_name for i in queue.items] == ["old.pdf"]

    @pytest.mark.asyncio()
    async def test_not_a_directory(self, tmp_path: Path, queue: ProcessingQueue) -> None:
        with pytest.raises(NotADirectoryError):
            await DirectoryWatcher(queue, tmp_path / "missing").start()
