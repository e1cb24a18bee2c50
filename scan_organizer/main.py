"""Command-line entry point. Wires configuration, logging and the queue together.

Usage:
    scan-organizer process scan.pdf [--json]
    scan-organizer queue a.pdf b.pdf [--progress]
    scan-organizer watch ~/Scans [--interval 2]
    scan-organizer stats ~/Documents/Scans
    scan-organizer check
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import pytesseract
import structlog

from scan_organizer import __version__
from scan_organizer.classification.classifier import DocumentClassifier
from scan_organizer.config import Settings, settings
from scan_organizer.events import start_event_system, stop_event_system, subscribe, unsubscribe
from scan_organizer.llm.client import OllamaClient, OllamaError
from scan_organizer.naming.organizer import FileOrganizer
from scan_organizer.pipeline.processor import DocumentProcessor, ProcessingError
from scan_organizer.queue.processing_queue import ProcessingQueue
from scan_organizer.queue.watcher import DirectoryWatcher
from scan_organizer.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 0.5

# ── Logging setup ────────────────────────────────────────────────────


def configure_logging(level: str | None = None) -> None:
    """Configure stdlib logging and structlog for console output."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper()),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )
    # Request lines from httpx are noise at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ── Wiring ───────────────────────────────────────────────────────────


def build_processor(config: Settings, client: OllamaClient) -> DocumentProcessor:
    classifier = DocumentClassifier(client, config)
    return DocumentProcessor(classifier, config=config)


async def _print_finished(event: SystemEvent) -> None:
    if event.event_type == EventType.ITEM_COMPLETED:
        print(f"✓ {Path(event.data['file_path']).name} -> {event.data.get('processed_path')}")
    elif event.event_type == EventType.ITEM_FAILED:
        print(f"✗ {Path(event.data['file_path']).name}: {event.data.get('error')}")


# ── Commands ─────────────────────────────────────────────────────────


async def _cmd_process(args: argparse.Namespace, config: Settings) -> int:
    client = OllamaClient(config.ollama)
    try:
        processor = build_processor(config, client)
        try:
            result = await processor.process(Path(args.pdf))
        except ProcessingError as exc:
            print(f"Error ({exc.step}): {exc}", file=sys.stderr)
            return 1
    finally:
        await client.close()

    if args.json:
        print(result.model_dump_json(indent=2))
    else:
        document = result.document
        assert document is not None  # noqa: S101
        print(f"New file:   {document.processed_path}")
        print(f"Type:       {document.display_type}")
        if document.vendor:
            print(f"Vendor:     {document.vendor}")
        if document.amount is not None:
            print(f"Amount:     {document.amount:.2f}")
        print(f"Confidence: {document.confidence:.0%}")
        print(f"Time:       {result.processing_time:.1f}s")
    return 0


async def _cmd_queue(args: argparse.Namespace, config: Settings) -> int:
    client = OllamaClient(config.ollama)
    queue = ProcessingQueue(build_processor(config, client), config.queue)
    subscribe(_print_finished, event_types=[EventType.ITEM_COMPLETED, EventType.ITEM_FAILED])
    try:
        added = await queue.add_files(Path(p) for p in args.pdfs)
        if not added:
            print("Nothing to process.", file=sys.stderr)
            return 1
        await queue.start()

        if args.progress:
            last = ""
            while queue.pending_items or queue.current_item is not None:
                current = queue.current_item
                if current is not None:
                    line = f"{current.file_name}: {current.progress:4.0%} {current.current_step}"
                    if line != last:
                        print(line)
                        last = line
                await asyncio.sleep(PROGRESS_INTERVAL)

        await queue.wait_until_idle()
        await queue.stop()
    finally:
        unsubscribe(_print_finished)
        await client.close()

    for item in queue.items:
        print(f"{item.status.display_name:<10} {item.current_path}")
    print(f"Processed: {queue.processed_count}, failed: {queue.failed_count}")
    return 0 if queue.failed_count == 0 else 1


async def _cmd_watch(args: argparse.Namespace, config: Settings) -> int:
    client = OllamaClient(config.ollama)
    queue = ProcessingQueue(build_processor(config, client), config.queue)
    watcher = DirectoryWatcher(queue, Path(args.directory), interval=args.interval, include_existing=args.existing)

    await start_event_system()
    subscribe(_print_finished, event_types=[EventType.ITEM_COMPLETED, EventType.ITEM_FAILED])
    try:
        await queue.start()
        await watcher.start()
        print(f"Watching {watcher.directory} (Ctrl+C to stop)")
        await asyncio.Event().wait()
    finally:
        await watcher.stop()
        await queue.stop()
        unsubscribe(_print_finished)
        await stop_event_system()
        await client.close()
    return 0


def _cmd_stats(args: argparse.Namespace, config: Settings) -> int:
    organizer = FileOrganizer(config.organizer)
    stats = organizer.storage_statistics(Path(args.directory) if args.directory else None)
    print(f"Directory: {stats.base_directory}")
    print(f"PDF files: {stats.total_files}")
    print(f"Total size: {stats.formatted_size}")
    for doc_type, count in sorted(stats.files_by_type.items(), key=lambda kv: kv[0].value):
        print(f"  {doc_type.display_name:<10} {count}")
    return 0


async def _cmd_check(args: argparse.Namespace, config: Settings) -> int:
    ok = True
    client = OllamaClient(config.ollama)
    try:
        installed = await client.list_models()
    except OllamaError as exc:
        print(f"✗ Ollama: {exc}")
        installed = None
        ok = False
    finally:
        await client.close()

    if installed is not None:
        print(f"✓ Ollama reachable at {config.ollama.base_url} ({len(installed)} models)")
        for model in (config.ollama.vision_model, config.ollama.text_model):
            if _model_installed(model, installed):
                print(f"✓ Model {model}")
            else:
                print(f"✗ Model {model} not installed (ollama pull {model})")
                ok = False

    try:
        version = pytesseract.get_tesseract_version()
        print(f"✓ Tesseract {version}")
    except pytesseract.TesseractNotFoundError:
        print("✗ Tesseract not found on PATH")
        ok = False

    return 0 if ok else 1


def _model_installed(model: str, installed: list[str]) -> bool:
    names = set(installed)
    return model in names or (":" not in model and f"{model}:latest" in names)


# ── Entry point ──────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scan-organizer", description="Classify, rename and file scanned PDFs.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Override SCAN_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("process", help="Process a single PDF")
    p.add_argument("pdf", help="Path to the PDF")
    p.add_argument("--json", action="store_true", help="Print the result as JSON")

    q = sub.add_parser("queue", help="Process several PDFs sequentially")
    q.add_argument("pdfs", nargs="+", help="PDF paths")
    q.add_argument("--progress", action="store_true", help="Print step progress")

    w = sub.add_parser("watch", help="Watch a folder and process new PDFs")
    w.add_argument("directory", help="Folder to watch")
    w.add_argument("--interval", type=float, default=2.0, help="Polling interval in seconds")
    w.add_argument("--existing", action="store_true", help="Also process PDFs already in the folder")

    s = sub.add_parser("stats", help="Storage statistics for a folder of processed PDFs")
    s.add_argument("directory", nargs="?", default=None, help="Folder (default: archive dir)")

    sub.add_parser("check", help="Check that Ollama, the models and Tesseract are available")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    config = settings
    logger.debug("scan-organizer %s, env=%s", __version__, config.environment)

    try:
        if args.command == "process":
            return asyncio.run(_cmd_process(args, config))
        if args.command == "queue":
            return asyncio.run(_cmd_queue(args, config))
        if args.command == "watch":
            return asyncio.run(_cmd_watch(args, config))
        if args.command == "stats":
            return _cmd_stats(args, config)
        if args.command == "check":
            return asyncio.run(_cmd_check(args, config))
    except KeyboardInterrupt:
        return 130
    return 2


if __name__ == "__main__":
    sys.exit(main())
