"""Pipeline orchestrator for one scanned PDF.

Steps, strictly in order:
    1. OCR every page on-device
    2. Arbitrate between the PDF's own text layer and the on-device OCR
    3. Render the first page for the vision model
    4. Vision AI, 5. Text AI (DocumentClassifier)
    6. Build the file name, 7. resolve the target path
    8. Rebuild a searchable PDF at the target, then remove the original

Progress and log lines go to a ProcessingDelegate. Any failing step raises a
ProcessingError and the remaining steps are skipped; retrying is the
caller's business.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import tempfile
import time
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Protocol

from scan_organizer.classification.classifier import (
    TEXT_STAGE,
    VISION_STAGE,
    ClassificationError,
    DocumentClassifier,
)
from scan_organizer.config import Settings, settings
from scan_organizer.naming.organizer import FileOrganizer
from scan_organizer.ocr.comparison import compare_pdf_ocr
from scan_organizer.ocr.preprocessor import ImagePreprocessingError, preprocess_image
from scan_organizer.ocr.recognizer import OcrError, TesseractRecognizer, TextRecognizer
from scan_organizer.ocr.service import OcrService
from scan_organizer.pdf.renderer import PageRenderer, PdfRenderer
from scan_organizer.schemas.document import Document, ProcessingResult
from scan_organizer.schemas.ocr import PageRecognition

logger = logging.getLogger(__name__)

PDF_SUFFIX = ".pdf"
PREVIEW_PREFIX = "scan-organizer-preview-"
LOG_EXCERPT_CHARS = 200


# ── Errors ───────────────────────────────────────────────────────────


class ProcessingError(Exception):
    """A pipeline step failed. `step` names the step."""

    def __init__(self, message: str, step: str) -> None:
        super().__init__(message)
        self.step = step


class InvalidFileTypeError(ProcessingError):
    """The input is not a PDF."""


class SourceNotFoundError(ProcessingError):
    """The input file does not exist."""


class PdfReadError(ProcessingError):
    """The PDF cannot be opened or rendered."""


class ImageConversionError(ProcessingError):
    """The first page cannot be turned into an image for the vision model."""


class PdfWriteError(ProcessingError):
    """The rebuilt PDF cannot be written at the target."""


# ── Delegate ─────────────────────────────────────────────────────────


class ProcessingDelegate(Protocol):
    """Receives progress from DocumentProcessor. All methods are called on the event loop."""

    def on_status(self, message: str, progress: float) -> None: ...

    def on_log(self, message: str) -> None: ...

    def on_preview_image(self, path: Path) -> None: ...

    def on_artifact(self, name: str, value: str) -> None: ...


class LoggingDelegate:
    """Delegate that forwards everything to the module logger."""

    def on_status(self, message: str, progress: float) -> None:
        logger.info("[%3d%%] %s", int(progress * 100), message)

    def on_log(self, message: str) -> None:
        logger.debug("%s", message)

    def on_preview_image(self, path: Path) -> None:
        # Nobody displays the preview here, so it is not kept.
        logger.debug("Preview image: %s (discarded)", path)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.debug("Could not delete preview %s: %s", path, exc)

    def on_artifact(self, name: str, value: str) -> None:
        logger.debug("Artifact %s: %d chars", name, len(value))


# ── Orchestrator ─────────────────────────────────────────────────────


class DocumentProcessor:
    """Runs the full pipeline for one PDF at a time."""

    def __init__(
        self,
        classifier: DocumentClassifier,
        *,
        renderer: PageRenderer | None = None,
        recognizer: TextRecognizer | None = None,
        organizer: FileOrganizer | None = None,
        config: Settings | None = None,
    ) -> None:
        self._config = config or settings
        self._classifier = classifier
        self._renderer = renderer or PdfRenderer()
        self._recognizer = recognizer or TesseractRecognizer(self._config.ocr.languages)
        self._organizer = organizer or FileOrganizer(self._config.organizer)
        self._ocr = OcrService(self._renderer, self._recognizer, self._config.ocr)

    async def process(self, pdf_path: Path, delegate: ProcessingDelegate | None = None) -> ProcessingResult:
        """Process one PDF end to end.

        Returns:
            A successful ProcessingResult with the final Document.

        Raises:
            InvalidFileTypeError, SourceNotFoundError: before any step runs.
            ProcessingError: any step failure (subclass names the kind).
        """
        pdf_path = Path(pdf_path)
        if pdf_path.suffix.lower() != PDF_SUFFIX:
            raise InvalidFileTypeError(f"Not a PDF file: {pdf_path.name}", step="validate")
        if not pdf_path.is_file():
            raise SourceNotFoundError(f"File not found: {pdf_path}", step="validate")

        sink = delegate or LoggingDelegate()
        start = time.monotonic()
        document = Document(original_path=pdf_path)

        sink.on_status("Initializing...", 0.05)
        sink.on_log("=== PDF PROCESSING STARTED ===")
        sink.on_log(f"File: {pdf_path.name}")
        sink.on_log(f"Size: {_format_size(pdf_path.stat().st_size)}")

        # 1. On-device OCR
        sink.on_status("Extracting text with on-device OCR...", 0.15)
        sink.on_log("--- STEP 1: ON-DEVICE OCR ---")
        recognized_text, pages = await self._recognize(pdf_path)
        sink.on_log(f"On-device OCR: {len(recognized_text)} characters from {len(pages)} page(s)")
        sink.on_log(f"First {LOG_EXCERPT_CHARS} characters: {recognized_text[:LOG_EXCERPT_CHARS]}")

        # 2. Arbitration
        sink.on_status("Comparing OCR quality...", 0.25)
        sink.on_log("--- STEP 2: OCR COMPARISON ---")
        comparison = await asyncio.to_thread(
            compare_pdf_ocr, pdf_path, recognized_text, self._renderer, self._config.ocr.max_pages
        )
        sink.on_log(f"Existing OCR score: {comparison.existing_score:.1f}")
        sink.on_log(f"On-device OCR score: {comparison.recognized_score:.1f}")
        sink.on_log(f"Decision: {comparison.recommendation.value} - {comparison.reason}")
        sink.on_log(f"Selected text: {len(comparison.selected_text)} characters")
        sink.on_artifact("ocr_text", comparison.selected_text)
        document = document.updated(extracted_text=comparison.selected_text)

        # 3. First page image
        sink.on_status("Converting PDF to image...", 0.35)
        sink.on_log("--- STEP 3: PDF TO IMAGE CONVERSION ---")
        page_png = await self._render_first_page(pdf_path)
        preview_path = await asyncio.to_thread(_write_preview, page_png)
        sink.on_preview_image(preview_path)
        try:
            prepared = preprocess_image(page_png, self._config.ocr.vision_max_long_side)
        except ImagePreprocessingError as exc:
            raise ImageConversionError(exc.user_message, step="render") from exc
        sink.on_log(
            f"First page converted: {len(page_png) // 1024} KB PNG, "
            f"sent as {prepared.final_width}x{prepared.final_height} JPEG"
        )

        # 4 + 5. Classification
        sink.on_status("Starting Vision AI analysis...", 0.45)
        sink.on_log("--- STEP 4: VISION AI ANALYSIS ---")
        ollama = self._config.ollama

        def on_stage(stage: str) -> None:
            if stage == VISION_STAGE:
                sink.on_log(f"Using vision model: {ollama.vision_model}")
                sink.on_log(f"Image: [BASE64_IMAGE_DATA_{len(prepared.base64_str)}_BYTES]")
            elif stage == TEXT_STAGE:
                sink.on_status("Processing with Text AI...", 0.55)
                sink.on_log("--- STEP 5: TEXT AI ANALYSIS ---")
                sink.on_log(f"Using text model: {ollama.text_model}")

        try:
            classification = await self._classifier.classify(
                comparison.selected_text,
                prepared.jpeg_bytes,
                pdf_path.name,
                on_stage=on_stage,
            )
        except ClassificationError as exc:
            raise ProcessingError(str(exc), step=f"{exc.stage}_ai") from exc

        sink.on_artifact("vision_response", classification.vision_description)
        sink.on_artifact("text_response", classification.raw_response)
        sink.on_log(f"Detected language: {classification.language}")
        sink.on_log(f"AI detected type: '{classification.ai_type}'")
        sink.on_log(f"Title: {classification.components.title}")
        sink.on_log(f"Date: {classification.components.date}")

        document = document.updated(
            document_type=classification.document_type,
            ai_type=classification.ai_type,
            confidence=classification.confidence,
            vendor=classification.vendor,
            amount_minor=classification.amount_minor,
            document_date=_parse_date(classification.document_date),
            metadata={"language": classification.language, "title": classification.components.title},
        )

        # 6. File name
        sink.on_status("Generating filename...", 0.70)
        sink.on_log("--- STEP 6: GENERATE FILENAME ---")
        sink.on_log(f"Generated filename: {classification.file_name}")

        # 7. Target
        sink.on_status("Determining target location...", 0.75)
        sink.on_log("--- STEP 7: DETERMINE TARGET LOCATION ---")
        target = self._organizer.resolve_target(
            pdf_path,
            classification.file_name,
            document.document_type,
            document.document_date,
        )
        sink.on_log(f"Target location: {target}")

        # 8. Relocate
        sink.on_status("Creating searchable PDF...", 0.80)
        sink.on_log("--- STEP 8: CREATE SEARCHABLE PDF AT TARGET ---")
        page_total = await self._rebuild(pdf_path, target, pages)
        sink.on_log(f"Searchable PDF created: {target.name} ({page_total} page(s))")
        self._remove_original(pdf_path, target, sink)

        elapsed = time.monotonic() - start
        document = document.updated(processed_path=target, processed_at=datetime.now(timezone.utc))

        sink.on_status("Completed", 1.0)
        sink.on_log("=== PROCESSING COMPLETED ===")
        sink.on_log(f"New file: {target.name}")
        sink.on_log(f"Document type: {document.display_type}")
        sink.on_log(f"Confidence: {document.confidence * 100:.1f}%")
        sink.on_log(f"Processing time: {elapsed:.1f} seconds")

        logger.info("Processed %s -> %s in %.1fs", pdf_path.name, target.name, elapsed)
        return ProcessingResult(success=True, document=document, processing_time=elapsed)

    # ── Steps ────────────────────────────────────────────────────────

    async def _recognize(self, pdf_path: Path) -> tuple[str, list[PageRecognition]]:
        try:
            return await self._ocr.recognize_document(pdf_path)
        except OcrError as exc:
            raise ProcessingError(str(exc), step="ocr") from exc
        except (RuntimeError, ValueError) as exc:
            raise PdfReadError(f"Cannot read PDF {pdf_path.name}: {exc}", step="ocr") from exc

    async def _render_first_page(self, pdf_path: Path) -> bytes:
        try:
            return await asyncio.to_thread(
                self._renderer.render_png, pdf_path, 0, scale=self._config.ocr.preview_scale
            )
        except IndexError as exc:
            raise ImageConversionError(f"{pdf_path.name} has no pages", step="render") from exc
        except (RuntimeError, ValueError) as exc:
            raise PdfReadError(f"Cannot render {pdf_path.name}: {exc}", step="render") from exc

    async def _rebuild(self, source: Path, target: Path, pages: list[PageRecognition]) -> int:
        try:
            return await asyncio.to_thread(self._write_atomically, source, target, pages)
        except (OSError, RuntimeError, ValueError) as exc:
            raise PdfWriteError(f"Cannot write {target.name}: {exc}", step="relocate") from exc

    def _write_atomically(self, source: Path, target: Path, pages: list[PageRecognition]) -> int:
        """Write to a temporary file beside the target, then move it into place.

        Never overwrites: a file that appeared at `target` meanwhile raises
        FileExistsError.
        """
        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(f".{target.stem}.{uuid.uuid4().hex[:8]}.part")
        try:
            page_total = self._renderer.rebuild_pdf(
                source, partial, pages, max_dimension=self._config.ocr.rebuild_max_dimension
            )
            _move_no_clobber(partial, target)
        finally:
            partial.unlink(missing_ok=True)
        return page_total

    def _remove_original(self, source: Path, target: Path, sink: ProcessingDelegate) -> None:
        if not self._config.organizer.delete_original or source.resolve() == target.resolve():
            return
        try:
            source.unlink()
        except OSError as exc:
            logger.warning("Could not remove original %s: %s", source, exc)
            sink.on_log(f"Warning: original file kept ({exc})")
            return
        sink.on_log("Original file removed")


def _move_no_clobber(partial: Path, target: Path) -> None:
    try:
        # link() fails with FileExistsError instead of replacing.
        os.link(partial, target)
    except FileExistsError:
        raise
    except OSError:
        # Filesystem without hard links.
        if target.exists():
            raise FileExistsError(errno.EEXIST, "Target appeared while writing", str(target)) from None
        os.replace(partial, target)


def _write_preview(png: bytes) -> Path:
    fd, name = tempfile.mkstemp(prefix=PREVIEW_PREFIX, suffix=".png")
    with os.fdopen(fd, "wb") as fh:
        fh.write(png)
    return Path(name)


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} bytes"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
