"""Two-stage document classification against the local inference service.

Stage 1 (vision): page image + OCR excerpt -> free-text description.
Stage 2 (text): description + longer OCR excerpt -> JSON components.

Transport failures in either stage raise ClassificationError. Garbled
model output never does: it degrades to the fallback components.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Callable
from datetime import date

from scan_organizer.classification.parsing import extract_language, parse_components
from scan_organizer.classification.prompts import render_prompt
from scan_organizer.config import Settings, settings
from scan_organizer.decoders.amount import parse_amount, to_minor_units
from scan_organizer.events import emit
from scan_organizer.llm.client import OllamaClient, OllamaError
from scan_organizer.models.enums import DocumentType
from scan_organizer.naming.filename import build_filename, is_valid_date
from scan_organizer.schemas.classification import Classification, ClassificationComponents
from scan_organizer.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

VISION_STAGE = "vision"
TEXT_STAGE = "text"

VENDOR_LABEL_HINTS = ("vendor", "company", "from")

StageCallback = Callable[[str], None]


class ClassificationError(Exception):
    """Raised when a classification stage cannot get a reply from the service."""

    def __init__(self, message: str, stage: str) -> None:
        super().__init__(message)
        self.stage = stage


class DocumentClassifier:
    """Drives the vision and text stages and turns the reply into a Classification."""

    def __init__(self, client: OllamaClient, config: Settings | None = None) -> None:
        self._client = client
        self._config = config or settings

    async def classify(
        self,
        text: str,
        page_image: bytes,
        file_name: str,
        *,
        file_date: str | None = None,
        on_stage: StageCallback | None = None,
    ) -> Classification:
        """Classify one document.

        Args:
            text: Selected OCR text.
            page_image: Encoded image of the first page (JPEG or PNG).
            file_name: Current file name, used for logging.
            file_date: Fallback date (YYYY-MM-DD); today when omitted.
            on_stage: Called with the stage name before each service call.

        Raises:
            ClassificationError: If either stage fails at the transport level.
        """
        file_date = file_date or date.today().isoformat()
        image_b64 = base64.b64encode(page_image).decode("ascii")

        if on_stage:
            on_stage(VISION_STAGE)
        description = await self.describe_image(text, image_b64)
        language = extract_language(description)
        logger.info("Vision stage for %s done, language=%s", file_name, language)

        if on_stage:
            on_stage(TEXT_STAGE)
        raw = await self.extract_structured(description, text, file_date, language)

        components = parse_components(raw, file_date)
        classification = self.build_classification(
            components,
            vision_description=description,
            raw_response=raw,
            language=language,
        )

        await emit(SystemEvent(
            event_type=EventType.DOCUMENT_CLASSIFIED,
            data={
                "file_name": file_name,
                "document_type": classification.document_type.value,
                "ai_type": classification.ai_type,
                "confidence": classification.confidence,
                "new_name": classification.file_name,
            },
            source_module="classification.classifier",
        ))
        logger.info(
            "Classified %s as %s (confidence %.2f) -> %s",
            file_name,
            classification.ai_type,
            classification.confidence,
            classification.file_name,
        )
        return classification

    async def describe_image(self, text: str, image_b64: str) -> str:
        """Image-description stage. Returns the free-text description."""
        ollama = self._config.ollama
        prompt = render_prompt(
            self._config.prompts.vision_prompt,
            {"TEXT_EXCERPT": text[: ollama.vision_excerpt_chars]},
        )
        try:
            return await self._client.generate(
                ollama.vision_model,
                prompt,
                images=[image_b64],
                temperature=ollama.vision_temperature,
                num_predict=ollama.vision_max_tokens,
                top_p=ollama.vision_top_p,
            )
        except OllamaError as exc:
            raise ClassificationError(f"Vision analysis failed: {exc}", stage=VISION_STAGE) from exc

    async def extract_structured(self, description: str, text: str, file_date: str, language: str) -> str:
        """Structured-extraction stage. Returns the raw reply, expected to hold JSON."""
        ollama = self._config.ollama
        prompt = render_prompt(
            self._config.prompts.text_prompt,
            {
                "VISION_DESCRIPTION": description,
                "TEXT_EXCERPT": text[: ollama.text_excerpt_chars],
                "FILE_DATE": file_date,
                "LANGUAGE": language,
            },
        )
        try:
            return await self._client.generate(
                ollama.text_model,
                prompt,
                temperature=ollama.text_temperature,
                num_predict=ollama.text_max_tokens,
            )
        except OllamaError as exc:
            raise ClassificationError(f"Text analysis failed: {exc}", stage=TEXT_STAGE) from exc

    def build_classification(
        self,
        components: ClassificationComponents,
        *,
        vision_description: str = "",
        raw_response: str = "",
        language: str = "UNKNOWN",
    ) -> Classification:
        """Map parsed components to the typed result, including the new file name."""
        stem = build_filename(components, self._config.filename)
        return Classification(
            document_type=DocumentType.from_ai_type(components.type),
            ai_type=components.type,
            confidence=components.confidence,
            vendor=find_vendor(components),
            amount_minor=find_amount_minor(components),
            document_date=components.date if is_valid_date(components.date) else None,
            language=language,
            vision_description=vision_description,
            raw_response=raw_response,
            file_name=f"{stem}.pdf",
            components=components,
        )


def find_vendor(components: ClassificationComponents) -> str | None:
    """Value of the first component labeled like a vendor/company/sender."""
    for component in components.components:
        label = component.label.lower()
        if component.value and any(hint in label for hint in VENDOR_LABEL_HINTS):
            return component.value
    return None


def find_amount_minor(components: ClassificationComponents) -> int | None:
    """Amount in minor units from the last component whose value reads as an amount."""
    amount_minor: int | None = None
    for component in components.components:
        amount = parse_amount(component.value)
        if amount is not None:
            amount_minor = to_minor_units(amount)
    return amount_minor
