"""Model output parsing for the structured-extraction stage.

Handles the messy reality of LLM JSON output: markdown fences, chatter
around the object, or no object at all. Parsing never raises; unusable
output becomes `ClassificationComponents.fallback()`.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from scan_organizer.models.enums import DocumentType
from scan_organizer.naming.filename import PLACEHOLDER_TITLES
from scan_organizer.schemas.classification import (
    FALLBACK_TITLE,
    ClassificationComponents,
    Component,
)

logger = logging.getLogger(__name__)

UNKNOWN_LANGUAGE = "UNKNOWN"
KNOWN_LANGUAGES = ("GERMAN", "ENGLISH", "FRENCH", "SPANISH", "ITALIAN")

# Compared lower-cased.
PLACEHOLDER_TYPES = frozenset({DocumentType.UNKNOWN.value})
PLACEHOLDER_TITLE_VALUES = PLACEHOLDER_TITLES | {FALLBACK_TITLE.lower()}

HIGH_CONFIDENCE = 0.8
MIN_TITLE_LENGTH = 5

_JSON_FENCE = "```json"
_FENCE = "```"


def clean_json_response(response: str) -> str:
    """Strip markdown fences and surrounding text, keeping `{ ... }`.

    A ```json fence wins: its body is used. Otherwise bare ``` markers are
    removed. The result is then cut from the first "{" to the last "}";
    if either brace is missing the trimmed text is returned as-is.
    """
    cleaned = response.strip()

    if _JSON_FENCE in cleaned:
        body = cleaned.split(_JSON_FENCE, 1)[1]
        cleaned = body.split(_FENCE, 1)[0]
    elif _FENCE in cleaned:
        cleaned = cleaned.replace(_FENCE, "")

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end > start:
        cleaned = cleaned[start : end + 1]

    return cleaned.strip()


def _as_text(value: Any, default: str) -> str:
    if value is None:
        return default
    return str(value)


def _as_components(value: Any) -> list[Component]:
    if not isinstance(value, list):
        return []
    components: list[Component] = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        try:
            components.append(Component.model_validate(entry))
        except ValidationError:
            logger.debug("Skipping malformed component: %r", entry)
    return components


def parse_components(response: str, file_date: str) -> ClassificationComponents:
    """Parse the structured-extraction response.

    Args:
        response: Raw model response text.
        file_date: Fallback date (YYYY-MM-DD) for a missing `date` key.

    Returns:
        Parsed components with a computed confidence, or the fallback object
        when no JSON object can be decoded.
    """
    cleaned = clean_json_response(response)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.warning("Structured response is not valid JSON (%s); using fallback", exc)
        return ClassificationComponents.fallback(file_date)

    if not isinstance(data, dict):
        logger.warning("Structured response is JSON but not an object; using fallback")
        return ClassificationComponents.fallback(file_date)

    date = _as_text(data.get("date"), file_date).strip() or file_date
    title = _as_text(data.get("title"), "").strip()
    doc_type = _as_text(data.get("type"), "unknown").strip() or "unknown"
    components = _as_components(data.get("components"))

    confidence = compute_confidence(
        doc_type=doc_type,
        title=title,
        date=date,
        file_date=file_date,
        components=components,
    )

    return ClassificationComponents(
        date=date,
        title=title,
        type=doc_type,
        components=components,
        confidence=confidence,
    )


def compute_confidence(
    *,
    doc_type: str,
    title: str,
    date: str,
    file_date: str,
    components: list[Component],
) -> float:
    """Weighted sum of four factors, clamped to 1.0.

    type 0.30/0.10, title 0.20/0.10/0, date 0.20/0.05,
    components 0.30/0.20/0.10/0.
    """
    score = 0.0

    if doc_type and doc_type.strip().lower() not in PLACEHOLDER_TYPES:
        score += 0.30
    else:
        score += 0.10

    is_placeholder = title.strip().lower() in PLACEHOLDER_TITLE_VALUES
    if title and not is_placeholder and len(title) > MIN_TITLE_LENGTH:
        score += 0.20
    elif title:
        score += 0.10

    if date and date != file_date:
        score += 0.20
    else:
        score += 0.05

    confident = sum(
        1 for c in components if c.confidence is not None and c.confidence >= HIGH_CONFIDENCE
    )
    if confident >= 2:
        score += 0.30
    elif confident == 1:
        score += 0.20
    elif components:
        score += 0.10

    return round(min(score, 1.0), 2)


def extract_language(description: str) -> str:
    """First known language name found in the upper-cased vision output."""
    upper = description.upper()
    for language in KNOWN_LANGUAGES:
        if language in upper:
            return language
    return UNKNOWN_LANGUAGE
