"""Deterministic file name synthesis from parsed classification components.

Pure functions: the same components, settings and reference date always
give the same name. The returned name has no extension.

Order of parts: date, title, up to N confident components. Umlauts are
transliterated last so that "Prüfbericht" and "Pruefbericht" end up equal.
"""

from __future__ import annotations

import re
from datetime import date

from scan_organizer.config import FilenameSettings
from scan_organizer.decoders.amount import amount_token
from scan_organizer.schemas.classification import ClassificationComponents

FALLBACK_NAME = "document"
DEFAULT_COMPONENT_CONFIDENCE = 0.5

# Titles the model uses when it found nothing.
PLACEHOLDER_TITLES = frozenset({"keine angabe", "keine", "n/a", "unbekannt", "unknown"})

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_WHITESPACE_RE = re.compile(r"\s+")
_WORD_RE = re.compile(r"[^\W\d_]+")

_UMLAUTS = {
    "ä": "ae",
    "Ä": "Ae",
    "ö": "oe",
    "Ö": "Oe",
    "ü": "ue",
    "Ü": "Ue",
    "ß": "ss",
    "ẞ": "SS",
}


def is_valid_date(value: str) -> bool:
    """True for strings shaped like YYYY-MM-DD."""
    return bool(_ISO_DATE_RE.match(value or ""))


def format_date(iso_date: str, pattern: str) -> str:
    """Render a YYYY-MM-DD string with a YYYY/MM/DD placeholder pattern.

    Strings that do not split into three integers are returned unchanged.
    """
    parts = iso_date.split("-")
    if len(parts) != 3:
        return iso_date
    try:
        year, month, day = (int(p) for p in parts)
    except ValueError:
        return iso_date
    return (
        pattern.replace("YYYY", f"{year:04d}")
        .replace("MM", f"{month:02d}")
        .replace("DD", f"{day:02d}")
    )


def clean_for_filename(text: str, max_length: int, separator: str = "-") -> str:
    """Collapse whitespace to `separator`, drop unsafe characters, truncate."""
    cleaned = _WHITESPACE_RE.sub(separator, text.strip())
    cleaned = re.sub(rf"[^\w\säöüßÄÖÜ\-{re.escape(separator)}]", "", cleaned)
    cleaned = cleaned[:max_length]
    return cleaned.strip(separator)


def replace_umlauts(text: str) -> str:
    for umlaut, replacement in _UMLAUTS.items():
        text = text.replace(umlaut, replacement)
    return text


def collapse_separators(text: str, *separators: str) -> str:
    """Reduce runs of each separator to a single occurrence."""
    for sep in separators:
        if sep:
            text = re.sub(rf"(?:{re.escape(sep)}){{2,}}", sep, text)
    return text


def normalize_caps(title: str) -> str:
    """Word-wise capitalisation for titles copied in ALL CAPS; other titles unchanged."""
    if not title.isupper():
        return title
    return _WORD_RE.sub(lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), title)


def sanitize_title(title: str, config: FilenameSettings) -> str:
    """Title part of the file name; empty when the title is missing or a placeholder."""
    stripped = (title or "").strip()
    if not stripped or stripped.lower() in PLACEHOLDER_TITLES:
        return ""
    return clean_for_filename(normalize_caps(stripped), config.title_max_length, config.internal_separator)


def _component_parts(components: ClassificationComponents, config: FilenameSettings) -> list[str]:
    parts: list[str] = []
    for component in components.components[: config.component_scan_limit]:
        if len(parts) >= config.max_components:
            break

        confidence = component.confidence if component.confidence is not None else DEFAULT_COMPONENT_CONFIDENCE
        if confidence < config.component_min_confidence:
            continue

        value = component.value.strip()
        if not value:
            continue

        token = amount_token(value)
        if token is not None:
            parts.append(token)
            continue

        cleaned = clean_for_filename(value, config.component_max_length, config.internal_separator)
        if len(cleaned) > 1:
            parts.append(cleaned)
    return parts


def build_filename(
    components: ClassificationComponents,
    config: FilenameSettings,
    today: date | None = None,
) -> str:
    """Build the new file name (without extension) from parsed components.

    Args:
        components: Parsed structured-extraction output.
        config: Filename rules.
        today: Reference date used when the components carry no valid date.

    Returns:
        A non-empty name; "document" when no part survives.
    """
    parts: list[str] = []

    if config.include_date:
        date_str = components.date if is_valid_date(components.date) else (today or date.today()).isoformat()
        formatted = format_date(date_str, config.date_format)
        if formatted:
            parts.append(formatted)

    title = sanitize_title(components.title, config)
    if title:
        parts.append(title)

    if config.include_components:
        parts.extend(_component_parts(components, config))

    filename = config.part_separator.join(parts)
    filename = replace_umlauts(filename)
    filename = collapse_separators(filename, config.part_separator, config.internal_separator)

    return filename or FALLBACK_NAME
