"""Default prompt templates for the two classification stages.

Placeholders use the {KEY} form and are replaced literally, so the JSON
example braces inside the text prompt are left alone.

Keys:
    TEXT_EXCERPT: OCR text, truncated per stage
    VISION_DESCRIPTION: output of the image-description stage
    FILE_DATE: fallback date (YYYY-MM-DD)
    LANGUAGE: language tag detected in the vision output
"""

from __future__ import annotations

from collections.abc import Mapping

DEFAULT_VISION_PROMPT = (
    "Analyze this document image.\n"
    "\n"
    "OCR text excerpt:\n"
    "{TEXT_EXCERPT}\n"
    "\n"
    "Provide:\n"
    "1. First state: LANGUAGE: GERMAN or LANGUAGE: ENGLISH etc.\n"
    "2. Document type\n"
    "3. Main title: Primary heading reflecting the document type\n"
    "   (largest/bold text, ignore auxiliary elements like page numbers/headers)\n"
    "4. Primary purpose\n"
    "\n"
    "Start your response with the language."
)

DEFAULT_TEXT_PROMPT = (
    "Analyze document and extract key components.\n"
    "\n"
    "Vision AI description:\n"
    "{VISION_DESCRIPTION}\n"
    "\n"
    "OCR text:\n"
    "{TEXT_EXCERPT}\n"
    "\n"
    "File creation date (fallback): {FILE_DATE}\n"
    "\n"
    "Date rules:\n"
    "- If you find full date: use it\n"
    "- If you find month/year: use first day\n"
    "- If you find year only: use YYYY-01-01\n"
    "- If no date found: use {FILE_DATE}\n"
    "\n"
    "DOCUMENT LANGUAGE: {LANGUAGE}\n"
    "\n"
    "Return JSON with these fields:\n"
    "- date: document date in YYYY-MM-DD format (following rules above)\n"
    "- title: main description IN {LANGUAGE} LANGUAGE - MUST BE NORMALIZED\n"
    "- type: one of invoice, receipt, contract, letter, report, statement; "
    "otherwise the most specific English keyword. Single phrase only.\n"
    "- components: array with max 5 important identifiers FOR THE FILENAME\n"
    "\n"
    "CRITICAL for title field:\n"
    "- NEVER copy ALL CAPS text directly from document\n"
    "- ALWAYS normalize to standard {LANGUAGE} capitalization\n"
    "- Keep only real acronyms in uppercase\n"
    "\n"
    'Component structure: {"label": "field name", "value": "content", "confidence": 0.0-1.0}\n'
    "\n"
    "Confidence scoring:\n"
    "1.0: unique to this document, essential to tell it apart\n"
    "0.8: key metadata that helps classification and retrieval\n"
    "0.5: supporting details\n"
    "0.3: generic or repetitive content\n"
    "\n"
    "IMPORTANT:\n"
    "- Labels in English\n"
    "- Values in the document's language\n"
    "- No individual times or repetitive details\n"
    "\n"
    "Generate complete, valid JSON only:"
)


def render_prompt(template: str, values: Mapping[str, str]) -> str:
    """Replace each {KEY} in `template` with its value. Unknown placeholders stay."""
    result = template
    for key, value in values.items():
        result = result.replace("{" + key + "}", value)
    return result
