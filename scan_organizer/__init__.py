"""Scan organizer: OCR, local AI classification and renaming of scanned PDFs."""

__version__ = "1.0.7"
