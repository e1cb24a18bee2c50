"""Target path resolution and storage statistics.

Placement is a policy: the default keeps the file beside its source; the
archive policy files it under `<archive_dir>/<year>/<type folder>`.
Resolution never returns a path that already exists.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from scan_organizer.config import OrganizerSettings, settings
from scan_organizer.models.enums import DocumentType, PlacementPolicy

logger = logging.getLogger(__name__)

PROCESSED_SUFFIX = "_processed"

TYPE_FOLDERS: dict[DocumentType, str] = {
    DocumentType.INVOICE: "Rechnungen",
    DocumentType.RECEIPT: "Quittungen",
    DocumentType.CONTRACT: "Verträge",
    DocumentType.LETTER: "Briefe",
    DocumentType.REPORT: "Berichte",
    DocumentType.STATEMENT: "Kontoauszüge",
    DocumentType.UNKNOWN: "Unsortiert",
}

# Filed without a year level.
UNDATED_TYPES = frozenset({DocumentType.CONTRACT, DocumentType.UNKNOWN})


@dataclass(frozen=True)
class StorageStatistics:
    """PDF count, size and per-type counts under a directory."""

    base_directory: Path
    total_files: int = 0
    total_size: int = 0  # bytes
    files_by_type: dict[DocumentType, int] = field(default_factory=dict)

    @property
    def formatted_size(self) -> str:
        if self.total_size < 1000:
            return f"{self.total_size} bytes"
        size = float(self.total_size)
        for unit in ("KB", "MB"):
            size /= 1000
            if size < 1000:
                return f"{size:.1f} {unit}"
        return f"{size / 1000:.1f} GB"


class FileOrganizer:
    """Decides where a renamed document goes."""

    def __init__(self, config: OrganizerSettings | None = None) -> None:
        self._config = config or settings.organizer

    @property
    def policy(self) -> PlacementPolicy:
        return self._config.placement

    def target_directory(
        self,
        source: Path,
        document_type: DocumentType = DocumentType.UNKNOWN,
        document_date: date | None = None,
    ) -> Path:
        """Directory the processed file goes to under the configured policy."""
        if self._config.placement == PlacementPolicy.SAME_FOLDER:
            return source.parent

        folder = TYPE_FOLDERS[document_type]
        if document_type in UNDATED_TYPES:
            return self._config.archive_dir / folder
        year = (document_date or date.today()).year
        return self._config.archive_dir / str(year) / folder

    def resolve_target(
        self,
        source: Path,
        new_name: str,
        document_type: DocumentType = DocumentType.UNKNOWN,
        document_date: date | None = None,
    ) -> Path:
        """Free target path for `new_name`.

        A name equal to the source gets a `_processed` suffix; an existing
        path gets `_1`, `_2`, ... until free.
        """
        directory = self.target_directory(source, document_type, document_date)
        candidate = directory / new_name
        stem, suffix = candidate.stem, candidate.suffix

        if _same_path(candidate, source):
            candidate = directory / f"{stem}{PROCESSED_SUFFIX}{suffix}"

        counter = 1
        while candidate.exists():
            candidate = directory / f"{stem}_{counter}{suffix}"
            counter += 1

        logger.debug("Resolved target for %s: %s", source.name, candidate)
        return candidate

    def storage_statistics(self, base_directory: Path | None = None) -> StorageStatistics:
        """Count PDFs under `base_directory` (default: the archive root)."""
        base = base_directory or self._config.archive_dir
        if not base.is_dir():
            return StorageStatistics(base_directory=base)

        total_files = 0
        total_size = 0
        by_type: Counter[DocumentType] = Counter()
        folder_types = {name: doc_type for doc_type, name in TYPE_FOLDERS.items()}

        for path in base.rglob("*"):
            if path.suffix.lower() != ".pdf" or not path.is_file():
                continue
            if any(part.startswith(".") for part in path.relative_to(base).parts):
                continue
            total_files += 1
            total_size += path.stat().st_size
            parents = path.relative_to(base).parts[:-1]
            doc_type = next(
                (folder_types[p] for p in parents if p in folder_types),
                DocumentType.UNKNOWN,
            )
            by_type[doc_type] += 1

        return StorageStatistics(
            base_directory=base,
            total_files=total_files,
            total_size=total_size,
            files_by_type=dict(by_type),
        )


def _same_path(a: Path, b: Path) -> bool:
    return a.resolve() == b.resolve()
