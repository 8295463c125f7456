# ABOUTME: Full library rescan: walks every root, relocates known content, and feeds new files
# ABOUTME: through the library's grouping processor. Safe to repeat; known files are skipped.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from bookwarden.core.grouping import processor_for
from bookwarden.core.notifications import Topic
from bookwarden.models import Library, LibraryFile, LibraryPath, ScanMode, is_book_file

if TYPE_CHECKING:
    from bookwarden.core.ingest import BookIngestor

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Counters from one rescan of a library."""

    discovered: int = 0
    unchanged: int = 0
    relocated: int = 0
    processed: int = 0
    removed: int = 0
    errors: list[tuple[Path, str]] = field(default_factory=list)


def discover_files_under(
    library: Library, library_path: LibraryPath, directory: Path
) -> list[LibraryFile]:
    """List regular files below directory, sorted by path.

    Anything with a hidden component relative to the library root is skipped.
    """
    files: list[LibraryFile] = []
    for path in sorted(directory.rglob("*")):
        if not path.is_file():
            continue
        relative = path.relative_to(library_path.path)
        if any(part.startswith(".") for part in relative.parts):
            continue
        files.append(LibraryFile.from_path(library, library_path, path))
    return files


def discover_library_files(library: Library) -> list[LibraryFile]:
    """List every regular, non-hidden file under the library's roots, sorted by path."""
    files: list[LibraryFile] = []
    for library_path in library.paths:
        if not library_path.path.is_dir():
            logger.warning("Library root missing: %s", library_path.path)
            continue
        files.extend(discover_files_under(library, library_path, library_path.path))
    return files


def _mark_missing(ingestor: BookIngestor, library: Library) -> int:
    removed: list[int] = []
    for book in ingestor.catalog.list_books():
        if book.library_id == library.id and not book.full_path.exists():
            ingestor.catalog.mark_deleted(book.id)
            logger.info("[MARKED_DELETED] Book %d missing at %s", book.id, book.full_path)
            removed.append(book.id)
    if removed:
        ingestor.notifier.send(Topic.BOOKS_REMOVE, removed)
    return len(removed)


def ingest_library_files(
    files: list[LibraryFile],
    library: Library,
    ingestor: BookIngestor,
    result: ScanResult | None = None,
) -> ScanResult:
    """Catalog a batch of discovered files in one pass.

    Files already cataloged at their location are skipped. Content whose
    hash is known but whose old file is gone is relocated (rename/move
    detection). Everything else is handed to the scan mode's processor
    in a single call, so folder grouping sees each directory whole.
    """
    result = result or ScanResult()
    pending: list[LibraryFile] = []

    for library_file in files:
        result.discovered += 1
        if library.scan_mode is ScanMode.FILE_AS_BOOK and not is_book_file(library_file.file_name):
            continue
        if ingestor.is_cataloged_here(library_file):
            result.unchanged += 1
            continue
        try:
            if ingestor.relocate_if_moved(library_file):
                result.relocated += 1
                continue
        except OSError as exc:
            logger.error("Cannot fingerprint %s: %s", library_file.full_path, exc)
            result.errors.append((library_file.full_path, str(exc)))
            continue
        pending.append(library_file)

    if pending:
        processor_for(library.scan_mode, ingestor).process_library_files(pending, library)
        result.processed = len(pending)
    return result


def rescan_library(
    library: Library, ingestor: BookIngestor, *, mark_missing: bool = True
) -> ScanResult:
    """Bring the catalog in line with what is on disk for one library.

    See ingest_library_files for how each file is treated. With
    mark_missing, books whose primary file vanished are soft-deleted.
    """
    result = ingest_library_files(discover_library_files(library), library, ingestor)

    if mark_missing:
        result.removed = _mark_missing(ingestor, library)

    logger.info(
        "Rescanned library %s: %d files, %d unchanged, %d relocated, %d processed, %d removed",
        library.name,
        result.discovered,
        result.unchanged,
        result.relocated,
        result.processed,
        result.removed,
    )
    return result
