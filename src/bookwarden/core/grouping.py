# ABOUTME: Decides which book each discovered file belongs to, per library scan mode.
# ABOUTME: Folder-as-book groups a directory into one book plus additional files; file-as-book is 1:1.

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Protocol

from bookwarden.db.catalog import DuplicateBookError
from bookwarden.db.hashing import compute_file_hash, file_size_kb
from bookwarden.db.mapping import BookRecord
from bookwarden.models import (
    AdditionalFileKind,
    BookFormat,
    Library,
    LibraryFile,
    LibraryPath,
    ScanMode,
    is_book_file,
)

if TYPE_CHECKING:
    from bookwarden.core.ingest import BookIngestor

logger = logging.getLogger(__name__)


def ensure_hash(library_file: LibraryFile) -> str:
    """Fingerprint a discovered file once and remember the digest on it."""
    if library_file.file_hash is None:
        library_file.file_hash = compute_file_hash(library_file.full_path)
    return library_file.file_hash


def kind_for(library_file: LibraryFile) -> AdditionalFileKind:
    """Book-format files are alternative formats; everything else is supplementary."""
    if is_book_file(library_file.file_name):
        return AdditionalFileKind.ALTERNATIVE_FORMAT
    return AdditionalFileKind.SUPPLEMENTARY


def select_primary_file(
    files: list[LibraryFile], default_format: BookFormat | None = None
) -> LibraryFile | None:
    """Pick the file that becomes a new book's primary file.

    The library's default format wins when present; otherwise the format
    priority PDF > EPUB > CBZ > CBR > CB7 applies, ties broken by name.
    """
    book_files = sorted(
        (f for f in files if f.book_format is not None), key=lambda f: f.file_name
    )
    if not book_files:
        return None
    if default_format is not None:
        preferred = [f for f in book_files if f.book_format is default_format]
        if preferred:
            return preferred[0]
    return min(book_files, key=lambda f: f.book_format.priority)  # type: ignore[union-attr]


def _ancestors(sub_path: str) -> list[str]:
    """Ancestor sub-paths, closest first, ending with the library root ("")."""
    if not sub_path:
        return []
    parts = sub_path.split("/")
    return ["/".join(parts[:i]) for i in range(len(parts) - 1, -1, -1)]


def _depth(sub_path: str) -> int:
    return 0 if not sub_path else sub_path.count("/") + 1


class LibraryFileProcessor(Protocol):
    """Assigns a batch of discovered files to books."""

    scan_mode: ScanMode

    def process_library_files(self, files: list[LibraryFile], library: Library) -> None: ...


class _BaseProcessor:
    def __init__(self, ingestor: BookIngestor) -> None:
        self._ingestor = ingestor
        self._catalog = ingestor.catalog

    def _create_book(self, library_file: LibraryFile) -> BookRecord | None:
        try:
            return self._ingestor.create_book(library_file)
        except Exception as exc:
            logger.error("Error processing book file %s: %s", library_file.full_path, exc)
            return None


class FileAsBookProcessor(_BaseProcessor):
    """Every book file is its own book; other files are ignored."""

    scan_mode = ScanMode.FILE_AS_BOOK

    def process_library_files(self, files: list[LibraryFile], library: Library) -> None:
        logger.info("Processing %d files for library: %s", len(files), library.name)
        for library_file in files:
            if not is_book_file(library_file.file_name):
                logger.debug("[SKIP] Not a book file: %s", library_file.file_name)
                continue
            existing = self._catalog.find_book_at(
                library_file.library_path.id, library_file.file_sub_path, library_file.file_name
            )
            if existing is not None and not existing.deleted:
                logger.debug("[SKIP] Already cataloged: %s", library_file.full_path)
                continue
            if existing is not None:
                self._ingestor.update_path_if_changed(existing, library_file)
                continue
            self._create_book(library_file)


class FolderAsBookProcessor(_BaseProcessor):
    """A directory is one book: a primary file plus its alternative formats and extras.

    Directories are visited parents first so that a book in a parent
    directory exists before its subdirectories are classified.
    """

    scan_mode = ScanMode.FOLDER_AS_BOOK

    def process_library_files(self, files: list[LibraryFile], library: Library) -> None:
        by_directory: dict[tuple[int, str], list[LibraryFile]] = defaultdict(list)
        roots: dict[int, LibraryPath] = {}
        for library_file in files:
            key = (library_file.library_path.id, library_file.file_sub_path)
            by_directory[key].append(library_file)
            roots[library_file.library_path.id] = library_file.library_path

        logger.info(
            "Processing %d directories with %d total files for library: %s",
            len(by_directory),
            len(files),
            library.name,
        )
        ordered = sorted(
            by_directory.items(),
            key=lambda item: (_depth(item[0][1]), str(roots[item[0][0]].path), item[0][1]),
        )
        for (library_path_id, sub_path), directory_files in ordered:
            logger.debug(
                "Processing directory %r with %d files", sub_path or "/", len(directory_files)
            )
            self._process_directory(library_path_id, sub_path, directory_files, library)

    def _book_in_directory(self, library_path_id: int, sub_path: str) -> BookRecord | None:
        books = self._catalog.find_by_sub_path_prefix(library_path_id, sub_path)
        return next((b for b in books if b.file_sub_path == sub_path), None)

    def _book_in_ancestors(self, library_path_id: int, sub_path: str) -> BookRecord | None:
        for ancestor in _ancestors(sub_path):
            book = self._book_in_directory(library_path_id, ancestor)
            if book is not None:
                return book
        return None

    def _process_directory(
        self,
        library_path_id: int,
        sub_path: str,
        files: list[LibraryFile],
        library: Library,
    ) -> None:
        existing = self._book_in_directory(library_path_id, sub_path)
        if existing is not None:
            logger.debug("Found existing book in %r: %s", sub_path, existing.file_name)
            for library_file in files:
                if library_file.file_name != existing.file_name:
                    self._attach(existing, library_file, kind_for(library_file))
            return

        parent = self._book_in_ancestors(library_path_id, sub_path)
        if parent is not None:
            logger.debug("Found parent book for %r: %s", sub_path, parent.file_name)
            for library_file in files:
                self._attach(parent, library_file, AdditionalFileKind.SUPPLEMENTARY)
            return

        primary = select_primary_file(files, library.default_format)
        if primary is None:
            logger.debug("[SKIP] No book file in directory %r", sub_path or "/")
            return
        book = self._create_book(primary)
        if book is None:
            return
        for library_file in files:
            if library_file is not primary:
                self._attach(book, library_file, kind_for(library_file))

    def _attach(
        self, book: BookRecord, library_file: LibraryFile, kind: AdditionalFileKind
    ) -> None:
        """Record library_file as an additional file of book unless already cataloged."""
        lp_id = library_file.library_path.id
        existing = self._catalog.find_additional_file(
            lp_id, library_file.file_sub_path, library_file.file_name
        )
        if existing is not None and not existing.deleted:
            logger.debug("[SKIP] Additional file already exists: %s", library_file.file_name)
            return

        try:
            file_hash = ensure_hash(library_file)
            if existing is not None:
                self._catalog.update_additional_file(
                    existing.id, book_id=book.id, kind=kind.value, current_hash=file_hash, deleted=0
                )
                logger.info("[REACTIVATED] Additional file %s", library_file.full_path)
                return
            self._catalog.add_additional_file(
                book_id=book.id,
                library_path_id=lp_id,
                file_sub_path=library_file.file_sub_path,
                file_name=library_file.file_name,
                kind=kind,
                file_hash=file_hash,
                file_size_kb=file_size_kb(library_file.full_path),
            )
            logger.debug(
                "Attached %s to book %d as %s", library_file.file_name, book.id, kind.value
            )
        except (OSError, DuplicateBookError) as exc:
            logger.error("Error creating additional file %s: %s", library_file.file_name, exc)


def processor_for(scan_mode: ScanMode, ingestor: BookIngestor) -> LibraryFileProcessor:
    """Return the processor implementing a library's scan mode."""
    if scan_mode is ScanMode.FOLDER_AS_BOOK:
        return FolderAsBookProcessor(ingestor)
    return FileAsBookProcessor(ingestor)
