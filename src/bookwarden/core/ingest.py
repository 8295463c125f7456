# ABOUTME: Turns discovered book files into catalog entries: identity by content hash, path
# ABOUTME: updates for moved or restored files, new books with extracted metadata and covers.

import logging
from concurrent.futures import Executor
from datetime import UTC, datetime
from pathlib import Path

from bookwarden.core.grouping import ensure_hash, processor_for
from bookwarden.core.notifications import LoggingNotifier, Notifier, Topic
from bookwarden.covers import CoverError, CoverStore
from bookwarden.db.catalog import LibraryCatalog
from bookwarden.db.hashing import file_size_kb
from bookwarden.db.mapping import AdditionalFileRecord, BookRecord
from bookwarden.formats.registry import extract_metadata, generate_cover
from bookwarden.metadata.types import MetadataRecord
from bookwarden.models import BookFormat, LibraryFile

logger = logging.getLogger(__name__)


class BookIngestor:
    """Creates and relocates books in the catalog.

    Args:
        catalog: Persistence collaborator.
        covers: Where cover thumbnails are stored.
        notifier: Receives BOOK_ADD and LOG notifications.
        cover_executor: Optional pool for slow PDF cover renders. Without
            one, covers are rendered inline.
    """

    def __init__(
        self,
        catalog: LibraryCatalog,
        covers: CoverStore,
        notifier: Notifier | None = None,
        *,
        cover_executor: Executor | None = None,
    ) -> None:
        self.catalog = catalog
        self.covers = covers
        self.notifier = notifier or LoggingNotifier()
        self._cover_executor = cover_executor

    def handle_new_book_file(
        self, library_file: LibraryFile
    ) -> BookRecord | AdditionalFileRecord | None:
        """Catalog a newly seen book file as one atomic unit of work.

        Known content whose old file is gone (or whose book was deleted)
        only has its location refreshed. A copy of content that still
        exists elsewhere is new, and goes through the library's grouping
        processor like any unknown file.

        Returns:
            The book or additional file the file now belongs to, or None
            when the processor skipped it.
        """
        ensure_hash(library_file)
        with self.catalog.transaction():
            if self.is_cataloged_here(library_file) or self.relocate_if_moved(library_file):
                return self._resolve(library_file)
            library = library_file.library
            processor_for(library.scan_mode, self).process_library_files([library_file], library)
            return self._resolve(library_file)

    def is_cataloged_here(self, library_file: LibraryFile) -> bool:
        """Whether a live book or additional file already sits at this location."""
        lp_id = library_file.library_path.id
        sub_path, name = library_file.file_sub_path, library_file.file_name
        book = self.catalog.find_book_at(lp_id, sub_path, name)
        if book is not None and not book.deleted:
            return True
        extra = self.catalog.find_additional_file(lp_id, sub_path, name)
        return extra is not None and not extra.deleted

    def relocate_if_moved(self, library_file: LibraryFile) -> bool:
        """Re-point known content whose old location no longer holds it.

        Deleted books and additional files are revived at the new location.
        Content whose cataloged file still exists is left alone.

        Returns:
            Whether a book or additional file was moved here.

        Raises:
            OSError: If the file cannot be read for hashing.
        """
        file_hash = ensure_hash(library_file)

        book = self.catalog.find_by_hash(file_hash)
        if book is not None and (book.deleted or not book.full_path.exists()):
            self.update_path_if_changed(book, library_file)
            return True

        extra = self.catalog.find_additional_file_by_hash(file_hash)
        if extra is not None and (extra.deleted or not extra.full_path.exists()):
            self.catalog.update_additional_file(
                extra.id,
                library_path_id=library_file.library_path.id,
                file_sub_path=library_file.file_sub_path,
                file_name=library_file.file_name,
                deleted=0,
            )
            logger.info(
                "[UPDATE_PATH] Additional file %d now at %s", extra.id, library_file.full_path
            )
            return True
        return False

    def _resolve(self, library_file: LibraryFile) -> BookRecord | AdditionalFileRecord | None:
        lp_id = library_file.library_path.id
        book = self.catalog.find_book_at(lp_id, library_file.file_sub_path, library_file.file_name)
        if book is not None:
            return book
        return self.catalog.find_additional_file(
            lp_id, library_file.file_sub_path, library_file.file_name
        )

    def update_path_if_changed(self, book: BookRecord, library_file: LibraryFile) -> BookRecord:
        """Point a known book at the file's current location and undelete it."""
        same_place = (
            book.library_path_id == library_file.library_path.id
            and book.file_sub_path == library_file.file_sub_path
            and book.file_name == library_file.file_name
        )
        if same_place and not book.deleted:
            logger.debug("[UNCHANGED] Book %d already at %s", book.id, library_file.full_path)
            return book

        self.catalog.update_book(
            book.id,
            library_id=library_file.library.id,
            library_path_id=library_file.library_path.id,
            file_sub_path=library_file.file_sub_path,
            file_name=library_file.file_name,
            deleted=0,
        )
        updated = self.catalog.require_book(book.id)
        if book.deleted:
            logger.info("[REACTIVATED] Book %d restored at %s", book.id, updated.full_path)
            self.notifier.send(Topic.BOOK_ADD, updated)
        else:
            logger.info(
                "[UPDATE_PATH] Book %d moved from %s to %s",
                book.id,
                book.full_path,
                updated.full_path,
            )
        return updated

    def create_book(self, library_file: LibraryFile) -> BookRecord:
        """Create a book whose primary file is library_file.

        Raises:
            ValueError: If the file has no recognized book extension.
            OSError: If the file cannot be read for hashing.
        """
        fmt = library_file.book_format
        if fmt is None:
            raise ValueError(f"Not a book file: {library_file.file_name}")
        path = library_file.full_path
        file_hash = ensure_hash(library_file)

        draft = extract_metadata(path, fmt, include_cover=fmt is not BookFormat.PDF)
        cover = draft.cover_image
        draft.cover_image = None

        book_id = self.catalog.add_book(
            library_id=library_file.library.id,
            library_path_id=library_file.library_path.id,
            file_sub_path=library_file.file_sub_path,
            file_name=library_file.file_name,
            book_format=fmt,
            file_hash=file_hash,
            metadata=MetadataRecord(metadata=draft),
            file_size_kb=file_size_kb(path),
        )

        if cover:
            self.store_cover(book_id, cover)
        elif fmt is BookFormat.PDF:
            self._schedule_cover(book_id, path, fmt)

        book = self.catalog.require_book(book_id)
        logger.info("[CREATED] Book %d '%s' from %s", book_id, book.title, path)
        self.notifier.send(Topic.BOOK_ADD, book)
        self.notifier.send(Topic.LOG, f"Book added: {library_file.file_name}")
        return book

    def store_cover(self, book_id: int, image_bytes: bytes) -> bool:
        """Save a cover thumbnail and stamp cover_updated_on. Failures are logged."""
        try:
            self.covers.save(book_id, image_bytes)
        except CoverError as exc:
            logger.warning("Could not store cover for book %d: %s", book_id, exc)
            return False
        with self.catalog.transaction():
            record = self.catalog.get_metadata(book_id)
            record.cover_updated_on = datetime.now(UTC)
            self.catalog.save_metadata(book_id, record)
        return True

    def _render_and_store(self, book_id: int, path: Path, fmt: BookFormat) -> None:
        try:
            cover = generate_cover(path, fmt)
            if cover:
                self.store_cover(book_id, cover)
        except Exception as exc:
            logger.warning("Cover generation failed for book %d (%s): %s", book_id, path, exc)

    def _schedule_cover(self, book_id: int, path: Path, fmt: BookFormat) -> None:
        if self._cover_executor is None:
            self._render_and_store(book_id, path, fmt)
        else:
            self._cover_executor.submit(self._render_and_store, book_id, path, fmt)
