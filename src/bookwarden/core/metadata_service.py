# ABOUTME: Curator-facing metadata operations: merge drafts under locks, toggle locks, manage covers
# ABOUTME: and additional files, and write accepted metadata back into the source file when enabled.

import logging
import threading
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from pathlib import Path

import httpx

from bookwarden.config import AppSettings
from bookwarden.core.ingest import BookIngestor
from bookwarden.core.notifications import Topic
from bookwarden.covers import CoverFetchError, fetch_cover_bytes
from bookwarden.db.catalog import DuplicateBookError
from bookwarden.db.hashing import compute_file_hash, file_size_kb
from bookwarden.db.mapping import AdditionalFileRecord, BookRecord
from bookwarden.formats.epub_writer import replace_epub_cover
from bookwarden.formats.registry import extract_metadata, generate_cover, write_metadata_to_file
from bookwarden.metadata.candidate import MetadataCandidate
from bookwarden.metadata.merge import (
    LockAction,
    MergeResult,
    apply_lock_actions,
    lock_all,
    merge_metadata,
    unlock_all,
)
from bookwarden.metadata.provider import MetadataProvider, fetch_candidates
from bookwarden.metadata.search_terms import build_search_term
from bookwarden.metadata.types import BookMetadata, MetadataField
from bookwarden.models import AdditionalFileKind, BookFormat, relative_sub_path

logger = logging.getLogger(__name__)


class MetadataLockedError(Exception):
    """Raised when an explicit operation targets a locked field or cover."""


class MetadataService:
    """Applies metadata changes to cataloged books.

    Args:
        ingestor: Supplies the catalog, cover store and notifier.
        settings: Write-back and category merge behaviour; defaults apply
            when omitted.
    """

    def __init__(self, ingestor: BookIngestor, settings: AppSettings | None = None) -> None:
        self._ingestor = ingestor
        self._catalog = ingestor.catalog
        self._covers = ingestor.covers
        self._notifier = ingestor.notifier
        self._settings = settings or AppSettings()

    # --- Metadata ---

    def update_metadata(
        self,
        book_id: int,
        incoming: BookMetadata,
        *,
        clear: Iterable[MetadataField] = frozenset(),
        clear_cover: bool = False,
        merge_categories: bool | None = None,
    ) -> MergeResult:
        """Merge a draft into a book's metadata, honoring its locks.

        Raises:
            BookNotFoundError: If the book does not exist.
        """
        clear = frozenset(clear)
        if merge_categories is None:
            merge_categories = self._settings.merge_categories

        with self._catalog.transaction():
            book = self._catalog.require_book(book_id)
            record = book.metadata
            result = merge_metadata(
                record, incoming, clear=clear, clear_cover=clear_cover, merge_sets=merge_categories
            )
            if result.has_changes:
                self._catalog.save_metadata(book_id, record)

        if result.cover_updated:
            if incoming.has_cover:
                self._ingestor.store_cover(book_id, incoming.cover_image)  # type: ignore[arg-type]
            else:
                self._covers.save_placeholder(book_id)

        if not result.has_changes:
            logger.debug("No metadata changes for book %d", book_id)
            return result

        logger.info(
            "Updated book %d: %s",
            book_id,
            ", ".join(f.value for f in result.changed) or "cover",
        )
        if self._settings.save_to_original_file:
            cleared = frozenset(f for f in clear if not record.is_locked(f))
            cover = incoming.cover_image if result.cover_updated else None
            self._write_back(book, record.metadata, cleared, cover)
        self._notifier.send(Topic.BOOK_METADATA_UPDATE, self._catalog.require_book(book_id))
        return result

    def bulk_update_metadata(
        self,
        book_ids: Sequence[int],
        incoming: BookMetadata,
        *,
        clear: Iterable[MetadataField] = frozenset(),
        merge_categories: bool | None = None,
    ) -> dict[int, MergeResult]:
        """Apply the same draft to several books. Unknown IDs are skipped."""
        clear = frozenset(clear)
        results: dict[int, MergeResult] = {}
        for book in self._catalog.list_books_by_ids(book_ids):
            results[book.id] = self.update_metadata(
                book.id, incoming, clear=clear, merge_categories=merge_categories
            )
        return results

    def _write_back(
        self,
        book: BookRecord,
        metadata: BookMetadata,
        clear: frozenset[MetadataField],
        cover_image: bytes | None,
    ) -> None:
        path = book.full_path
        written = write_metadata_to_file(
            path, book.format, metadata, clear=clear, cover_image=cover_image
        )
        if written:
            self._refresh_hash(book)

    def _refresh_hash(self, book: BookRecord) -> None:
        """Record the rewritten file's new digest so it stays the same book."""
        try:
            new_hash = compute_file_hash(book.full_path)
        except OSError as exc:
            logger.warning("Could not re-hash %s after writing: %s", book.full_path, exc)
            return
        self._catalog.update_book(
            book.id, current_hash=new_hash, file_size_kb=file_size_kb(book.full_path)
        )

    # --- Locks ---

    def toggle_field_locks(
        self, book_ids: Sequence[int], actions: Mapping[str, "str | LockAction"]
    ) -> list[BookRecord]:
        """Lock or unlock named fields on several books at once.

        Raises:
            ValueError: On an unknown field name or action; nothing changes.
        """
        books = self._catalog.list_books_by_ids(book_ids)
        with self._catalog.transaction():
            for book in books:
                apply_lock_actions(book.metadata, actions)
                self._catalog.save_metadata(book.id, book.metadata)
        return self._publish_updates(books)

    def set_all_locks(self, book_ids: Sequence[int], locked: bool) -> list[BookRecord]:
        """Lock (or unlock) every field and the cover of each book."""
        books = self._catalog.list_books_by_ids(book_ids)
        with self._catalog.transaction():
            for book in books:
                if locked:
                    lock_all(book.metadata)
                else:
                    unlock_all(book.metadata)
                self._catalog.save_metadata(book.id, book.metadata)
        return self._publish_updates(books)

    def _publish_updates(self, books: list[BookRecord]) -> list[BookRecord]:
        updated = self._catalog.list_books_by_ids([book.id for book in books])
        for book in updated:
            self._notifier.send(Topic.BOOK_METADATA_UPDATE, book)
        return updated

    # --- Covers ---

    def _require_unlocked_cover(self, book: BookRecord) -> None:
        if book.metadata.cover_locked:
            raise MetadataLockedError(f"Cover of book {book.id} is locked")

    def regenerate_cover(self, book_id: int) -> bool:
        """Re-extract a book's cover from its primary file.

        Returns:
            True if a new cover was stored.

        Raises:
            BookNotFoundError: If the book does not exist.
            MetadataLockedError: If the book's cover is locked.
        """
        book = self._catalog.require_book(book_id)
        self._require_unlocked_cover(book)
        if book.format is BookFormat.PDF:
            cover = generate_cover(book.full_path, book.format)
        else:
            cover = extract_metadata(book.full_path, book.format).cover_image
        if not cover:
            logger.warning("No cover found in %s", book.full_path)
            return False
        if not self._ingestor.store_cover(book_id, cover):
            return False
        self._notifier.send(Topic.BOOK_METADATA_UPDATE, self._catalog.require_book(book_id))
        return True

    def regenerate_covers(self, *, background: bool = True) -> threading.Thread | None:
        """Regenerate every unlocked cover, reporting progress as LOG notifications.

        Returns:
            The worker thread when running in the background, else None.
        """
        if not background:
            self._regenerate_all()
            return None
        thread = threading.Thread(
            target=self._regenerate_all, name="bookwarden-covers", daemon=True
        )
        thread.start()
        return thread

    def _regenerate_all(self) -> None:
        books = [b for b in self._catalog.list_books() if not b.metadata.cover_locked]
        total = len(books)
        self._notifier.send(Topic.LOG, f"Started regenerating covers for {total} books")
        for index, book in enumerate(books, start=1):
            self._notifier.send(Topic.LOG, f"Regenerating cover ({index}/{total}): {book.title}")
            try:
                self.regenerate_cover(book.id)
            except Exception as exc:
                logger.error("Failed to regenerate cover for book %d: %s", book.id, exc)
        self._notifier.send(Topic.LOG, f"Finished regenerating covers for {total} books")

    def replace_cover(self, book_id: int, image_bytes: bytes) -> bool:
        """Use uploaded bytes as a book's cover.

        With write-back enabled the image is also embedded into EPUB files.

        Raises:
            MetadataLockedError: If the book's cover is locked.
        """
        book = self._catalog.require_book(book_id)
        self._require_unlocked_cover(book)
        if not self._ingestor.store_cover(book_id, image_bytes):
            return False
        if self._settings.save_to_original_file and book.format is BookFormat.EPUB:
            if replace_epub_cover(book.full_path, image_bytes):
                self._refresh_hash(book)
        self._notifier.send(Topic.BOOK_METADATA_UPDATE, self._catalog.require_book(book_id))
        return True

    def replace_cover_from_url(
        self, book_id: int, url: str, *, transport: httpx.BaseTransport | None = None
    ) -> bool:
        """Download an image and use it as a book's cover.

        Raises:
            CoverFetchError: If the download fails.
            MetadataLockedError: If the book's cover is locked.
        """
        self._require_unlocked_cover(self._catalog.require_book(book_id))
        return self.replace_cover(book_id, fetch_cover_bytes(url, transport=transport))

    # --- Additional files ---

    def add_additional_file(
        self,
        book_id: int,
        path: Path,
        kind: AdditionalFileKind,
        description: str | None = None,
    ) -> AdditionalFileRecord:
        """Attach a file inside the book's library to the book explicitly.

        Raises:
            BookNotFoundError: If the book does not exist.
            PathOutsideLibraryError: If path is not under a root of the book's library.
            DuplicateBookError: If the file's content is already cataloged.
        """
        book = self._catalog.require_book(book_id)
        library = self._catalog.require_library(book.library_id)
        path = Path(path).resolve()
        library_path = library.require_path_for(path)
        file_hash = compute_file_hash(path)

        if self._catalog.find_by_hash(file_hash) is not None:
            raise DuplicateBookError(f"{path.name} duplicates an existing book")
        if self._catalog.find_additional_file_by_hash(file_hash, include_deleted=False) is not None:
            raise DuplicateBookError(f"{path.name} duplicates an existing additional file")

        sub_path = relative_sub_path(library_path.path, path.parent)
        with self._catalog.transaction():
            self._catalog.add_additional_file(
                book_id=book_id,
                library_path_id=library_path.id,
                file_sub_path=sub_path,
                file_name=path.name,
                kind=kind,
                file_hash=file_hash,
                file_size_kb=file_size_kb(path),
                description=description,
            )
            record = self._catalog.find_additional_file(library_path.id, sub_path, path.name)
        logger.info("Attached %s to book %d as %s", path.name, book_id, kind.value)
        return record  # type: ignore[return-value]

    def list_additional_files(
        self, book_id: int, kind: AdditionalFileKind | None = None
    ) -> list[AdditionalFileRecord]:
        self._catalog.require_book(book_id)
        return self._catalog.list_additional_files(book_id, kind)

    # --- Provider lookups ---

    def find_candidates(
        self, book_id: int, providers: Iterable[MetadataProvider]
    ) -> list[MetadataCandidate]:
        """Search providers for a book using a term built from its metadata and file name."""
        book = self._catalog.require_book(book_id)
        term = build_search_term(book.metadata.metadata, book.file_name, book.format)
        if term is None:
            logger.info("No usable search term for book %d", book_id)
            return []
        logger.debug("Searching providers for book %d with %r", book_id, term)
        return fetch_candidates(providers, term)

    def apply_candidate(
        self,
        book_id: int,
        candidate: MetadataCandidate,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> MergeResult:
        """Merge a provider candidate into a book, fetching its cover when offered.

        A cover that cannot be downloaded is logged and skipped; the text
        fields are still merged. A locked cover is never fetched.
        """
        incoming = candidate.metadata
        book = self._catalog.require_book(book_id)
        if candidate.cover_url and not incoming.has_cover and not book.metadata.cover_locked:
            try:
                cover = fetch_cover_bytes(candidate.cover_url, transport=transport)
            except CoverFetchError as exc:
                logger.warning("Skipping cover from %s: %s", candidate.source, exc)
            else:
                incoming = replace(incoming, cover_image=cover)
        logger.info(
            "Applying %s candidate %s to book %d", candidate.source, candidate.source_id, book_id
        )
        return self.update_metadata(book_id, incoming)
