# ABOUTME: Integration tests for BookIngestor against a real catalog and real book files.
# ABOUTME: Covers creation, rename/move detection, reactivation of deleted books and cover storage.

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from bookwarden.core.ingest import BookIngestor
from bookwarden.core.notifications import Topic
from bookwarden.covers import CoverStore
from bookwarden.db.catalog import LibraryCatalog
from bookwarden.db.hashing import compute_file_hash
from bookwarden.db.mapping import BookRecord
from bookwarden.models import AdditionalFileKind, BookFormat, Library, LibraryFile, ScanMode
from tests.fixtures.notifications import RecordingNotifier


def _library_file(library: Library, path: Path) -> LibraryFile:
    return LibraryFile.from_path(library, library.paths[0], path)


@pytest.fixture()
def library(make_library: Callable[..., Library]) -> Library:
    return make_library(ScanMode.FILE_AS_BOOK)


@pytest.fixture()
def root(library: Library) -> Path:
    return library.paths[0].path


class TestCreateBook:
    """Tests for cataloging files never seen before."""

    def test_new_epub_becomes_book(
        self,
        ingestor: BookIngestor,
        library: Library,
        root: Path,
        make_epub: Callable[..., Path],
        make_image: Callable[..., bytes],
        notifier: RecordingNotifier,
        cover_store: CoverStore,
    ) -> None:
        path = make_epub(root / "Eco" / "rose.epub", publisher="Harcourt", cover=make_image())

        book = ingestor.handle_new_book_file(_library_file(library, path))

        assert isinstance(book, BookRecord)
        assert book.title == "The Name of the Rose"
        assert book.metadata.metadata.publisher == "Harcourt"
        assert book.file_sub_path == "Eco"
        assert book.format is BookFormat.EPUB
        assert book.file_size_kb is not None
        assert cover_store.exists(book.id)
        assert book.metadata.cover_updated_on is not None
        assert [b.id for b in notifier.payloads(Topic.BOOK_ADD)] == [book.id]
        assert notifier.payloads(Topic.LOG) == ["Book added: rose.epub"]

    def test_pdf_cover_rendered_inline(
        self,
        ingestor: BookIngestor,
        library: Library,
        root: Path,
        make_pdf: Callable[..., Path],
        cover_store: CoverStore,
    ) -> None:
        path = make_pdf(root / "ux.pdf", title="Laws of UX")
        book = ingestor.handle_new_book_file(_library_file(library, path))
        assert book.title == "Laws of UX"
        assert cover_store.exists(book.id)

    def test_pdf_cover_rendered_by_executor(
        self,
        catalog: LibraryCatalog,
        cover_store: CoverStore,
        notifier: RecordingNotifier,
        library: Library,
        root: Path,
        make_pdf: Callable[..., Path],
    ) -> None:
        path = make_pdf(root / "ux.pdf", title="Laws of UX")
        with ThreadPoolExecutor(max_workers=1) as pool:
            ingestor = BookIngestor(catalog, cover_store, notifier, cover_executor=pool)
            book = ingestor.handle_new_book_file(_library_file(library, path))
        assert cover_store.exists(book.id)
        assert catalog.get_metadata(book.id).cover_updated_on is not None

    def test_unreadable_book_still_cataloged(
        self, ingestor: BookIngestor, library: Library, root: Path, write_file
    ) -> None:
        """Extraction failures fall back to a title from the file name."""
        path = write_file(root / "broken.epub", "garbage")
        book = ingestor.handle_new_book_file(_library_file(library, path))
        assert book.title == "broken"

    def test_create_book_rejects_non_book(
        self, ingestor: BookIngestor, library: Library, root: Path, write_file
    ) -> None:
        path = write_file(root / "notes.txt")
        with pytest.raises(ValueError, match="Not a book file"):
            ingestor.create_book(_library_file(library, path))


class TestIdentityByContent:
    """Tests for move, rename and restore handling."""

    def test_same_file_twice_is_idempotent(
        self,
        ingestor: BookIngestor,
        catalog: LibraryCatalog,
        library: Library,
        root: Path,
        write_file,
    ) -> None:
        path = write_file(root / "a.pdf", b"%PDF-1.4 a")
        first = ingestor.handle_new_book_file(_library_file(library, path))
        second = ingestor.handle_new_book_file(_library_file(library, path))
        assert first.id == second.id
        assert len(catalog.list_books()) == 1

    def test_renamed_file_keeps_book(
        self,
        ingestor: BookIngestor,
        catalog: LibraryCatalog,
        library: Library,
        root: Path,
        write_file,
        notifier: RecordingNotifier,
    ) -> None:
        original = write_file(root / "old" / "a.pdf", b"%PDF-1.4 same bytes")
        book = ingestor.handle_new_book_file(_library_file(library, original))

        moved = root / "new" / "renamed.pdf"
        moved.parent.mkdir()
        original.rename(moved)
        updated = ingestor.handle_new_book_file(_library_file(library, moved))

        assert updated.id == book.id
        assert updated.file_sub_path == "new"
        assert updated.file_name == "renamed.pdf"
        assert updated.initial_hash == book.initial_hash
        assert len(catalog.list_books(include_deleted=True)) == 1
        assert len(notifier.payloads(Topic.BOOK_ADD)) == 1

    def test_copy_of_live_book_is_new_book(
        self,
        ingestor: BookIngestor,
        catalog: LibraryCatalog,
        library: Library,
        root: Path,
        write_file,
    ) -> None:
        original = write_file(root / "a.pdf", b"%PDF-1.4 twin")
        book = ingestor.handle_new_book_file(_library_file(library, original))
        copy = write_file(root / "copies" / "a.pdf", b"%PDF-1.4 twin")

        twin = ingestor.handle_new_book_file(_library_file(library, copy))

        assert twin.id != book.id
        assert twin.file_sub_path == "copies"
        kept = catalog.require_book(book.id)
        assert (kept.file_sub_path, kept.file_name) == ("", "a.pdf")

    def test_deleted_book_is_reactivated(
        self,
        ingestor: BookIngestor,
        catalog: LibraryCatalog,
        library: Library,
        root: Path,
        write_file,
        notifier: RecordingNotifier,
    ) -> None:
        path = write_file(root / "a.pdf", b"%PDF-1.4 returning")
        book = ingestor.handle_new_book_file(_library_file(library, path))
        catalog.mark_deleted(book.id)
        record = catalog.get_metadata(book.id)
        record.metadata.publisher = "Curated"
        catalog.save_metadata(book.id, record)

        restored = ingestor.handle_new_book_file(_library_file(library, path))

        assert restored.id == book.id
        assert restored.deleted is False
        assert restored.metadata.metadata.publisher == "Curated"
        assert len(notifier.payloads(Topic.BOOK_ADD)) == 2

    def test_known_additional_file_content_is_relocated(
        self,
        ingestor: BookIngestor,
        catalog: LibraryCatalog,
        library: Library,
        root: Path,
        write_file,
    ) -> None:
        book = ingestor.handle_new_book_file(
            _library_file(library, write_file(root / "a.pdf", b"%PDF-1.4 main"))
        )
        alt = write_file(root / "a.epub", b"alt bytes")
        extra_id = catalog.add_additional_file(
            book_id=book.id,
            library_path_id=library.paths[0].id,
            file_sub_path="",
            file_name="a.epub",
            kind=AdditionalFileKind.ALTERNATIVE_FORMAT,
            file_hash=compute_file_hash(alt),
        )
        moved = root / "moved" / "b.epub"
        moved.parent.mkdir()
        alt.rename(moved)

        result = ingestor.handle_new_book_file(_library_file(library, moved))

        assert result.id == extra_id
        assert result.file_sub_path == "moved"
        assert result.file_name == "b.epub"
        assert len(catalog.list_books()) == 1
