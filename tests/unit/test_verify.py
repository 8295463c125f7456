# ABOUTME: Unit tests for the library verification logic.
# ABOUTME: Validates file existence checks, hash drift detection, and hash refresh.

from collections.abc import Callable
from pathlib import Path

import pytest

from bookwarden.core.verifier import VerifyResult, verify_library
from bookwarden.db.catalog import LibraryCatalog
from bookwarden.db.hashing import compute_file_hash
from bookwarden.metadata.types import BookMetadata, MetadataRecord
from bookwarden.models import BookFormat, Library


def _catalog_file(catalog: LibraryCatalog, library: Library, path: Path) -> int:
    root = library.paths[0]
    return catalog.add_book(
        library_id=library.id,
        library_path_id=root.id,
        file_sub_path="",
        file_name=path.name,
        book_format=BookFormat.EPUB,
        file_hash=compute_file_hash(path),
        metadata=MetadataRecord(metadata=BookMetadata(title=path.stem)),
    )


@pytest.fixture()
def two_books(
    catalog: LibraryCatalog,
    make_library: Callable[..., Library],
    library_root: Path,
    write_file: Callable[..., Path],
) -> tuple[int, int]:
    library = make_library()
    a = _catalog_file(catalog, library, write_file(library_root / "a.epub", "content a"))
    b = _catalog_file(catalog, library, write_file(library_root / "b.epub", "content b"))
    return a, b


class TestVerifyResult:
    """Tests for the VerifyResult dataclass."""

    def test_default_result_is_clean(self) -> None:
        result = VerifyResult()
        assert result.ok == 0
        assert result.total_issues == 0

    def test_refreshed_books_still_count_as_drifted(self) -> None:
        result = VerifyResult(missing_file=[object()], hash_mismatch=[object(), object()])
        assert result.total_issues == 3


class TestVerifyLibrary:
    """Tests for verify_library."""

    def test_all_files_present(self, catalog: LibraryCatalog, two_books: tuple[int, int]) -> None:
        result = verify_library(catalog)
        assert result.ok == 2
        assert result.total_issues == 0

    def test_missing_file_detected(
        self, catalog: LibraryCatalog, two_books: tuple[int, int], library_root: Path
    ) -> None:
        (library_root / "a.epub").unlink()
        result = verify_library(catalog, check_hash=True)
        assert [r.id for r in result.missing_file] == [two_books[0]]
        assert result.ok == 1

    def test_deleted_books_are_skipped(
        self, catalog: LibraryCatalog, two_books: tuple[int, int], library_root: Path
    ) -> None:
        (library_root / "a.epub").unlink()
        catalog.mark_deleted(two_books[0])
        assert verify_library(catalog).total_issues == 0

    def test_hash_check_skipped_by_default(
        self, catalog: LibraryCatalog, two_books: tuple[int, int], library_root: Path
    ) -> None:
        (library_root / "b.epub").write_text("edited")
        assert verify_library(catalog).ok == 2

    def test_hash_mismatch_detected(
        self, catalog: LibraryCatalog, two_books: tuple[int, int], library_root: Path
    ) -> None:
        (library_root / "b.epub").write_text("edited")
        result = verify_library(catalog, check_hash=True)
        assert [r.id for r in result.hash_mismatch] == [two_books[1]]
        assert result.refreshed == []
        assert catalog.require_book(two_books[1]).current_hash != compute_file_hash(
            library_root / "b.epub"
        )

    def test_refresh_updates_current_hash_only(
        self, catalog: LibraryCatalog, two_books: tuple[int, int], library_root: Path
    ) -> None:
        path = library_root / "b.epub"
        original = catalog.require_book(two_books[1]).initial_hash
        path.write_text("edited")

        result = verify_library(catalog, check_hash=True, refresh=True)

        book = catalog.require_book(two_books[1])
        assert [r.id for r in result.refreshed] == [two_books[1]]
        assert book.current_hash == compute_file_hash(path)
        assert book.initial_hash == original
        assert verify_library(catalog, check_hash=True).total_issues == 0

    def test_empty_catalog(self, catalog: LibraryCatalog) -> None:
        result = verify_library(catalog)
        assert result.ok == 0
        assert result.total_issues == 0
