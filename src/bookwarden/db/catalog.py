# ABOUTME: CRUD operations for the Bookwarden library catalog.
# ABOUTME: Libraries, books, per-book metadata and additional files in SQLite, with soft deletion.

import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from bookwarden.db.mapping import (
    AdditionalFileRecord,
    BookRecord,
    metadata_to_row,
    row_to_additional_file,
    row_to_book,
    row_to_library,
    row_to_metadata_record,
)
from bookwarden.metadata.types import MetadataRecord
from bookwarden.models import AdditionalFileKind, BookFormat, Library, ScanMode


class DuplicateBookError(Exception):
    """Raised when content that is already cataloged is added explicitly."""


class LibraryNotFoundError(Exception):
    """Raised when an event or command names a library id that does not exist."""


class BookNotFoundError(Exception):
    """Raised when a book id does not exist."""


_BOOK_SELECT = (
    "SELECT b.*, lp.path AS library_root FROM books b "
    "JOIN library_paths lp ON lp.id = b.library_path_id "
)
_ADDITIONAL_SELECT = (
    "SELECT a.*, lp.path AS library_root FROM additional_files a "
    "JOIN library_paths lp ON lp.id = a.library_path_id "
)


def _prefix_clause(column: str) -> str:
    """WHERE fragment matching a sub-path equal to, or nested under, a prefix.

    Uses substr so "_" and "%" in folder names match literally and case matters.
    """
    return f"({column} = ? OR substr({column}, 1, ?) = ?)"


def _prefix_params(prefix: str) -> tuple[str, int, str]:
    return prefix, len(prefix) + 1, f"{prefix}/"


class LibraryCatalog:
    """Wraps a sqlite3 connection and provides typed CRUD for the catalog tables.

    Every public write commits immediately unless it runs inside
    `transaction()`, in which case the outermost block commits or rolls back.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator["LibraryCatalog"]:
        """Group several catalog writes into one atomic unit.

        Nested blocks join the outermost one. The lock also serializes
        access between the watcher worker and background cover jobs.
        """
        with self._lock:
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if self._depth == 0:
                    self._conn.rollback()
                raise
            self._depth -= 1
            if self._depth == 0:
                self._conn.commit()

    def _commit(self) -> None:
        if self._depth == 0:
            self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # --- Libraries ---

    def add_library(
        self,
        name: str,
        paths: Sequence[Path],
        *,
        scan_mode: ScanMode = ScanMode.FILE_AS_BOOK,
        default_format: BookFormat | None = None,
        watch: bool = True,
    ) -> Library:
        """Create a library with one or more filesystem roots."""
        with self._lock:
            cursor = self._conn.execute(
                "INSERT INTO libraries (name, scan_mode, default_format, watch)"
                " VALUES (?, ?, ?, ?)",
                (
                    name,
                    scan_mode.value,
                    default_format.value if default_format else None,
                    int(watch),
                ),
            )
            library_id = cursor.lastrowid
            for path in paths:
                self._conn.execute(
                    "INSERT INTO library_paths (library_id, path) VALUES (?, ?)",
                    (library_id, str(Path(path).resolve())),
                )
            self._commit()
        return self.require_library(library_id)  # type: ignore[arg-type]

    def get_library(self, library_id: int) -> Library | None:
        """Retrieve a library with its roots by ID."""
        row = self._conn.execute("SELECT * FROM libraries WHERE id = ?", (library_id,)).fetchone()
        if row is None:
            return None
        path_rows = self._conn.execute(
            "SELECT * FROM library_paths WHERE library_id = ? ORDER BY id", (library_id,)
        ).fetchall()
        return row_to_library(row, path_rows)

    def require_library(self, library_id: int) -> Library:
        """Like get_library, but raises LibraryNotFoundError when missing."""
        library = self.get_library(library_id)
        if library is None:
            raise LibraryNotFoundError(f"Library with id {library_id} not found")
        return library

    def list_libraries(self) -> list[Library]:
        """Return all libraries, ordered by name."""
        rows = self._conn.execute("SELECT id FROM libraries ORDER BY name").fetchall()
        return [self.require_library(row["id"]) for row in rows]

    # --- Books ---

    def add_book(
        self,
        *,
        library_id: int,
        library_path_id: int,
        file_sub_path: str,
        file_name: str,
        book_format: BookFormat,
        file_hash: str,
        metadata: MetadataRecord,
        file_size_kb: int | None = None,
    ) -> int:
        """Add a book and its metadata row.

        The hash is recorded as both initial_hash (never changes again)
        and current_hash.

        Returns:
            The row ID of the inserted book.
        """
        with self._lock:
            cursor = self._conn.execute(
                "INSERT INTO books (library_id, library_path_id, file_sub_path, file_name, "
                "format, file_size_kb, initial_hash, current_hash) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    library_id,
                    library_path_id,
                    file_sub_path,
                    file_name,
                    book_format.value,
                    file_size_kb,
                    file_hash,
                    file_hash,
                ),
            )
            book_id = cursor.lastrowid
            row = metadata_to_row(metadata)
            row["book_id"] = book_id
            columns = ", ".join(row.keys())
            placeholders = ", ".join("?" for _ in row)
            self._conn.execute(
                f"INSERT INTO book_metadata ({columns}) VALUES ({placeholders})",
                list(row.values()),
            )
            self._commit()
        return book_id  # type: ignore[return-value]

    def _to_book(self, row: sqlite3.Row) -> BookRecord:
        return row_to_book(row, self.get_metadata(row["id"]))

    def get_book(self, book_id: int) -> BookRecord | None:
        """Retrieve a book by its row ID, deleted or not."""
        row = self._conn.execute(_BOOK_SELECT + "WHERE b.id = ?", (book_id,)).fetchone()
        return self._to_book(row) if row else None

    def require_book(self, book_id: int) -> BookRecord:
        """Like get_book, but raises BookNotFoundError when missing."""
        book = self.get_book(book_id)
        if book is None:
            raise BookNotFoundError(f"Book with id {book_id} not found")
        return book

    def find_by_hash(self, file_hash: str) -> BookRecord | None:
        """Find a book whose current content hash matches.

        Live books win over soft-deleted ones so a duplicate copy never
        steals identity from a book that is still on disk.
        """
        row = self._conn.execute(
            _BOOK_SELECT + "WHERE b.current_hash = ? ORDER BY b.deleted, b.id LIMIT 1",
            (file_hash,),
        ).fetchone()
        return self._to_book(row) if row else None

    def find_book_at(
        self, library_path_id: int, file_sub_path: str, file_name: str
    ) -> BookRecord | None:
        """Find the book whose primary file sits at an exact location."""
        row = self._conn.execute(
            _BOOK_SELECT
            + "WHERE b.library_path_id = ? AND b.file_sub_path = ? AND b.file_name = ? "
            "ORDER BY b.deleted, b.id LIMIT 1",
            (library_path_id, file_sub_path, file_name),
        ).fetchone()
        return self._to_book(row) if row else None

    def find_by_sub_path_prefix(
        self, library_path_id: int, prefix: str, *, include_deleted: bool = False
    ) -> list[BookRecord]:
        """Books whose sub-path is prefix itself or nested below it."""
        sql = _BOOK_SELECT + "WHERE b.library_path_id = ? "
        params: list[object] = [library_path_id]
        if prefix:
            sql += "AND " + _prefix_clause("b.file_sub_path") + " "
            params.extend(_prefix_params(prefix))
        if not include_deleted:
            sql += "AND b.deleted = 0 "
        sql += "ORDER BY b.file_sub_path, b.id"
        return [self._to_book(row) for row in self._conn.execute(sql, params).fetchall()]

    def list_books(self, *, include_deleted: bool = False) -> list[BookRecord]:
        """Return all books, ordered by ID."""
        sql = _BOOK_SELECT
        if not include_deleted:
            sql += "WHERE b.deleted = 0 "
        sql += "ORDER BY b.id"
        return [self._to_book(row) for row in self._conn.execute(sql).fetchall()]

    def list_books_by_ids(self, book_ids: Sequence[int]) -> list[BookRecord]:
        """Return the books with the given IDs, skipping unknown IDs."""
        books = (self.get_book(book_id) for book_id in dict.fromkeys(book_ids))
        return [book for book in books if book is not None]

    def update_book(self, book_id: int, **fields: str | int | None) -> None:
        """Update one or more columns of the books table.

        Raises:
            BookNotFoundError: If the book_id does not exist.
        """
        if not fields:
            return
        if "initial_hash" in fields:
            raise ValueError("initial_hash is immutable")

        set_clause = ", ".join(f"{k} = ?" for k in fields)
        values = [*fields.values(), book_id]
        with self._lock:
            cursor = self._conn.execute(f"UPDATE books SET {set_clause} WHERE id = ?", values)
            self._commit()

        if cursor.rowcount == 0:
            raise BookNotFoundError(f"Book with id {book_id} not found")

    def mark_deleted(self, book_id: int) -> None:
        """Soft-delete a book. The row is kept so the book can come back."""
        self.update_book(book_id, deleted=1)

    def mark_deleted_under_prefix(self, library_path_id: int, prefix: str) -> int:
        """Soft-delete every book and additional file at or below a sub-path.

        Returns:
            The number of books marked deleted.
        """
        where = "library_path_id = ?"
        params: tuple[object, ...] = (library_path_id,)
        if prefix:
            where += " AND " + _prefix_clause("file_sub_path")
            params += _prefix_params(prefix)
        with self._lock:
            cursor = self._conn.execute(
                f"UPDATE books SET deleted = 1 WHERE deleted = 0 AND {where}", params
            )
            count = cursor.rowcount
            self._conn.execute(f"UPDATE additional_files SET deleted = 1 WHERE {where}", params)
            self._commit()
        return count

    # --- Metadata ---

    def get_metadata(self, book_id: int) -> MetadataRecord:
        """Load the metadata record for a book.

        Raises:
            BookNotFoundError: If the book has no metadata row.
        """
        row = self._conn.execute(
            "SELECT * FROM book_metadata WHERE book_id = ?", (book_id,)
        ).fetchone()
        if row is None:
            raise BookNotFoundError(f"Metadata for book {book_id} not found")
        return row_to_metadata_record(row)

    def save_metadata(self, book_id: int, record: MetadataRecord) -> None:
        """Persist a metadata record, locks included."""
        row = metadata_to_row(record)
        set_clause = ", ".join(f"{k} = ?" for k in row)
        with self._lock:
            cursor = self._conn.execute(
                f"UPDATE book_metadata SET {set_clause} WHERE book_id = ?",
                [*row.values(), book_id],
            )
            self._commit()
        if cursor.rowcount == 0:
            raise BookNotFoundError(f"Book with id {book_id} not found")

    # --- Additional files ---

    def add_additional_file(
        self,
        *,
        book_id: int,
        library_path_id: int,
        file_sub_path: str,
        file_name: str,
        kind: AdditionalFileKind,
        file_hash: str,
        file_size_kb: int | None = None,
        description: str | None = None,
    ) -> int:
        """Attach a file to a book.

        Raises:
            DuplicateBookError: If a file is already cataloged at that location.
        """
        try:
            with self._lock:
                cursor = self._conn.execute(
                    "INSERT INTO additional_files (book_id, library_path_id, file_sub_path, "
                    "file_name, kind, file_size_kb, initial_hash, current_hash, description) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        book_id,
                        library_path_id,
                        file_sub_path,
                        file_name,
                        kind.value,
                        file_size_kb,
                        file_hash,
                        file_hash,
                        description,
                    ),
                )
                self._commit()
        except sqlite3.IntegrityError as exc:
            if "UNIQUE constraint failed" in str(exc):
                raise DuplicateBookError(
                    f"Additional file {file_sub_path}/{file_name} already exists"
                ) from exc
            raise
        return cursor.lastrowid  # type: ignore[return-value]

    def find_additional_file(
        self, library_path_id: int, file_sub_path: str, file_name: str
    ) -> AdditionalFileRecord | None:
        """Find an additional file by its unique location."""
        row = self._conn.execute(
            _ADDITIONAL_SELECT
            + "WHERE a.library_path_id = ? AND a.file_sub_path = ? AND a.file_name = ?",
            (library_path_id, file_sub_path, file_name),
        ).fetchone()
        return row_to_additional_file(row) if row else None

    def find_additional_file_by_hash(
        self, file_hash: str, *, include_deleted: bool = True
    ) -> AdditionalFileRecord | None:
        """Find an additional file by its current content hash, live rows first."""
        sql = _ADDITIONAL_SELECT + "WHERE a.current_hash = ? "
        if not include_deleted:
            sql += "AND a.deleted = 0 "
        row = self._conn.execute(sql + "ORDER BY a.deleted, a.id LIMIT 1", (file_hash,)).fetchone()
        return row_to_additional_file(row) if row else None

    def list_additional_files(
        self,
        book_id: int,
        kind: AdditionalFileKind | None = None,
        *,
        include_deleted: bool = False,
    ) -> list[AdditionalFileRecord]:
        """Additional files attached to a book, optionally of one kind."""
        sql = _ADDITIONAL_SELECT + "WHERE a.book_id = ? "
        params: list[object] = [book_id]
        if kind is not None:
            sql += "AND a.kind = ? "
            params.append(kind.value)
        if not include_deleted:
            sql += "AND a.deleted = 0 "
        sql += "ORDER BY a.file_sub_path, a.file_name"
        return [row_to_additional_file(row) for row in self._conn.execute(sql, params).fetchall()]

    def mark_additional_file_deleted(self, file_id: int) -> None:
        """Soft-delete an additional file."""
        with self._lock:
            self._conn.execute("UPDATE additional_files SET deleted = 1 WHERE id = ?", (file_id,))
            self._commit()

    def update_additional_file(self, file_id: int, **fields: str | int | None) -> None:
        """Update columns of an additional file (location, current hash, deleted)."""
        if not fields:
            return
        if "initial_hash" in fields:
            raise ValueError("initial_hash is immutable")
        set_clause = ", ".join(f"{k} = ?" for k in fields)
        with self._lock:
            self._conn.execute(
                f"UPDATE additional_files SET {set_clause} WHERE id = ?",
                [*fields.values(), file_id],
            )
            self._commit()
