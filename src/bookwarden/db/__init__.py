# ABOUTME: Public API for the Bookwarden library database layer.
# ABOUTME: Exports connection management, catalog operations, and record types.

from bookwarden.db.catalog import (
    BookNotFoundError,
    DuplicateBookError,
    LibraryCatalog,
    LibraryNotFoundError,
)
from bookwarden.db.connection import DEFAULT_DB_PATH, open_library
from bookwarden.db.hashing import compute_file_hash
from bookwarden.db.mapping import AdditionalFileRecord, BookRecord

__all__ = [
    "DEFAULT_DB_PATH",
    "AdditionalFileRecord",
    "BookNotFoundError",
    "BookRecord",
    "DuplicateBookError",
    "LibraryCatalog",
    "LibraryNotFoundError",
    "compute_file_hash",
    "open_library",
]
