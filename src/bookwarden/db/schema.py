# ABOUTME: SQL DDL statements for the Bookwarden library database schema.
# ABOUTME: Defines libraries, their roots, books, per-book metadata with locks, and additional files.

SCHEMA_V1 = """
-- Configured libraries and their filesystem roots
CREATE TABLE libraries (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    name           TEXT NOT NULL UNIQUE,
    scan_mode      TEXT NOT NULL DEFAULT 'file_as_book',
    default_format TEXT,
    watch          INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE library_paths (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    library_id INTEGER NOT NULL REFERENCES libraries(id) ON DELETE CASCADE,
    path       TEXT NOT NULL,
    UNIQUE (library_id, path)
);

-- One row per logical book; the primary file's location lives here
CREATE TABLE books (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    library_id      INTEGER NOT NULL REFERENCES libraries(id),
    library_path_id INTEGER NOT NULL REFERENCES library_paths(id),
    file_sub_path   TEXT NOT NULL DEFAULT '',
    file_name       TEXT NOT NULL,
    format          TEXT NOT NULL,
    file_size_kb    INTEGER,
    initial_hash    TEXT NOT NULL,
    current_hash    TEXT NOT NULL,
    deleted         INTEGER NOT NULL DEFAULT 0,
    added_on        TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

CREATE INDEX idx_books_current_hash ON books(current_hash);
CREATE INDEX idx_books_location ON books(library_path_id, file_sub_path, file_name);

-- Bibliographic fields; locked_fields is a JSON array of field names
CREATE TABLE book_metadata (
    book_id                INTEGER PRIMARY KEY REFERENCES books(id) ON DELETE CASCADE,
    title                  TEXT NOT NULL,
    subtitle               TEXT,
    authors                TEXT,
    categories             TEXT,
    publisher              TEXT,
    published_date         TEXT,
    description            TEXT,
    series_name            TEXT,
    series_number          REAL,
    series_total           INTEGER,
    isbn13                 TEXT,
    isbn10                 TEXT,
    page_count             INTEGER,
    language               TEXT,
    asin                   TEXT,
    goodreads_id           TEXT,
    hardcover_id           TEXT,
    google_id              TEXT,
    comicvine_id           TEXT,
    personal_rating        REAL,
    amazon_rating          REAL,
    amazon_review_count    INTEGER,
    goodreads_rating       REAL,
    goodreads_review_count INTEGER,
    hardcover_rating       REAL,
    hardcover_review_count INTEGER,
    identifiers            TEXT,
    locked_fields          TEXT NOT NULL DEFAULT '[]',
    cover_locked           INTEGER NOT NULL DEFAULT 0,
    cover_updated_on       TEXT
);

-- Non-primary files attached to a book
CREATE TABLE additional_files (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    book_id         INTEGER NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    library_path_id INTEGER NOT NULL REFERENCES library_paths(id),
    file_sub_path   TEXT NOT NULL DEFAULT '',
    file_name       TEXT NOT NULL,
    kind            TEXT NOT NULL,
    file_size_kb    INTEGER,
    initial_hash    TEXT NOT NULL,
    current_hash    TEXT NOT NULL,
    description     TEXT,
    deleted         INTEGER NOT NULL DEFAULT 0,
    added_on        TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

CREATE UNIQUE INDEX idx_additional_files_location
    ON additional_files(library_path_id, file_sub_path, file_name);
CREATE INDEX idx_additional_files_current_hash ON additional_files(current_hash);

-- Schema versioning for future migrations
CREATE TABLE schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

INSERT INTO schema_version (version) VALUES (1);
"""

# (version, sql) pairs applied in order on top of SCHEMA_V1.
MIGRATIONS: list[tuple[int, str]] = []
