# ABOUTME: Converts between catalog dataclasses and SQLite row dictionaries.
# ABOUTME: Handles JSON serialization for list/dict fields and ISO strings for dates.

import json
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

from bookwarden.metadata.types import BookMetadata, MetadataField, MetadataRecord
from bookwarden.models import (
    AdditionalFileKind,
    BookFormat,
    Library,
    LibraryPath,
    ScanMode,
)

# Scalar metadata columns stored as-is; authors/categories/dates are handled separately.
_SCALAR_COLUMNS: tuple[str, ...] = tuple(
    f.value
    for f in MetadataField
    if f not in (MetadataField.AUTHORS, MetadataField.CATEGORIES, MetadataField.PUBLISHED_DATE)
)


@dataclass
class BookRecord:
    """A cataloged book: its primary file location, fingerprints and metadata."""

    id: int
    library_id: int
    library_path_id: int
    library_root: Path
    file_sub_path: str
    file_name: str
    format: BookFormat
    file_size_kb: int | None
    initial_hash: str
    current_hash: str
    deleted: bool
    added_on: str
    metadata: MetadataRecord

    @property
    def full_path(self) -> Path:
        if self.file_sub_path:
            return self.library_root / self.file_sub_path / self.file_name
        return self.library_root / self.file_name

    @property
    def title(self) -> str:
        return self.metadata.metadata.title


@dataclass
class AdditionalFileRecord:
    """A non-primary file attached to a book."""

    id: int
    book_id: int
    library_path_id: int
    library_root: Path
    file_sub_path: str
    file_name: str
    kind: AdditionalFileKind
    file_size_kb: int | None
    initial_hash: str
    current_hash: str
    description: str | None
    deleted: bool
    added_on: str

    @property
    def full_path(self) -> Path:
        if self.file_sub_path:
            return self.library_root / self.file_sub_path / self.file_name
        return self.library_root / self.file_name


def metadata_to_row(record: MetadataRecord) -> dict[str, Any]:
    """Convert a MetadataRecord to a dict suitable for INSERT or UPDATE.

    Serializes authors/categories as JSON arrays, identifiers as a JSON object
    and locks as a sorted JSON array of field names. Excludes cover_image
    (binary data goes to the cover store, not the DB).
    """
    metadata = record.metadata
    row: dict[str, Any] = {column: getattr(metadata, column) for column in _SCALAR_COLUMNS}
    row["authors"] = json.dumps(metadata.authors)
    row["categories"] = json.dumps(metadata.categories)
    row["published_date"] = (
        metadata.published_date.isoformat() if metadata.published_date else None
    )
    row["identifiers"] = json.dumps(metadata.identifiers)
    row["locked_fields"] = json.dumps(sorted(f.value for f in record.locked))
    row["cover_locked"] = int(record.cover_locked)
    row["cover_updated_on"] = (
        record.cover_updated_on.isoformat() if record.cover_updated_on else None
    )
    return row


def row_to_metadata_record(row: Any) -> MetadataRecord:
    """Convert a book_metadata row back to a MetadataRecord."""
    values: dict[str, Any] = {column: row[column] for column in _SCALAR_COLUMNS}
    published = row["published_date"]
    metadata = BookMetadata(
        **values,
        authors=json.loads(row["authors"]) if row["authors"] else [],
        categories=json.loads(row["categories"]) if row["categories"] else [],
        published_date=date.fromisoformat(published) if published else None,
        identifiers=json.loads(row["identifiers"]) if row["identifiers"] else {},
    )
    cover_updated = row["cover_updated_on"]
    return MetadataRecord(
        metadata=metadata,
        locked={MetadataField(name) for name in json.loads(row["locked_fields"] or "[]")},
        cover_locked=bool(row["cover_locked"]),
        cover_updated_on=datetime.fromisoformat(cover_updated) if cover_updated else None,
    )


def row_to_book(row: Any, metadata: MetadataRecord) -> BookRecord:
    """Convert a books row joined with its library path to a BookRecord."""
    return BookRecord(
        id=row["id"],
        library_id=row["library_id"],
        library_path_id=row["library_path_id"],
        library_root=Path(row["library_root"]),
        file_sub_path=row["file_sub_path"],
        file_name=row["file_name"],
        format=BookFormat(row["format"]),
        file_size_kb=row["file_size_kb"],
        initial_hash=row["initial_hash"],
        current_hash=row["current_hash"],
        deleted=bool(row["deleted"]),
        added_on=row["added_on"],
        metadata=metadata,
    )


def row_to_additional_file(row: Any) -> AdditionalFileRecord:
    """Convert an additional_files row joined with its library path."""
    return AdditionalFileRecord(
        id=row["id"],
        book_id=row["book_id"],
        library_path_id=row["library_path_id"],
        library_root=Path(row["library_root"]),
        file_sub_path=row["file_sub_path"],
        file_name=row["file_name"],
        kind=AdditionalFileKind(row["kind"]),
        file_size_kb=row["file_size_kb"],
        initial_hash=row["initial_hash"],
        current_hash=row["current_hash"],
        description=row["description"],
        deleted=bool(row["deleted"]),
        added_on=row["added_on"],
    )


def row_to_library(row: Any, path_rows: list[Any]) -> Library:
    """Convert a libraries row plus its library_paths rows to a Library."""
    default_format = row["default_format"]
    return Library(
        id=row["id"],
        name=row["name"],
        scan_mode=ScanMode(row["scan_mode"]),
        default_format=BookFormat(default_format) if default_format else None,
        watch=bool(row["watch"]),
        paths=[
            LibraryPath(id=p["id"], library_id=p["library_id"], path=Path(p["path"]))
            for p in path_rows
        ],
    )
