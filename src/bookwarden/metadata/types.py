# ABOUTME: Core metadata data structures for book metadata representation.
# ABOUTME: BookMetadata flows from extraction to merge to writing; MetadataRecord adds per-field locks.

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path


class MetadataField(str, Enum):
    """Every bibliographic field that carries its own lock flag."""

    TITLE = "title"
    SUBTITLE = "subtitle"
    AUTHORS = "authors"
    CATEGORIES = "categories"
    PUBLISHER = "publisher"
    PUBLISHED_DATE = "published_date"
    DESCRIPTION = "description"
    SERIES_NAME = "series_name"
    SERIES_NUMBER = "series_number"
    SERIES_TOTAL = "series_total"
    ISBN13 = "isbn13"
    ISBN10 = "isbn10"
    PAGE_COUNT = "page_count"
    LANGUAGE = "language"
    ASIN = "asin"
    GOODREADS_ID = "goodreads_id"
    HARDCOVER_ID = "hardcover_id"
    GOOGLE_ID = "google_id"
    COMICVINE_ID = "comicvine_id"
    PERSONAL_RATING = "personal_rating"
    AMAZON_RATING = "amazon_rating"
    AMAZON_REVIEW_COUNT = "amazon_review_count"
    GOODREADS_RATING = "goodreads_rating"
    GOODREADS_REVIEW_COUNT = "goodreads_review_count"
    HARDCOVER_RATING = "hardcover_rating"
    HARDCOVER_REVIEW_COUNT = "hardcover_review_count"

    @classmethod
    def from_name(cls, name: str) -> "MetadataField":
        """Resolve a field from its snake_case, camelCase or `...Locked` name.

        Raises:
            ValueError: If the name does not match any field.
        """
        cleaned = name.strip()
        if cleaned.endswith("Locked"):
            cleaned = cleaned[: -len("Locked")]
        snake = _CAMEL_RE.sub(r"\1_\2", cleaned).lower()
        try:
            return cls(snake)
        except ValueError:
            raise ValueError(f"Unknown metadata field: {name}") from None


_CAMEL_RE = re.compile(r"([a-z\d])([A-Z])")

SET_FIELDS: frozenset[MetadataField] = frozenset(
    {MetadataField.AUTHORS, MetadataField.CATEGORIES}
)


@dataclass
class BookMetadata:
    """Structured metadata for a book file.

    This is the central data structure that flows through the system:
    extraction -> merge -> writing. All fields are optional except title,
    since even a file with nothing parseable has a filename we can call a title.
    """

    title: str
    subtitle: str | None = None
    authors: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    publisher: str | None = None
    published_date: date | None = None
    description: str | None = None
    series_name: str | None = None
    series_number: float | None = None
    series_total: int | None = None
    isbn13: str | None = None
    isbn10: str | None = None
    page_count: int | None = None
    language: str | None = None
    asin: str | None = None
    goodreads_id: str | None = None
    hardcover_id: str | None = None
    google_id: str | None = None
    comicvine_id: str | None = None
    personal_rating: float | None = None
    amazon_rating: float | None = None
    amazon_review_count: int | None = None
    goodreads_rating: float | None = None
    goodreads_review_count: int | None = None
    hardcover_rating: float | None = None
    hardcover_review_count: int | None = None
    identifiers: dict[str, str] = field(default_factory=dict)
    cover_image: bytes | None = None
    source_path: Path | None = None

    @property
    def author(self) -> str:
        """Convenience property: joined author string for display."""
        return ", ".join(self.authors) if self.authors else ""

    @property
    def isbn(self) -> str | None:
        """The best available ISBN, preferring ISBN-13."""
        return self.isbn13 or self.isbn10

    @property
    def has_cover(self) -> bool:
        """Whether cover image data is present."""
        return self.cover_image is not None and len(self.cover_image) > 0


@dataclass
class MetadataRecord:
    """Persisted metadata for one book together with its curator locks."""

    metadata: BookMetadata
    locked: set[MetadataField] = field(default_factory=set)
    cover_locked: bool = False
    cover_updated_on: datetime | None = None

    def is_locked(self, metadata_field: MetadataField) -> bool:
        return metadata_field in self.locked

    @property
    def all_locked(self) -> bool:
        return self.cover_locked and len(self.locked) == len(MetadataField)
