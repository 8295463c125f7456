# ABOUTME: EPUB metadata extraction using ebooklib.
# ABOUTME: Maps Dublin Core, calibre meta and identifiers onto BookMetadata.

import logging
from collections.abc import Iterator
from datetime import date
from pathlib import Path

import ebooklib
from ebooklib import epub

from bookwarden.metadata.types import BookMetadata

logger = logging.getLogger(__name__)

# Identifier schemes mapped onto dedicated BookMetadata fields. ISBN is handled separately.
_SCHEME_FIELDS = {
    "amazon": "asin",
    "asin": "asin",
    "mobi-asin": "asin",
    "google": "google_id",
    "goodreads": "goodreads_id",
    "hardcover": "hardcover_id",
    "comicvine": "comicvine_id",
}

_SCHEME_ATTRS = ("opf:scheme", "scheme", "{http://www.idpf.org/2007/opf}scheme")


class EpubReadError(Exception):
    """Raised when an EPUB file cannot be read or parsed."""


def _get_metadata_value(book: epub.EpubBook, namespace: str, name: str) -> str | None:
    """Extract a single metadata value from an EpubBook, or None if missing."""
    values = book.get_metadata(namespace, name)
    if not values:
        return None
    # Metadata entries are tuples of (value, attributes); repeated fields keep the first
    value = values[0][0]
    return str(value).strip() if value and str(value).strip() else None


def _get_metadata_list(book: epub.EpubBook, name: str) -> list[str]:
    """All non-blank values of a repeatable Dublin Core field, in document order."""
    entries = book.get_metadata("DC", name)
    return [str(value).strip() for value, _ in entries if value and str(value).strip()]


def _iter_named_meta(book: epub.EpubBook) -> Iterator[tuple[str, str]]:
    """Yield (name, content) for every <meta name=... content=...> in any namespace.

    ebooklib files these under a namespace derived from the name prefix
    (e.g. "calibre"), or under None/OPF for unprefixed names like "cover".
    """
    for entries in book.metadata.values():
        for values in entries.values():
            for _, attrs in values:
                name = attrs.get("name") if attrs else None
                if name and attrs.get("content") is not None:
                    yield name, str(attrs["content"]).strip()


def _get_named_meta(book: epub.EpubBook, name: str) -> str | None:
    for meta_name, content in _iter_named_meta(book):
        if meta_name == name and content:
            return content
    return None


def _scheme_of(attrs: dict[str, str]) -> str | None:
    for key in _SCHEME_ATTRS:
        if attrs.get(key):
            return attrs[key].strip().lower()
    return None


def _get_identifiers(book: epub.EpubBook) -> dict[str, str]:
    """Extract all identifiers keyed by lowercase scheme."""
    identifiers: dict[str, str] = {}
    for value, attrs in book.get_metadata("DC", "identifier"):
        if not value or not str(value).strip():
            continue
        text = str(value).strip()
        scheme = _scheme_of(attrs or {})
        if scheme is None and text.lower().startswith("urn:isbn:"):
            scheme = "isbn"
        if scheme == "isbn" and text.lower().startswith("urn:isbn:"):
            text = text[len("urn:isbn:") :]
        identifiers.setdefault(scheme or "id", text)
    return identifiers


def _strip_isbn(value: str) -> str:
    return value.replace("-", "").replace(" ", "").strip()


def _looks_like_isbn(value: str) -> bool:
    stripped = _strip_isbn(value).upper()
    return len(stripped) in (10, 13) and stripped.rstrip("X").isdigit()


def _scheme_less_isbn(book: epub.EpubBook) -> str | None:
    """First identifier without a scheme whose value has the shape of an ISBN."""
    for value, attrs in book.get_metadata("DC", "identifier"):
        if value and _scheme_of(attrs or {}) is None and _looks_like_isbn(str(value)):
            return str(value).strip()
    return None


def parse_published_date(value: str | None) -> date | None:
    """Accept "YYYY", "YYYY-MM" or a full ISO date (time part ignored)."""
    if not value:
        return None
    text = value.strip()[:10]
    parts = text.split("-")
    try:
        if len(parts) == 1:
            return date(int(parts[0]), 1, 1)
        if len(parts) == 2:
            return date(int(parts[0]), int(parts[1]), 1)
        return date.fromisoformat(text)
    except ValueError:
        logger.debug("Unparseable EPUB date %r", value)
        return None


def _parse_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _extract_cover_image(book: epub.EpubBook) -> bytes | None:
    """Extract cover image data from an EPUB, if present.

    Order: an EPUB3 cover-image item, then the EPUB2 <meta name="cover">
    target, then any image whose id or href mentions "cover".
    """
    for item in book.get_items_of_type(ebooklib.ITEM_COVER):
        content = item.get_content()
        if content:
            return content

    cover_id = _get_named_meta(book, "cover")
    if cover_id:
        cover_item = book.get_item_with_id(cover_id)
        if cover_item is not None and (cover_item.media_type or "").startswith("image/"):
            return cover_item.get_content()

    for item in book.get_items():
        item_id = (item.get_id() or "").lower()
        item_name = (item.get_name() or "").lower()
        media_type = getattr(item, "media_type", "") or ""
        if ("cover" in item_id or "cover" in item_name) and media_type.startswith("image/"):
            return item.get_content()

    return None


def read_epub_metadata(path: Path) -> BookMetadata:
    """Extract metadata from an EPUB file.

    Args:
        path: Path to the EPUB file.

    Returns:
        BookMetadata populated with extracted fields.

    Raises:
        EpubReadError: If the file cannot be read or parsed.
    """
    if not path.exists():
        raise EpubReadError(f"File not found: {path}")

    try:
        book = epub.read_epub(str(path), options={"ignore_ncx": True})
    except Exception as exc:
        raise EpubReadError(f"Failed to read EPUB: {path}: {exc}") from exc

    identifiers = _get_identifiers(book)
    metadata = BookMetadata(
        title=_get_metadata_value(book, "DC", "title") or path.stem,
        authors=_get_metadata_list(book, "creator"),
        categories=list(dict.fromkeys(_get_metadata_list(book, "subject"))),
        publisher=_get_metadata_value(book, "DC", "publisher"),
        published_date=parse_published_date(_get_metadata_value(book, "DC", "date")),
        description=_get_metadata_value(book, "DC", "description"),
        language=_get_metadata_value(book, "DC", "language"),
        series_name=_get_named_meta(book, "calibre:series"),
        series_number=_parse_float(_get_named_meta(book, "calibre:series_index")),
        personal_rating=_parse_float(_get_named_meta(book, "calibre:rating")),
        identifiers=identifiers,
        cover_image=_extract_cover_image(book),
        source_path=path,
    )

    if not metadata.language or metadata.language.lower() == "und":
        metadata.language = "en"

    isbn = identifiers.get("isbn") or _scheme_less_isbn(book)
    if isbn:
        stripped = _strip_isbn(isbn)
        if len(stripped) == 13:
            metadata.isbn13 = stripped
        elif len(stripped) == 10:
            metadata.isbn10 = stripped

    for scheme, field_name in _SCHEME_FIELDS.items():
        if scheme in identifiers and getattr(metadata, field_name) is None:
            setattr(metadata, field_name, identifiers[scheme])

    return metadata
