# ABOUTME: PDF metadata extraction and first-page cover rendering using PyMuPDF.
# ABOUTME: Document-info values only fill fields when they are non-blank.

import logging
import re
from datetime import date
from pathlib import Path

import fitz  # PyMuPDF

from bookwarden.metadata.types import BookMetadata

logger = logging.getLogger(__name__)

COVER_DPI = 300

# PDF dates look like "D:20190412093000+02'00'"; only the date part matters here.
_PDF_DATE_RE = re.compile(r"^(?:D:)?(\d{4})(\d{2})?(\d{2})?")
_LIST_SPLIT_RE = re.compile(r"\s*[,;]\s*")


class PdfReadError(Exception):
    """Raised when a PDF file cannot be opened or rendered."""


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_pdf_date(value: str | None) -> date | None:
    """Convert a PDF date string to a date, or None when it is not parseable."""
    if not value:
        return None
    match = _PDF_DATE_RE.match(value.strip())
    if not match:
        return None
    year, month, day = match.group(1), match.group(2) or "01", match.group(3) or "01"
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [part for part in _LIST_SPLIT_RE.split(value.strip()) if part]


def _open(path: Path) -> fitz.Document:
    if not path.exists():
        raise PdfReadError(f"File not found: {path}")
    try:
        return fitz.open(str(path))
    except Exception as exc:
        raise PdfReadError(f"Failed to open PDF: {path}: {exc}") from exc


def read_pdf_metadata(path: Path) -> BookMetadata:
    """Extract document-info metadata from a PDF.

    Starts from a record titled with the file stem and only overwrites
    fields for which the PDF carries a non-blank value.

    Raises:
        PdfReadError: If the file cannot be opened.
    """
    doc = _open(path)
    try:
        info = doc.metadata or {}
        page_count = doc.page_count
    finally:
        doc.close()

    metadata = BookMetadata(title=path.stem, source_path=path)
    if title := _clean(info.get("title")):
        metadata.title = title
    if authors := _split_list(info.get("author")):
        metadata.authors = authors
    if subject := _clean(info.get("subject")):
        metadata.description = subject
    if keywords := _split_list(info.get("keywords")):
        metadata.categories = list(dict.fromkeys(keywords))
    if published := parse_pdf_date(info.get("creationDate")):
        metadata.published_date = published
    if page_count:
        metadata.page_count = page_count
    return metadata


def render_pdf_cover(path: Path, dpi: int = COVER_DPI) -> bytes:
    """Rasterize the first page to PNG bytes.

    Raises:
        PdfReadError: If the file cannot be opened or has no pages.
    """
    doc = _open(path)
    try:
        if doc.page_count == 0:
            raise PdfReadError(f"PDF has no pages: {path}")
        pixmap = doc[0].get_pixmap(dpi=dpi)
        return pixmap.tobytes("png")
    except PdfReadError:
        raise
    except Exception as exc:
        raise PdfReadError(f"Failed to render PDF cover: {path}: {exc}") from exc
    finally:
        doc.close()
