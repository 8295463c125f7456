# ABOUTME: Format dispatch for metadata extraction, cover generation and write-back.
# ABOUTME: Extraction never raises: unreadable files fall back to a filename-only record.

import logging
from pathlib import Path

from bookwarden.covers import placeholder_cover
from bookwarden.formats.cbz import read_cbz_metadata, write_cbz_metadata
from bookwarden.formats.epub import read_epub_metadata
from bookwarden.formats.epub_writer import write_epub_metadata_file
from bookwarden.formats.pdf import read_pdf_metadata, render_pdf_cover
from bookwarden.metadata.types import BookMetadata, MetadataField
from bookwarden.models import BookFormat

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 1000
MAX_DESCRIPTION_LENGTH = 5000


def _truncate(metadata: BookMetadata) -> BookMetadata:
    if len(metadata.title) > MAX_TITLE_LENGTH:
        metadata.title = metadata.title[:MAX_TITLE_LENGTH]
    if metadata.description and len(metadata.description) > MAX_DESCRIPTION_LENGTH:
        metadata.description = metadata.description[:MAX_DESCRIPTION_LENGTH]
    return metadata


def extract_metadata(
    path: Path, fmt: BookFormat | None = None, *, include_cover: bool = True
) -> BookMetadata:
    """Extract a metadata draft from any supported book file.

    Args:
        path: The book file.
        fmt: Its format; derived from the extension when omitted.
        include_cover: Whether to fill cover_image. PDF covers are rendered,
            which is slow, so callers may defer them to generate_cover().

    Returns:
        The extracted draft, or BookMetadata(title=<stem>) if the file
        cannot be parsed. Never raises.
    """
    fmt = fmt or BookFormat.from_file_name(path.name)
    try:
        if fmt is BookFormat.EPUB:
            metadata = read_epub_metadata(path)
        elif fmt is BookFormat.PDF:
            metadata = read_pdf_metadata(path)
            if include_cover:
                metadata.cover_image = render_pdf_cover(path)
        elif fmt is BookFormat.CBZ:
            metadata = read_cbz_metadata(path)
            if metadata.cover_image is None:
                metadata.cover_image = placeholder_cover()
        else:
            metadata = BookMetadata(title=path.stem, source_path=path)
            metadata.cover_image = placeholder_cover()
    except Exception as exc:
        logger.warning("Could not extract metadata from %s: %s", path, exc)
        return BookMetadata(title=path.stem, source_path=path)

    if not include_cover:
        metadata.cover_image = None
    return _truncate(metadata)


def generate_cover(path: Path, fmt: BookFormat | None = None) -> bytes | None:
    """Produce cover image bytes for a book file.

    EPUBs return their embedded cover (or None), PDFs a 300 DPI render of
    page one, comic archives their front cover or a placeholder.

    Raises:
        EpubReadError, PdfReadError, CbzReadError: If the file cannot be read.
    """
    fmt = fmt or BookFormat.from_file_name(path.name)
    if fmt is BookFormat.EPUB:
        return read_epub_metadata(path).cover_image
    if fmt is BookFormat.PDF:
        return render_pdf_cover(path)
    if fmt is BookFormat.CBZ:
        return read_cbz_metadata(path).cover_image or placeholder_cover()
    return placeholder_cover()


def write_metadata_to_file(
    path: Path,
    fmt: BookFormat,
    metadata: BookMetadata,
    *,
    clear: frozenset[MetadataField] = frozenset(),
    cover_image: bytes | None = None,
) -> bool:
    """Write metadata back into the source file when its format supports it.

    Returns:
        True if the file was rewritten.
    """
    if fmt is BookFormat.EPUB:
        return write_epub_metadata_file(path, metadata, clear=clear, cover_image=cover_image)
    if fmt is BookFormat.CBZ:
        return write_cbz_metadata(path, metadata, clear=clear)
    logger.debug("No metadata writer for %s files, skipping %s", fmt.value, path.name)
    return False
