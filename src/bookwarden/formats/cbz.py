# ABOUTME: Comic book archive support: ComicInfo.xml metadata and cover extraction for CBZ,
# ABOUTME: plus writing curated metadata back into ComicInfo.xml with an atomic archive rewrite.

import logging
import os
import re
import tempfile
import zipfile
from datetime import date
from pathlib import Path

from lxml import etree

from bookwarden.metadata.types import BookMetadata, MetadataField

logger = logging.getLogger(__name__)

COMIC_INFO = "ComicInfo.xml"
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp")
CREATOR_TAGS = ("Writer", "Penciller", "Inker", "Colorist", "Letterer", "CoverArtist")

_SPLIT_RE = re.compile(r"[,;]")


class CbzReadError(Exception):
    """Raised when a CBZ archive cannot be opened or its ComicInfo.xml is unreadable."""


def _parser() -> etree.XMLParser:
    # No entity expansion or network access for untrusted archive content
    return etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=True)


def _find_comic_info(archive: zipfile.ZipFile) -> zipfile.ZipInfo | None:
    for info in archive.infolist():
        if info.filename.lower() == COMIC_INFO.lower():
            return info
    return None


def _is_image(name: str) -> bool:
    return name.lower().endswith(IMAGE_EXTENSIONS)


def _image_entries(archive: zipfile.ZipFile) -> list[zipfile.ZipInfo]:
    return [info for info in archive.infolist() if not info.is_dir() and _is_image(info.filename)]


def _text(root: etree._Element, tag: str) -> str | None:
    node = root.find(f".//{tag}")
    if node is None or node.text is None:
        return None
    return node.text.strip() or None


def _coalesce(*values: str | None) -> str | None:
    return next((v for v in values if v), None)


def _split_values(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in _SPLIT_RE.split(value) if part.strip()]


def _parse_int(value: str | None) -> int | None:
    try:
        return int(value) if value else None
    except ValueError:
        return None


def _parse_float(value: str | None) -> float | None:
    try:
        return float(value) if value else None
    except ValueError:
        return None


def _parse_date(year: str | None, month: str | None, day: str | None) -> date | None:
    y = _parse_int(year)
    if y is None:
        return None
    try:
        return date(y, _parse_int(month) or 1, _parse_int(day) or 1)
    except ValueError:
        return None


def _front_cover_name(root: etree._Element) -> str | None:
    for page in root.iter("Page"):
        if (page.get("Type") or "").lower() == "frontcover":
            name = (page.get("ImageFile") or "").strip() or (page.get("Image") or "").strip()
            if name:
                return name
    return None


def _find_cover(archive: zipfile.ZipFile, root: etree._Element | None) -> bytes | None:
    """Resolve the front cover by ComicInfo page reference, else the first image."""
    images = _image_entries(archive)
    if root is not None and (name := _front_cover_name(root)):
        by_name = next((info for info in archive.infolist() if info.filename == name), None)
        if by_name is not None:
            return archive.read(by_name)
        index = _parse_int(name)
        if index is not None and 0 <= index < len(images):
            return archive.read(images[index])
    if images:
        return archive.read(images[0])
    return None


def _map_comic_info(root: etree._Element, metadata: BookMetadata) -> None:
    if title := _text(root, "Title"):
        metadata.title = title
    metadata.description = _coalesce(_text(root, "Summary"), _text(root, "Description"))
    metadata.publisher = _text(root, "Publisher")
    metadata.series_name = _text(root, "Series")
    metadata.series_number = _parse_float(_text(root, "Number"))
    metadata.series_total = _parse_int(_text(root, "Count"))
    metadata.published_date = _parse_date(
        _text(root, "Year"), _text(root, "Month"), _text(root, "Day")
    )
    metadata.page_count = _parse_int(_coalesce(_text(root, "PageCount"), _text(root, "Pages")))
    metadata.language = _text(root, "LanguageISO")

    authors: list[str] = []
    for tag in CREATOR_TAGS:
        authors.extend(_split_values(_text(root, tag)))
    metadata.authors = list(dict.fromkeys(authors))

    categories = _split_values(_text(root, "Genre")) + _split_values(_text(root, "Tags"))
    metadata.categories = list(dict.fromkeys(categories))


def read_cbz_metadata(path: Path) -> BookMetadata:
    """Extract ComicInfo.xml metadata and the front cover from a CBZ.

    An archive without ComicInfo.xml yields a record titled with the
    file stem; the cover still comes from the first image.

    Raises:
        CbzReadError: If the archive cannot be opened or ComicInfo.xml is malformed.
    """
    if not path.exists():
        raise CbzReadError(f"File not found: {path}")

    metadata = BookMetadata(title=path.stem, source_path=path)
    try:
        with zipfile.ZipFile(path) as archive:
            root = None
            entry = _find_comic_info(archive)
            if entry is not None:
                root = etree.fromstring(archive.read(entry), _parser())
                _map_comic_info(root, metadata)
            metadata.cover_image = _find_cover(archive, root)
    except (zipfile.BadZipFile, OSError, etree.XMLSyntaxError) as exc:
        raise CbzReadError(f"Failed to read CBZ: {path}: {exc}") from exc
    return metadata


def _remove(root: etree._Element, tag: str) -> None:
    for node in root.findall(tag):
        root.remove(node)


def _set(root: etree._Element, tag: str, value: str | None) -> None:
    """Replace tag with a single element holding value, or drop it when value is blank."""
    _remove(root, tag)
    if value is not None and value.strip():
        etree.SubElement(root, tag).text = value


def format_number(value: float | None) -> str | None:
    """Issue numbers print as integers when whole ("3", not "3.0")."""
    if value is None:
        return None
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _apply(root: etree._Element, metadata: BookMetadata, clear: frozenset[MetadataField]) -> None:
    def target(field: MetadataField, value):
        if field in clear:
            return None, True
        if value is None or (isinstance(value, (str, list)) and not value):
            return None, False
        return value, True

    def str_or_none(value) -> str | None:
        return None if value is None else str(value)

    simple = (
        ("Title", MetadataField.TITLE, metadata.title),
        ("Publisher", MetadataField.PUBLISHER, metadata.publisher),
        ("Series", MetadataField.SERIES_NAME, metadata.series_name),
        ("Number", MetadataField.SERIES_NUMBER, format_number(metadata.series_number)),
        ("Count", MetadataField.SERIES_TOTAL, str_or_none(metadata.series_total)),
        ("PageCount", MetadataField.PAGE_COUNT, str_or_none(metadata.page_count)),
        ("LanguageISO", MetadataField.LANGUAGE, metadata.language),
    )
    for tag, field, raw in simple:
        value, apply = target(field, raw)
        if apply:
            _set(root, tag, value)

    value, apply = target(MetadataField.DESCRIPTION, metadata.description)
    if apply:
        _set(root, "Summary", value)
        _remove(root, "Description")

    value, apply = target(MetadataField.PUBLISHED_DATE, metadata.published_date)
    if apply:
        if value is None:
            for tag in ("Year", "Month", "Day"):
                _remove(root, tag)
        else:
            _set(root, "Year", str(value.year))
            _set(root, "Month", str(value.month))
            _set(root, "Day", str(value.day))

    value, apply = target(MetadataField.AUTHORS, metadata.authors)
    if apply:
        _set(root, "Writer", ", ".join(value) if value else None)
        for tag in CREATOR_TAGS[1:]:
            _remove(root, tag)

    value, apply = target(MetadataField.CATEGORIES, metadata.categories)
    if apply:
        _set(root, "Genre", ", ".join(value) if value else None)
        _remove(root, "Tags")


def write_cbz_metadata(
    path: Path,
    metadata: BookMetadata,
    *,
    clear: frozenset[MetadataField] = frozenset(),
) -> bool:
    """Write metadata into a CBZ's ComicInfo.xml, creating it when absent.

    Every other archive entry is copied unchanged; only the metadata entry
    is substituted. The new archive replaces the original atomically.

    Returns:
        True on success. Failures are logged as warnings and return False,
        leaving the original archive untouched.
    """
    tmp_name: str | None = None
    try:
        with zipfile.ZipFile(path) as archive:
            existing = _find_comic_info(archive)
            if existing is not None:
                root = etree.fromstring(archive.read(existing), _parser())
            else:
                root = etree.Element("ComicInfo")
            _apply(root, metadata, clear)
            xml_bytes = etree.tostring(
                root, xml_declaration=True, encoding="UTF-8", pretty_print=True
            )

            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            os.close(fd)
            with zipfile.ZipFile(tmp_name, "w", compression=zipfile.ZIP_DEFLATED) as out:
                for info in archive.infolist():
                    if existing is not None and info.filename == existing.filename:
                        continue
                    out.writestr(info, archive.read(info))
                entry_name = existing.filename if existing is not None else COMIC_INFO
                out.writestr(entry_name, xml_bytes)
        os.replace(tmp_name, path)
    except (zipfile.BadZipFile, OSError, etree.XMLSyntaxError) as exc:
        logger.warning("Failed to write metadata to CBZ file %s: %s", path.name, exc)
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        return False

    logger.info("Metadata updated in CBZ: %s", path.name)
    return True
