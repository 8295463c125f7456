# ABOUTME: Writes curated metadata back into an EPUB's OPF package document with lxml.
# ABOUTME: Unpacks to a scratch dir, patches only what differs, re-zips and atomically replaces.

import io
import logging
import os
import tempfile
import zipfile
from pathlib import Path

from lxml import etree
from PIL import Image, UnidentifiedImageError

from bookwarden.metadata.types import BookMetadata, MetadataField

logger = logging.getLogger(__name__)

OPF_NS = "http://www.idpf.org/2007/opf"
DC_NS = "http://purl.org/dc/elements/1.1/"
CONTAINER_NS = "urn:oasis:names:tc:opendocument:xmlns:container"

COVER_ITEM_ID = "cover-image"
DEFAULT_COVER_HREF = "images/cover.jpg"

# Identifier schemes written back, each paired with the field(s) that feed it.
_IDENTIFIER_SCHEMES: tuple[tuple[str, tuple[MetadataField, ...]], ...] = (
    ("AMAZON", (MetadataField.ASIN,)),
    ("GOOGLE", (MetadataField.GOOGLE_ID,)),
    ("GOODREADS", (MetadataField.GOODREADS_ID,)),
    ("HARDCOVER", (MetadataField.HARDCOVER_ID,)),
    ("ISBN", (MetadataField.ISBN13, MetadataField.ISBN10)),
)

_SCHEME_ATTR = f"{{{OPF_NS}}}scheme"
_FILE_AS_ATTR = f"{{{OPF_NS}}}file-as"
_ROLE_ATTR = f"{{{OPF_NS}}}role"


class EpubWriteError(Exception):
    """Raised when an EPUB's package document cannot be located or patched."""


def _find_opf(root_dir: Path) -> Path:
    container = root_dir / "META-INF" / "container.xml"
    if container.is_file():
        tree = etree.parse(str(container))
        rootfile = tree.find(f".//{{{CONTAINER_NS}}}rootfile")
        if rootfile is None:
            rootfile = tree.find(".//rootfile")
        full_path = rootfile.get("full-path") if rootfile is not None else None
        if full_path and (root_dir / full_path).is_file():
            return root_dir / full_path
    candidates = sorted(root_dir.rglob("*.opf"))
    if not candidates:
        raise EpubWriteError("Could not locate OPF file in EPUB")
    return candidates[0]


def _dc_child(metadata_el: etree._Element, tag: str) -> etree._Element:
    """Append a dc:<tag> element, declaring the dc and opf prefixes if the OPF lacks them."""
    declared = {uri for prefix, uri in metadata_el.nsmap.items() if prefix}
    missing = {p: uri for p, uri in (("dc", DC_NS), ("opf", OPF_NS)) if uri not in declared}
    return etree.SubElement(metadata_el, f"{{{DC_NS}}}{tag}", nsmap=missing or None)


def _dc_text(metadata_el: etree._Element, tag: str) -> str | None:
    nodes = metadata_el.findall(f"{{{DC_NS}}}{tag}")
    if not nodes or nodes[0].text is None:
        return None
    return nodes[0].text.strip() or None


def _replace_dc(metadata_el: etree._Element, tag: str, value: str | None) -> bool:
    """Make tag hold exactly one value (or none). Returns whether anything changed."""
    if _dc_text(metadata_el, tag) == value:
        return False
    for node in metadata_el.findall(f"{{{DC_NS}}}{tag}"):
        metadata_el.remove(node)
    if value is not None:
        _dc_child(metadata_el, tag).text = value
    return True


def file_as(name: str) -> str:
    """Sort form of an author name: "Frank Herbert" -> "Herbert, Frank"."""
    parts = name.split(" ", 1)
    if len(parts) == 1:
        return f"{parts[0]}, "
    return f"{parts[1]}, {parts[0]}"


def _replace_creators(metadata_el: etree._Element, names: list[str]) -> bool:
    current = [(node.text or "").strip() for node in metadata_el.findall(f"{{{DC_NS}}}creator")]
    if current == names:
        return False
    for node in metadata_el.findall(f"{{{DC_NS}}}creator"):
        metadata_el.remove(node)
    for name in names:
        node = _dc_child(metadata_el, "creator")
        node.text = name
        node.set(_FILE_AS_ATTR, file_as(name))
        node.set(_ROLE_ATTR, "aut")
    return True


def _replace_subjects(metadata_el: etree._Element, subjects: list[str]) -> bool:
    wanted = list(dict.fromkeys(s.strip() for s in subjects if s.strip()))
    current = [(node.text or "").strip() for node in metadata_el.findall(f"{{{DC_NS}}}subject")]
    if current == wanted:
        return False
    for node in metadata_el.findall(f"{{{DC_NS}}}subject"):
        metadata_el.remove(node)
    for subject in wanted:
        _dc_child(metadata_el, "subject").text = subject
    return True


def _named_metas(metadata_el: etree._Element, name: str) -> list[etree._Element]:
    return [
        node
        for node in metadata_el.iter(f"{{{OPF_NS}}}meta", "meta")
        if node.get("name") == name
    ]


def _replace_meta(metadata_el: etree._Element, name: str, content: str | None) -> bool:
    existing = _named_metas(metadata_el, name)
    current = existing[0].get("content") if existing else None
    if current == content:
        return False
    for node in existing:
        node.getparent().remove(node)
    if content is not None:
        etree.SubElement(metadata_el, f"{{{OPF_NS}}}meta", name=name, content=content)
    return True


def _scheme_of(node: etree._Element) -> str | None:
    scheme = node.get(_SCHEME_ATTR) or node.get("scheme")
    return scheme.upper() if scheme else None


def _replace_identifier(
    metadata_el: etree._Element, scheme: str, value: str | None, unique_id: str | None
) -> bool:
    # The package's unique-identifier element is never removed
    matching = [
        node
        for node in metadata_el.findall(f"{{{DC_NS}}}identifier")
        if _scheme_of(node) == scheme and (unique_id is None or node.get("id") != unique_id)
    ]
    current = [(node.text or "").strip() for node in matching]
    wanted = [value] if value is not None else []
    if current == wanted:
        return False
    for node in matching:
        metadata_el.remove(node)
    if value is not None:
        node = _dc_child(metadata_el, "identifier")
        node.set(_SCHEME_ATTR, scheme)
        node.text = value
    return True


def _format_decimal(value: float | None) -> str | None:
    return f"{value:.1f}" if value is not None else None


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def _apply_metadata(
    package: etree._Element,
    metadata_el: etree._Element,
    metadata: BookMetadata,
    clear: frozenset[MetadataField],
) -> bool:
    """Patch every field that has a value or a clear flag. Returns whether the OPF changed."""

    def wanted(field: MetadataField, value):
        # None means "leave as is"; a clear flag forces removal
        if field in clear:
            return None, True
        return value, value is not None

    changed = False

    dc_fields = (
        ("title", MetadataField.TITLE, _blank_to_none(metadata.title)),
        ("description", MetadataField.DESCRIPTION, _blank_to_none(metadata.description)),
        ("publisher", MetadataField.PUBLISHER, _blank_to_none(metadata.publisher)),
        (
            "date",
            MetadataField.PUBLISHED_DATE,
            metadata.published_date.isoformat() if metadata.published_date else None,
        ),
        ("language", MetadataField.LANGUAGE, _blank_to_none(metadata.language)),
    )
    for tag, field, raw in dc_fields:
        value, apply = wanted(field, raw)
        if apply:
            changed |= _replace_dc(metadata_el, tag, value)

    authors, apply = wanted(MetadataField.AUTHORS, metadata.authors or None)
    if apply:
        changed |= _replace_creators(metadata_el, authors or [])

    categories, apply = wanted(MetadataField.CATEGORIES, metadata.categories or None)
    if apply:
        changed |= _replace_subjects(metadata_el, categories or [])

    metas = (
        ("calibre:series", MetadataField.SERIES_NAME, _blank_to_none(metadata.series_name)),
        (
            "calibre:series_index",
            MetadataField.SERIES_NUMBER,
            _format_decimal(metadata.series_number),
        ),
        (
            "calibre:rating",
            MetadataField.PERSONAL_RATING,
            _format_decimal(metadata.personal_rating),
        ),
    )
    for name, field, raw in metas:
        value, apply = wanted(field, raw)
        if apply:
            changed |= _replace_meta(metadata_el, name, value)

    unique_id = package.get("unique-identifier")
    for scheme, fields in _IDENTIFIER_SCHEMES:
        live = [
            value
            for f in fields
            if f not in clear and (value := _blank_to_none(getattr(metadata, f.value)))
        ]
        if live:
            changed |= _replace_identifier(metadata_el, scheme, live[0], unique_id)
        elif any(f in clear for f in fields):
            changed |= _replace_identifier(metadata_el, scheme, None, unique_id)

    return changed


def _as_jpeg(image_bytes: bytes) -> bytes:
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            if image.format == "JPEG":
                return image_bytes
            buffer = io.BytesIO()
            image.convert("RGB").save(buffer, format="JPEG", quality=90)
    except (UnidentifiedImageError, OSError) as exc:
        raise EpubWriteError(f"Cover is not a readable image: {exc}") from exc
    return buffer.getvalue()


def _find_cover_item(
    manifest: etree._Element, metadata_el: etree._Element
) -> etree._Element | None:
    """The image item the package already treats as its cover, by id, property or meta."""
    meta_ids = {node.get("content") for node in _named_metas(metadata_el, "cover")}
    for item in manifest.findall(f"{{{OPF_NS}}}item"):
        if not (item.get("media-type") or "").startswith("image/"):
            continue
        properties = (item.get("properties") or "").split()
        if item.get("id") in (COVER_ITEM_ID, *meta_ids) or "cover-image" in properties:
            return item
    return None


def _apply_cover(
    package: etree._Element, metadata_el: etree._Element, opf_path: Path, image_bytes: bytes
) -> Path:
    """Point the manifest's cover item at new JPEG bytes. Returns the written file."""
    manifest = package.find(f"{{{OPF_NS}}}manifest")
    if manifest is None:
        raise EpubWriteError("No <manifest> element found in OPF document")

    existing = _find_cover_item(manifest, metadata_el)
    href = existing.get("href") if existing is not None else DEFAULT_COVER_HREF
    cover_path = (opf_path.parent / href).resolve()
    cover_path.parent.mkdir(parents=True, exist_ok=True)
    cover_path.write_bytes(_as_jpeg(image_bytes))

    if existing is not None:
        manifest.remove(existing)
    item = etree.SubElement(
        manifest, f"{{{OPF_NS}}}item", id=COVER_ITEM_ID, href=href, **{"media-type": "image/jpeg"}
    )
    if (package.get("version") or "").startswith("3"):
        item.set("properties", "cover-image")

    for node in _named_metas(metadata_el, "cover"):
        node.getparent().remove(node)
    etree.SubElement(metadata_el, f"{{{OPF_NS}}}meta", name="cover", content=COVER_ITEM_ID)
    return cover_path


def _zip_tree(root_dir: Path, names: list[str], target: Path) -> None:
    """Re-zip with the mimetype entry first and stored, as the OCF container requires."""
    with zipfile.ZipFile(target, "w") as out:
        mimetype = root_dir / "mimetype"
        if mimetype.is_file():
            out.write(mimetype, "mimetype", compress_type=zipfile.ZIP_STORED)
        for name in names:
            if name == "mimetype" or name.endswith("/"):
                continue
            file_path = root_dir / name
            if file_path.is_file():
                out.write(file_path, name, compress_type=zipfile.ZIP_DEFLATED)


def _rewrite(
    path: Path,
    metadata: BookMetadata | None,
    clear: frozenset[MetadataField],
    cover_image: bytes | None,
) -> bool:
    with tempfile.TemporaryDirectory(prefix="epub_edit_") as scratch:
        root_dir = Path(scratch)
        with zipfile.ZipFile(path) as archive:
            names = archive.namelist()
            archive.extractall(root_dir)

        opf_path = _find_opf(root_dir)
        parser = etree.XMLParser(resolve_entities=False, no_network=True)
        tree = etree.parse(str(opf_path), parser)
        package = tree.getroot()
        metadata_el = package.find(f"{{{OPF_NS}}}metadata")
        if metadata_el is None:
            raise EpubWriteError("No <metadata> element found in OPF document")

        changed = False
        if metadata is not None:
            changed |= _apply_metadata(package, metadata_el, metadata, clear)
        if cover_image:
            cover_path = _apply_cover(package, metadata_el, opf_path, cover_image)
            cover_name = cover_path.relative_to(root_dir.resolve()).as_posix()
            if cover_name not in names:
                names.append(cover_name)
            changed = True

        if not changed:
            logger.info("No changes detected. Skipping EPUB write for: %s", path.name)
            return False

        tree.write(str(opf_path), xml_declaration=True, encoding="utf-8")

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        os.close(fd)
        try:
            _zip_tree(root_dir, names, Path(tmp_name))
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    logger.info("Metadata updated in EPUB: %s", path.name)
    return True


def write_epub_metadata_file(
    path: Path,
    metadata: BookMetadata | None,
    *,
    clear: frozenset[MetadataField] = frozenset(),
    cover_image: bytes | None = None,
) -> bool:
    """Write metadata (and optionally a new cover) into an EPUB file in place.

    Fields with a value are written; fields named in clear are removed;
    everything else in the OPF is left as found. The archive is only
    rewritten when something actually differs.

    Args:
        path: EPUB file to update.
        metadata: Values to write, or None to only replace the cover.
        clear: Fields to remove from the package document.
        cover_image: Replacement cover bytes, converted to JPEG if needed.

    Returns:
        True if the file was rewritten. Failures are logged and return False;
        the original file is left untouched.
    """
    try:
        return _rewrite(path, metadata, clear, cover_image)
    except (EpubWriteError, OSError, zipfile.BadZipFile, etree.XMLSyntaxError) as exc:
        logger.warning("Failed to write metadata to EPUB file %s: %s", path.name, exc)
        return False


def replace_epub_cover(path: Path, image_bytes: bytes) -> bool:
    """Swap only the cover image of an EPUB."""
    return write_epub_metadata_file(path, None, cover_image=image_bytes)
