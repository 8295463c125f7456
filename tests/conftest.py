# ABOUTME: Shared pytest fixtures for Bookwarden tests.
# ABOUTME: Builds real EPUB, CBZ and PDF files, and wires a temporary catalog, cover store and ingestor.

import zipfile
from collections.abc import Callable, Iterator
from pathlib import Path

import fitz
import pytest
from ebooklib import epub

from bookwarden.core.ingest import BookIngestor
from bookwarden.covers import CoverStore
from bookwarden.db.catalog import LibraryCatalog
from bookwarden.db.connection import open_library
from bookwarden.models import BookFormat, Library, ScanMode
from tests.fixtures.images import image_bytes
from tests.fixtures.notifications import RecordingNotifier

OPF_SCHEME = "{http://www.idpf.org/2007/opf}scheme"


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Factory for small real images (JPEG by default)."""
    return image_bytes


@pytest.fixture
def make_epub() -> Callable[..., Path]:
    """Factory that writes an EPUB with the given metadata using ebooklib."""

    def _make(
        path: Path,
        *,
        title: str | None = "The Name of the Rose",
        authors: tuple[str, ...] = ("Umberto Eco",),
        language: str | None = "en",
        publisher: str | None = None,
        description: str | None = None,
        subjects: tuple[str, ...] = (),
        date: str | None = None,
        isbn: str | None = None,
        identifiers: dict[str, str] | None = None,
        bare_identifiers: tuple[str, ...] = (),
        series: str | None = None,
        series_index: str | None = None,
        cover: bytes | None = None,
        body: str = "Content.",
    ) -> Path:
        book = epub.EpubBook()
        book.set_identifier(f"urn:uuid:{path.stem}")
        if title is not None:
            book.set_title(title)
        if language is not None:
            book.set_language(language)
        for author in authors:
            book.add_author(author)
        if publisher:
            book.add_metadata("DC", "publisher", publisher)
        if description:
            book.add_metadata("DC", "description", description)
        for subject in subjects:
            book.add_metadata("DC", "subject", subject)
        if date:
            book.add_metadata("DC", "date", date)
        if isbn:
            book.add_metadata("DC", "identifier", isbn, {OPF_SCHEME: "ISBN"})
        for scheme, value in (identifiers or {}).items():
            book.add_metadata("DC", "identifier", value, {OPF_SCHEME: scheme})
        for value in bare_identifiers:
            book.add_metadata("DC", "identifier", value)
        if series:
            book.add_metadata("OPF", "series", None, {"name": "calibre:series", "content": series})
        if series_index:
            book.add_metadata(
                "OPF",
                "series_index",
                None,
                {"name": "calibre:series_index", "content": series_index},
            )
        if cover:
            book.set_cover("cover.jpg", cover)

        chapter = epub.EpubHtml(title="Chapter 1", file_name="chap01.xhtml", lang="en")
        chapter.content = f"<html><body><h1>Chapter 1</h1><p>{body}</p></body></html>".encode()
        book.add_item(chapter)
        book.toc = [epub.Link("chap01.xhtml", "Chapter 1", "chap01")]
        book.add_item(epub.EpubNcx())
        book.add_item(epub.EpubNav())
        book.spine = ["nav", chapter]

        path.parent.mkdir(parents=True, exist_ok=True)
        epub.write_epub(str(path), book)
        return path

    return _make


@pytest.fixture
def sample_epub(tmp_path: Path, make_epub: Callable[..., Path]) -> Path:
    """An EPUB with rich metadata, calibre series info, an ISBN and a cover."""
    return make_epub(
        tmp_path / "name_of_the_rose.epub",
        publisher="Harcourt",
        description="A mystery set in a medieval monastery.",
        subjects=("Fiction", "Mystery", "Fiction"),
        date="1983-06",
        isbn="978-0-15-144647-6",
        identifiers={"GOODREADS": "119073", "AMAZON": "B00AAA"},
        series="Adso's Chronicles",
        series_index="2",
        cover=image_bytes(),
    )


@pytest.fixture
def minimal_epub(tmp_path: Path, make_epub: Callable[..., Path]) -> Path:
    """An EPUB with only a title and identifier."""
    return make_epub(tmp_path / "minimal.epub", title="Untitled Book", authors=(), language=None)


@pytest.fixture
def corrupt_epub(tmp_path: Path) -> Path:
    """A file with an .epub name that is not an EPUB."""
    filepath = tmp_path / "corrupt.epub"
    filepath.write_text("this is not a valid epub file")
    return filepath


COMIC_INFO = """<?xml version="1.0" encoding="utf-8"?>
<ComicInfo>
  <Title>Night of the Owls</Title>
  <Series>Batman</Series>
  <Number>3</Number>
  <Count>12</Count>
  <Summary>The Court strikes.</Summary>
  <Publisher>DC Comics</Publisher>
  <Year>2012</Year>
  <Month>5</Month>
  <Writer>Scott Snyder</Writer>
  <Penciller>Greg Capullo; Jonathan Glapion</Penciller>
  <Genre>Superhero, Crime</Genre>
  <Tags>Gotham</Tags>
  <PageCount>24</PageCount>
  <LanguageISO>en</LanguageISO>
  <Pages>
    <Page Image="0" />
    <Page Image="1" Type="FrontCover" />
  </Pages>
</ComicInfo>
"""


@pytest.fixture
def make_cbz() -> Callable[..., Path]:
    """Factory for CBZ archives: optional ComicInfo.xml plus named image pages."""

    def _make(
        path: Path,
        comic_info: str | None = COMIC_INFO,
        pages: dict[str, bytes] | None = None,
        info_name: str = "ComicInfo.xml",
    ) -> Path:
        if pages is None:
            pages = {
                "page01.jpg": image_bytes((10, 10, 10)),
                "page02.jpg": image_bytes((250, 250, 250)),
            }
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as archive:
            for name, data in pages.items():
                archive.writestr(name, data)
            if comic_info is not None:
                archive.writestr(info_name, comic_info)
        return path

    return _make


@pytest.fixture
def sample_cbz(tmp_path: Path, make_cbz: Callable[..., Path]) -> Path:
    return make_cbz(tmp_path / "batman_003.cbz")


@pytest.fixture
def make_pdf() -> Callable[..., Path]:
    """Factory for one-page PDFs with document-info metadata, built with PyMuPDF."""

    def _make(path: Path, text: str = "Hello", **info: str) -> Path:
        doc = fitz.open()
        page = doc.new_page()
        page.insert_text((72, 72), text)
        if info:
            doc.set_metadata(info)
        path.parent.mkdir(parents=True, exist_ok=True)
        doc.save(str(path))
        doc.close()
        return path

    return _make


@pytest.fixture
def sample_pdf(tmp_path: Path, make_pdf: Callable[..., Path]) -> Path:
    return make_pdf(
        tmp_path / "laws_of_ux.pdf",
        title="Laws of UX",
        author="Jon Yablonski; Jane Doe",
        subject="Design principles",
        keywords="design, psychology",
        creationDate="D:20200412093000+02'00'",
    )


@pytest.fixture
def catalog(tmp_path: Path) -> Iterator[LibraryCatalog]:
    """A catalog backed by a fresh database file."""
    conn = open_library(tmp_path / "library.db")
    yield LibraryCatalog(conn)
    conn.close()


@pytest.fixture
def cover_store(tmp_path: Path) -> CoverStore:
    return CoverStore(tmp_path / "covers")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def ingestor(
    catalog: LibraryCatalog, cover_store: CoverStore, notifier: RecordingNotifier
) -> BookIngestor:
    return BookIngestor(catalog, cover_store, notifier)


@pytest.fixture
def library_root(tmp_path: Path) -> Path:
    root = tmp_path / "books"
    root.mkdir()
    return root


@pytest.fixture
def make_library(catalog: LibraryCatalog, library_root: Path) -> Callable[..., Library]:
    """Factory for libraries rooted at library_root unless other paths are given."""

    def _make(
        scan_mode: ScanMode = ScanMode.FILE_AS_BOOK,
        *,
        name: str = "Books",
        paths: list[Path] | None = None,
        default_format: BookFormat | None = None,
        watch: bool = True,
    ) -> Library:
        return catalog.add_library(
            name,
            paths or [library_root],
            scan_mode=scan_mode,
            default_format=default_format,
            watch=watch,
        )

    return _make


@pytest.fixture
def write_file() -> Callable[[Path, bytes | str | None], Path]:
    """Write a file with unique default content, creating parent folders."""

    def _write(path: Path, content: bytes | str | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        if content is None:
            content = f"content of {path.name}"
        if isinstance(content, str):
            content = content.encode()
        path.write_bytes(content)
        return path

    return _write
