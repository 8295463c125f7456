# ABOUTME: Unit tests for format dispatch of metadata extraction, covers and write-back.
# ABOUTME: Checks fallbacks for unreadable or unsupported files and field truncation.

from pathlib import Path

from bookwarden.covers import placeholder_cover
from bookwarden.formats.registry import (
    MAX_DESCRIPTION_LENGTH,
    MAX_TITLE_LENGTH,
    extract_metadata,
    generate_cover,
    write_metadata_to_file,
)
from bookwarden.metadata.types import BookMetadata
from bookwarden.models import BookFormat


class TestExtractMetadata:
    """Tests for extract_metadata."""

    def test_dispatches_by_extension(self, sample_epub: Path, sample_cbz: Path) -> None:
        assert extract_metadata(sample_epub).title == "The Name of the Rose"
        assert extract_metadata(sample_cbz).series_name == "Batman"

    def test_pdf_cover_is_rendered(self, sample_pdf: Path) -> None:
        meta = extract_metadata(sample_pdf)
        assert meta.title == "Laws of UX"
        assert meta.cover_image is not None and meta.cover_image.startswith(b"\x89PNG")

    def test_cover_can_be_skipped(self, sample_pdf: Path, sample_epub: Path) -> None:
        assert extract_metadata(sample_pdf, include_cover=False).cover_image is None
        assert extract_metadata(sample_epub, include_cover=False).cover_image is None

    def test_unreadable_file_falls_back_to_stem(self, corrupt_epub: Path) -> None:
        meta = extract_metadata(corrupt_epub)
        assert meta.title == "corrupt"
        assert meta.cover_image is None

    def test_unparsed_format_gets_placeholder(self, tmp_path: Path) -> None:
        path = tmp_path / "Saga 01.cbr"
        path.write_bytes(b"rar data")
        meta = extract_metadata(path)
        assert meta.title == "Saga 01"
        assert meta.cover_image == placeholder_cover()

    def test_cbz_without_images_gets_placeholder(self, tmp_path: Path, make_cbz) -> None:
        path = make_cbz(tmp_path / "empty.cbz", pages={})
        assert extract_metadata(path).cover_image == placeholder_cover()

    def test_long_values_are_truncated(self, tmp_path: Path, make_epub) -> None:
        path = make_epub(tmp_path / "long.epub", title="T" * 1500, description="D" * 6000)
        meta = extract_metadata(path)
        assert len(meta.title) == MAX_TITLE_LENGTH
        assert len(meta.description) == MAX_DESCRIPTION_LENGTH


class TestGenerateCover:
    """Tests for generate_cover."""

    def test_epub_without_cover(self, minimal_epub: Path) -> None:
        assert generate_cover(minimal_epub) is None

    def test_cbz_front_cover(self, sample_cbz: Path) -> None:
        assert generate_cover(sample_cbz, BookFormat.CBZ) is not None

    def test_other_formats_use_placeholder(self, tmp_path: Path) -> None:
        path = tmp_path / "x.cb7"
        path.write_bytes(b"7z")
        assert generate_cover(path) == placeholder_cover()


class TestWriteMetadataToFile:
    """Tests for write_metadata_to_file."""

    def test_pdf_is_not_written(self, sample_pdf: Path) -> None:
        before = sample_pdf.read_bytes()
        assert write_metadata_to_file(sample_pdf, BookFormat.PDF, BookMetadata(title="x")) is False
        assert sample_pdf.read_bytes() == before

    def test_epub_is_written(self, sample_epub: Path) -> None:
        assert write_metadata_to_file(sample_epub, BookFormat.EPUB, BookMetadata(title="Renamed"))
        assert extract_metadata(sample_epub).title == "Renamed"

    def test_cbz_is_written(self, sample_cbz: Path) -> None:
        assert write_metadata_to_file(sample_cbz, BookFormat.CBZ, BookMetadata(title="Renamed"))
        assert extract_metadata(sample_cbz).title == "Renamed"
