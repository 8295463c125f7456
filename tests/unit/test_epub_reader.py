# ABOUTME: Unit tests for EPUB metadata extraction.
# ABOUTME: Tests reading Dublin Core, calibre series, identifiers and covers from real EPUB files.

import io
from datetime import date
from pathlib import Path

import pytest
from PIL import Image

from bookwarden.formats.epub import EpubReadError, parse_published_date, read_epub_metadata


class TestReadEpubMetadata:
    """Tests for EPUB metadata extraction."""

    def test_extracts_core_fields(self, sample_epub: Path) -> None:
        meta = read_epub_metadata(sample_epub)
        assert meta.title == "The Name of the Rose"
        assert meta.authors == ["Umberto Eco"]
        assert meta.language == "en"
        assert meta.publisher == "Harcourt"
        assert meta.description == "A mystery set in a medieval monastery."

    def test_subjects_become_deduplicated_categories(self, sample_epub: Path) -> None:
        meta = read_epub_metadata(sample_epub)
        assert meta.categories == ["Fiction", "Mystery"]

    def test_partial_date(self, sample_epub: Path) -> None:
        """A year-month date lands on the first of the month."""
        assert read_epub_metadata(sample_epub).published_date == date(1983, 6, 1)

    def test_calibre_series(self, sample_epub: Path) -> None:
        meta = read_epub_metadata(sample_epub)
        assert meta.series_name == "Adso's Chronicles"
        assert meta.series_number == 2.0

    def test_isbn_is_normalized(self, sample_epub: Path) -> None:
        meta = read_epub_metadata(sample_epub)
        assert meta.isbn13 == "9780151446476"
        assert meta.isbn10 is None
        assert meta.identifiers["isbn"] == "978-0-15-144647-6"

    def test_scheme_identifiers_fill_fields(self, sample_epub: Path) -> None:
        meta = read_epub_metadata(sample_epub)
        assert meta.goodreads_id == "119073"
        assert meta.asin == "B00AAA"

    def test_extracts_cover(self, sample_epub: Path) -> None:
        meta = read_epub_metadata(sample_epub)
        assert meta.has_cover
        with Image.open(io.BytesIO(meta.cover_image)) as image:
            assert image.size == (60, 90)

    def test_sets_source_path(self, sample_epub: Path) -> None:
        assert read_epub_metadata(sample_epub).source_path == sample_epub

    def test_minimal_epub(self, minimal_epub: Path) -> None:
        """Missing optional fields stay empty; a missing language defaults to English."""
        meta = read_epub_metadata(minimal_epub)
        assert meta.title == "Untitled Book"
        assert meta.authors == []
        assert meta.publisher is None
        assert meta.series_name is None
        assert meta.language == "en"
        assert meta.has_cover is False

    def test_ten_digit_isbn(self, tmp_path: Path, make_epub) -> None:
        path = make_epub(tmp_path / "ten.epub", isbn="0-15-144647-1")
        meta = read_epub_metadata(path)
        assert meta.isbn10 == "0151446471"
        assert meta.isbn13 is None

    def test_isbn_without_scheme_detected_by_length(self, tmp_path: Path, make_epub) -> None:
        path = make_epub(
            tmp_path / "bare.epub", bare_identifiers=("B00XYZ", "978-0-15-144647-6")
        )
        meta = read_epub_metadata(path)
        assert meta.isbn13 == "9780151446476"

    def test_isbn_scheme_wins_over_bare_value(self, tmp_path: Path, make_epub) -> None:
        path = make_epub(
            tmp_path / "both.epub", isbn="0-15-144647-1", bare_identifiers=("9780151446476",)
        )
        meta = read_epub_metadata(path)
        assert meta.isbn10 == "0151446471"
        assert meta.isbn13 is None

    def test_bare_non_isbn_ignored(self, tmp_path: Path, make_epub) -> None:
        path = make_epub(tmp_path / "plain.epub", bare_identifiers=("not-an-isbn",))
        meta = read_epub_metadata(path)
        assert meta.isbn10 is None
        assert meta.isbn13 is None

    def test_corrupt_epub_raises(self, corrupt_epub: Path) -> None:
        with pytest.raises(EpubReadError, match="Failed to read EPUB"):
            read_epub_metadata(corrupt_epub)

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(EpubReadError, match="File not found"):
            read_epub_metadata(tmp_path / "nope.epub")


class TestParsePublishedDate:
    """Tests for parse_published_date."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("1983", date(1983, 1, 1)),
            ("1983-06", date(1983, 6, 1)),
            ("1983-06-15", date(1983, 6, 15)),
            ("2020-04-12T10:00:00Z", date(2020, 4, 12)),
            ("sometime", None),
            ("", None),
            (None, None),
        ],
    )
    def test_formats(self, value: str | None, expected: date | None) -> None:
        assert parse_published_date(value) == expected
