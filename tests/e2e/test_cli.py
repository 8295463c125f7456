# ABOUTME: End-to-end tests for the Bookwarden CLI.
# ABOUTME: Drives every command through Click's CliRunner against a temporary database and covers dir.

from collections.abc import Callable
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from bookwarden.cli import cli

Invoke = Callable[..., Result]


@pytest.fixture()
def invoke(tmp_path: Path) -> Invoke:
    """Run a command with --db and --config pointing into tmp_path."""
    config = tmp_path / "config.toml"
    config.write_text(f'[bookwarden]\ncovers_dir = "{(tmp_path / "covers").as_posix()}"\n')
    db = tmp_path / "library.db"
    runner = CliRunner(env={"COLUMNS": "200"})

    def _invoke(*args: str) -> Result:
        return runner.invoke(cli, [*args, "--db", str(db), "--config", str(config)])

    return _invoke


@pytest.fixture()
def shelf(
    library_root: Path, make_epub: Callable[..., Path], make_image: Callable[..., bytes]
) -> Path:
    """Two EPUBs; scanning in path order makes Earthsea book 1 and the Rose book 2."""
    make_epub(library_root / "rose.epub", publisher="Harcourt", cover=make_image())
    make_epub(
        library_root / "Le Guin" / "earthsea.epub",
        title="A Wizard of Earthsea",
        authors=("Ursula K. Le Guin",),
    )
    return library_root


class TestCliInspect:
    """E2e tests for `bookwarden inspect`."""

    def test_inspect_shows_metadata(self, sample_epub: Path) -> None:
        result = CliRunner().invoke(cli, ["inspect", str(sample_epub)])
        assert result.exit_code == 0
        assert "The Name of the Rose" in result.output
        assert "Umberto Eco" in result.output
        assert "Harcourt" in result.output

    def test_inspect_pdf(self, sample_pdf: Path) -> None:
        result = CliRunner().invoke(cli, ["inspect", str(sample_pdf)])
        assert result.exit_code == 0
        assert "Laws of UX" in result.output
        assert "PDF" in result.output

    def test_inspect_nonexistent_file_fails(self) -> None:
        result = CliRunner().invoke(cli, ["inspect", "/nonexistent/path.epub"])
        assert result.exit_code != 0

    def test_inspect_unsupported_file(self, tmp_path: Path) -> None:
        notes = tmp_path / "notes.txt"
        notes.write_text("hello")
        result = CliRunner().invoke(cli, ["inspect", str(notes)])
        assert result.exit_code == 1
        assert "not a supported book file" in result.output

    def test_inspect_corrupt_epub_falls_back_to_name(self, corrupt_epub: Path) -> None:
        result = CliRunner().invoke(cli, ["inspect", str(corrupt_epub)])
        assert result.exit_code == 0
        assert "corrupt" in result.output


class TestCliLibrary:
    """E2e tests for `bookwarden library`."""

    def test_empty(self, invoke: Invoke) -> None:
        result = invoke("library", "ls")
        assert result.exit_code == 0
        assert "No libraries configured." in result.output

    def test_add_and_list(self, invoke: Invoke, library_root: Path) -> None:
        result = invoke("library", "add", "Books", str(library_root), "--mode", "folder")
        assert result.exit_code == 0
        assert "Added library Books (id 1) with 1 folder(s)." in result.output

        listing = invoke("library", "ls")
        assert "Books" in listing.output
        assert "folder" in listing.output.lower()

    def test_missing_folder_rejected(self, invoke: Invoke, tmp_path: Path) -> None:
        result = invoke("library", "add", "Books", str(tmp_path / "nope"))
        assert result.exit_code != 0


class TestCliScanAndList:
    """E2e tests for `bookwarden scan`, `ls` and `info`."""

    def test_scan_catalogs_books(self, invoke: Invoke, shelf: Path) -> None:
        invoke("library", "add", "Books", str(shelf))
        result = invoke("scan", "1")
        assert result.exit_code == 0
        assert "2 file(s) found" in result.output
        assert "2 book(s) in library." in result.output

        listing = invoke("ls")
        assert "The Name of the Rose" in listing.output
        assert "A Wizard of Earthsea" in listing.output
        assert "2 book(s)" in listing.output

    def test_second_scan_is_unchanged(self, invoke: Invoke, shelf: Path) -> None:
        invoke("library", "add", "Books", str(shelf))
        invoke("scan", "1")
        result = invoke("scan", "1")
        assert "2 unchanged" in result.output
        assert "2 book(s) in library." in result.output

    def test_scan_unknown_library(self, invoke: Invoke) -> None:
        result = invoke("scan", "9")
        assert result.exit_code == 1
        assert "9" in result.output

    def test_ls_empty(self, invoke: Invoke) -> None:
        result = invoke("ls")
        assert result.exit_code == 0
        assert "No books in the library." in result.output

    def test_info(self, invoke: Invoke, shelf: Path) -> None:
        invoke("library", "add", "Books", str(shelf))
        invoke("scan", "1")
        result = invoke("info", "2")
        assert result.exit_code == 0
        assert "The Name of the Rose" in result.output
        assert "Harcourt" in result.output

    def test_info_unknown_book(self, invoke: Invoke) -> None:
        result = invoke("info", "42")
        assert result.exit_code == 1
        assert "Book 42 not found." in result.output


class TestCliLocks:
    """E2e tests for `bookwarden lock` and `unlock`."""

    @pytest.fixture()
    def scanned(self, invoke: Invoke, shelf: Path) -> Invoke:
        invoke("library", "add", "Books", str(shelf))
        invoke("scan", "1")
        return invoke

    def test_lock_fields(self, scanned: Invoke) -> None:
        result = scanned("lock", "1", "2", "--field", "title", "--field", "cover")
        assert result.exit_code == 0
        assert "Locked title, cover on 2 book(s)." in result.output

        info = scanned("info", "1")
        assert "Locked" in info.output
        assert "cover" in info.output

    def test_unlock_all(self, scanned: Invoke) -> None:
        scanned("lock", "1", "--all")
        result = scanned("unlock", "1", "--all")
        assert result.exit_code == 0
        assert "Unlocked all fields on 1 book(s)." in result.output

    def test_unknown_field(self, scanned: Invoke) -> None:
        result = scanned("lock", "1", "--field", "colour")
        assert result.exit_code == 1
        assert "colour" in result.output

    def test_nothing_to_lock(self, scanned: Invoke) -> None:
        result = scanned("lock", "1")
        assert result.exit_code == 1

    def test_unknown_book_reported(self, scanned: Invoke) -> None:
        result = scanned("lock", "1", "77", "--field", "title")
        assert result.exit_code == 1
        assert "Not found: 77" in result.output


class TestCliVerify:
    """E2e tests for `bookwarden verify`."""

    def test_all_verified(self, invoke: Invoke, shelf: Path) -> None:
        invoke("library", "add", "Books", str(shelf))
        invoke("scan", "1")
        result = invoke("verify", "--check-hash")
        assert result.exit_code == 0
        assert "All 2 book(s) verified." in result.output

    def test_missing_file(self, invoke: Invoke, shelf: Path) -> None:
        invoke("library", "add", "Books", str(shelf))
        invoke("scan", "1")
        (shelf / "rose.epub").unlink()
        result = invoke("verify")
        assert result.exit_code == 1
        assert "Missing file" in result.output

    def test_refresh_changed_hash(self, invoke: Invoke, shelf: Path) -> None:
        invoke("library", "add", "Books", str(shelf))
        invoke("scan", "1")
        with (shelf / "rose.epub").open("ab") as fh:
            fh.write(b"\0")

        result = invoke("verify", "--check-hash", "--refresh")
        assert result.exit_code == 0
        assert "1 hash(es) refreshed." in result.output
        assert invoke("verify", "--check-hash").exit_code == 0


class TestCliCovers:
    """E2e tests for `bookwarden covers regenerate`."""

    def test_regenerate_one(self, invoke: Invoke, shelf: Path, tmp_path: Path) -> None:
        invoke("library", "add", "Books", str(shelf))
        invoke("scan", "1")
        result = invoke("covers", "regenerate", "2")
        assert result.exit_code == 0
        assert "Regenerated cover for book 2." in result.output
        assert (tmp_path / "covers").is_dir()

    def test_book_without_cover(self, invoke: Invoke, shelf: Path) -> None:
        invoke("library", "add", "Books", str(shelf))
        invoke("scan", "1")
        result = invoke("covers", "regenerate", "1")
        assert result.exit_code == 1
        assert "No cover found for book 1." in result.output

    def test_locked_cover(self, invoke: Invoke, shelf: Path) -> None:
        invoke("library", "add", "Books", str(shelf))
        invoke("scan", "1")
        invoke("lock", "2", "--field", "cover")
        result = invoke("covers", "regenerate", "2")
        assert result.exit_code == 1
        assert "locked" in result.output

    def test_regenerate_all(self, invoke: Invoke, shelf: Path) -> None:
        invoke("library", "add", "Books", str(shelf))
        invoke("scan", "1")
        result = invoke("covers", "regenerate")
        assert result.exit_code == 0
        assert "Cover regeneration finished." in result.output


class TestCliConfig:
    """E2e tests for configuration handling."""

    def test_bad_config_exits(self, tmp_path: Path) -> None:
        config = tmp_path / "config.toml"
        config.write_text("[bookwarden]\ncover_workers = 0\n")
        result = CliRunner().invoke(
            cli, ["ls", "--db", str(tmp_path / "x.db"), "--config", str(config)]
        )
        assert result.exit_code == 1
        assert "Config error" in result.output


class TestCliVersion:
    """E2e tests for version flag."""

    def test_version(self) -> None:
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output
