# ABOUTME: Library-level data structures: book formats, scan modes, libraries and discovered files.
# ABOUTME: Shared by the catalog, the grouping resolver, the scanner and the watcher.

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath


class BookFormat(str, Enum):
    """Recognized book formats.

    Declaration order is the default primary-file priority used when a
    folder holds several formats of the same book.
    """

    PDF = "pdf"
    EPUB = "epub"
    CBZ = "cbz"
    CBR = "cbr"
    CB7 = "cb7"

    @property
    def priority(self) -> int:
        return list(BookFormat).index(self)

    @classmethod
    def from_file_name(cls, file_name: str) -> "BookFormat | None":
        """Return the format for a file name's extension, or None if not a book."""
        suffix = PurePosixPath(file_name).suffix.lower().lstrip(".")
        try:
            return cls(suffix)
        except ValueError:
            return None


def is_book_file(file_name: str) -> bool:
    """Whether a file name carries a recognized book extension."""
    return BookFormat.from_file_name(file_name) is not None


class ScanMode(str, Enum):
    FILE_AS_BOOK = "file_as_book"
    FOLDER_AS_BOOK = "folder_as_book"


class AdditionalFileKind(str, Enum):
    ALTERNATIVE_FORMAT = "alternative_format"
    SUPPLEMENTARY = "supplementary"


class PathOutsideLibraryError(Exception):
    """Raised when a path does not sit under any root of the library."""


@dataclass
class LibraryPath:
    """One filesystem root belonging to a library."""

    id: int
    library_id: int
    path: Path


@dataclass
class Library:
    """A configured library: named roots plus how books are bounded on disk."""

    id: int
    name: str
    scan_mode: ScanMode = ScanMode.FILE_AS_BOOK
    default_format: BookFormat | None = None
    watch: bool = True
    paths: list[LibraryPath] = field(default_factory=list)

    def path_for(self, file_path: Path) -> LibraryPath | None:
        """Return the library root that contains file_path, if any.

        When roots nest, the deepest one wins.
        """
        matches = [lp for lp in self.paths if file_path.is_relative_to(lp.path)]
        if not matches:
            return None
        return max(matches, key=lambda lp: len(lp.path.parts))

    def require_path_for(self, file_path: Path) -> LibraryPath:
        """Like path_for, but raises PathOutsideLibraryError when no root matches."""
        library_path = self.path_for(file_path)
        if library_path is None:
            raise PathOutsideLibraryError(f"{file_path} is outside library '{self.name}'")
        return library_path


def relative_sub_path(root: Path, directory: Path) -> str:
    """Posix-style path of directory relative to root ("" for the root itself)."""
    rel = directory.relative_to(root)
    return "" if rel == Path(".") else rel.as_posix()


@dataclass
class LibraryFile:
    """A file discovered under a library root, not yet assigned to a book."""

    library: Library
    library_path: LibraryPath
    file_sub_path: str
    file_name: str
    file_hash: str | None = None

    @property
    def full_path(self) -> Path:
        if self.file_sub_path:
            return self.library_path.path / self.file_sub_path / self.file_name
        return self.library_path.path / self.file_name

    @property
    def book_format(self) -> BookFormat | None:
        return BookFormat.from_file_name(self.file_name)

    @classmethod
    def from_path(
        cls,
        library: Library,
        library_path: LibraryPath,
        path: Path,
        file_hash: str | None = None,
    ) -> "LibraryFile":
        return cls(
            library=library,
            library_path=library_path,
            file_sub_path=relative_sub_path(library_path.path, path.parent),
            file_name=path.name,
            file_hash=file_hash,
        )
