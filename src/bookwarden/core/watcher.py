# ABOUTME: Live filesystem events for watched libraries: a FIFO drained by one worker thread,
# ABOUTME: and a watchdog observer bridge that turns create/delete/move notifications into events.

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from bookwarden.core.ingest import BookIngestor
from bookwarden.core.notifications import Notifier, Topic
from bookwarden.core.scanner import discover_files_under, ingest_library_files
from bookwarden.db.catalog import LibraryCatalog
from bookwarden.models import (
    Library,
    LibraryFile,
    LibraryPath,
    PathOutsideLibraryError,
    is_book_file,
    relative_sub_path,
)

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    CREATE = "create"
    DELETE = "delete"


@dataclass(frozen=True)
class FileEvent:
    """A change observed under a library root.

    is_directory is None when the source cannot tell; the processor then
    decides from the filesystem or, for vanished paths, from the extension.
    """

    kind: EventKind
    path: Path
    library_id: int
    is_directory: bool | None = None


class LibraryEventProcessor:
    """Applies FileEvents to the catalog strictly in arrival order.

    Events go onto an unbounded FIFO. A single worker thread drains it,
    so two events never race each other. A failing event is logged and
    the loop moves on to the next one.
    """

    def __init__(
        self,
        catalog: LibraryCatalog,
        ingestor: BookIngestor,
        notifier: Notifier | None = None,
    ) -> None:
        self._catalog = catalog
        self._ingestor = ingestor
        self._notifier = notifier or ingestor.notifier
        self._queue: queue.Queue[FileEvent | None] = queue.Queue()
        self._worker: threading.Thread | None = None

    def submit(self, event: FileEvent) -> None:
        self._queue.put(event)

    def start(self) -> None:
        """Start the worker thread. Calling it twice is a no-op."""
        if self._worker is not None and self._worker.is_alive():
            return
        self._worker = threading.Thread(
            target=self._run, name="bookwarden-events", daemon=True
        )
        self._worker.start()

    def stop(self, timeout: float | None = None) -> None:
        """Let the worker finish queued events, then end it."""
        if self._worker is None:
            return
        self._queue.put(None)
        self._worker.join(timeout)
        self._worker = None

    def drain(self) -> None:
        """Block until every submitted event is handled.

        Without a running worker the queue is processed on the caller's thread.
        """
        if self._worker is not None and self._worker.is_alive():
            self._queue.join()
            return
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return
            try:
                if event is not None:
                    self._safe_process(event)
            finally:
                self._queue.task_done()

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            try:
                if event is None:
                    return
                self._safe_process(event)
            finally:
                self._queue.task_done()

    def _safe_process(self, event: FileEvent) -> None:
        try:
            self.process_event(event)
        except Exception:
            logger.exception("Failed to process %s event for %s", event.kind.value, event.path)

    def process_event(self, event: FileEvent) -> None:
        """Handle one event synchronously.

        Raises:
            LibraryNotFoundError: If the event names an unknown library.
        """
        library = self._catalog.require_library(event.library_id)
        path = Path(event.path).resolve()
        try:
            library_path = library.require_path_for(path)
        except PathOutsideLibraryError as exc:
            logger.warning("[SKIP] %s", exc)
            return

        if self._is_folder(event, library_path, path):
            if event.kind is EventKind.CREATE:
                self._folder_created(library, library_path, path)
            else:
                self._folder_deleted(library_path, path)
            return

        if event.kind is EventKind.DELETE:
            # Additional files may have any extension
            self._file_deleted(library_path, path)
            return
        if not is_book_file(path.name):
            logger.debug("[SKIP] Not a book file: %s", path)
            return
        self._file_created(library, library_path, path)

    def _is_folder(self, event: FileEvent, library_path: LibraryPath, path: Path) -> bool:
        if event.is_directory is not None:
            return event.is_directory
        if path.exists():
            return path.is_dir()
        if path == library_path.path:
            return True
        # Vanished: a cataloged file at this location wins over the extension
        sub_path = relative_sub_path(library_path.path, path.parent)
        if self._catalog.find_book_at(library_path.id, sub_path, path.name) is not None:
            return False
        if self._catalog.find_additional_file(library_path.id, sub_path, path.name) is not None:
            return False
        return not is_book_file(path.name)

    def _file_created(self, library: Library, library_path: LibraryPath, path: Path) -> None:
        logger.info("[FILE_CREATE] %s", path)
        library_file = LibraryFile.from_path(library, library_path, path)
        self._ingestor.handle_new_book_file(library_file)

    def _file_deleted(self, library_path: LibraryPath, path: Path) -> None:
        logger.info("[FILE_DELETE] %s", path)
        sub_path = relative_sub_path(library_path.path, path.parent)
        book = self._catalog.find_book_at(library_path.id, sub_path, path.name)
        if book is not None and not book.deleted:
            self._catalog.mark_deleted(book.id)
            logger.info("[MARKED_DELETED] Book %d at %s", book.id, path)
            self._notifier.send(Topic.BOOKS_REMOVE, [book.id])
            return

        additional = self._catalog.find_additional_file(library_path.id, sub_path, path.name)
        if additional is not None and not additional.deleted:
            self._catalog.mark_additional_file_deleted(additional.id)
            logger.info("[MARKED_DELETED] Additional file %d at %s", additional.id, path)
            return
        logger.info("[NOT_FOUND] Nothing cataloged at %s", path)

    def _folder_created(self, library: Library, library_path: LibraryPath, path: Path) -> None:
        logger.info("[FOLDER_CREATE] %s", path)
        files = discover_files_under(library, library_path, path)
        with self._catalog.transaction():
            result = ingest_library_files(files, library, self._ingestor)
        logger.info(
            "[FOLDER_CREATE] %d files, %d relocated, %d processed under %s",
            result.discovered,
            result.relocated,
            result.processed,
            path,
        )

    def _folder_deleted(self, library_path: LibraryPath, path: Path) -> None:
        logger.info("[FOLDER_DELETE] %s", path)
        prefix = relative_sub_path(library_path.path, path)
        count = self._catalog.mark_deleted_under_prefix(library_path.id, prefix)
        logger.info("[MARKED_DELETED] %d books under %r", count, prefix or "/")


class _LibraryEventHandler(FileSystemEventHandler):
    """Translates watchdog notifications for one library into FileEvents."""

    def __init__(self, processor: LibraryEventProcessor, library_id: int) -> None:
        self._processor = processor
        self._library_id = library_id

    def _submit(self, kind: EventKind, path: str | bytes, is_directory: bool) -> None:
        if isinstance(path, bytes):
            path = path.decode()
        self._processor.submit(FileEvent(kind, Path(path), self._library_id, is_directory))

    def on_created(self, event: FileSystemEvent) -> None:
        self._submit(EventKind.CREATE, event.src_path, event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._submit(EventKind.DELETE, event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._submit(EventKind.DELETE, event.src_path, event.is_directory)
        self._submit(EventKind.CREATE, event.dest_path, event.is_directory)


class LibraryWatcher:
    """Watches the roots of every library that has watching enabled."""

    def __init__(self, catalog: LibraryCatalog, processor: LibraryEventProcessor) -> None:
        self._catalog = catalog
        self._processor = processor
        self._observer: Observer | None = None

    def start(self, library_ids: list[int] | None = None) -> list[Library]:
        """Begin watching. With library_ids, only those libraries are watched.

        Raises:
            LibraryNotFoundError: If a requested library does not exist.
        """
        if library_ids:
            libraries = [self._catalog.require_library(lib_id) for lib_id in library_ids]
        else:
            libraries = self._catalog.list_libraries()
        watched = [lib for lib in libraries if lib.watch]

        observer = Observer()
        for library in watched:
            handler = _LibraryEventHandler(self._processor, library.id)
            for library_path in library.paths:
                if not library_path.path.is_dir():
                    logger.warning("Not watching missing root %s", library_path.path)
                    continue
                observer.schedule(handler, str(library_path.path), recursive=True)
                logger.info("Watching %s for library %s", library_path.path, library.name)
        self._processor.start()
        observer.start()
        self._observer = observer
        return watched

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self._processor.stop()

