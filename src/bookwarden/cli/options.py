# ABOUTME: Shared Click options and service wiring for Bookwarden CLI commands.
# ABOUTME: Provides --db/--config decorators and a context manager that opens and closes the catalog.

from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import click
from rich.console import Console

from bookwarden.config import DEFAULT_CONFIG_PATH, AppSettings, ConfigError, load_settings
from bookwarden.core.ingest import BookIngestor
from bookwarden.core.metadata_service import MetadataService
from bookwarden.core.notifications import LoggingNotifier
from bookwarden.covers import CoverStore
from bookwarden.db.catalog import LibraryCatalog
from bookwarden.db.connection import DEFAULT_DB_PATH, open_library

console = Console()

db_option = click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    default=None,
    help=f"Path to library database (default: {DEFAULT_DB_PATH})",
)

config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help=f"Path to settings file (default: {DEFAULT_CONFIG_PATH})",
)


@dataclass
class Services:
    """Everything a command needs, opened against one database."""

    settings: AppSettings
    catalog: LibraryCatalog
    ingestor: BookIngestor
    metadata: MetadataService


@contextmanager
def open_services(db_path: Path | None, config_path: Path | None) -> Iterator[Services]:
    """Load settings, open the catalog and build the services on top of it.

    Background cover renders are finished before the database is closed.
    Configuration errors are reported and end the command with exit code 1.
    """
    try:
        settings = load_settings(config_path)
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        raise SystemExit(1) from exc
    if db_path is not None:
        settings.db_path = db_path

    conn = open_library(settings.db_path)
    try:
        catalog = LibraryCatalog(conn)
        covers = CoverStore(settings.covers_dir, settings.cover_size)
        with ThreadPoolExecutor(
            max_workers=settings.cover_workers, thread_name_prefix="bookwarden-cover"
        ) as pool:
            ingestor = BookIngestor(catalog, covers, LoggingNotifier(), cover_executor=pool)
            yield Services(
                settings=settings,
                catalog=catalog,
                ingestor=ingestor,
                metadata=MetadataService(ingestor, settings),
            )
    finally:
        conn.close()
