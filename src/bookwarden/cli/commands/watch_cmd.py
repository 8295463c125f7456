# ABOUTME: The `bookwarden watch` command: follow live filesystem changes until interrupted.
# ABOUTME: Watches every library with watching enabled, or only the ones given.

import time
from pathlib import Path

import click

from bookwarden.cli.options import config_option, console, db_option, open_services
from bookwarden.core.watcher import LibraryEventProcessor, LibraryWatcher
from bookwarden.db.catalog import LibraryNotFoundError


@click.command("watch")
@click.argument("library_ids", nargs=-1, type=int)
@db_option
@config_option
def watch(library_ids: tuple[int, ...], db_path: Path | None, config_path: Path | None) -> None:
    """Watch library folders and catalog changes as they happen."""
    with open_services(db_path, config_path) as services:
        processor = LibraryEventProcessor(services.catalog, services.ingestor)
        watcher = LibraryWatcher(services.catalog, processor)
        try:
            watched = watcher.start(list(library_ids) or None)
        except LibraryNotFoundError as exc:
            console.print(f"[red]{exc}[/red]")
            raise SystemExit(1) from exc

        if not watched:
            watcher.stop()
            console.print("[yellow]No libraries to watch.[/yellow]")
            return

        names = ", ".join(lib.name for lib in watched)
        console.print(f"Watching [bold]{names}[/bold]. Press Ctrl+C to stop.")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            console.print("Stopping...")
        finally:
            watcher.stop()
