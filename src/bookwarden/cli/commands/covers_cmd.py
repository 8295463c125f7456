# ABOUTME: The `bookwarden covers` command group for cover thumbnails.
# ABOUTME: Regenerates one book's cover from its file, or every unlocked cover in the background.

from pathlib import Path

import click

from bookwarden.cli.options import config_option, console, db_option, open_services
from bookwarden.core.metadata_service import MetadataLockedError
from bookwarden.db.catalog import BookNotFoundError


@click.group("covers")
def covers() -> None:
    """Manage cover thumbnails."""


@covers.command("regenerate")
@click.argument("book_id", type=int, required=False)
@db_option
@config_option
def covers_regenerate(book_id: int | None, db_path: Path | None, config_path: Path | None) -> None:
    """Regenerate a book's cover, or all unlocked covers when no ID is given."""
    with open_services(db_path, config_path) as services:
        if book_id is None:
            worker = services.metadata.regenerate_covers(background=True)
            with console.status("Regenerating covers..."):
                if worker is not None:
                    worker.join()
            console.print("[green]Cover regeneration finished.[/green]")
            return

        try:
            stored = services.metadata.regenerate_cover(book_id)
        except (BookNotFoundError, MetadataLockedError) as exc:
            console.print(f"[red]{exc}[/red]")
            raise SystemExit(1) from exc

    if not stored:
        console.print(f"[yellow]No cover found for book {book_id}.[/yellow]")
        raise SystemExit(1)
    console.print(f"Regenerated cover for book {book_id}.")
