# ABOUTME: The `bookwarden scan` command for a full rescan of one library.
# ABOUTME: Walks every root and reconciles the catalog with what is on disk.

from pathlib import Path

import click

from bookwarden.cli.options import config_option, console, db_option, open_services
from bookwarden.core.scanner import rescan_library
from bookwarden.db.catalog import LibraryNotFoundError


@click.command("scan")
@click.argument("library_id", type=int)
@click.option(
    "--keep-missing",
    is_flag=True,
    default=False,
    help="Do not mark books whose files have disappeared as deleted.",
)
@db_option
@config_option
def scan(
    library_id: int, keep_missing: bool, db_path: Path | None, config_path: Path | None
) -> None:
    """Rescan a library and catalog new, moved and removed books."""
    with open_services(db_path, config_path) as services:
        try:
            library = services.catalog.require_library(library_id)
        except LibraryNotFoundError as exc:
            console.print(f"[red]{exc}[/red]")
            raise SystemExit(1) from exc

        with console.status(f"Scanning {library.name}..."):
            result = rescan_library(library, services.ingestor, mark_missing=not keep_missing)
        books = [b for b in services.catalog.list_books() if b.library_id == library_id]

    console.print(
        f"[bold]{library.name}[/bold]: {result.discovered} file(s) found, "
        f"{result.processed} processed, {result.relocated} relocated, "
        f"{result.unchanged} unchanged, {result.removed} removed."
    )
    console.print(f"[green]{len(books)} book(s) in library.[/green]")
    if result.errors:
        for path, message in result.errors:
            console.print(f"[red]Error:[/red] {path}: {message}")
        raise SystemExit(1)
