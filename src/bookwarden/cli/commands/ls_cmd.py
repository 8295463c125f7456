# ABOUTME: The `bookwarden ls` command for listing cataloged books.
# ABOUTME: Displays a Rich table of books, optionally for one library or including deleted ones.

from pathlib import Path

import click
from rich.table import Table

from bookwarden.cli.options import config_option, console, db_option, open_services


@click.command("ls")
@click.option(
    "--library", "library_id", type=int, default=None, help="Only books of this library."
)
@click.option(
    "--deleted", "include_deleted", is_flag=True, default=False, help="Include deleted books."
)
@db_option
@config_option
def ls(
    library_id: int | None,
    include_deleted: bool,
    db_path: Path | None,
    config_path: Path | None,
) -> None:
    """List books in the catalog."""
    with open_services(db_path, config_path) as services:
        records = services.catalog.list_books(include_deleted=include_deleted)

    if library_id is not None:
        records = [r for r in records if r.library_id == library_id]

    if not records:
        console.print("[yellow]No books in the library.[/yellow]")
        return

    table = Table()
    table.add_column("ID", style="dim", width=4)
    table.add_column("Title", style="bold")
    table.add_column("Author")
    table.add_column("Series")
    table.add_column("Format", width=6)
    table.add_column("File")

    for record in records:
        meta = record.metadata.metadata
        series_display = ""
        if meta.series_name:
            idx = meta.series_number
            series_display = f"{meta.series_name} #{idx:g}" if idx is not None else meta.series_name
        title = f"[strike]{meta.title}[/strike]" if record.deleted else meta.title

        table.add_row(
            str(record.id),
            title,
            meta.author or "[dim]unknown[/dim]",
            series_display,
            record.format.value,
            "/".join(p for p in (record.file_sub_path, record.file_name) if p),
        )

    console.print(table)
    console.print(f"\n[dim]{len(records)} book(s)[/dim]")
