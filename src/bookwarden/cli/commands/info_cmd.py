# ABOUTME: The `bookwarden info` command for displaying one cataloged book in detail.
# ABOUTME: Shows metadata, locks, fingerprints and the book's additional files.

from pathlib import Path

import click
from rich.table import Table

from bookwarden.cli.options import config_option, console, db_option, open_services


@click.command("info")
@click.argument("book_id", type=int)
@db_option
@config_option
def info(book_id: int, db_path: Path | None, config_path: Path | None) -> None:
    """Show detailed metadata for a book by ID."""
    with open_services(db_path, config_path) as services:
        record = services.catalog.get_book(book_id)
        if record is None:
            console.print(f"[red]Book {book_id} not found.[/red]")
            raise SystemExit(1)
        extras = services.catalog.list_additional_files(book_id)

    meta = record.metadata.metadata
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("Field", style="bold", width=14)
    table.add_column("Value")

    table.add_row("ID", str(record.id))
    table.add_row("Title", meta.title)
    table.add_row("Author", meta.author or "unknown")
    table.add_row("Language", meta.language or "?")
    if meta.publisher:
        table.add_row("Publisher", meta.publisher)
    if meta.isbn:
        table.add_row("ISBN", meta.isbn)
    if meta.description:
        table.add_row("Description", meta.description)
    if meta.series_name:
        idx = meta.series_number
        series_str = f"{meta.series_name} #{idx:g}" if idx is not None else meta.series_name
        table.add_row("Series", series_str)
    if meta.categories:
        table.add_row("Categories", ", ".join(meta.categories))
    table.add_row("File", str(record.full_path))
    table.add_row("Format", record.format.value)
    table.add_row("Hash", record.current_hash)
    if record.initial_hash != record.current_hash:
        table.add_row("Initial Hash", record.initial_hash)
    table.add_row("Added", record.added_on)
    if record.deleted:
        table.add_row("Status", "[red]deleted[/red]")

    locks = sorted(f.value for f in record.metadata.locked)
    if record.metadata.cover_locked:
        locks.append("cover")
    if locks:
        table.add_row("Locked", ", ".join(locks))
    for extra in extras:
        table.add_row(extra.kind.value.replace("_", " ").title(), extra.file_name)

    console.print(table)
