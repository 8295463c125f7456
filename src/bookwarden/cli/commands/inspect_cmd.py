# ABOUTME: The `bookwarden inspect` command for viewing a book file's embedded metadata.
# ABOUTME: Works for every supported format; nothing is written to the catalog.

from pathlib import Path

import click
from rich.table import Table

from bookwarden.cli.options import console
from bookwarden.formats.registry import extract_metadata
from bookwarden.models import BookFormat


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def inspect(path: Path) -> None:
    """Show metadata extracted from a book file."""
    fmt = BookFormat.from_file_name(path.name)
    if fmt is None:
        console.print(f"[red]Error:[/red] {path.name} is not a supported book file")
        raise SystemExit(1)

    meta = extract_metadata(path, fmt)

    table = Table(title=str(path.name), show_header=False, pad_edge=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("Format", fmt.value.upper())
    table.add_row("Title", meta.title)
    table.add_row("Author", meta.author or "[dim]unknown[/dim]")
    table.add_row("Language", meta.language or "[dim]unknown[/dim]")
    table.add_row("Publisher", meta.publisher or "[dim]unknown[/dim]")
    if meta.published_date:
        table.add_row("Published", meta.published_date.isoformat())
    table.add_row("ISBN", meta.isbn or "[dim]none[/dim]")
    table.add_row("Description", meta.description or "[dim]none[/dim]")
    table.add_row("Series", meta.series_name or "[dim]none[/dim]")
    if meta.series_number is not None:
        table.add_row("Series Number", f"{meta.series_number:g}")
    if meta.categories:
        table.add_row("Categories", ", ".join(meta.categories))
    if meta.page_count:
        table.add_row("Pages", str(meta.page_count))
    table.add_row("Cover", "yes" if meta.has_cover else "no")
    if meta.identifiers:
        ids_str = ", ".join(f"{k}={v}" for k, v in meta.identifiers.items())
        table.add_row("Identifiers", ids_str)

    console.print(table)
