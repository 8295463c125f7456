# ABOUTME: The `bookwarden library` command group for configuring libraries.
# ABOUTME: Provides add and ls subcommands; a library is a name, one or more roots, and a scan mode.

from pathlib import Path

import click
from rich.table import Table

from bookwarden.cli.options import config_option, console, db_option, open_services
from bookwarden.models import BookFormat, ScanMode

_MODES = {"file": ScanMode.FILE_AS_BOOK, "folder": ScanMode.FOLDER_AS_BOOK}


@click.group("library")
def library() -> None:
    """Manage libraries and their folders."""


@library.command("add")
@click.argument("name")
@click.argument(
    "paths", nargs=-1, required=True, type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option(
    "--mode",
    type=click.Choice(sorted(_MODES)),
    default="file",
    show_default=True,
    help="Treat each book file, or each folder, as one book.",
)
@click.option(
    "--default-format",
    type=click.Choice([fmt.value for fmt in BookFormat]),
    default=None,
    help="Preferred primary format when a folder holds several.",
)
@click.option("--no-watch", is_flag=True, default=False, help="Do not watch for live changes.")
@db_option
@config_option
def library_add(
    name: str,
    paths: tuple[Path, ...],
    mode: str,
    default_format: str | None,
    no_watch: bool,
    db_path: Path | None,
    config_path: Path | None,
) -> None:
    """Register a library with one or more folders."""
    with open_services(db_path, config_path) as services:
        created = services.catalog.add_library(
            name,
            list(paths),
            scan_mode=_MODES[mode],
            default_format=BookFormat(default_format) if default_format else None,
            watch=not no_watch,
        )
    console.print(
        f"Added library [bold]{created.name}[/bold] (id {created.id}) "
        f"with {len(created.paths)} folder(s)."
    )


@library.command("ls")
@db_option
@config_option
def library_ls(db_path: Path | None, config_path: Path | None) -> None:
    """List configured libraries."""
    with open_services(db_path, config_path) as services:
        libraries = services.catalog.list_libraries()

    if not libraries:
        console.print("[yellow]No libraries configured.[/yellow]")
        return

    table = Table()
    table.add_column("ID", style="dim", width=4)
    table.add_column("Name", style="bold")
    table.add_column("Mode")
    table.add_column("Watch", width=5)
    table.add_column("Folders")
    for lib in libraries:
        table.add_row(
            str(lib.id),
            lib.name,
            lib.scan_mode.value,
            "yes" if lib.watch else "no",
            "\n".join(str(lp.path) for lp in lib.paths),
        )
    console.print(table)
