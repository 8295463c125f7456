# ABOUTME: CLI package for Bookwarden, built on Click.
# ABOUTME: Defines the root command group, installs Rich logging, and registers subcommands.

import logging

import click
from rich.logging import RichHandler

from bookwarden.cli.commands import (
    covers_cmd,
    info_cmd,
    inspect_cmd,
    library_cmd,
    lock_cmd,
    ls_cmd,
    scan_cmd,
    verify_cmd,
    watch_cmd,
)


@click.group()
@click.version_option(package_name="bookwarden")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """Bookwarden - watches book folders and keeps their metadata in sync."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
        force=True,
    )


cli.add_command(library_cmd.library)
cli.add_command(scan_cmd.scan)
cli.add_command(watch_cmd.watch)
cli.add_command(ls_cmd.ls)
cli.add_command(info_cmd.info)
cli.add_command(inspect_cmd.inspect)
cli.add_command(lock_cmd.lock)
cli.add_command(lock_cmd.unlock)
cli.add_command(verify_cmd.verify)
cli.add_command(covers_cmd.covers)
