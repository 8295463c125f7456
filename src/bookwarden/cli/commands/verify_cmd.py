# ABOUTME: The `bookwarden verify` command for checking library integrity.
# ABOUTME: Detects missing files and content hash drift, optionally recording the new hashes.

from pathlib import Path

import click
from rich.table import Table

from bookwarden.cli.options import config_option, console, db_option, open_services
from bookwarden.core.verifier import verify_library


@click.command("verify")
@click.option(
    "--check-hash",
    is_flag=True,
    default=False,
    help="Re-hash book files and compare against stored hashes.",
)
@click.option(
    "--refresh",
    is_flag=True,
    default=False,
    help="With --check-hash, store changed hashes as the current hash.",
)
@db_option
@config_option
def verify(check_hash: bool, refresh: bool, db_path: Path | None, config_path: Path | None) -> None:
    """Verify library integrity: check for missing or changed files."""
    with open_services(db_path, config_path) as services:
        result = verify_library(services.catalog, check_hash=check_hash, refresh=refresh)

    if result.total_issues > 0:
        table = Table()
        table.add_column("ID", style="dim", width=4)
        table.add_column("Title", style="bold")
        table.add_column("Issue", style="red")

        for record in result.missing_file:
            table.add_row(str(record.id), record.title, "Missing file")

        refreshed = {record.id for record in result.refreshed}
        for record in result.hash_mismatch:
            issue = "Hash refreshed" if record.id in refreshed else "Hash mismatch"
            table.add_row(str(record.id), record.title, issue)

        console.print(table)
        unresolved = result.total_issues - len(refreshed)
        if unresolved == 0:
            console.print(f"\n[green]{len(refreshed)} hash(es) refreshed.[/green]")
            return
        console.print(
            f"\n[red]{result.total_issues} issue(s) found, {result.ok} book(s) verified.[/red]"
        )
        raise SystemExit(1)

    console.print(f"[green]All {result.ok} book(s) verified.[/green]")
