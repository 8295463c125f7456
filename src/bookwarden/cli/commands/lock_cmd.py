# ABOUTME: The `bookwarden lock` and `bookwarden unlock` commands for curator field locks.
# ABOUTME: Locked fields are never changed by scans, merges or bulk edits.

from pathlib import Path

import click

from bookwarden.cli.options import config_option, console, db_option, open_services
from bookwarden.metadata.merge import LockAction


def _apply(
    action: LockAction,
    book_ids: tuple[int, ...],
    fields: tuple[str, ...],
    all_fields: bool,
    db_path: Path | None,
    config_path: Path | None,
) -> None:
    if not fields and not all_fields:
        console.print("[red]Name at least one --field, or pass --all.[/red]")
        raise SystemExit(1)

    with open_services(db_path, config_path) as services:
        if all_fields:
            updated = services.metadata.set_all_locks(book_ids, action is LockAction.LOCK)
        else:
            try:
                updated = services.metadata.toggle_field_locks(
                    book_ids, {name: action for name in fields}
                )
            except ValueError as exc:
                console.print(f"[red]{exc}[/red]")
                raise SystemExit(1) from exc

    missing = sorted(set(book_ids) - {book.id for book in updated})
    verb = "Locked" if action is LockAction.LOCK else "Unlocked"
    what = "all fields" if all_fields else ", ".join(fields)
    console.print(f"{verb} {what} on {len(updated)} book(s).")
    if missing:
        console.print(f"[yellow]Not found: {', '.join(map(str, missing))}[/yellow]")
        raise SystemExit(1)


_book_ids = click.argument("book_ids", nargs=-1, required=True, type=int)
_field = click.option("--field", "fields", multiple=True, help="Field to change (repeatable).")
_all = click.option(
    "--all", "all_fields", is_flag=True, default=False, help="Every field and the cover."
)


@click.command("lock")
@_book_ids
@_field
@_all
@db_option
@config_option
def lock(
    book_ids: tuple[int, ...],
    fields: tuple[str, ...],
    all_fields: bool,
    db_path: Path | None,
    config_path: Path | None,
) -> None:
    """Lock metadata fields so automated updates leave them alone."""
    _apply(LockAction.LOCK, book_ids, fields, all_fields, db_path, config_path)


@click.command("unlock")
@_book_ids
@_field
@_all
@db_option
@config_option
def unlock(
    book_ids: tuple[int, ...],
    fields: tuple[str, ...],
    all_fields: bool,
    db_path: Path | None,
    config_path: Path | None,
) -> None:
    """Unlock metadata fields."""
    _apply(LockAction.UNLOCK, book_ids, fields, all_fields, db_path, config_path)
