# ABOUTME: Opens the Bookwarden catalog database and brings its schema up to date.
# ABOUTME: One connection is shared by the CLI thread and the watcher worker; the catalog serializes use.

import logging
import sqlite3
from pathlib import Path

from bookwarden.db.schema import MIGRATIONS, SCHEMA_V1

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".bookwarden" / "library.db"

# Milliseconds to wait on a lock held by another process (e.g. a running `watch`)
BUSY_TIMEOUT_MS = 5000


def schema_version(conn: sqlite3.Connection) -> int:
    """Highest applied schema version, or 0 for an empty database."""
    has_table = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name='schema_version'"
    ).fetchone()
    if has_table is None:
        return 0
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] or 0


def _upgrade(conn: sqlite3.Connection) -> None:
    version = schema_version(conn)
    if version == 0:
        logger.debug("Creating catalog schema v1")
        conn.executescript(SCHEMA_V1)
        version = 1
    for target, sql in MIGRATIONS:
        if target <= version:
            continue
        logger.info("Migrating catalog schema to v%d", target)
        conn.executescript(sql)
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (target,))
        conn.commit()


def open_library(path: Path | None = None) -> sqlite3.Connection:
    """Open or create the catalog database.

    Args:
        path: Database file; defaults to ~/.bookwarden/library.db. Missing
            parent folders are created.

    Returns:
        A connection with WAL journaling, foreign keys on, sqlite3.Row rows
        and the latest schema applied.
    """
    db_path = path or DEFAULT_DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    _upgrade(conn)
    return conn
