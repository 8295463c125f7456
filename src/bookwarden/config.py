# ABOUTME: Application settings loaded from an optional TOML file.
# ABOUTME: Missing file means defaults; malformed values raise ConfigError.

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bookwarden.db.connection import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".bookwarden" / "config.toml"
DEFAULT_COVERS_DIR = Path.home() / ".bookwarden" / "covers"

_TABLE = "bookwarden"


class ConfigError(Exception):
    """Raised when the configuration file cannot be parsed or has bad values."""


@dataclass
class AppSettings:
    """Runtime settings shared by the CLI and the ingestion services."""

    db_path: Path = DEFAULT_DB_PATH
    covers_dir: Path = DEFAULT_COVERS_DIR
    save_to_original_file: bool = False
    merge_categories: bool = False
    cover_workers: int = 2
    cover_size: tuple[int, int] = field(default=(250, 350))


def _expect(table: dict[str, Any], key: str, typ: type, default: Any) -> Any:
    if key not in table:
        return default
    value = table[key]
    # bool is an int subclass; never accept it where a number is expected
    if typ is int and isinstance(value, bool):
        raise ConfigError(f"Expected int for '{_TABLE}.{key}', got: bool")
    if not isinstance(value, typ):
        raise ConfigError(
            f"Expected {typ.__name__} for '{_TABLE}.{key}', got: {type(value).__name__}"
        )
    return value


def _parse_cover_size(table: dict[str, Any]) -> tuple[int, int]:
    raw = _expect(table, "cover_size", list, [250, 350])
    if len(raw) != 2 or not all(isinstance(v, int) and v > 0 for v in raw):
        raise ConfigError(f"'{_TABLE}.cover_size' must be two positive integers, got: {raw!r}")
    return raw[0], raw[1]


def parse_settings(root: dict[str, Any]) -> AppSettings:
    """Build AppSettings from an already-decoded TOML document."""
    table = root.get(_TABLE, {})
    if not isinstance(table, dict):
        raise ConfigError(f"[{_TABLE}] must be a table")

    workers = _expect(table, "cover_workers", int, 2)
    if workers < 1:
        raise ConfigError(f"'{_TABLE}.cover_workers' must be at least 1, got: {workers}")

    return AppSettings(
        db_path=Path(_expect(table, "db_path", str, str(DEFAULT_DB_PATH))).expanduser(),
        covers_dir=Path(_expect(table, "covers_dir", str, str(DEFAULT_COVERS_DIR))).expanduser(),
        save_to_original_file=_expect(table, "save_to_original_file", bool, False),
        merge_categories=_expect(table, "merge_categories", bool, False),
        cover_workers=workers,
        cover_size=_parse_cover_size(table),
    )


def load_settings(path: Path | None = None) -> AppSettings:
    """Load settings from a TOML file.

    Args:
        path: Config file to read. Defaults to ~/.bookwarden/config.toml.
            A missing file yields the defaults.

    Raises:
        ConfigError: If the file is not valid UTF-8 TOML or a value has the wrong type.
    """
    config_path = path or DEFAULT_CONFIG_PATH
    try:
        raw = config_path.read_bytes()
    except FileNotFoundError:
        logger.debug("No config file at %s, using defaults", config_path)
        return AppSettings()

    try:
        root = tomllib.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise ConfigError(f"Config is not valid UTF-8: {config_path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"TOML parse error in {config_path}: {exc}") from exc

    return parse_settings(root)
