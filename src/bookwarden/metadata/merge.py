# ABOUTME: Field-by-field merge of a metadata draft into a persisted record under curator locks.
# ABOUTME: Also the lock operations: lock/unlock everything, or toggle named fields via a dispatch table.

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from bookwarden.metadata.types import SET_FIELDS, BookMetadata, MetadataField, MetadataRecord

# Lock target for the cover image; not a MetadataField because it has no text value.
COVER = "cover"
_COVER_ALIASES = frozenset({"cover", "thumbnail"})


class LockAction(str, Enum):
    LOCK = "LOCK"
    UNLOCK = "UNLOCK"

    @classmethod
    def parse(cls, value: "str | LockAction") -> "LockAction":
        try:
            return cls(str(value.value if isinstance(value, LockAction) else value).upper())
        except ValueError:
            raise ValueError(f"Unknown lock action: {value}") from None


@dataclass
class MergeResult:
    """What a merge actually changed."""

    changed: list[MetadataField] = field(default_factory=list)
    cover_updated: bool = False

    @property
    def has_changes(self) -> bool:
        return bool(self.changed) or self.cover_updated


def is_absent(value: Any) -> bool:
    """Incoming values that carry no information and never overwrite anything."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set)):
        return len(value) == 0
    return False


def _union(current: list[str], incoming: list[str]) -> list[str]:
    return list(dict.fromkeys([*current, *incoming]))


def merge_metadata(
    record: MetadataRecord,
    incoming: BookMetadata,
    *,
    clear: Iterable[MetadataField] = frozenset(),
    clear_cover: bool = False,
    merge_sets: bool = False,
    now: datetime | None = None,
) -> MergeResult:
    """Merge incoming into record.metadata in place.

    For each field: a locked field is never touched, not even by a clear
    flag. An unlocked field named in clear is blanked. Otherwise a present
    incoming value replaces the current one; authors and categories are
    unioned instead when merge_sets is True.

    The cover timestamp is refreshed when a cover (or a cover clear)
    arrives and the cover lock is off, regardless of other field locks.

    Args:
        record: The persisted record to update.
        incoming: The metadata draft.
        clear: Fields to blank without a replacement.
        clear_cover: Whether the cover is being removed.
        merge_sets: Union authors/categories instead of replacing them.
        now: Timestamp for cover_updated_on; defaults to the current UTC time.
    """
    clear = frozenset(clear)
    current = record.metadata
    result = MergeResult()

    for metadata_field in MetadataField:
        if record.is_locked(metadata_field):
            continue
        name = metadata_field.value
        old = getattr(current, name)

        if metadata_field in clear:
            # Title is mandatory and has nothing to fall back to
            if metadata_field is MetadataField.TITLE:
                continue
            blank: Any = [] if metadata_field in SET_FIELDS else None
            if old != blank:
                setattr(current, name, blank)
                result.changed.append(metadata_field)
            continue

        new = getattr(incoming, name)
        if is_absent(new):
            continue
        if metadata_field in SET_FIELDS:
            new = _union(old, new) if merge_sets else list(dict.fromkeys(new))
        if new != old:
            setattr(current, name, new)
            result.changed.append(metadata_field)

    for scheme, value in incoming.identifiers.items():
        if not is_absent(value):
            current.identifiers[scheme] = value

    if not record.cover_locked and (incoming.has_cover or clear_cover):
        record.cover_updated_on = now or datetime.now(UTC)
        result.cover_updated = True

    return result


def lock_all(record: MetadataRecord) -> None:
    """Lock every field, the cover included."""
    record.locked = set(MetadataField)
    record.cover_locked = True


def unlock_all(record: MetadataRecord) -> None:
    """Unlock every field, the cover included."""
    record.locked = set()
    record.cover_locked = False


def _field_lock_setter(metadata_field: MetadataField) -> Callable[[MetadataRecord, bool], None]:
    def setter(record: MetadataRecord, locked: bool) -> None:
        if locked:
            record.locked.add(metadata_field)
        else:
            record.locked.discard(metadata_field)

    return setter


def _set_cover_lock(record: MetadataRecord, locked: bool) -> None:
    record.cover_locked = locked


_LOCK_SETTERS: dict[MetadataField | str, Callable[[MetadataRecord, bool], None]] = {
    **{metadata_field: _field_lock_setter(metadata_field) for metadata_field in MetadataField},
    COVER: _set_cover_lock,
}


def resolve_lock_target(name: str) -> MetadataField | str:
    """Map a user-facing lock name to its dispatch key.

    Accepts snake_case or camelCase field names with an optional "Locked"
    suffix; "cover" and "thumbnail" both name the cover lock.

    Raises:
        ValueError: If the name is not a lockable field.
    """
    base = name.strip()
    if base.endswith("Locked"):
        base = base[: -len("Locked")]
    if base.lower() in _COVER_ALIASES:
        return COVER
    return MetadataField.from_name(base)


def apply_lock_actions(
    record: MetadataRecord, actions: Mapping[str, "str | LockAction"]
) -> None:
    """Lock or unlock the named fields on one record.

    Every name and action is validated before anything changes.

    Raises:
        ValueError: On an unknown field name or action.
    """
    resolved = [
        (resolve_lock_target(name), LockAction.parse(action)) for name, action in actions.items()
    ]
    for target, action in resolved:
        _LOCK_SETTERS[target](record, action is LockAction.LOCK)
