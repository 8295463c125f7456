# ABOUTME: Library integrity verification for the Bookwarden catalog.
# ABOUTME: Checks that primary files exist on disk and optionally detects content hash drift.

import logging
from dataclasses import dataclass, field

from bookwarden.db.catalog import LibraryCatalog
from bookwarden.db.hashing import compute_file_hash
from bookwarden.db.mapping import BookRecord

logger = logging.getLogger(__name__)


@dataclass
class VerifyResult:
    """Aggregated results from a library verification run."""

    ok: int = 0
    missing_file: list[BookRecord] = field(default_factory=list)
    hash_mismatch: list[BookRecord] = field(default_factory=list)
    refreshed: list[BookRecord] = field(default_factory=list)

    @property
    def total_issues(self) -> int:
        """Total number of issues found across all categories."""
        return len(self.missing_file) + len(self.hash_mismatch)


def verify_library(
    catalog: LibraryCatalog, *, check_hash: bool = False, refresh: bool = False
) -> VerifyResult:
    """Verify integrity of all live books in the catalog.

    For each book:
    1. Check its primary file exists on disk.
    2. If check_hash is True and the file exists, re-hash it and compare
       against current_hash.
    3. If refresh is also True, store the new digest as current_hash.
       initial_hash is never touched, so the book keeps its identity.

    Args:
        catalog: The library catalog to verify.
        check_hash: Whether to recompute and compare file hashes.
        refresh: Whether to record drifted hashes as the new current_hash.

    Returns:
        A VerifyResult with counts and lists of problematic records.
    """
    result = VerifyResult()

    for record in catalog.list_books():
        path = record.full_path
        if not path.exists():
            result.missing_file.append(record)
            continue

        if check_hash:
            digest = compute_file_hash(path)
            if digest != record.current_hash:
                result.hash_mismatch.append(record)
                if refresh:
                    catalog.update_book(record.id, current_hash=digest)
                    result.refreshed.append(record)
                    logger.info("Refreshed hash of book %d (%s)", record.id, path.name)
                continue

        result.ok += 1

    return result
