# ABOUTME: SHA-256 file fingerprinting used as the stable identity of every book file.
# ABOUTME: Reads files in chunks so large PDFs and comic archives never sit fully in memory.

import hashlib
from pathlib import Path

_CHUNK_SIZE = 65536  # 64 KB


def compute_file_hash(path: Path) -> str:
    """Compute the SHA-256 fingerprint of a file.

    Identical bytes always produce the same digest, regardless of the file's
    name or location, which is what lets a moved or renamed file be matched
    back to its existing book.

    Args:
        path: Path to the file to hash.

    Returns:
        Lowercase hex digest string (64 characters).

    Raises:
        OSError: If the file does not exist or cannot be read.
    """
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(_CHUNK_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


def file_size_kb(path: Path) -> int:
    """Size of a file in whole kilobytes."""
    return path.stat().st_size // 1024
