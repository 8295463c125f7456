# ABOUTME: Cover image storage: resized JPEG thumbnails under <covers_dir>/<book_id>/cover.jpg.
# ABOUTME: Also renders the "Preview Unavailable" placeholder and downloads covers by URL.

import io
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import httpx
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

logger = logging.getLogger(__name__)

DEFAULT_COVER_SIZE = (250, 350)
PLACEHOLDER_TEXT = "Preview Unavailable"


class CoverError(Exception):
    """Raised when cover bytes are not a readable image or cannot be stored."""


class CoverFetchError(Exception):
    """Raised when a cover cannot be downloaded."""


def placeholder_cover(size: tuple[int, int] = DEFAULT_COVER_SIZE) -> bytes:
    """Render a light grey JPEG with centered placeholder text."""
    image = Image.new("RGB", size, color=(220, 220, 220))
    draw = ImageDraw.Draw(image)
    font = ImageFont.load_default()
    left, top, right, bottom = draw.textbbox((0, 0), PLACEHOLDER_TEXT, font=font)
    x = (size[0] - (right - left)) // 2
    y = (size[1] - (bottom - top)) // 2
    draw.text((x, y), PLACEHOLDER_TEXT, fill=(90, 90, 90), font=font)
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG")
    return buffer.getvalue()


def to_thumbnail(image_bytes: bytes, size: tuple[int, int] = DEFAULT_COVER_SIZE) -> bytes:
    """Decode any Pillow-readable image and return a JPEG that fits within size.

    Raises:
        CoverError: If the bytes are not an image.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            image = image.convert("RGB")
            image.thumbnail(size)
            buffer = io.BytesIO()
            image.save(buffer, format="JPEG", quality=90)
    except (UnidentifiedImageError, OSError) as exc:
        raise CoverError(f"Unreadable cover image: {exc}") from exc
    return buffer.getvalue()


class CoverStore:
    """Filesystem store for per-book cover thumbnails."""

    def __init__(self, covers_dir: Path, size: tuple[int, int] = DEFAULT_COVER_SIZE) -> None:
        self._dir = covers_dir
        self._size = size

    @property
    def size(self) -> tuple[int, int]:
        return self._size

    def path_for(self, book_id: int) -> Path:
        return self._dir / str(book_id) / "cover.jpg"

    def exists(self, book_id: int) -> bool:
        return self.path_for(book_id).is_file()

    def save(self, book_id: int, image_bytes: bytes) -> Path:
        """Resize and store a cover, replacing any previous one atomically.

        Raises:
            CoverError: If the bytes are not an image or the file cannot be written.
        """
        data = to_thumbnail(image_bytes, self._size)
        target = self.path_for(book_id)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, suffix=".tmp")
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, target)
        except OSError as exc:
            raise CoverError(f"Cannot write cover for book {book_id}: {exc}") from exc
        logger.debug("Stored cover for book %d at %s", book_id, target)
        return target

    def save_placeholder(self, book_id: int) -> Path:
        return self.save(book_id, placeholder_cover(self._size))

    def load(self, book_id: int) -> bytes | None:
        path = self.path_for(book_id)
        return path.read_bytes() if path.is_file() else None


def fetch_cover_bytes(
    url: str,
    *,
    transport: httpx.BaseTransport | None = None,
    timeout: float = 30.0,
) -> bytes:
    """Download an image by URL.

    Args:
        url: http(s) URL of the image.
        transport: Optional httpx transport, used by tests to avoid the network.
        timeout: Request timeout in seconds.

    Raises:
        CoverFetchError: On transport errors or a non-200 response.
    """
    client_kwargs: dict[str, Any] = {
        "headers": {"User-Agent": "bookwarden/0.1.0"},
        "timeout": timeout,
        "follow_redirects": True,
    }
    if transport is not None:
        client_kwargs["transport"] = transport
    with httpx.Client(**client_kwargs) as client:
        try:
            response = client.get(url)
        except httpx.HTTPError as exc:
            raise CoverFetchError(f"Request failed: {url}: {exc}") from exc
    if response.status_code != 200:
        raise CoverFetchError(f"HTTP {response.status_code} from {url}")
    return response.content
