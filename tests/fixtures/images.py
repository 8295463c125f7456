# ABOUTME: Small real images for cover and comic-page tests.
# ABOUTME: Encoded with Pillow so decoders see genuine JPEG/PNG data.

import io

from PIL import Image


def image_bytes(color: tuple[int, int, int] = (200, 30, 30), fmt: str = "JPEG") -> bytes:
    """A 60x90 solid-color image, encoded as fmt."""
    buffer = io.BytesIO()
    Image.new("RGB", (60, 90), color=color).save(buffer, format=fmt)
    return buffer.getvalue()
