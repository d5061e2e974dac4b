"""Ad screenshot helpers: crop with context and content-addressed storage."""

from __future__ import annotations

import hashlib
import os
from io import BytesIO

from PIL import Image

CONTEXT_MARGIN_PX = 150


def crop_box(
    bbox: dict[str, float],
    image_size: tuple[int, int],
    *,
    margin: int = CONTEXT_MARGIN_PX,
    scale: float = 1.0,
) -> tuple[int, int, int, int]:
    """Return a ``(left, top, right, bottom)`` crop around ``bbox`` clamped to the image.

    ``bbox`` is in CSS pixels; ``scale`` converts to screenshot pixels.
    """

    width, height = image_size
    left = int((bbox["x"] - margin) * scale)
    top = int((bbox["y"] - margin) * scale)
    right = int((bbox["x"] + bbox["width"] + margin) * scale)
    bottom = int((bbox["y"] + bbox["height"] + margin) * scale)
    left, top = max(0, left), max(0, top)
    right, bottom = min(width, right), min(height, bottom)
    if right <= left or bottom <= top:
        return (0, 0, width, height)
    return (left, top, right, bottom)


def crop_with_context(png_bytes: bytes, bbox: dict[str, float], *, margin: int = CONTEXT_MARGIN_PX, scale: float = 1.0) -> bytes:
    """Crop a viewport screenshot to the ad plus ``margin`` pixels of surrounding page."""

    with Image.open(BytesIO(png_bytes)) as im:
        cropped = im.crop(crop_box(bbox, im.size, margin=margin, scale=scale))
        out = BytesIO()
        cropped.save(out, format="PNG", optimize=True)
        return out.getvalue()


def save_png(output_dir: str, crawl_id: int, png_bytes: bytes) -> str:
    """Write ``png_bytes`` under a sha256-derived path and return that path."""

    sha = hashlib.sha256(png_bytes).hexdigest()
    path = os.path.join(output_dir, f"crawl_{crawl_id}", "ads", sha[:2], f"{sha}.png")
    os.makedirs(os.path.dirname(path), exist_ok=True)
    if not os.path.exists(path):
        with open(path, "wb") as fh:
            fh.write(png_bytes)
    return path


__all__ = ["CONTEXT_MARGIN_PX", "crop_box", "crop_with_context", "save_png"]
