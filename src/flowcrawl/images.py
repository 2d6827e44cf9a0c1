"""Snapshot post-processing and storage."""

import io
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlsplit

from PIL import Image, UnidentifiedImageError

from flowcrawl.constants import SCREENSHOT_FORMAT

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

MAX_PATH_SLUG_LENGTH = 80


def resize_to_width(data: bytes, width: int) -> bytes:
    """Resize a PNG snapshot to a fixed width, preserving aspect ratio.

    Upscaling is allowed. When the image cannot be decoded, resized or
    re-encoded, or declares more pixels than Pillow will open (a very long
    full-page capture), the original bytes are returned unchanged.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            if image.width == width:
                return data
            height = max(1, round(image.height * width / image.width))
            resized = image.resize((width, height), Image.Resampling.LANCZOS)
            buffer = io.BytesIO()
            resized.save(buffer, format="PNG", optimize=True)
            return buffer.getvalue()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.warning(f"Snapshot resize failed, keeping original ({e})")
        return data


def screenshot_filename(url: str, timestamp_ms: Optional[int] = None) -> str:
    """Build a unique file name from host, path and capture time."""
    parts = urlsplit(url)
    host = _UNSAFE_CHARS.sub("-", (parts.hostname or "page").lower())
    if parts.path in ("", "/"):
        slug = "index"
    else:
        slug = _UNSAFE_CHARS.sub("_", parts.path.strip("/").replace("/", "_")) or "index"
    slug = slug[:MAX_PATH_SLUG_LENGTH]
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{host}_{slug}_{timestamp_ms}_{uuid.uuid4().hex[:6]}.{SCREENSHOT_FORMAT}"


class ScreenshotStore:
    """Writes snapshot artifacts under one directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def save(self, url: str, data: bytes) -> Path:
        """Persist snapshot bytes for a URL and return the written path."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / screenshot_filename(url)
        path.write_bytes(data)
        logger.debug(f"Saved snapshot {path.name} ({len(data) / 1024:.0f}KB)")
        return path
