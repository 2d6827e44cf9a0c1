"""Tests for snapshot resizing and storage."""

import io
import re
import struct
import zlib

from PIL import Image

from flowcrawl.images import ScreenshotStore, resize_to_width, screenshot_filename


def _png(width, height, color=(200, 30, 30)):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def _png_header(width, height):
    """A PNG with only a signature, an IHDR chunk and IEND.

    Enough for Image.open() to read the declared size without any pixel data.
    """
    def chunk(kind, payload):
        body = kind + payload
        return struct.pack(">I", len(payload)) + body + struct.pack(">I", zlib.crc32(body) & 0xFFFFFFFF)

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IEND", b"")


def _size(data):
    with Image.open(io.BytesIO(data)) as image:
        return image.size


class TestResizeToWidth:
    """Test cases for resize_to_width()."""

    def test_downscale_preserves_aspect_ratio(self):
        resized = resize_to_width(_png(1920, 3000), 1440)
        assert _size(resized) == (1440, 2250)

    def test_upscale_allowed(self):
        resized = resize_to_width(_png(375, 1000), 750)
        assert _size(resized) == (750, 2000)

    def test_same_width_returns_original_bytes(self):
        data = _png(1440, 900)
        assert resize_to_width(data, 1440) is data

    def test_undecodable_bytes_fall_back_to_original(self):
        data = b"definitely not a png"
        assert resize_to_width(data, 1440) == data

    def test_oversized_capture_falls_back_to_original(self):
        # 7680 x 30000 is more than twice Image.MAX_IMAGE_PIXELS
        data = _png_header(7680, 30000)
        assert 7680 * 30000 > 2 * Image.MAX_IMAGE_PIXELS

        assert resize_to_width(data, 1440) == data


class TestScreenshotFilename:
    """Test cases for screenshot_filename()."""

    def test_root_path_uses_index(self):
        name = screenshot_filename("https://Ex.com/", timestamp_ms=1700000000000)
        assert re.fullmatch(r"ex\.com_index_1700000000000_[0-9a-f]{6}\.png", name)

    def test_path_becomes_slug(self):
        name = screenshot_filename("https://ex.com/docs/getting started?x=1", timestamp_ms=1)
        assert name.startswith("ex.com_docs_getting_started_1_")

    def test_names_are_unique(self):
        names = {screenshot_filename("https://ex.com/a", timestamp_ms=5) for _ in range(20)}
        assert len(names) == 20


class TestScreenshotStore:
    """Test cases for ScreenshotStore."""

    def test_save_creates_directory_and_file(self, tmp_path):
        store = ScreenshotStore(tmp_path / "shots")
        path = store.save("https://ex.com/pricing", b"png-bytes")

        assert path.parent == tmp_path / "shots"
        assert path.read_bytes() == b"png-bytes"
        assert path.name.startswith("ex.com_pricing_")
