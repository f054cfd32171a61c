"""
Test Configuration
==================

Pytest fixtures and test configuration for the picture resizer.

Images are generated in memory with numpy + OpenCV so the suite needs no
binary fixtures or network access.
"""

from typing import Dict, Optional

import cv2
import numpy as np
import pytest


# Solid subject colour (BGR). Solid colours survive JPEG almost unchanged.
SUBJECT_BGR = (200, 120, 30)
FRAME_BORDER_BGR = (0, 0, 255)
FRAME_WINDOW = (40, 40, 440, 600)  # x0, y0, x1, y1


def encode(image: np.ndarray, ext: str) -> bytes:
    ok, buffer = cv2.imencode(ext, image)
    assert ok
    return buffer.tobytes()


def decode(data: bytes) -> np.ndarray:
    image = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_UNCHANGED)
    assert image is not None
    return image


def close_to(pixel, expected, tolerance: int = 12) -> bool:
    return all(abs(int(p) - int(e)) <= tolerance for p, e in zip(pixel, expected))


def make_subject(width: int, height: int) -> np.ndarray:
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:] = SUBJECT_BGR
    return image


def make_frame(width: int = 480, height: int = 640) -> np.ndarray:
    """Opaque red border with a fully transparent window."""
    frame = np.zeros((height, width, 4), dtype=np.uint8)
    frame[:, :, :3] = FRAME_BORDER_BGR
    frame[:, :, 3] = 255
    x0, y0, x1, y1 = FRAME_WINDOW
    frame[y0:y1, x0:x1, 3] = 0
    return frame


class FakeSourceStream:
    """Stands in for sources.SourceStream."""

    def __init__(self, url: str, data: bytes, content_type: Optional[str]) -> None:
        self.url = url
        self.data = data
        self.content_type = content_type
        self.content_length = str(len(data))
        self.content_encoding = None
        self.closed = False

    async def chunks(self):
        for offset in range(0, len(self.data), 4096):
            yield self.data[offset:offset + 4096]

    async def aclose(self) -> None:
        self.closed = True


class FakeSourceProvider:
    """Serves in-memory images; unknown URLs answer as 404."""

    def __init__(self, images: Dict[str, bytes]) -> None:
        self.images = images
        self.opened = []

    async def open(self, url: str) -> FakeSourceStream:
        from picture_resizer.errors import SourceNotFoundError

        if url not in self.images:
            raise SourceNotFoundError(f"Resource not found: {url}")
        content_type = "image/png" if url.endswith(".png") else "image/jpeg"
        stream = FakeSourceStream(url, self.images[url], content_type)
        self.opened.append(stream)
        return stream


class CountingFetcher:
    """Fetch function for FrameCache that records every call."""

    def __init__(self, assets: Dict[str, bytes]) -> None:
        self.assets = assets
        self.calls = []

    async def __call__(self, url: str) -> bytes:
        from picture_resizer.errors import SourceNotFoundError

        self.calls.append(url)
        if url not in self.assets:
            raise SourceNotFoundError(f"Frame not found: {url}")
        return self.assets[url]


@pytest.fixture
def subject_jpeg() -> bytes:
    """640x480 solid-colour JPEG."""
    return encode(make_subject(640, 480), ".jpg")


@pytest.fixture
def subject_png() -> bytes:
    """400x566 solid-colour PNG."""
    return encode(make_subject(400, 566), ".png")


@pytest.fixture
def frame_png() -> bytes:
    """480x640 BGRA PNG frame with a transparent window."""
    return encode(make_frame(), ".png")


@pytest.fixture
def codec_pool():
    """Small worker pool, shut down after the test."""
    from picture_resizer.codec import CodecPool

    pool = CodecPool(max_workers=2)
    yield pool
    pool.shutdown()


@pytest.fixture
def frame_fetcher(frame_png) -> CountingFetcher:
    return CountingFetcher({"https://assets.test/frame.png": frame_png})
