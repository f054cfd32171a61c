"""
Metadata Probe
==============

Reads just enough of an image to report its width, height and format.

Two entry points:
    - probe_stream: incremental, over an async byte iterator. Feeds chunks
      into Pillow's ImageFile.Parser until the header is understood, then
      hands back a replaying iterator so downstream stages still see every
      byte, including the ones the probe consumed.
    - probe_bytes: for images already buffered in memory (lazy Image.open,
      no pixel decode).

Design Rules:
    - Never decodes pixels; Pillow is used for header parsing only
    - The probed prefix is bounded by max_probe_bytes
    - Width * height is bounded by max_pixels
    - Any failure is a ProbeError; no retry
"""

import io
import logging
from typing import AsyncIterator, List, Tuple

from PIL import Image, ImageFile

from picture_resizer.errors import ProbeError, SourceError
from picture_resizer.models.metadata import ImageFormat, ImageMetadata


logger = logging.getLogger(__name__)


DEFAULT_MAX_PROBE_BYTES = 4 * 1024 * 1024

# 16383 x 16383
DEFAULT_MAX_PIXELS = 0x3FFF * 0x3FFF

# Pillow's own decompression-bomb guard is replaced by the max_pixels check
Image.MAX_IMAGE_PIXELS = None

# Pillow reports malformed headers through these
_PIL_ERRORS = (OSError, SyntaxError, ValueError)


def _to_metadata(image: Image.Image, max_pixels: int) -> ImageMetadata:
    width, height = image.size
    if width <= 0 or height <= 0:
        raise ProbeError(f"Image reports non-positive size {width}x{height}")
    if width * height > max_pixels:
        raise ProbeError(
            f"Image size ({width * height} pixels) exceeds limit of {max_pixels} pixels"
        )
    return ImageMetadata(
        width=width,
        height=height,
        format=ImageFormat.from_pil(image.format),
    )


async def _replay(
    prefix: List[bytes],
    rest: AsyncIterator[bytes],
) -> AsyncIterator[bytes]:
    for chunk in prefix:
        yield chunk
    async for chunk in rest:
        yield chunk


async def probe_stream(
    chunks: AsyncIterator[bytes],
    max_probe_bytes: int = DEFAULT_MAX_PROBE_BYTES,
    max_pixels: int = DEFAULT_MAX_PIXELS,
) -> Tuple[ImageMetadata, AsyncIterator[bytes]]:
    """
    Probe image metadata from the head of a byte stream.

    Args:
        chunks: Source byte iterator
        max_probe_bytes: Give up when this many bytes have not revealed
            the image header
        max_pixels: Largest accepted width * height

    Returns:
        (metadata, stream) where stream yields the full original byte
        sequence, starting with the chunks the probe already read

    Raises:
        ProbeError: If the stream ends, fails or is malformed before
            the dimensions are known, or when the image exceeds
            max_pixels
    """
    parser = ImageFile.Parser()
    iterator = chunks.__aiter__()
    prefix: List[bytes] = []
    seen = 0

    while parser.image is None:
        try:
            chunk = await iterator.__anext__()
        except StopAsyncIteration:
            raise ProbeError(
                f"Stream ended after {seen} bytes before image size was known"
            )
        except SourceError as e:
            raise ProbeError(f"Source failed while probing: {e}") from e

        if not chunk:
            continue

        prefix.append(chunk)
        seen += len(chunk)

        try:
            parser.feed(chunk)
        except _PIL_ERRORS as e:
            raise ProbeError(f"Malformed image header: {e}") from e

        if parser.image is None and seen >= max_probe_bytes:
            raise ProbeError(
                f"No recognisable image header in the first {seen} bytes"
            )

    metadata = _to_metadata(parser.image, max_pixels)
    logger.debug(
        f"Probed {metadata.format.value} {metadata.size} from {seen} bytes"
    )
    return metadata, _replay(prefix, iterator)


def probe_bytes(data: bytes, max_pixels: int = DEFAULT_MAX_PIXELS) -> ImageMetadata:
    """
    Probe metadata of a fully buffered image.

    Raises:
        ProbeError: If the bytes are not a recognisable image or exceed
            max_pixels
    """
    if not data:
        raise ProbeError("Empty image buffer")
    try:
        with Image.open(io.BytesIO(data)) as image:
            return _to_metadata(image, max_pixels)
    except _PIL_ERRORS as e:
        raise ProbeError(f"Cannot identify image: {e}") from e
