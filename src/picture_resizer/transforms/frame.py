"""
Frame Compositing
=================

Draws a decorative frame over a subject image. Two independent
operations share the frame cache:

    composite_fit_padding:
        Subject contain-fitted inside frame minus padding, centred.
        Output size == frame size, always.

    composite_fit_position:
        Subject scaled to photo_width (or kept) and placed at
        (photo_left, photo_top). Output grows past the frame when the
        subject overflows it.

Both stack layers on a white canvas: subject first, frame on top at the
origin, so the frame's transparent window reveals the subject.

Memory:
    The whole subject is buffered before transforming. Output is always
    JPEG.

Sink Contract:
    Success closes the sink. Any failure happens before the first write,
    leaving the sink open and empty.
"""

import dataclasses
import logging
from typing import AsyncIterable, Optional, Tuple

import numpy as np

from picture_resizer.cache.frame_cache import FrameCache, FrameCacheEntry
from picture_resizer.codec.image_codec import (
    composite,
    decode_image,
    encode_image,
    resize,
    white_canvas,
)
from picture_resizer.codec.probe import DEFAULT_MAX_PIXELS, probe_bytes
from picture_resizer.codec.workers import CodecPool
from picture_resizer.errors import DimensionError, ProbeError
from picture_resizer.models.metadata import ImageFormat, ImageMetadata, OutputFormat
from picture_resizer.models.requests import FramePaddingRequest, FramePositionRequest
from picture_resizer.stream.pipe import DEFAULT_CHUNK_SIZE, collect, write_chunks
from picture_resizer.stream.sink import ByteSink
from picture_resizer.transforms.geometry import Placement, plan_fit_padding, plan_fit_position
from picture_resizer.transforms.options import EncodeOptions


logger = logging.getLogger(__name__)


async def resolve_frame(cache: FrameCache, frame_url: str) -> FrameCacheEntry:
    """Fetch (or reuse) the decoded frame at ``frame_url``."""
    return await cache.get(frame_url)


def render_composite(
    data: bytes,
    frame: np.ndarray,
    placement: Placement,
    encode: EncodeOptions,
) -> bytes:
    """Decode the subject, scale it, layer it under the frame and encode."""
    subject = decode_image(data)
    subject = resize(subject, placement.subject_width, placement.subject_height)

    canvas = white_canvas(placement.canvas_width, placement.canvas_height)
    composite(canvas, subject, placement.left, placement.top)
    composite(canvas, frame, 0, 0)

    return encode_image(
        canvas,
        OutputFormat.JPEG,
        jpeg_quality=encode.jpeg_quality,
    )


async def _read_subject(
    source: AsyncIterable[bytes],
    max_pixels: int,
) -> Tuple[bytes, ImageMetadata]:
    data = await collect(source)
    try:
        metadata = probe_bytes(data, max_pixels)
    except ProbeError as e:
        raise DimensionError("Cannot get size of the base picture") from e
    return data, metadata


async def _emit(
    sink: ByteSink,
    payload: bytes,
    placement: Placement,
    chunk_size: int,
) -> ImageMetadata:
    await write_chunks(sink, payload, chunk_size)
    await sink.close()
    return ImageMetadata(
        width=placement.canvas_width,
        height=placement.canvas_height,
        format=ImageFormat.JPEG,
    )


async def composite_fit_padding(
    source: AsyncIterable[bytes],
    sink: ByteSink,
    request: FramePaddingRequest,
    cache: FrameCache,
    pool: CodecPool,
    encode: Optional[EncodeOptions] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_pixels: int = DEFAULT_MAX_PIXELS,
) -> ImageMetadata:
    """
    Fit the subject inside the frame's padded inner rectangle.

    Args:
        source: Encoded subject image bytes
        sink: Output destination
        request: Frame URL and padding
        cache: Frame cache used to resolve the frame
        pool: Worker pool for codec calls
        encode: JPEG quality (output_format is ignored)
        chunk_size: Output write size
        max_pixels: Largest accepted subject width * height

    Returns:
        Metadata of the written JPEG, always the frame's size

    Raises:
        FrameDecodeError: If the frame cannot be decoded
        DimensionError: If the subject dimensions cannot be probed
        SourceError: If the frame or the subject cannot be read
    """
    encode = dataclasses.replace(encode or EncodeOptions(), output_format=OutputFormat.JPEG)

    frame = await resolve_frame(cache, request.frame_url)
    data, metadata = await _read_subject(source, max_pixels)

    placement = plan_fit_padding(
        frame.width,
        frame.height,
        request.padding,
        metadata.width,
        metadata.height,
    )
    payload = await pool.run(render_composite, data, frame.buffer, placement, encode)

    logger.info(
        f"Framed {metadata.size} into {frame.width}x{frame.height} "
        f"(padding={request.padding}, subject={placement.subject_width}x{placement.subject_height})"
    )
    return await _emit(sink, payload, placement, chunk_size)


async def composite_fit_position(
    source: AsyncIterable[bytes],
    sink: ByteSink,
    request: FramePositionRequest,
    cache: FrameCache,
    pool: CodecPool,
    encode: Optional[EncodeOptions] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_pixels: int = DEFAULT_MAX_PIXELS,
) -> ImageMetadata:
    """
    Place the subject at an explicit offset under the frame.

    Returns:
        Metadata of the written JPEG; at least the frame's size, larger
        when the subject overflows it

    Raises:
        FrameDecodeError: If the frame cannot be decoded
        DimensionError: If the subject dimensions cannot be probed
        SourceError: If the frame or the subject cannot be read
    """
    encode = dataclasses.replace(encode or EncodeOptions(), output_format=OutputFormat.JPEG)

    frame = await resolve_frame(cache, request.frame_url)
    data, metadata = await _read_subject(source, max_pixels)

    placement = plan_fit_position(
        frame.width,
        frame.height,
        metadata.width,
        metadata.height,
        request.photo_width,
        request.photo_left,
        request.photo_top,
    )
    payload = await pool.run(render_composite, data, frame.buffer, placement, encode)

    logger.info(
        f"Placed {metadata.size} as {placement.subject_width}x{placement.subject_height} "
        f"at ({placement.left}, {placement.top}) on {placement.canvas_width}x{placement.canvas_height}"
    )
    return await _emit(sink, payload, placement, chunk_size)
