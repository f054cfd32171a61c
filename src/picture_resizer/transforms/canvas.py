"""
Canvas Extension
================

Pads an image with white so it meets minimum dimensions and, optionally,
a target aspect ratio. The source is never cropped or scaled.

Flow:
    1. Probe (w0, h0) from the head of the stream
    2. plan_canvas computes output size and insets
    3. The rest of the stream is pumped through the pipe into a stage
       that decodes, extends and encodes on the codec pool
    4. Encoded output is written to the sink in chunks

Memory:
    OpenCV decodes whole buffers only, so the stage collects the full
    source before decoding. Peak memory is the encoded source plus the
    decoded and extended pixels. Backpressure applies to the source
    read-ahead and to output writes.

Sink Contract:
    - Success: sink closed
    - Probe failure (DimensionError): nothing written, sink left open
    - Decode/encode/source failure or cancellation after probing: sink
      left open; any bytes already written stay written
"""

import logging
from typing import AsyncIterable, AsyncIterator, Optional

import numpy as np

from picture_resizer.codec.image_codec import decode_image, encode_image, extend
from picture_resizer.codec.probe import probe_stream
from picture_resizer.codec.workers import CodecPool
from picture_resizer.errors import DimensionError, ProbeError
from picture_resizer.models.metadata import ImageFormat, ImageMetadata
from picture_resizer.models.requests import ResizeRequest
from picture_resizer.stream.pipe import collect, run_pipeline
from picture_resizer.stream.sink import ByteSink
from picture_resizer.transforms.geometry import CanvasPlan, Insets, plan_canvas
from picture_resizer.transforms.options import EncodeOptions, PipelineOptions


logger = logging.getLogger(__name__)


def render_canvas(data: bytes, insets: Insets, encode: EncodeOptions) -> bytes:
    """Decode, extend and encode. Runs on a codec worker."""
    pixels: np.ndarray = decode_image(data)
    extended = extend(
        pixels,
        top=insets.top,
        bottom=insets.bottom,
        left=insets.left,
        right=insets.right,
    )
    return encode_image(
        extended,
        encode.output_format,
        jpeg_quality=encode.jpeg_quality,
        png_compression=encode.png_compression,
    )


async def extend_canvas(
    source: AsyncIterable[bytes],
    sink: ByteSink,
    request: ResizeRequest,
    pool: CodecPool,
    encode: Optional[EncodeOptions] = None,
    options: Optional[PipelineOptions] = None,
) -> ImageMetadata:
    """
    Extend the canvas of the image read from ``source``.

    Args:
        source: Encoded source image bytes
        sink: Output destination
        request: Minimum size and optional aspect ratio
        pool: Worker pool for codec calls
        encode: Output format and encoder quality
        options: Chunking and probe limits

    Returns:
        Metadata of the written image

    Raises:
        DimensionError: If the source dimensions cannot be probed
        CodecError: If decoding or encoding fails
    """
    encode = encode or EncodeOptions()
    options = options or PipelineOptions()

    try:
        metadata, stream = await probe_stream(
            source,
            max_probe_bytes=options.max_probe_bytes,
            max_pixels=options.max_pixels,
        )
    except ProbeError as e:
        raise DimensionError("Cannot get size of the picture") from e

    plan: CanvasPlan = plan_canvas(
        metadata.width,
        metadata.height,
        request.min_width,
        request.min_height,
        request.aspect_ratio,
    )

    async def stage(chunks: AsyncIterator[bytes]) -> bytes:
        data = await collect(chunks)
        return await pool.run(render_canvas, data, plan.insets, encode)

    written = await run_pipeline(
        stream,
        stage,
        sink,
        queue_size=options.queue_size,
        chunk_size=options.chunk_size,
    )
    await sink.close()

    logger.info(
        f"Extended {metadata.size} -> {plan.width}x{plan.height} "
        f"({encode.output_format.value}, {written} bytes)"
    )
    return ImageMetadata(
        width=plan.width,
        height=plan.height,
        format=ImageFormat(encode.output_format.value),
    )
