"""
Transform Options
=================

Per-call encoder and pipeline knobs. The HTTP layer builds these from
settings; library callers pass their own.
"""

from dataclasses import dataclass

from picture_resizer.codec.probe import DEFAULT_MAX_PIXELS, DEFAULT_MAX_PROBE_BYTES
from picture_resizer.models.metadata import OutputFormat
from picture_resizer.stream.pipe import DEFAULT_CHUNK_SIZE


@dataclass(frozen=True)
class EncodeOptions:
    """
    Encoder configuration.

    Attributes:
        output_format: Format written by canvas extension. Frame
            compositing always writes JPEG.
        jpeg_quality: JPEG quality (1-100)
        png_compression: PNG compression level (0-9)
    """

    output_format: OutputFormat = OutputFormat.JPEG
    jpeg_quality: int = 80
    png_compression: int = 6


@dataclass(frozen=True)
class PipelineOptions:
    """
    Streaming configuration.

    Attributes:
        chunk_size: Size of writes to the sink
        queue_size: Chunks buffered between source reader and stage
        max_probe_bytes: Prefix limit for the metadata probe
        max_pixels: Largest accepted source width * height
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    queue_size: int = 16
    max_probe_bytes: int = DEFAULT_MAX_PROBE_BYTES
    max_pixels: int = DEFAULT_MAX_PIXELS
