"""
Image Codec
===========

OpenCV/numpy helpers for decoding, reshaping and encoding pixels.

Pixel Layout:
    Decoded images are uint8 arrays of shape (H, W, 3) BGR or (H, W, 4)
    BGRA. Grayscale and 16-bit inputs are normalised into that layout so
    every transform sees the same shapes.

Design Rules:
    - This is the ONLY place in the codebase that touches OpenCV
    - All functions are synchronous and CPU bound; callers run them
      through CodecPool
    - Fails fast with ImageDecodeError / ImageEncodeError
    - EXIF orientation is ignored, matching the metadata probe
"""

import logging
from typing import Tuple, Type

import cv2
import numpy as np

from picture_resizer.errors import ImageDecodeError, ImageEncodeError
from picture_resizer.models.metadata import OutputFormat


logger = logging.getLogger(__name__)


WHITE_BGRA: Tuple[int, int, int, int] = (255, 255, 255, 255)


# =============================================================================
# Decode
# =============================================================================

def decode_image(
    data: bytes,
    error_cls: Type[ImageDecodeError] = ImageDecodeError,
) -> np.ndarray:
    """
    Decode encoded image bytes to a BGR or BGRA array.

    Args:
        data: Encoded image (JPEG, PNG, WebP, ...)
        error_cls: Exception type raised on failure

    Returns:
        uint8 array of shape (H, W, 3) or (H, W, 4)

    Raises:
        ImageDecodeError: If OpenCV cannot decode the bytes
    """
    if not data:
        raise error_cls("Cannot decode empty image data")

    try:
        image = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise error_cls(f"cv2.imdecode failed: {e}") from e

    if image is None:
        raise error_cls("cv2.imdecode returned None")

    return _normalise(image, error_cls)


def _normalise(image: np.ndarray, error_cls: Type[ImageDecodeError]) -> np.ndarray:
    if image.dtype == np.uint16:
        image = (image >> 8).astype(np.uint8)
    elif image.dtype != np.uint8:
        raise error_cls(f"Unsupported pixel dtype: {image.dtype}")

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

    channels = image.shape[2]
    if channels == 1:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if channels in (3, 4):
        return image

    raise error_cls(f"Unsupported channel count: {channels}")


def image_size(image: np.ndarray) -> Tuple[int, int]:
    """Return (width, height) of a decoded image."""
    return int(image.shape[1]), int(image.shape[0])


# =============================================================================
# Pixel Operations
# =============================================================================

def extend(
    image: np.ndarray,
    top: int,
    bottom: int,
    left: int,
    right: int,
) -> np.ndarray:
    """Grow the canvas by the given insets, filling with opaque white."""
    if not (top or bottom or left or right):
        return image
    return cv2.copyMakeBorder(
        image,
        top=top,
        bottom=bottom,
        left=left,
        right=right,
        borderType=cv2.BORDER_CONSTANT,
        value=WHITE_BGRA[: image.shape[2]],
    )


def resize(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Resize to exactly (width, height), ignoring aspect ratio.

    INTER_AREA is used when shrinking, INTER_LANCZOS4 otherwise.
    """
    src_width, src_height = image_size(image)
    if (src_width, src_height) == (width, height):
        return image

    if width * height < src_width * src_height:
        interpolation = cv2.INTER_AREA
    else:
        interpolation = cv2.INTER_LANCZOS4
    return cv2.resize(image, (width, height), interpolation=interpolation)


def white_canvas(width: int, height: int) -> np.ndarray:
    """Create an opaque white BGR canvas."""
    return np.full((height, width, 3), 255, dtype=np.uint8)


def composite(canvas: np.ndarray, layer: np.ndarray, left: int, top: int) -> None:
    """
    Draw ``layer`` over ``canvas`` in place at (left, top).

    BGRA layers are alpha-blended, BGR layers are copied. Parts of the
    layer falling outside the canvas are clipped.
    """
    canvas_width, canvas_height = image_size(canvas)
    layer_width, layer_height = image_size(layer)

    x0, y0 = max(left, 0), max(top, 0)
    x1 = min(left + layer_width, canvas_width)
    y1 = min(top + layer_height, canvas_height)
    if x1 <= x0 or y1 <= y0:
        return

    patch = layer[y0 - top:y1 - top, x0 - left:x1 - left]
    region = canvas[y0:y1, x0:x1]

    if patch.shape[2] == 4:
        alpha = patch[:, :, 3:4].astype(np.float32) / 255.0
        blended = patch[:, :, :3].astype(np.float32) * alpha
        blended += region.astype(np.float32) * (1.0 - alpha)
        region[:] = np.clip(blended + 0.5, 0, 255).astype(np.uint8)
    else:
        region[:] = patch


def flatten(image: np.ndarray) -> np.ndarray:
    """Blend a BGRA image onto white, returning BGR. BGR input is returned as is."""
    if image.shape[2] != 4:
        return image
    width, height = image_size(image)
    canvas = white_canvas(width, height)
    composite(canvas, image, 0, 0)
    return canvas


# =============================================================================
# Encode
# =============================================================================

def encode_image(
    image: np.ndarray,
    output_format: OutputFormat,
    jpeg_quality: int = 80,
    png_compression: int = 6,
) -> bytes:
    """
    Encode pixels as JPEG or PNG.

    JPEG has no alpha channel, so BGRA input is flattened onto white.

    Raises:
        ImageEncodeError: If cv2.imencode fails
    """
    if output_format is OutputFormat.JPEG:
        image = flatten(image)
        params = [cv2.IMWRITE_JPEG_QUALITY, jpeg_quality]
    else:
        params = [cv2.IMWRITE_PNG_COMPRESSION, png_compression]

    try:
        ok, buffer = cv2.imencode(output_format.extension, image, params)
    except cv2.error as e:
        raise ImageEncodeError(f"cv2.imencode failed: {e}") from e

    if not ok:
        raise ImageEncodeError(f"cv2.imencode could not produce {output_format.value}")

    return buffer.tobytes()
