"""
Codec Module
============

Everything that reads or writes image bytes.

Components:
    - probe_stream / probe_bytes: Header-only metadata probe (Pillow)
    - decode_image / encode_image: Pixel codec (OpenCV)
    - extend / resize / composite: Pixel operations used by the transforms
    - CodecPool: Thread pool the transforms run codec calls on
"""

from picture_resizer.codec.probe import probe_bytes, probe_stream
from picture_resizer.codec.image_codec import (
    composite,
    decode_image,
    encode_image,
    extend,
    flatten,
    image_size,
    resize,
    white_canvas,
)
from picture_resizer.codec.workers import CodecPool


__all__ = [
    "probe_stream",
    "probe_bytes",
    "decode_image",
    "encode_image",
    "extend",
    "flatten",
    "image_size",
    "resize",
    "white_canvas",
    "composite",
    "CodecPool",
]
