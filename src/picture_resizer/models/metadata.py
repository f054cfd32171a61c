"""
Image Metadata
==============

Format enums and the probed metadata record shared by the codec layer
and the transforms.

Design Rules:
    - ImageMetadata is immutable once derived
    - Width and height are always positive; the probe refuses to build
      a record otherwise
"""

from dataclasses import dataclass
from enum import Enum


class ImageFormat(str, Enum):
    """
    Raster formats recognised by the metadata probe.

    Anything Pillow identifies that is not listed here is reported
    as OTHER; it is still decoded if OpenCV can read it.
    """

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    GIF = "gif"
    BMP = "bmp"
    TIFF = "tiff"
    OTHER = "other"

    @classmethod
    def from_pil(cls, name: str) -> "ImageFormat":
        """Map a Pillow format name ("JPEG", "MPO", ...) to an ImageFormat."""
        name = (name or "").upper()
        if name in ("JPEG", "MPO"):
            return cls.JPEG
        try:
            return cls(name.lower())
        except ValueError:
            return cls.OTHER


class OutputFormat(str, Enum):
    """Encoder formats the transforms can emit."""

    JPEG = "jpeg"
    PNG = "png"

    @property
    def media_type(self) -> str:
        return f"image/{self.value}"

    @property
    def extension(self) -> str:
        return ".jpg" if self is OutputFormat.JPEG else ".png"


@dataclass(frozen=True, slots=True)
class ImageMetadata:
    """
    Dimensions and format of an image.

    Attributes:
        width: Width in pixels (> 0)
        height: Height in pixels (> 0)
        format: Detected container format
    """

    width: int
    height: int
    format: ImageFormat

    @property
    def size(self) -> str:
        """Dimensions as ``WxH``."""
        return f"{self.width}x{self.height}"
