"""
Data Models
===========

Metadata records and request models for the transform core.

Models:
    Metadata:
        - ImageFormat: Formats reported by the probe
        - OutputFormat: Formats the encoders emit
        - ImageMetadata: Width, height and format of an image

    Requests:
        - ResizeRequest: Canvas extension parameters
        - FramePaddingRequest: Fit-to-padding compositing parameters
        - FramePositionRequest: Fit-to-position compositing parameters
"""

from picture_resizer.models.metadata import ImageFormat, ImageMetadata, OutputFormat
from picture_resizer.models.requests import (
    FramePaddingRequest,
    FramePositionRequest,
    ResizeRequest,
    parse_aspect_ratio,
)

__all__ = [
    # Metadata
    "ImageFormat",
    "OutputFormat",
    "ImageMetadata",
    # Requests
    "ResizeRequest",
    "FramePaddingRequest",
    "FramePositionRequest",
    "parse_aspect_ratio",
]
