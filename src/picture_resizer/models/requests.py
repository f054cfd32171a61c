"""
Transform Requests
==================

Pydantic models for the three transform requests and the aspect-ratio
parser.

Request Shapes:
    ResizeRequest          -> canvas extension
    FramePaddingRequest    -> frame compositing, fit-to-padding
    FramePositionRequest   -> frame compositing, fit-to-position

Aspect Ratio:
    The textual form is "<int>:<int>" (width:height). Anything else,
    including a zero or negative component, parses to None, which means
    "no aspect constraint". The HTTP layer rejects malformed values
    before they get here.

Example:
    from picture_resizer.models.requests import ResizeRequest

    request = ResizeRequest(min_width=300, min_height=300, aspect="3:4")
    request.aspect_ratio  # Fraction(4, 3), i.e. height / width
"""

import logging
from fractions import Fraction
from typing import Optional

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


def parse_aspect_ratio(text: Optional[str]) -> Optional[Fraction]:
    """
    Parse "X:Y" into the ratio height/width (Y/X).

    Args:
        text: Aspect ratio string such as "4:3", or None

    Returns:
        Fraction Y/X, or None when the text is absent or invalid
    """
    if not text or not isinstance(text, str):
        return None

    parts = text.strip().split(":")
    if len(parts) != 2:
        logger.warning(f"Ignoring malformed aspect ratio {text!r}")
        return None

    try:
        x = int(parts[0].strip())
        y = int(parts[1].strip())
    except ValueError:
        logger.warning(f"Ignoring malformed aspect ratio {text!r}")
        return None

    if x <= 0 or y <= 0:
        logger.warning(f"Ignoring non-positive aspect ratio {text!r}")
        return None

    return Fraction(y, x)


class ResizeRequest(BaseModel):
    """
    Canvas extension request.

    Attributes:
        min_width: Minimum output width
        min_height: Minimum output height
        aspect: Optional "X:Y" target aspect ratio
    """

    min_width: int = Field(default=0, ge=0, description="Minimum output width")
    min_height: int = Field(default=0, ge=0, description="Minimum output height")
    aspect: Optional[str] = Field(
        default=None,
        description="Target aspect ratio as 'X:Y' (width:height)",
    )

    @property
    def aspect_ratio(self) -> Optional[Fraction]:
        """Parsed height/width ratio, None when absent or invalid."""
        return parse_aspect_ratio(self.aspect)


class FramePaddingRequest(BaseModel):
    """
    Fit-to-padding frame compositing request.

    The subject is scaled to fit inside the frame minus ``padding`` on
    every side, centred, and the frame is drawn over it.
    """

    frame_url: str = Field(..., min_length=1, description="URL of the frame asset")
    padding: int = Field(default=0, ge=0, description="Uniform inner padding in pixels")


class FramePositionRequest(BaseModel):
    """
    Fit-to-position frame compositing request.

    The subject is scaled to ``photo_width`` (or kept at its own width)
    and placed at (``photo_left``, ``photo_top``) under the frame. The
    canvas grows when the subject overflows the frame.
    """

    frame_url: str = Field(..., min_length=1, description="URL of the frame asset")
    photo_width: Optional[int] = Field(
        default=None,
        gt=0,
        description="Target subject width; source width when omitted",
    )
    photo_left: int = Field(default=0, description="Subject X offset on the canvas")
    photo_top: int = Field(default=0, description="Subject Y offset on the canvas")
