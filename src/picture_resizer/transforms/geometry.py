"""
Transform Geometry
==================

Pure size and placement arithmetic for the three transforms. Nothing in
here touches pixels, so every rule can be checked without a codec.

Canvas Extension:
    width  = max(min_width, w0)
    height = max(min_height, h0)
    With aspect r = H/W:  new_height = r * width, or, if that is shorter
    than height, new_height = height and new_width = height / r.
    Each axis is padded symmetrically by d = max((new - old) / 2, 0).
    A fractional d gives floor(d) on the left/top and floor(d) + 1 on the
    right/bottom.

Fit-to-padding:
    The subject is scaled to fit (contain) the frame minus padding on
    every side and centred in that inner rectangle. Output = frame size.

Fit-to-position:
    The subject is scaled to photo_width (or kept) and placed at an
    explicit offset. Output = frame size grown to cover the subject.

Arithmetic is done with Fraction so the rounding rules are exact.
"""

import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Optional, Tuple, Union


Number = Union[int, Fraction]


def round_half_up(value: Number) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(Fraction(value) + Fraction(1, 2))


def split_delta(delta: Number) -> Tuple[int, int]:
    """
    Split a padding delta into (leading, trailing) insets.

    Integral deltas are used on both sides; fractional ones give the
    leading side the floor and the trailing side one more pixel.
    """
    delta = Fraction(delta)
    if delta.denominator == 1:
        return int(delta), int(delta)
    low = math.floor(delta)
    return low, low + 1


@dataclass(frozen=True)
class Insets:
    """Pixels added on each side of the source image."""

    top: int = 0
    bottom: int = 0
    left: int = 0
    right: int = 0


@dataclass(frozen=True)
class CanvasPlan:
    """
    Result of canvas extension planning.

    Attributes:
        width: Output width in pixels
        height: Output height in pixels
        insets: Padding added around the source
        target_width: Exact (possibly fractional) constrained width
        target_height: Exact (possibly fractional) constrained height
    """

    width: int
    height: int
    insets: Insets
    target_width: Fraction
    target_height: Fraction


def plan_canvas(
    src_width: int,
    src_height: int,
    min_width: int,
    min_height: int,
    aspect_ratio: Optional[Fraction] = None,
) -> CanvasPlan:
    """
    Compute the canvas extension for a source image.

    Args:
        src_width: Source width (w0)
        src_height: Source height (h0)
        min_width: Minimum output width
        min_height: Minimum output height
        aspect_ratio: Target height/width ratio, None for unconstrained

    Returns:
        CanvasPlan with output size and insets
    """
    width = Fraction(max(min_width, src_width))
    height = Fraction(max(min_height, src_height))
    new_width, new_height = width, height

    if aspect_ratio:
        new_height = aspect_ratio * width
        if new_height < height:
            new_height = height
            new_width = height / aspect_ratio

    width_diff = max((new_width - src_width) / 2, Fraction(0))
    height_diff = max((new_height - src_height) / 2, Fraction(0))

    left, right = split_delta(width_diff)
    top, bottom = split_delta(height_diff)
    insets = Insets(top=top, bottom=bottom, left=left, right=right)

    return CanvasPlan(
        width=src_width + left + right,
        height=src_height + top + bottom,
        insets=insets,
        target_width=new_width,
        target_height=new_height,
    )


@dataclass(frozen=True)
class Placement:
    """
    Where and how large the subject is drawn on a compositing canvas.

    Attributes:
        canvas_width: Output width
        canvas_height: Output height
        subject_width: Subject width after scaling
        subject_height: Subject height after scaling
        left: Subject X offset
        top: Subject Y offset
    """

    canvas_width: int
    canvas_height: int
    subject_width: int
    subject_height: int
    left: int
    top: int


def plan_fit_padding(
    frame_width: int,
    frame_height: int,
    padding: int,
    src_width: int,
    src_height: int,
) -> Placement:
    """Contain-fit the subject into the frame's inner rectangle and centre it."""
    padding = max(0, int(padding))
    inner_width = max(frame_width - 2 * padding, 1)
    inner_height = max(frame_height - 2 * padding, 1)

    target_width = inner_width
    target_height = round_half_up(Fraction(src_height * inner_width, src_width))

    if target_height > inner_height:
        target_height = inner_height
        target_width = round_half_up(Fraction(src_width * inner_height, src_height))

    target_width = max(target_width, 1)
    target_height = max(target_height, 1)

    return Placement(
        canvas_width=frame_width,
        canvas_height=frame_height,
        subject_width=target_width,
        subject_height=target_height,
        left=padding + (inner_width - target_width) // 2,
        top=padding + (inner_height - target_height) // 2,
    )


def plan_fit_position(
    frame_width: int,
    frame_height: int,
    src_width: int,
    src_height: int,
    photo_width: Optional[int],
    photo_left: int,
    photo_top: int,
) -> Placement:
    """Scale the subject to photo_width and grow the canvas to cover it."""
    target_width = photo_width if photo_width else src_width
    target_height = max(
        round_half_up(Fraction(src_height * target_width, src_width)), 1
    )

    return Placement(
        canvas_width=max(photo_left + target_width, frame_width),
        canvas_height=max(photo_top + target_height, frame_height),
        subject_width=target_width,
        subject_height=target_height,
        left=photo_left,
        top=photo_top,
    )
