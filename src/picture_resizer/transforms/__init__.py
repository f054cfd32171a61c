"""
Transforms Module
=================

The three image transforms and their geometry.

Components:
    - extend_canvas: White canvas extension to minimum size / aspect ratio
    - composite_fit_padding: Frame compositing, output pinned to frame size
    - composite_fit_position: Frame compositing, canvas grows on overflow
    - geometry: Pure size/placement arithmetic behind all three
"""

from picture_resizer.transforms.canvas import extend_canvas
from picture_resizer.transforms.frame import (
    composite_fit_padding,
    composite_fit_position,
    resolve_frame,
)
from picture_resizer.transforms.geometry import (
    CanvasPlan,
    Insets,
    Placement,
    plan_canvas,
    plan_fit_padding,
    plan_fit_position,
)
from picture_resizer.transforms.options import EncodeOptions, PipelineOptions


__all__ = [
    "extend_canvas",
    "composite_fit_padding",
    "composite_fit_position",
    "resolve_frame",
    "CanvasPlan",
    "Insets",
    "Placement",
    "plan_canvas",
    "plan_fit_padding",
    "plan_fit_position",
    "EncodeOptions",
    "PipelineOptions",
]
