"""
Picture Resizer
===============

On-the-fly image transform service.

Fetches a remote image and returns a transformed copy: a white canvas
extension to a minimum size and aspect ratio, or a composite of the image
under a decorative frame.

Components:
    - transforms: Canvas extension and frame compositing
    - cache: Bounded LRU of decoded frame assets
    - codec: Header probing, pixel ops and the worker pool
    - stream: Chunk buffer, pipe and output sinks
    - sources: httpx-backed subject and frame providers

Example:
    from picture_resizer.config import settings

    # The service is started via the FastAPI application
    # See main.py for entry point
"""

__version__ = "0.1.0"
__author__ = "Picture Resizer Project"

__all__ = [
    "__version__",
]
