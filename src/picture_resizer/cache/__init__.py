"""
Cache Module
============

Process-lifetime cache of decoded frame assets.
"""

from picture_resizer.cache.frame_cache import FrameCache, FrameCacheEntry


__all__ = [
    "FrameCache",
    "FrameCacheEntry",
]
