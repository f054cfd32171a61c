"""
Frame Cache
===========

Bounded LRU cache of decoded frame assets, keyed by URL.

This module provides the FrameCache class, which sits between the frame
compositing transforms and the network. On a miss it fetches the asset
through an injected fetch function, decodes it fully, validates its size
and inserts it, evicting the least recently used entry when full.

Design Rules:
    - Size never exceeds capacity; an insert at capacity evicts exactly one
    - Recency is refreshed on every hit and every insert
    - A failed fetch or decode never occupies a slot or reorders entries
    - Entries are immutable; callers get read-only pixel views
    - No TTL or invalidation: frame assets are static per URL

Concurrency:
    All bookkeeping runs on the event loop thread between awaits, so no
    lock is needed. With dedupe_inflight enabled, concurrent misses for
    the same URL share one pending load; disabled, each miss fetches on
    its own (the last one to finish wins the slot).
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

import numpy as np

from picture_resizer.codec.image_codec import decode_image, image_size
from picture_resizer.errors import FrameDecodeError


logger = logging.getLogger(__name__)


FetchFn = Callable[[str], Awaitable[bytes]]
DecodeFn = Callable[[bytes], Awaitable[np.ndarray]]

DEFAULT_CAPACITY = 5


@dataclass(frozen=True)
class FrameCacheEntry:
    """
    A decoded frame asset.

    Attributes:
        buffer: Read-only BGR/BGRA pixel array
        width: Frame width in pixels
        height: Frame height in pixels
    """

    buffer: np.ndarray
    width: int
    height: int

    def __repr__(self) -> str:
        return f"FrameCacheEntry(width={self.width}, height={self.height})"


async def _decode_in_thread(data: bytes) -> np.ndarray:
    return await asyncio.to_thread(decode_image, data, FrameDecodeError)


class FrameCache:
    """
    LRU store mapping frame URL to FrameCacheEntry.

    Attributes:
        capacity: Maximum number of entries
        size: Current number of entries

    Example:
        cache = FrameCache(fetch=fetcher, capacity=5)
        entry = await cache.get("https://example.com/frame.png")
        entry.width, entry.height
    """

    def __init__(
        self,
        fetch: FetchFn,
        capacity: int = DEFAULT_CAPACITY,
        decode: Optional[DecodeFn] = None,
        dedupe_inflight: bool = True,
    ) -> None:
        """
        Initialize frame cache.

        Args:
            fetch: Coroutine function returning the raw bytes at a URL
            capacity: Maximum entries. Must be >= 1.
            decode: Coroutine function decoding bytes to pixels; defaults
                to decode_image on a worker thread
            dedupe_inflight: Share one load between concurrent misses
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")

        self._fetch = fetch
        self._decode = decode or _decode_in_thread
        self._capacity = capacity
        self._dedupe_inflight = dedupe_inflight

        self._entries: "OrderedDict[str, FrameCacheEntry]" = OrderedDict()
        self._pending: Dict[str, asyncio.Task] = {}

        self._hits: int = 0
        self._misses: int = 0
        self._evictions: int = 0
        self._fetches: int = 0
        self._fetch_errors: int = 0

        logger.info(
            f"FrameCache initialized: capacity={capacity}, "
            f"dedupe_inflight={dedupe_inflight}"
        )

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return len(self._entries)

    def __contains__(self, url: str) -> bool:
        return url in self._entries

    def keys(self) -> list:
        """URLs from least to most recently used."""
        return list(self._entries.keys())

    async def get(self, url: str) -> FrameCacheEntry:
        """
        Return the decoded frame at ``url``, loading it on a miss.

        Raises:
            FrameDecodeError: If the asset cannot be decoded or is zero-sized
            SourceError: If the fetch fails (propagated from the fetcher)
        """
        entry = self._entries.get(url)
        if entry is not None:
            self._entries.move_to_end(url)
            self._hits += 1
            logger.debug(f"Frame cache hit: {url}")
            return entry

        self._misses += 1
        logger.debug(f"Frame cache miss: {url}")

        if not self._dedupe_inflight:
            entry = await self._load(url)
            self._insert(url, entry)
            return entry

        task = self._pending.get(url)
        if task is None:
            task = asyncio.create_task(self._load_and_insert(url), name=f"frame_load:{url}")
            self._pending[url] = task
            task.add_done_callback(lambda t, key=url: self._release(key, t))

        # Shielded so one cancelled waiter does not fail the others
        return await asyncio.shield(task)

    def _release(self, url: str, task: asyncio.Task) -> None:
        self._pending.pop(url, None)
        # Marks the error retrieved even when every waiter is gone
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Frame load failed for {url}: {task.exception()}")

    async def _load_and_insert(self, url: str) -> FrameCacheEntry:
        entry = await self._load(url)
        self._insert(url, entry)
        return entry

    async def _load(self, url: str) -> FrameCacheEntry:
        self._fetches += 1
        try:
            data = await self._fetch(url)
            pixels = await self._decode(data)
        except Exception:
            self._fetch_errors += 1
            raise

        width, height = image_size(pixels)
        if width <= 0 or height <= 0:
            self._fetch_errors += 1
            raise FrameDecodeError(f"Cannot get size of the frame picture: {url}")

        pixels.setflags(write=False)
        return FrameCacheEntry(buffer=pixels, width=width, height=height)

    def _insert(self, url: str, entry: FrameCacheEntry) -> None:
        if url in self._entries:
            self._entries[url] = entry
            self._entries.move_to_end(url)
            return

        if len(self._entries) >= self._capacity:
            evicted, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug(f"Frame cache evicted: {evicted}")

        self._entries[url] = entry

    def metrics(self) -> dict:
        """
        Get cache metrics for observability.

        Returns:
            Dict with size, capacity, hits, misses, evictions, fetches,
            fetch_errors and pending loads
        """
        return {
            "size": self.size,
            "capacity": self._capacity,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "fetches": self._fetches,
            "fetch_errors": self._fetch_errors,
            "pending": len(self._pending),
        }
