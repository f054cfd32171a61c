"""
Chunk Buffer
============

Async bounded queue carrying byte chunks between pipeline stages.

This module provides the ChunkBuffer class, which acts as the interface
between the source reader and the transform stage of a pipeline.

Design Rules:
    - Fixed maximum size; a full buffer suspends the producer (backpressure)
    - End of stream and producer failures travel through the queue in order
    - Exposes minimal metrics for observability
    - Does NOT inspect or modify chunks
"""

import asyncio
import logging
from typing import AsyncIterator, Optional, Union


logger = logging.getLogger(__name__)


class _EndOfStream:
    __slots__ = ()


_EOF = _EndOfStream()


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: BaseException) -> None:
        self.error = error


_Item = Union[bytes, _EndOfStream, _Failure]


class ChunkBuffer:
    """
    Bounded single-producer, single-consumer chunk queue.

    Iterating the buffer yields chunks until the producer calls finish(),
    or re-raises the producer's error passed to fail().

    Attributes:
        maxsize: Maximum number of chunks held
        total_put: Chunks ever put
        total_bytes: Bytes ever put

    Example:
        buffer = ChunkBuffer(maxsize=16)

        # Producer
        await buffer.put(chunk)
        await buffer.finish()

        # Consumer
        async for chunk in buffer:
            handle(chunk)
    """

    def __init__(self, maxsize: int = 16) -> None:
        """
        Initialize chunk buffer.

        Args:
            maxsize: Maximum chunks to buffer. Must be >= 1.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._maxsize = maxsize
        self._queue: asyncio.Queue[_Item] = asyncio.Queue(maxsize=maxsize)
        self._finished: bool = False
        self._total_put: int = 0
        self._total_bytes: int = 0

    @property
    def maxsize(self) -> int:
        """Maximum buffer size."""
        return self._maxsize

    @property
    def size(self) -> int:
        """Current number of items in buffer."""
        return self._queue.qsize()

    @property
    def total_put(self) -> int:
        return self._total_put

    @property
    def total_bytes(self) -> int:
        return self._total_bytes

    async def put(self, chunk: bytes) -> None:
        """
        Add a chunk, waiting while the buffer is full.

        Raises:
            RuntimeError: If called after finish() or fail()
        """
        if self._finished:
            raise RuntimeError("put() after end of stream")
        self._total_put += 1
        self._total_bytes += len(chunk)
        await self._queue.put(chunk)

    async def finish(self) -> None:
        """Signal end of stream."""
        if not self._finished:
            self._finished = True
            await self._queue.put(_EOF)

    async def fail(self, error: BaseException) -> None:
        """Deliver a producer error to the consumer."""
        if not self._finished:
            self._finished = True
            await self._queue.put(_Failure(error))

    async def get(self) -> Optional[bytes]:
        """
        Get the next chunk.

        Returns:
            Next chunk, or None at end of stream.

        Raises:
            The producer's error, if it failed.
        """
        item = await self._queue.get()
        if isinstance(item, _Failure):
            raise item.error
        if isinstance(item, _EndOfStream):
            # Keep the marker for any later get()
            self._queue.put_nowait(item)
            return None
        return item

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.get()
            if chunk is None:
                return
            yield chunk

    def metrics(self) -> dict:
        """
        Get buffer metrics for observability.

        Returns:
            Dict with size, maxsize, total_put, total_bytes
        """
        return {
            "size": self.size,
            "maxsize": self._maxsize,
            "total_put": self._total_put,
            "total_bytes": self._total_bytes,
        }
