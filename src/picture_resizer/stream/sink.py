"""
Output Sinks
============

Destinations the transforms write encoded images into.

Sink Lifecycle:
    Transforms close the sink after a successful write. On any failure
    they leave it open, so the owner can finalize it, truncate it, or
    write an error body of its own. Bytes already written are never
    rolled back.

Implementations:
    - BufferSink: collects output in memory
    - QueueSink: bounded hand-off to a streaming HTTP response
"""

import asyncio
import logging
from typing import AsyncIterator, Protocol


logger = logging.getLogger(__name__)


class ByteSink(Protocol):
    """
    Protocol for output destinations.

    ``write`` may suspend until the consumer has room (backpressure).
    """

    @property
    def closed(self) -> bool:
        ...

    async def write(self, data: bytes) -> None:
        ...

    async def close(self) -> None:
        ...


class BufferSink:
    """In-memory sink."""

    def __init__(self) -> None:
        self._data = bytearray()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("write to closed sink")
        self._data.extend(data)

    async def close(self) -> None:
        self._closed = True

    def getvalue(self) -> bytes:
        return bytes(self._data)


class _Closed:
    __slots__ = ()


_CLOSED = _Closed()


class QueueSink:
    """
    Bounded sink drained by an async consumer.

    The HTTP layer iterates ``chunks()`` inside a streaming response while
    a transform task writes into the sink. ``write`` waits whenever
    ``maxsize`` chunks are pending.

    Example:
        sink = QueueSink(maxsize=16)
        task = asyncio.create_task(extend_canvas(source, sink, request, ...))
        await sink.wait_started()
        return StreamingResponse(sink.chunks())
    """

    def __init__(self, maxsize: int = 16) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed: bool = False
        self._started = asyncio.Event()
        self._bytes_written: int = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def started(self) -> bool:
        """Whether anything has been written or the sink was closed."""
        return self._started.is_set()

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("write to closed sink")
        self._started.set()
        self._bytes_written += len(data)
        await self._queue.put(bytes(data))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._started.set()
        await self._queue.put(_CLOSED)

    def terminate(self) -> None:
        """
        Finalize without waiting.

        Used on abort paths where the consumer may be slow or gone.
        Pending chunks are dropped if the queue is full.
        """
        if self._closed:
            return
        self._closed = True
        self._started.set()
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                return
            except asyncio.QueueFull:
                self._queue.get_nowait()

    async def wait_started(self) -> None:
        """Wait until the first write or close."""
        await self._started.wait()

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield written chunks until the sink is closed."""
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
