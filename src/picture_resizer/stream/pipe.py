"""
Streaming Pipe
==============

Wires a byte source, a transform stage and a sink together.

    source --(reader task)--> ChunkBuffer --> stage --> encoded bytes --> sink

The reader task pumps the source into a bounded ChunkBuffer, so it never
runs more than queue_size chunks ahead of the stage. Memory is bounded
only as far as the stage itself consumes incrementally; a stage that
collects its whole input holds the whole source. The encoded result is
written to the sink in fixed-size chunks, each write awaiting the sink's
readiness.

Cancellation:
    If the stage fails or the owning task is cancelled, the reader task is
    cancelled and awaited before the error propagates, so no read is left
    pending. A reader failure reaches the stage through the buffer.
"""

import asyncio
import logging
from typing import AsyncIterable, AsyncIterator, Awaitable, Callable

from picture_resizer.stream.buffer import ChunkBuffer
from picture_resizer.stream.sink import ByteSink


logger = logging.getLogger(__name__)


Stage = Callable[[AsyncIterator[bytes]], Awaitable[bytes]]

DEFAULT_CHUNK_SIZE = 64 * 1024


async def collect(chunks: AsyncIterable[bytes]) -> bytes:
    """Read an async byte iterator to the end."""
    parts = []
    async for chunk in chunks:
        parts.append(chunk)
    return b"".join(parts)


async def pump(source: AsyncIterable[bytes], buffer: ChunkBuffer) -> None:
    """Copy ``source`` into ``buffer``, then signal end of stream or failure."""
    try:
        async for chunk in source:
            if chunk:
                await buffer.put(chunk)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        await buffer.fail(e)
        return
    await buffer.finish()


async def write_chunks(
    sink: ByteSink,
    data: bytes,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """
    Write ``data`` to ``sink`` in chunks of at most ``chunk_size`` bytes.

    Returns:
        Number of bytes written
    """
    view = memoryview(data)
    for offset in range(0, len(view), chunk_size):
        await sink.write(bytes(view[offset:offset + chunk_size]))
    return len(view)


async def run_pipeline(
    source: AsyncIterable[bytes],
    stage: Stage,
    sink: ByteSink,
    queue_size: int = 16,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """
    Run ``stage`` over ``source`` and write its output to ``sink``.

    The sink is not closed here; that is the caller's decision.

    Args:
        source: Input byte iterator
        stage: Coroutine function turning the buffered chunks into output
        sink: Output destination
        queue_size: Chunks buffered between reader and stage
        chunk_size: Output write size

    Returns:
        Number of bytes written to the sink
    """
    buffer = ChunkBuffer(maxsize=queue_size)
    reader = asyncio.create_task(pump(source, buffer), name="pipeline_reader")

    try:
        payload = await stage(buffer.__aiter__())
        await reader
    except BaseException:
        if not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        raise

    logger.debug(f"Pipeline buffer {buffer.metrics()}, writing {len(payload)} bytes")
    return await write_chunks(sink, payload, chunk_size)
