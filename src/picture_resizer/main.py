"""
Picture Resizer Main Application
================================

FastAPI entry point for the image transform service.

Endpoints:
    GET /               - Canvas extension (width + height given) or
                          pass-through proxy of the source image
    GET /frame          - Frame compositing, fit-to-padding
    GET /frame/position - Frame compositing, fit-to-position
    GET /health         - Liveness probe
    GET /metrics        - Frame cache, worker pool and request counters

Process State:
    The lifespan builds one CodecPool, one httpx client and one FrameCache
    and keeps them on ``app.state``; handlers pass them explicitly into
    the transforms.

Output Streaming:
    Each transform runs as its own task writing into a QueueSink that the
    StreamingResponse drains. Errors raised before the first byte become
    plain-text 4xx/5xx responses; later errors truncate the body.
"""

import asyncio
import logging
import os
import re
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse

from picture_resizer.cache import FrameCache
from picture_resizer.codec import CodecPool, decode_image
from picture_resizer.config import settings
from picture_resizer.errors import (
    FrameDecodeError,
    SourceError,
    SourceNotFoundError,
)
from picture_resizer.models import (
    FramePaddingRequest,
    FramePositionRequest,
    OutputFormat,
    ResizeRequest,
)
from picture_resizer.sources import (
    HttpFrameFetcher,
    HttpSourceProvider,
    SourceStream,
    create_http_client,
)
from picture_resizer.stream import QueueSink
from picture_resizer.transforms import (
    EncodeOptions,
    PipelineOptions,
    composite_fit_padding,
    composite_fit_position,
    extend_canvas,
)


logger = logging.getLogger(__name__)


ASPECT_PATTERN = re.compile(r"^\d+:\d+$")


# =============================================================================
# Global State
# =============================================================================

_startup_time: float = 0.0
_request_count: int = 0
_error_count: int = 0


# =============================================================================
# Option Builders
# =============================================================================

def encode_options() -> EncodeOptions:
    return EncodeOptions(
        output_format=settings.transform.output_format,
        jpeg_quality=settings.transform.jpeg_quality,
        png_compression=settings.transform.png_compression,
    )


def pipeline_options() -> PipelineOptions:
    return PipelineOptions(
        chunk_size=settings.pipeline.chunk_size,
        queue_size=settings.pipeline.queue_size,
        max_probe_bytes=settings.pipeline.max_probe_bytes,
        max_pixels=settings.pipeline.max_pixels,
    )


def create_frame_cache(client, pool: CodecPool) -> FrameCache:
    """Build the process-wide frame cache on top of the shared client and pool."""

    async def decode(data: bytes):
        return await pool.run(decode_image, data, FrameDecodeError)

    return FrameCache(
        fetch=HttpFrameFetcher(client),
        capacity=settings.frame_cache.capacity,
        decode=decode,
        dedupe_inflight=settings.frame_cache.dedupe_inflight,
    )


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the shared pool, client and cache; release them on shutdown."""
    global _startup_time

    _startup_time = time.time()
    logger.info(f"Starting {settings.service.name} {settings.service.version}")

    pool = CodecPool(max_workers=settings.pipeline.max_workers)
    client = create_http_client(
        timeout_seconds=settings.fetch.timeout_seconds,
        user_agent=settings.fetch.user_agent,
    )

    app.state.pool = pool
    app.state.http_client = client
    app.state.source_provider = HttpSourceProvider(client)
    app.state.frame_cache = create_frame_cache(client, pool)

    logger.info(
        f"Transform output format: {settings.transform.output_format.value}, "
        f"frame cache capacity: {settings.frame_cache.capacity}"
    )

    yield

    logger.info("Shutting down gracefully...")
    await client.aclose()
    pool.shutdown()
    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Picture Resizer",
    description="On-the-fly canvas extension and frame compositing",
    version=settings.service.version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


# =============================================================================
# Helpers
# =============================================================================

def _bad_request(message: str) -> PlainTextResponse:
    return PlainTextResponse(message, status_code=400)


def _parse_int(value: Optional[str]) -> Optional[int]:
    """Parse an optional integer query value; raises ValueError when malformed."""
    if value is None or value == "":
        return None
    return int(value, 10)


def _error_response(error: BaseException, url: str) -> PlainTextResponse:
    global _error_count
    _error_count += 1
    logger.error(f"Error url={url}: {error}")

    if isinstance(error, SourceNotFoundError):
        return PlainTextResponse("Resource not found", status_code=404)
    return PlainTextResponse("Failed to process image", status_code=500)


async def _open_source(request: Request, url: str) -> SourceStream:
    provider: HttpSourceProvider = request.app.state.source_provider
    return await provider.open(url)


async def _close_after(job: Awaitable, stream: SourceStream):
    try:
        return await job
    finally:
        await stream.aclose()


async def _stream_transform(
    job: Awaitable,
    sink: QueueSink,
    stream: SourceStream,
    media_type: str,
    url: str,
) -> Response:
    """
    Run ``job`` and stream whatever it writes into ``sink``.

    Waits until the job has either produced output or failed. A failure
    before any output becomes an error response; a failure afterwards
    finalizes the sink so the body ends early.
    """
    task = asyncio.create_task(_close_after(job, stream), name=f"transform:{url}")

    def _on_done(t: asyncio.Task) -> None:
        global _error_count

        if t.cancelled():
            sink.terminate()
            return
        error = t.exception()
        if error is not None and sink.bytes_written > 0:
            _error_count += 1
            logger.error(f"Transform failed after output started url={url}: {error}")
        if error is not None:
            sink.terminate()

    task.add_done_callback(_on_done)

    started = asyncio.create_task(sink.wait_started())
    try:
        await asyncio.wait({task, started}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        started.cancel()
        if not task.done() and not sink.started:
            # Only reached when this handler itself is cancelled
            task.cancel()

    if task.done() and not task.cancelled() and task.exception() is not None:
        if sink.bytes_written == 0:
            return _error_response(task.exception(), url)

    async def body() -> AsyncIterator[bytes]:
        try:
            async for chunk in sink.chunks():
                yield chunk
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(body(), media_type=media_type)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def resize(
    request: Request,
    url: Optional[str] = None,
    width: Optional[str] = None,
    height: Optional[str] = None,
    aspect: Optional[str] = None,
) -> Response:
    """
    Extend the source image's canvas, or proxy it unchanged.

    Canvas extension runs only when both width and height are non-zero.
    """
    global _request_count
    _request_count += 1

    if not url:
        return _bad_request('Missing "url" parameter')
    try:
        min_width = _parse_int(width)
        min_height = _parse_int(height)
    except ValueError:
        return _bad_request('Invalid "width" or "height" parameter')
    if aspect and not ASPECT_PATTERN.match(aspect):
        return _bad_request('Invalid "aspect" parameter format, expected "X:Y"')

    try:
        stream = await _open_source(request, url)
    except SourceError as e:
        return _error_response(e, url)

    if not (min_width and min_height):
        headers = {}
        if stream.content_length and not stream.content_encoding:
            headers["Content-Length"] = stream.content_length
        return StreamingResponse(
            _close_after_iter(stream),
            media_type=stream.content_type or "application/octet-stream",
            headers=headers,
        )

    resize_request = ResizeRequest(
        min_width=max(min_width, 0),
        min_height=max(min_height, 0),
        aspect=aspect,
    )
    encode = encode_options()
    sink = QueueSink(maxsize=settings.pipeline.queue_size)
    job = extend_canvas(
        stream.chunks(),
        sink,
        resize_request,
        request.app.state.pool,
        encode=encode,
        options=pipeline_options(),
    )
    return await _stream_transform(job, sink, stream, encode.output_format.media_type, url)


async def _close_after_iter(stream: SourceStream) -> AsyncIterator[bytes]:
    try:
        async for chunk in stream.chunks():
            yield chunk
    finally:
        await stream.aclose()


@app.get("/frame")
async def frame_fit_padding(
    request: Request,
    url: Optional[str] = None,
    frame: Optional[str] = None,
    padding: Optional[str] = None,
) -> Response:
    """Composite the source under a frame, fitted inside the frame's padding."""
    global _request_count
    _request_count += 1

    if not url:
        return _bad_request('Missing "url" parameter')
    if not frame:
        return _bad_request('Missing "frame" parameter')
    try:
        padding_value = _parse_int(padding) or 0
    except ValueError:
        return _bad_request('Invalid "padding" parameter')

    frame_request = FramePaddingRequest(frame_url=frame, padding=max(padding_value, 0))

    try:
        stream = await _open_source(request, url)
    except SourceError as e:
        return _error_response(e, url)

    sink = QueueSink(maxsize=settings.pipeline.queue_size)
    job = composite_fit_padding(
        stream.chunks(),
        sink,
        frame_request,
        request.app.state.frame_cache,
        request.app.state.pool,
        encode=encode_options(),
        chunk_size=settings.pipeline.chunk_size,
        max_pixels=settings.pipeline.max_pixels,
    )
    return await _stream_transform(job, sink, stream, OutputFormat.JPEG.media_type, url)


@app.get("/frame/position")
async def frame_fit_position(
    request: Request,
    url: Optional[str] = None,
    frame: Optional[str] = None,
    photo_width: Optional[str] = None,
    photo_left: Optional[str] = None,
    photo_top: Optional[str] = None,
) -> Response:
    """Composite the source under a frame at an explicit position."""
    global _request_count
    _request_count += 1

    if not url:
        return _bad_request('Missing "url" parameter')
    if not frame:
        return _bad_request('Missing "frame" parameter')
    try:
        width_value = _parse_int(photo_width)
        left_value = _parse_int(photo_left) or 0
        top_value = _parse_int(photo_top) or 0
    except ValueError:
        return _bad_request('Invalid "photo_width", "photo_left" or "photo_top" parameter')
    if width_value is not None and width_value <= 0:
        return _bad_request('Invalid "photo_width" parameter')

    frame_request = FramePositionRequest(
        frame_url=frame,
        photo_width=width_value,
        photo_left=left_value,
        photo_top=top_value,
    )

    try:
        stream = await _open_source(request, url)
    except SourceError as e:
        return _error_response(e, url)

    sink = QueueSink(maxsize=settings.pipeline.queue_size)
    job = composite_fit_position(
        stream.chunks(),
        sink,
        frame_request,
        request.app.state.frame_cache,
        request.app.state.pool,
        encode=encode_options(),
        chunk_size=settings.pipeline.chunk_size,
        max_pixels=settings.pipeline.max_pixels,
    )
    return await _stream_transform(job, sink, stream, OutputFormat.JPEG.media_type, url)


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/metrics")
async def metrics(request: Request) -> JSONResponse:
    """Frame cache, worker pool and request metrics."""
    cache: Optional[FrameCache] = getattr(request.app.state, "frame_cache", None)
    pool: Optional[CodecPool] = getattr(request.app.state, "pool", None)

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "requests": _request_count,
        "errors": _error_count,
        "output_format": settings.transform.output_format.value,
        "frame_cache": cache.metrics() if cache else {},
        "codec_pool": pool.metrics() if pool else {},
    })


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    # Cloud Run uses PORT env var
    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "picture_resizer.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
