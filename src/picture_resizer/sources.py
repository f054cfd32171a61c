"""
Sources
=======

Collaborators that supply bytes to the transform core.

This module provides:
    - HttpSourceProvider: streams a remote image (subject) over httpx
    - HttpFrameFetcher: downloads a frame asset in full; also decodes
      ``data:`` URLs locally
    - bytes_source / file_source: async byte iterators for local input

Design Rules:
    - Network and status failures surface as SourceError
    - A 404 surfaces as SourceNotFoundError
    - No share-link resolution: URLs are fetched as given
"""

import asyncio
import base64
import binascii
import logging
from pathlib import Path
from typing import AsyncIterator, Optional, Union
from urllib.parse import unquote_to_bytes

import httpx

from picture_resizer.errors import SourceError, SourceNotFoundError


logger = logging.getLogger(__name__)


DEFAULT_CHUNK_SIZE = 64 * 1024


def create_http_client(
    timeout_seconds: float = 30.0,
    user_agent: str = "picture-resizer/0.1",
) -> httpx.AsyncClient:
    """Build the shared AsyncClient used by the providers."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_seconds),
        follow_redirects=True,
        headers={"User-Agent": user_agent},
    )


# =============================================================================
# Subject Source
# =============================================================================

class SourceStream:
    """
    An open streaming response.

    Attributes:
        url: Requested URL
        content_type: Upstream Content-Type, if any
        content_length: Upstream Content-Length, if any
        content_encoding: Upstream Content-Encoding, if any
    """

    def __init__(self, url: str, response: httpx.Response) -> None:
        self.url = url
        self._response = response

    @property
    def content_type(self) -> Optional[str]:
        return self._response.headers.get("content-type")

    @property
    def content_length(self) -> Optional[str]:
        return self._response.headers.get("content-length")

    @property
    def content_encoding(self) -> Optional[str]:
        return self._response.headers.get("content-encoding")

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield the response body, mapping transport errors to SourceError."""
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            raise SourceError(f"Failed reading {self.url}: {e}") from e

    async def aclose(self) -> None:
        await self._response.aclose()


class HttpSourceProvider:
    """
    Opens subject images as byte streams.

    Example:
        provider = HttpSourceProvider(client)
        stream = await provider.open(url)
        try:
            async for chunk in stream.chunks():
                ...
        finally:
            await stream.aclose()
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def open(self, url: str) -> SourceStream:
        """
        Start a streaming GET for ``url``.

        Raises:
            SourceNotFoundError: On 404
            SourceError: On any other failure or error status
        """
        try:
            request = self._client.build_request("GET", url)
            response = await self._client.send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise SourceError(f"Failed to fetch {url}: {e}") from e

        if response.status_code == 404:
            await response.aclose()
            raise SourceNotFoundError(f"Resource not found: {url}")
        if response.is_error:
            await response.aclose()
            raise SourceError(f"Upstream answered {response.status_code} for {url}")

        return SourceStream(url, response)


# =============================================================================
# Frame Assets
# =============================================================================

def decode_data_url(url: str) -> bytes:
    """
    Return the payload of a ``data:`` URL.

    Raises:
        SourceError: If the URL is malformed
    """
    header, sep, payload = url.partition(",")
    if not sep or not header.startswith("data:"):
        raise SourceError("Malformed data URL")

    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as e:
            raise SourceError(f"Malformed base64 in data URL: {e}") from e
    return unquote_to_bytes(payload)


class HttpFrameFetcher:
    """
    Fetch function for FrameCache.

    Downloads the whole asset; ``data:`` URLs are decoded without I/O.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def __call__(self, url: str) -> bytes:
        if url.startswith("data:"):
            return decode_data_url(url)

        try:
            response = await self._client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise SourceError(f"Failed to fetch frame {url}: {e}") from e

        if response.status_code == 404:
            raise SourceNotFoundError(f"Frame not found: {url}")
        if response.is_error:
            raise SourceError(f"Upstream answered {response.status_code} for frame {url}")

        logger.debug(f"Fetched frame {url} ({len(response.content)} bytes)")
        return response.content


# =============================================================================
# Local Sources
# =============================================================================

async def bytes_source(
    data: bytes,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """Yield ``data`` in chunks."""
    for offset in range(0, len(data), chunk_size):
        yield data[offset:offset + chunk_size]


async def file_source(
    path: Union[str, Path],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """Yield a file's contents in chunks, reading on a worker thread."""
    with open(path, "rb") as f:
        while True:
            chunk = await asyncio.to_thread(f.read, chunk_size)
            if not chunk:
                return
            yield chunk
