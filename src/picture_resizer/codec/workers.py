"""
Codec Worker Pool
=================

Bounded thread pool for CPU-bound decode/resize/encode work.

OpenCV releases the GIL inside its kernels, so running codec calls on a
small ThreadPoolExecutor keeps the event loop responsive while several
requests transform images at once.

Cancellation:
    Cancelling the awaiting task abandons the result; the worker thread
    itself runs the current call to completion.
"""

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class CodecPool:
    """
    Awaitable wrapper around a ThreadPoolExecutor.

    Example:
        pool = CodecPool(max_workers=4)
        pixels = await pool.run(decode_image, data)
        pool.shutdown()
    """

    def __init__(self, max_workers: int = 4) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="codec",
        )
        self._submitted: int = 0

        logger.info(f"CodecPool initialized: max_workers={max_workers}")

    @property
    def max_workers(self) -> int:
        return self._max_workers

    async def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``fn(*args, **kwargs)`` on a worker thread and await the result."""
        if self._executor is None:
            raise RuntimeError("CodecPool is shut down")

        self._submitted += 1
        loop = asyncio.get_running_loop()
        call = functools.partial(fn, *args, **kwargs)
        return await loop.run_in_executor(self._executor, call)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work and release the threads."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=True)
            self._executor = None
            logger.info(f"CodecPool shut down after {self._submitted} jobs")

    def metrics(self) -> dict:
        return {
            "max_workers": self._max_workers,
            "submitted": self._submitted,
        }
