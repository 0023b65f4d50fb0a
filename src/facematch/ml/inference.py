"""Worker pool for enrollment, recognition and store calls.

Every route hands its ``FaceRecognitionService`` call to this pool:

    route -> asyncio.Semaphore(max_concurrent) -> ThreadPoolExecutor -> service -> store

A recognition call decodes the whole enrolled set and scans it linearly, and
the SQL store blocks on its connection, so neither may run on the event loop.
At most ``FACEMATCH_MAX_CONCURRENT`` calls run at once; the rest wait up to
``SEMAPHORE_TIMEOUT_SECONDS`` for a slot and then fail, which the routes
report as 503.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from facematch.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEMAPHORE_TIMEOUT_SECONDS: float = 5.0


class InferencePool:
    """Runs blocking service calls on a bounded set of worker threads.

    ``active_count`` and ``queue_depth`` feed the health endpoint.
    """

    def __init__(self, settings: Settings, timeout: float = SEMAPHORE_TIMEOUT_SECONDS) -> None:
        self._semaphore = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="facematch-worker",
        )
        self._timeout = timeout
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._counter_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Wait for a free slot, then run ``func(*args)`` on a worker thread.

        Exceptions raised by ``func`` propagate unchanged.

        Raises:
            TimeoutError: If every slot stays busy for the whole timeout.
        """
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self._timeout)
        except TimeoutError:
            logger.warning("No worker available after %.1fs", self._timeout)
            raise
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        with self._counter_lock:
            self._active_count += 1
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self._executor, func, *args)
        finally:
            self._semaphore.release()
            with self._counter_lock:
                self._active_count -= 1

    @property
    def active_count(self) -> int:
        """Service calls executing right now."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Service calls waiting for a slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Wait for running calls to finish and stop the worker threads."""
        self._executor.shutdown(wait=True)
