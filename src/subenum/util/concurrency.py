"""Concurrency primitives for controlled parallel execution.

Two separate mechanisms:
- TokenBucket gates inbound API calls for the whole process.
- bounded_map caps how many DNS lookups a single job has in flight.
"""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Iterable, Optional, TypeVar

from .types import CancelToken, RateLimitExceeded

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


class TokenBucket:
    """Token bucket rate limiter for inbound requests.

    Starts full (burst tokens). A background task adds one token every
    1/rate seconds until the bucket is full again.
    """

    def __init__(self, rate: float = 10, burst: int = 20):
        """Initialize with refill rate (tokens/second) and capacity."""
        if rate <= 0 or burst <= 0:
            raise ValueError("rate and burst must be positive")
        self.rate = rate
        self.capacity = burst
        self._tokens: asyncio.Queue = asyncio.Queue(maxsize=burst)
        for _ in range(burst):
            self._tokens.put_nowait(None)
        self._refill_task: Optional[asyncio.Task] = None

    @property
    def available(self) -> int:
        return self._tokens.qsize()

    async def acquire(self, grace: float = 0.1):
        """Take one token, waiting at most `grace` seconds.

        Raises:
            RateLimitExceeded: if no token became free in time
        """
        try:
            self._tokens.get_nowait()
            return
        except asyncio.QueueEmpty:
            pass
        try:
            await asyncio.wait_for(self._tokens.get(), timeout=grace)
        except asyncio.TimeoutError:
            raise RateLimitExceeded("Rate limit exceeded") from None

    def refill(self) -> bool:
        """Add a single token. Returns False when the bucket is already full."""
        try:
            self._tokens.put_nowait(None)
            return True
        except asyncio.QueueFull:
            return False

    async def _refill_loop(self):
        interval = 1.0 / self.rate
        while True:
            await asyncio.sleep(interval)
            self.refill()

    def start(self):
        """Start the refill ticker on the running loop."""
        if self._refill_task is None or self._refill_task.done():
            self._refill_task = asyncio.get_running_loop().create_task(self._refill_loop())

    async def stop(self):
        if self._refill_task is not None:
            self._refill_task.cancel()
            try:
                await self._refill_task
            except asyncio.CancelledError:
                pass
            self._refill_task = None


async def bounded_map(
    items: Iterable[T],
    func: Callable[[T], Awaitable[Optional[R]]],
    limit: int,
    token: CancelToken,
) -> AsyncIterator[R]:
    """Run func over items with at most `limit` calls in flight.

    Yields every truthy result in completion order. Scheduling stops as soon
    as the token is cancelled, and in-flight calls are cancelled when the
    generator is closed. An exception from func counts as no result.

    Usage:
        async for host in bounded_map(names, check, 50, job.token):
            ...
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")

    semaphore = asyncio.Semaphore(limit)
    results: asyncio.Queue = asyncio.Queue()
    pending = set()
    done_marker = object()

    async def run_one(item):
        try:
            if token.cancelled:
                return
            result = await func(item)
            if result:
                await results.put(result)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"Worker error for {item!r}: {e}")
        finally:
            semaphore.release()

    async def feed():
        try:
            for item in items:
                if token.cancelled:
                    break
                await semaphore.acquire()
                if token.cancelled:
                    semaphore.release()
                    break
                task = asyncio.ensure_future(run_one(item))
                pending.add(task)
                task.add_done_callback(pending.discard)
            if pending:
                await asyncio.gather(*list(pending), return_exceptions=True)
        finally:
            results.put_nowait(done_marker)

    feeder = asyncio.ensure_future(feed())
    try:
        while True:
            result = await results.get()
            if result is done_marker:
                break
            yield result
    finally:
        feeder.cancel()
        for task in list(pending):
            task.cancel()
        await asyncio.gather(feeder, *list(pending), return_exceptions=True)
