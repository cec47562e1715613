"""Turns one running source into an ordered stream of events.

A producer task drains Source.candidates() into a bounded queue. The
consumer side (events()) hands items to the HTTP handler and watches the
job's cancel token at the same time, so a cancellation is noticed even
while the producer is blocked on the network. Exactly one terminal event
(complete, cancelled or failed) ends every stream, and the job is released
from the registry no matter how the stream ends.
"""

import asyncio
import logging
from contextlib import aclosing
from typing import AsyncIterator, Optional

from subenum.scanner.jobs import JobRegistry
from subenum.scanner.sources.base import ScanContext, Source
from subenum.util.time import duration_ms
from subenum.util.types import EventKind, Job, JobStatus, ScanStats, SourceError, StreamEvent

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100

_FINISHED = object()


class _Failure:
    def __init__(self, detail: str):
        self.detail = detail


class StreamPublisher:
    """Runs a source for one job and yields its events.

    Usage:
        publisher = StreamPublisher(source, job, registry)
        async for event in publisher.events():
            await response.write(event.to_sse())
    """

    def __init__(self, source: Source, job: Job, registry: JobRegistry,
                 queue_size: int = DEFAULT_QUEUE_SIZE, timeout: Optional[float] = None,
                 stats: Optional[ScanStats] = None):
        """Initialize publisher.

        Args:
            source: Source to run
            job: Registered job; its token governs cancellation
            registry: Registry the job is released from at the end
            queue_size: Producer buffer (producer blocks when full)
            timeout: Deadline in seconds, defaults to the source's own
            stats: Server-wide counters credited with every emitted host
        """
        self.source = source
        self.job = job
        self.registry = registry
        self.queue_size = queue_size
        self.timeout = timeout if timeout is not None else source.timeout
        self.stats = stats

    # ------------------------------------------------------------------
    # Terminal messages
    # ------------------------------------------------------------------

    def _completed(self) -> StreamEvent:
        return StreamEvent(
            EventKind.COMPLETE,
            f"{self.source.label} scan completed - found {self.job.found} {self.source.unit}",
        )

    def _cancelled(self, reason: str) -> StreamEvent:
        return StreamEvent(EventKind.CANCELLED, f"{self.source.label} scan cancelled ({reason})")

    def _failed(self, detail: str) -> StreamEvent:
        return StreamEvent(
            EventKind.FAILED,
            f"{self.source.label} scan completed with errors - {detail} "
            f"(found {self.job.found} {self.source.unit})",
        )

    # ------------------------------------------------------------------

    async def _produce(self, ctx: ScanContext, queue: asyncio.Queue):
        try:
            async with aclosing(self.source.candidates(ctx)) as hosts:
                async for host in hosts:
                    await queue.put(StreamEvent(EventKind.HOST, host))
        except asyncio.CancelledError:
            raise
        except SourceError as e:
            logger.warning(f"{self.source.label} scan for {ctx.target} failed: {e}")
            await queue.put(_Failure(str(e)))
            return
        except Exception as e:
            logger.error(f"Unexpected error in {self.source.label} scan for {ctx.target}: {e}",
                         exc_info=True)
            await queue.put(_Failure(f"internal error: {type(e).__name__}"))
            return
        await queue.put(_FINISHED)

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield host/info events, then exactly one terminal event."""
        job = self.job
        token = job.token
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)

        async def notify(message: str):
            await queue.put(StreamEvent(EventKind.INFO, message))

        ctx = ScanContext(target=job.target, token=token, notify=notify)
        loop = asyncio.get_running_loop()
        deadline = None
        if self.timeout and self.timeout > 0:
            deadline = loop.call_later(self.timeout, token.cancel, "deadline")

        producer = asyncio.ensure_future(self._produce(ctx, queue))
        cancel_wait = asyncio.ensure_future(token.wait())
        getter = None
        status = JobStatus.RUNNING

        logger.info(f"Starting {self.source.label} scan for {job.target} ({job.job_id})")

        try:
            while True:
                getter = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait({getter, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)

                if cancel_wait in done or token.cancelled:
                    getter.cancel()
                    status = JobStatus.CANCELLED
                    yield self._cancelled(token.reason or "cancelled")
                    break

                item = getter.result()
                if item is _FINISHED:
                    status = JobStatus.COMPLETED
                    logger.info(
                        f"{self.source.label} found {job.found} unique {self.source.unit} "
                        f"for {job.target} in {duration_ms(job.started_at):.0f}ms"
                    )
                    yield self._completed()
                    break
                if isinstance(item, _Failure):
                    status = JobStatus.FAILED
                    yield self._failed(item.detail)
                    break

                if item.kind is EventKind.HOST:
                    job.found += 1
                    if self.stats is not None:
                        self.stats.record_host(job.source)
                yield item
        finally:
            if status is JobStatus.RUNNING:
                # consumer went away before a terminal event
                token.cancel("client disconnected")
                status = JobStatus.CANCELLED
            if deadline is not None:
                deadline.cancel()
            pending = [producer, cancel_wait]
            if getter is not None:
                pending.append(getter)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            self.registry.release(job, status)
            logger.info(f"{self.source.label} scan for {job.target} ended: {status.value} "
                        f"({job.found} {self.source.unit})")
