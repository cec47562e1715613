"""
Tests for StreamPublisher: ordering, terminal events, cancellation paths
"""

import asyncio

from subenum.scanner.stream import StreamPublisher
from subenum.util.types import EventKind, JobStatus, ScanStats, SourceError, SourceName, StreamEvent


def _hosts(events):
    return [e.data for e in events if e.kind is EventKind.HOST]


def _terminals(events):
    return [e for e in events if e.terminal]


class TestStreamPublisher:

    def test_completes_with_unique_subdomains(self, registry, list_source, drain):
        source = list_source([
            "a.example.com", "A.Example.com.", "example.com",
            "b.other.com", "*.b.example.com", "b.example.com",
        ])

        async def scenario():
            job = registry.register("example.com", SourceName.WAYBACK)
            events = await drain(StreamPublisher(source, job, registry).events())
            return job, events

        job, events = asyncio.run(scenario())

        assert _hosts(events) == ["a.example.com", "b.example.com"]
        assert events[-1] == StreamEvent(EventKind.COMPLETE, "Wayback scan completed - found 2 hosts")
        assert len(_terminals(events)) == 1
        assert job.status is JobStatus.COMPLETED
        assert job.found == 2
        assert len(registry) == 0

    def test_upstream_error_ends_in_failed_with_partial_results(self, registry, list_source, drain):
        source = list_source(["a.example.com"], error=SourceError("API returned status 503"))

        async def scenario():
            job = registry.register("example.com", SourceName.WAYBACK)
            return job, await drain(StreamPublisher(source, job, registry).events())

        job, events = asyncio.run(scenario())

        assert _hosts(events) == ["a.example.com"]
        assert events[-1].kind is EventKind.FAILED
        assert events[-1].data == (
            "Wayback scan completed with errors - API returned status 503 (found 1 hosts)"
        )
        assert job.status is JobStatus.FAILED
        assert registry.failed_count == 1

    def test_unexpected_exception_is_failed_not_raised(self, registry, list_source, drain):
        source = list_source([], error=RuntimeError("bug"))

        async def scenario():
            job = registry.register("example.com", SourceName.WAYBACK)
            return await drain(StreamPublisher(source, job, registry).events())

        events = asyncio.run(scenario())
        assert [e.kind for e in events] == [EventKind.FAILED]
        assert "internal error: RuntimeError" in events[0].data

    def test_deadline_cancels_hung_source(self, registry, list_source, drain):
        source = list_source(["a.example.com"], hang=True)

        async def scenario():
            job = registry.register("example.com", SourceName.WAYBACK)
            publisher = StreamPublisher(source, job, registry, timeout=0.1)
            return job, await asyncio.wait_for(drain(publisher.events()), timeout=5)

        job, events = asyncio.run(scenario())

        assert _hosts(events) == ["a.example.com"]
        assert events[-1] == StreamEvent(EventKind.CANCELLED, "Wayback scan cancelled (deadline)")
        assert job.status is JobStatus.CANCELLED
        assert len(registry) == 0

    def test_supersede_cancels_first_stream(self, registry, list_source, drain):
        async def scenario():
            first_job = registry.register("example.com", SourceName.WAYBACK)
            first = StreamPublisher(list_source(["a.example.com"], hang=True), first_job, registry)
            first_task = asyncio.ensure_future(drain(first.events()))
            await asyncio.sleep(0.05)

            second_job = registry.register("example.com", SourceName.WAYBACK)
            first_events = await asyncio.wait_for(first_task, timeout=5)

            second = StreamPublisher(list_source(["b.example.com"]), second_job, registry)
            second_events = await drain(second.events())
            return first_events, second_events

        first_events, second_events = asyncio.run(scenario())

        assert first_events[-1] == StreamEvent(EventKind.CANCELLED, "Wayback scan cancelled (superseded)")
        assert second_events[-1].kind is EventKind.COMPLETE
        assert _hosts(second_events) == ["b.example.com"]
        assert len(registry) == 0

    def test_abort_mid_stream(self, registry, list_source):
        async def scenario():
            job = registry.register("example.com", SourceName.WAYBACK)
            publisher = StreamPublisher(list_source(["a.example.com", "b.example.com"], hang=True), job, registry)
            events = []
            async for event in publisher.events():
                events.append(event)
                if event.kind is EventKind.HOST:
                    registry.abort("example.com")
            return events

        events = asyncio.run(scenario())
        assert events[-1].kind is EventKind.CANCELLED
        assert "aborted" in events[-1].data
        assert len(_terminals(events)) == 1

    def test_consumer_leaving_cancels_job(self, registry, list_source):
        async def scenario():
            job = registry.register("example.com", SourceName.WAYBACK)
            publisher = StreamPublisher(list_source(["a.example.com"], hang=True), job, registry)
            events = publisher.events()
            first = await events.__anext__()
            await events.aclose()
            return job, first

        job, first = asyncio.run(scenario())
        assert first.data == "a.example.com"
        assert job.token.reason == "client disconnected"
        assert job.status is JobStatus.CANCELLED
        assert len(registry) == 0

    def test_cancelled_consumer_task_leaves_nothing_pending(self, registry, list_source):
        async def scenario():
            job = registry.register("example.com", SourceName.WAYBACK)
            publisher = StreamPublisher(list_source(["a.example.com"], hang=True), job, registry)
            seen = []

            async def consume():
                async for event in publisher.events():
                    seen.append(event)

            task = asyncio.ensure_future(consume())
            while not seen:
                await asyncio.sleep(0.01)
            await asyncio.sleep(0.01)
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            leftovers = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
            return job, task, leftovers

        job, task, leftovers = asyncio.run(scenario())
        assert task.cancelled()
        assert leftovers == []
        assert job.status is JobStatus.CANCELLED
        assert job.token.reason == "client disconnected"
        assert len(registry) == 0

    def test_hosts_are_credited_to_stats(self, registry, list_source, drain):
        stats = ScanStats()

        async def scenario():
            job = registry.register("example.com", SourceName.WAYBACK)
            source = list_source(["a.example.com", "b.example.com", "a.example.com"])
            return await drain(StreamPublisher(source, job, registry, stats=stats).events())

        asyncio.run(scenario())
        assert stats.hosts_found == 2
        assert stats.per_source == {'wayback': 2}

    def test_small_queue_still_delivers_everything(self, registry, list_source, drain):
        names = [f"h{i}.example.com" for i in range(50)]

        async def scenario():
            job = registry.register("example.com", SourceName.WAYBACK)
            return await drain(StreamPublisher(list_source(names), job, registry, queue_size=2).events())

        events = asyncio.run(scenario())
        assert _hosts(events) == names
        assert events[-1].data == "Wayback scan completed - found 50 hosts"


class TestStreamEvent:

    def test_host_frame_is_plain_data(self):
        assert StreamEvent(EventKind.HOST, "a.example.com").to_sse() == b"data: a.example.com\n\n"

    def test_terminal_frame_is_named(self):
        frame = StreamEvent(EventKind.COMPLETE, "done").to_sse()
        assert frame == b"event: complete\ndata: done\n\n"

    def test_multiline_data(self):
        frame = StreamEvent(EventKind.INFO, "one\ntwo").to_sse()
        assert frame == b"event: info\ndata: one\ndata: two\n\n"
