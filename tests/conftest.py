import asyncio

import pytest

from subenum.scanner.jobs import JobRegistry
from subenum.scanner.sources.base import Source
from subenum.util.config import Config, HTTPConfig, RateLimitConfig
from subenum.util.types import SourceName


class FakeResolver:
    """Stands in for DNSResolver: a fixed set of names that resolve."""

    def __init__(self, existing=(), nameservers=None, ns_error=None, delay=0.0):
        self.existing = set(existing)
        self.nameservers = list(nameservers or [])
        self.ns_error = ns_error
        self.delay = delay
        self.queried = []

    async def resolves(self, host):
        self.queried.append(host)
        if self.delay:
            await asyncio.sleep(self.delay)
        return host in self.existing

    async def lookup_ns(self, domain):
        if self.ns_error is not None:
            raise self.ns_error
        return list(self.nameservers)


class ListSource(Source):
    """Source that replays fixed candidates, optionally slowly or with a failure."""

    name = SourceName.WAYBACK
    label = "Wayback"

    def __init__(self, items, timeout=30.0, delay=0.0, error=None, hang=False):
        super().__init__(timeout)
        self.items = list(items)
        self.delay = delay
        self.error = error
        self.hang = hang

    async def discover(self, ctx):
        for item in self.items:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield item
        if self.error is not None:
            raise self.error
        if self.hang:
            await asyncio.sleep(3600)


@pytest.fixture
def fake_resolver():
    return FakeResolver


@pytest.fixture
def list_source():
    return ListSource


@pytest.fixture
def registry():
    return JobRegistry()


@pytest.fixture
def config():
    """Defaults with a roomy rate limit so tests are not throttled."""
    return Config(
        http=HTTPConfig(timeout=5.0),
        rate_limit=RateLimitConfig(requests_per_second=100, burst_size=100),
    )


async def collect(events):
    """Drain an async iterator of StreamEvents into a list."""
    return [event async for event in events]


@pytest.fixture
def drain():
    return collect
