"""Common shape of every discovery source.

A source is an async generator of raw candidate strings (discover()).
candidates() wraps it with normalization, the subdomain rule and the per-job
seen set, and checks the cancel token between items, so subclasses only have
to express where candidates come from.
"""

import asyncio
import logging
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, List, Optional

import aiohttp

from subenum.scanner.normalization import normalize_candidate
from subenum.util.concurrency import bounded_map
from subenum.util.config import HTTPConfig
from subenum.util.types import CancelToken, SourceError, SourceName

logger = logging.getLogger(__name__)


@dataclass
class ScanContext:
    """What a running source knows about its job."""
    target: str
    token: CancelToken
    notify: Optional[Callable[[str], Awaitable[None]]] = None

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    async def report(self, message: str):
        """Send a progress notice to the client (not counted as a host)."""
        if self.notify is not None:
            await self.notify(message)


class Source:
    """Base class for discovery sources."""

    name: SourceName
    label: str = "Source"
    unit: str = "hosts"
    subdomains_only: bool = True

    def __init__(self, timeout: float):
        """Initialize with this source's job deadline in seconds."""
        self.timeout = timeout

    def discover(self, ctx: ScanContext) -> AsyncIterator[str]:
        """Yield raw candidates for ctx.target. Implemented by subclasses."""
        raise NotImplementedError

    async def candidates(self, ctx: ScanContext) -> AsyncIterator[str]:
        """Normalized, de-duplicated hosts in discovery order."""
        seen = set()
        async with aclosing(self.discover(ctx)) as raw_hosts:
            async for raw in raw_hosts:
                if ctx.cancelled:
                    return
                host = normalize_candidate(raw, ctx.target, self.subdomains_only)
                if host is None or host in seen:
                    continue
                seen.add(host)
                yield host


class HTTPSource(Source):
    """Source backed by a single GET against a public API or page."""

    base_url: str = ""

    def __init__(self, session: aiohttp.ClientSession, http: HTTPConfig, timeout: float,
                 base_url: Optional[str] = None):
        """Initialize with a shared client session.

        Args:
            session: aiohttp session owned by the application
            http: HTTP settings (user agent, per-read timeout)
            timeout: Job deadline in seconds
            base_url: Override for the upstream origin (tests, mirrors)
        """
        super().__init__(timeout)
        self.session = session
        self.http = http
        if base_url is not None:
            self.base_url = base_url.rstrip('/')

    def url_for(self, target: str) -> str:
        raise NotImplementedError

    @asynccontextmanager
    async def request(self, url: str, accept: Optional[str] = None):
        """GET url and yield the response if it came back 200.

        Transport failures, non-200 statuses and read errors inside the
        block are all raised as SourceError.
        """
        headers = {'User-Agent': self.http.user_agent}
        if accept:
            headers['Accept'] = accept
        timeout = aiohttp.ClientTimeout(
            total=None,
            sock_connect=self.http.timeout,
            sock_read=self.http.timeout,
        )
        try:
            async with self.session.get(url, headers=headers, timeout=timeout) as resp:
                if resp.status != 200:
                    raise SourceError(f"API returned status {resp.status}")
                yield resp
        except aiohttp.ClientError as e:
            raise SourceError(f"API unavailable: {e}") from e
        except asyncio.TimeoutError as e:
            raise SourceError("API request timed out") from e
        except ValueError as e:
            # aiohttp raises ValueError for over-long lines
            raise SourceError(f"malformed response: {e}") from e


class ResolvingSource(Source):
    """Source that guesses names and keeps the ones that resolve."""

    def __init__(self, resolver, concurrency: int, timeout: float):
        """Initialize with a DNSResolver and the per-job in-flight cap."""
        super().__init__(timeout)
        self.resolver = resolver
        self.concurrency = concurrency

    def names_for(self, target: str) -> List[str]:
        raise NotImplementedError

    async def discover(self, ctx: ScanContext) -> AsyncIterator[str]:
        names = self.names_for(ctx.target)
        logger.debug(f"{self.label}: checking {len(names)} names for {ctx.target}")

        async def check(host: str) -> Optional[str]:
            return host if await self.resolver.resolves(host) else None

        async with aclosing(bounded_map(names, check, self.concurrency, ctx.token)) as found:
            async for host in found:
                yield host
