"""Zone transfer reachability source.

Looks up the target's nameservers and reports the ones that accept a TCP
connection on port 53. No AXFR is attempted: a reachable nameserver is the
result, emitted as its own hostname.
"""

import asyncio
import logging
from typing import AsyncIterator

from subenum.scanner.resolver import ResolutionError
from subenum.util.types import SourceError, SourceName

from .base import ScanContext, Source

logger = logging.getLogger(__name__)

DNS_TCP_PORT = 53


class ZoneSource(Source):
    name = SourceName.ZONE
    label = "Zone transfer"
    unit = "nameservers"
    subdomains_only = False

    def __init__(self, resolver, timeout: float, connect_timeout: float = 5.0, port: int = DNS_TCP_PORT):
        super().__init__(timeout)
        self.resolver = resolver
        self.connect_timeout = connect_timeout
        self.port = port

    async def discover(self, ctx: ScanContext) -> AsyncIterator[str]:
        try:
            nameservers = await self.resolver.lookup_ns(ctx.target)
        except ResolutionError as e:
            raise SourceError(f"Failed to lookup NS records: {e}") from e

        await ctx.report(f"Found {len(nameservers)} nameservers for {ctx.target}")

        for ns in nameservers:
            if ctx.cancelled:
                return
            await ctx.report(f"Testing nameserver {ns}")
            if await self._reachable(ns, ctx):
                yield ns

    async def _reachable(self, ns: str, ctx: ScanContext) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(ns, self.port),
                timeout=self.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            detail = str(e) or type(e).__name__
            logger.warning(f"Failed to connect to nameserver {ns} for {ctx.target}: {detail}")
            await ctx.report(f"Failed to connect to {ns}: {detail}")
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        logger.info(f"Nameserver {ns} accepts TCP connections for {ctx.target}")
        return True
