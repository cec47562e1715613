"""Web archive index source.

Asks the Wayback Machine CDX API for every archived URL under *.target and
pulls the host out of each line as the response streams in.
"""

import logging
from typing import AsyncIterator

from subenum.scanner.normalization import extract_url_host
from subenum.util.types import SourceName

from .base import HTTPSource, ScanContext

logger = logging.getLogger(__name__)


class WaybackSource(HTTPSource):
    name = SourceName.WAYBACK
    label = "Wayback"
    base_url = "https://web.archive.org"

    def url_for(self, target: str) -> str:
        return (
            f"{self.base_url}/cdx/search/cdx"
            f"?url=*.{target}/*&output=text&fl=original&collapse=urlkey"
        )

    async def discover(self, ctx: ScanContext) -> AsyncIterator[str]:
        async with self.request(self.url_for(ctx.target)) as resp:
            async for raw_line in resp.content:
                if ctx.cancelled:
                    return
                host = extract_url_host(raw_line.decode('utf-8', errors='replace'))
                if host:
                    yield host
