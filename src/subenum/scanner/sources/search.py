"""Search engine scrape source.

Fetches one results page for "site:<target>" and regex-matches hosts out of
the raw HTML. Best effort: result markup changes and bot walls are expected.
"""

import logging
from typing import AsyncIterator

from subenum.scanner.normalization import extract_subdomains_from_text
from subenum.util.types import SourceName

from .base import HTTPSource, ScanContext

logger = logging.getLogger(__name__)


class SearchSource(HTTPSource):
    name = SourceName.SEARCH
    label = "Search engine"
    base_url = "https://www.google.com"

    def url_for(self, target: str) -> str:
        return f"{self.base_url}/search?q=site:{target}"

    async def discover(self, ctx: ScanContext) -> AsyncIterator[str]:
        async with self.request(self.url_for(ctx.target)) as resp:
            body = await resp.text(errors='replace')

        for host in extract_subdomains_from_text(body, ctx.target):
            if ctx.cancelled:
                return
            yield host
