"""Certificate Transparency source (crt.sh).

Every certificate entry carries a newline-separated list of names in
"name_value". Wildcards are reduced to their base ("*.api.x.com" becomes
"api.x.com") and the bare target is never emitted.
"""

import json
import logging
from typing import AsyncIterator

from subenum.util.types import SourceError, SourceName

from .base import HTTPSource, ScanContext

logger = logging.getLogger(__name__)


class CrtShSource(HTTPSource):
    name = SourceName.CRTSH
    label = "Certificate transparency"
    base_url = "https://crt.sh"

    def url_for(self, target: str) -> str:
        return f"{self.base_url}/?q=%25.{target}&output=json"

    async def discover(self, ctx: ScanContext) -> AsyncIterator[str]:
        async with self.request(self.url_for(ctx.target), accept='application/json') as resp:
            content_type = resp.headers.get('Content-Type', '')
            if 'json' not in content_type.lower():
                raise SourceError(f"unexpected content type {content_type!r}")
            try:
                entries = await resp.json(content_type=None)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise SourceError(f"JSON decode error: {e}") from e

        if not isinstance(entries, list):
            raise SourceError("JSON decode error: expected a list of certificate entries")

        logger.debug(f"crt.sh returned {len(entries)} certificate entries for {ctx.target}")

        for entry in entries:
            if ctx.cancelled:
                return
            if not isinstance(entry, dict):
                continue
            name_value = entry.get('name_value')
            if not isinstance(name_value, str):
                continue
            for name in name_value.split('\n'):
                yield name
