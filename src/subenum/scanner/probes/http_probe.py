"""HTTP probe - fetch a discovered host and grab its page title.

One GET per call, no retries. Every failure is folded into the returned
ProbeResult so the API layer can serialize it directly.
"""

import asyncio
import logging
import re
from typing import Optional
from urllib.parse import urlparse

import aiohttp

from subenum.util.config import HTTPConfig
from subenum.util.time import duration_ms, now_utc
from subenum.util.types import ProbeResult

logger = logging.getLogger(__name__)

TITLE_RE = re.compile(r'(?is)<title[^>]*>(.*?)</title>')
MAX_TITLE_LENGTH = 100
NO_TITLE = "No title"
CONNECTION_FAILED = "Connection failed"
READ_FAILED = "Failed to read response"
INVALID_URL = "Invalid URL"

_CHUNK_SIZE = 8192


def extract_title(body: str) -> str:
    """First <title> contents, whitespace collapsed, capped at 100 chars + '...'.

    Entities are left as-is.
    """
    match = TITLE_RE.search(body)
    if not match:
        return NO_TITLE
    title = ' '.join(match.group(1).split())
    if not title:
        return NO_TITLE
    if len(title) > MAX_TITLE_LENGTH:
        title = title[:MAX_TITLE_LENGTH] + "..."
    return title


class HTTPProber:
    """Async HTTP client for title/status probing.

    Either borrows the application's ClientSession or, used as an async
    context manager, owns one for its lifetime.
    """

    def __init__(self, http: Optional[HTTPConfig] = None, session: Optional[aiohttp.ClientSession] = None):
        """Initialize prober with HTTP settings and an optional shared session."""
        self.http = http or HTTPConfig()
        self.session = session
        self._owns_session = False

    async def __aenter__(self):
        """Set up an aiohttp session if none was supplied."""
        if self.session is None:
            connector = aiohttp.TCPConnector(limit=100, limit_per_host=10)
            self.session = aiohttp.ClientSession(connector=connector)
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Clean up session."""
        if self._owns_session and self.session:
            await self.session.close()
            self.session = None
            self._owns_session = False

    async def probe(self, url: str) -> ProbeResult:
        """GET url once and report status and title.

        Args:
            url: Absolute http(s) URL

        Returns ProbeResult with:
          - status: numeric HTTP status as a string, "0" if no response
          - title: page title or one of the sentinels
          - error: empty on success
        """
        start = now_utc()
        try:
            parsed = urlparse(url)
            valid = parsed.scheme in ("http", "https") and bool(parsed.hostname)
        except ValueError:
            valid = False
        if not valid:
            return ProbeResult(
                url=url,
                status="0",
                title=INVALID_URL,
                error=f"invalid URL: {url!r}",
                probe_time_ms=duration_ms(start),
            )

        timeout = aiohttp.ClientTimeout(total=self.http.timeout)
        ssl = False if self.http.skip_tls_verify else True
        headers = {'User-Agent': self.http.user_agent}

        try:
            async with self.session.get(
                url,
                headers=headers,
                timeout=timeout,
                ssl=ssl,
                max_redirects=self.http.max_redirects,
            ) as resp:
                status = str(resp.status)
                try:
                    body = await self._read_capped(resp)
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    logger.debug(f"HTTP read error for {url}: {e}")
                    return ProbeResult(
                        url=url,
                        status=status,
                        title=READ_FAILED,
                        error=f"read error: {str(e) or type(e).__name__}",
                        probe_time_ms=duration_ms(start),
                    )

                return ProbeResult(
                    url=url,
                    status=status,
                    title=extract_title(body),
                    probe_time_ms=duration_ms(start),
                )

        except asyncio.TimeoutError:
            logger.debug(f"HTTP timeout for {url}")
            error = "request timed out"
        except aiohttp.TooManyRedirects:
            logger.debug(f"Too many redirects for {url}")
            error = f"stopped after {self.http.max_redirects} redirects"
        except aiohttp.ClientError as e:
            logger.debug(f"HTTP error for {url}: {e}")
            error = f"{type(e).__name__}: {e}"
        except Exception as e:
            logger.warning(f"Unexpected error probing {url}: {e}")
            error = f"Unexpected error: {str(e) or type(e).__name__}"

        return ProbeResult(
            url=url,
            status="0",
            title=CONNECTION_FAILED,
            error=error,
            probe_time_ms=duration_ms(start),
        )

    async def _read_capped(self, resp: aiohttp.ClientResponse) -> str:
        """Read at most max_body_size bytes and decode them leniently."""
        limit = self.http.max_body_size
        chunks = []
        received = 0
        async for chunk in resp.content.iter_chunked(_CHUNK_SIZE):
            chunks.append(chunk)
            received += len(chunk)
            if received >= limit:
                break
        data = b''.join(chunks)[:limit]

        encoding = resp.charset or 'utf-8'
        try:
            return data.decode(encoding, errors='replace')
        except LookupError:
            return data.decode('utf-8', errors='replace')
