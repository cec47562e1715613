"""Discovery sources, one module per upstream."""

from typing import Dict

import aiohttp

from subenum.util.config import Config
from subenum.util.types import SourceName

from .base import HTTPSource, ResolvingSource, ScanContext, Source
from .crtsh import CrtShSource
from .dns_brute import DNSBruteSource
from .permute import PermuteSource, generate_permutations
from .search import SearchSource
from .wayback import WaybackSource
from .zone import ZoneSource

__all__ = [
    'ScanContext', 'Source', 'HTTPSource', 'ResolvingSource',
    'WaybackSource', 'CrtShSource', 'DNSBruteSource', 'SearchSource',
    'PermuteSource', 'ZoneSource', 'generate_permutations', 'build_sources',
]


def build_sources(config: Config, session: aiohttp.ClientSession, resolver) -> Dict[SourceName, Source]:
    """One ready-to-run instance per source, keyed by SourceName."""
    timeouts = config.timeouts
    return {
        SourceName.WAYBACK: WaybackSource(session, config.http, timeouts.wayback),
        SourceName.CRTSH: CrtShSource(session, config.http, timeouts.crtsh),
        SourceName.DNS: DNSBruteSource(resolver, config.dns.concurrency, timeouts.dns),
        SourceName.SEARCH: SearchSource(session, config.http, timeouts.search),
        SourceName.PERMUTE: PermuteSource(resolver, config.dns.permute_concurrency, timeouts.permute),
        SourceName.ZONE: ZoneSource(resolver, timeouts.zone),
    }
