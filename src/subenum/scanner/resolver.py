"""DNS resolution against a pool of upstream servers.

Each query goes to the next server in the pool (round robin), with its own
timeout. No retries: a failed lookup is simply a miss for that candidate.
"""

import itertools
import logging
import threading
from typing import List, Tuple

import dns.asyncresolver
import dns.exception
import dns.resolver

from subenum.util.types import SubenumError

logger = logging.getLogger(__name__)


class ResolutionError(SubenumError):
    """A lookup failed or returned no usable records."""


def parse_server(server: str) -> Tuple[str, int]:
    """Split "host:port" (or "[v6]:port", or bare host) into (host, port)."""
    server = server.strip()
    if server.startswith('['):
        host, _, rest = server[1:].partition(']')
        port = rest.lstrip(':')
        return host, int(port) if port else 53
    if server.count(':') == 1:
        host, port = server.split(':')
        return host, int(port)
    return server, 53


class DNSResolver:
    """Async resolver that rotates through a list of "host:port" servers.

    Uses dnspython's asyncresolver with one pre-built Resolver per upstream
    so rotating costs nothing per query.
    """

    def __init__(self, servers: List[str], timeout: float = 3.0):
        """Initialize with upstream servers and per-query timeout (seconds)."""
        if not servers:
            raise ValueError("at least one DNS server is required")
        self.servers = list(servers)
        self.timeout = timeout
        self._resolvers = [self._build(server) for server in self.servers]
        self._counter = itertools.count()
        self._lock = threading.Lock()
        self.queries = 0

    def _build(self, server: str) -> dns.asyncresolver.Resolver:
        host, port = parse_server(server)
        resolver = dns.asyncresolver.Resolver(configure=False)
        resolver.nameservers = [host]
        resolver.port = port
        resolver.timeout = self.timeout
        resolver.lifetime = self.timeout
        return resolver

    def _next(self) -> Tuple[str, dns.asyncresolver.Resolver]:
        with self._lock:
            index = next(self._counter) % len(self._resolvers)
            self.queries += 1
        return self.servers[index], self._resolvers[index]

    async def lookup_host(self, host: str) -> List[str]:
        """Resolve A records for host.

        Returns:
            Non-empty list of IPv4 addresses

        Raises:
            ResolutionError: on NXDOMAIN, no answer, timeout or any DNS error
        """
        server, resolver = self._next()
        try:
            answer = await resolver.resolve(host, 'A')
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer, dns.resolver.NoNameservers) as e:
            raise ResolutionError(f"no A records found for {host}") from e
        except dns.exception.Timeout as e:
            raise ResolutionError(f"DNS query for {host} via {server} timed out") from e
        except dns.exception.DNSException as e:
            raise ResolutionError(f"DNS query failed for {host}: {e}") from e

        addresses = [rdata.address for rdata in answer]
        if not addresses:
            raise ResolutionError(f"no A records found for {host}")
        return addresses

    async def resolves(self, host: str) -> bool:
        """True if host has at least one A record; every failure is False."""
        try:
            await self.lookup_host(host)
            return True
        except ResolutionError as e:
            logger.debug(str(e))
            return False

    async def lookup_ns(self, domain: str) -> List[str]:
        """Authoritative nameserver hostnames for domain (trailing dot removed).

        Raises:
            ResolutionError: if the NS lookup fails
        """
        server, resolver = self._next()
        try:
            answer = await resolver.resolve(domain, 'NS')
        except dns.exception.DNSException as e:
            raise ResolutionError(f"NS lookup failed for {domain} via {server}: {e}") from e
        return [str(rdata.target).rstrip('.') for rdata in answer]
