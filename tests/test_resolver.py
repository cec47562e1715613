"""
Unit Tests for the round-robin DNS resolver
"""

import asyncio
from unittest.mock import Mock, patch

import dns.exception
import dns.resolver
import pytest

from subenum.scanner.resolver import DNSResolver, ResolutionError, parse_server


@pytest.mark.parametrize("server,expected", [
    ("8.8.8.8:53", ("8.8.8.8", 53)),
    ("1.1.1.1", ("1.1.1.1", 53)),
    ("[2001:4860:4860::8888]:5353", ("2001:4860:4860::8888", 5353)),
    ("2001:4860:4860::8888", ("2001:4860:4860::8888", 53)),
])
def test_parse_server(server, expected):
    assert parse_server(server) == expected


def test_requires_servers():
    with pytest.raises(ValueError):
        DNSResolver([])


class TestDNSResolver:

    @pytest.fixture
    def resolver(self):
        return DNSResolver(["8.8.8.8:53", "1.1.1.1:53"], timeout=1.0)

    def test_builds_one_resolver_per_server(self, resolver):
        assert [r.nameservers for r in resolver._resolvers] == [["8.8.8.8"], ["1.1.1.1"]]
        assert all(r.port == 53 and r.lifetime == 1.0 for r in resolver._resolvers)

    def test_round_robin(self, resolver):
        picked = [resolver._next()[0] for _ in range(4)]
        assert picked == ["8.8.8.8:53", "1.1.1.1:53", "8.8.8.8:53", "1.1.1.1:53"]
        assert resolver.queries == 4

    @patch('dns.asyncresolver.Resolver.resolve')
    def test_lookup_host(self, mock_resolve, resolver):
        mock_resolve.return_value = [Mock(address="93.184.216.34")]

        assert asyncio.run(resolver.lookup_host("www.example.com")) == ["93.184.216.34"]
        assert asyncio.run(resolver.resolves("www.example.com")) is True

    @pytest.mark.parametrize("error", [
        dns.resolver.NXDOMAIN(),
        dns.resolver.NoAnswer(),
        dns.exception.Timeout(),
        dns.exception.DNSException("servfail"),
    ])
    @patch('dns.asyncresolver.Resolver.resolve')
    def test_failures_are_misses(self, mock_resolve, error, resolver):
        mock_resolve.side_effect = error

        with pytest.raises(ResolutionError):
            asyncio.run(resolver.lookup_host("nope.example.com"))
        assert asyncio.run(resolver.resolves("nope.example.com")) is False

    @patch('dns.asyncresolver.Resolver.resolve')
    def test_lookup_ns_strips_trailing_dot(self, mock_resolve, resolver):
        mock_resolve.return_value = [Mock(target="a.iana-servers.net."), Mock(target="b.iana-servers.net.")]

        assert asyncio.run(resolver.lookup_ns("example.com")) == ["a.iana-servers.net", "b.iana-servers.net"]
        assert mock_resolve.call_args.args[-1] == 'NS'
