"""
Unit Tests for target validation and candidate normalization
"""

import pytest

from subenum.scanner.normalization import (
    extract_subdomains_from_text,
    extract_url_host,
    is_subdomain,
    normalize_candidate,
    validate_target,
)
from subenum.util.types import InvalidTarget


class TestValidateTarget:

    def test_lowercases_and_strips(self):
        assert validate_target("  Example.COM. ") == "example.com"

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_missing(self, raw):
        with pytest.raises(InvalidTarget, match="missing target parameter"):
            validate_target(raw)

    @pytest.mark.parametrize("raw", ["localhost", "exa mple.com", "example.c", "http://example.com", "a..com"])
    def test_invalid_format(self, raw):
        with pytest.raises(InvalidTarget, match="invalid domain format"):
            validate_target(raw)

    def test_accepts_nested_domains(self):
        assert validate_target("gov.lk") == "gov.lk"
        assert validate_target("a-b.c.example.co") == "a-b.c.example.co"


class TestNormalizeCandidate:

    def test_wildcard_is_reduced_to_base(self):
        assert normalize_candidate("*.api.example.com", "example.com") == "api.example.com"

    def test_bare_target_rejected(self):
        assert normalize_candidate("example.com", "example.com") is None
        assert normalize_candidate("*.example.com", "example.com") is None

    def test_suffix_must_be_label_boundary(self):
        assert normalize_candidate("badexample.com", "example.com") is None
        assert normalize_candidate("a.example.com.evil.net", "example.com") is None

    def test_case_port_and_trailing_dot(self):
        assert normalize_candidate("WWW.Example.com.", "example.com") == "www.example.com"
        assert normalize_candidate("dev.example.com:8443", "example.com") == "dev.example.com"

    def test_userinfo_is_dropped(self):
        assert normalize_candidate("user:pw@ftp.example.com:21", "example.com") == "ftp.example.com"

    def test_whitespace_inside_rejected(self):
        assert normalize_candidate("a b.example.com", "example.com") is None
        assert normalize_candidate("", "example.com") is None

    def test_subdomain_rule_can_be_disabled(self):
        assert normalize_candidate("NS1.Provider.net.", "example.com", subdomains_only=False) == "ns1.provider.net"

    def test_is_subdomain(self):
        assert is_subdomain("a.example.com", "example.com")
        assert not is_subdomain("example.com", "example.com")


def test_extract_url_host():
    assert extract_url_host("https://shop.example.com/cart?id=1") == "shop.example.com"
    assert extract_url_host("http://a.example.com:8080/") == "a.example.com:8080"
    assert extract_url_host("not a url") is None


def test_extract_subdomains_from_text_keeps_document_order():
    html = (
        '<a href="https://b.example.com/x">b</a>'
        '<a href="http://A.example.com">a</a>'
        '<a href="https://example.com/">root</a>'
        '<a href="https://other.org/">other</a>'
        '<a href="https://b.example.com/y">b again</a>'
    )
    assert extract_subdomains_from_text(html, "example.com") == [
        "b.example.com", "A.example.com", "b.example.com",
    ]


def test_extract_subdomains_from_text_requires_host_to_end_at_target():
    text = "see https://a.example.com.evil.net/x and https://c.example.com?q=1"
    assert extract_subdomains_from_text(text, "example.com") == ["c.example.com"]
