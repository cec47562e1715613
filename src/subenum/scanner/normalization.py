"""Hostname normalization and validation.

Every candidate a source produces goes through normalize_candidate() before
it can be emitted, so the same host always has one spelling:

    "*.API.Example.com"  -> "api.example.com"
    "www.example.com."   -> "www.example.com"
    "example.com"        -> rejected (the target itself)
    "evil-example.com"   -> rejected (not under ".example.com")
"""

import logging
import re
from typing import List, Optional, Pattern

from subenum.util.types import InvalidTarget

logger = logging.getLogger(__name__)

# Same grammar the API accepts for ?target=
DOMAIN_RE = re.compile(r'^([a-zA-Z0-9-]+\.)*[a-zA-Z0-9-]+\.[a-zA-Z]{2,}$')

# Host part of any absolute http(s) URL
HOST_RE = re.compile(r'https?://([^/\s"\'<>]+)')


def validate_target(raw: Optional[str]) -> str:
    """Return the lowercase target or raise InvalidTarget.

    Examples:
        validate_target("Example.COM") -> "example.com"
        validate_target("") -> InvalidTarget("missing target parameter")
    """
    if raw is None or not raw.strip():
        raise InvalidTarget("missing target parameter")
    target = raw.strip().lower().rstrip('.')
    if len(target) > 253 or not DOMAIN_RE.match(target):
        raise InvalidTarget("invalid domain format")
    return target


def is_subdomain(host: str, target: str) -> bool:
    """True iff host sits strictly below target."""
    return host.endswith("." + target) and host != target


def normalize_candidate(raw: str, target: str, subdomains_only: bool = True) -> Optional[str]:
    """Normalize one raw candidate.

    Lowercases, trims whitespace and a trailing dot, strips a leading "*."
    wildcard, drops any ":port" suffix. When subdomains_only is set the
    result must be a strict subdomain of target, otherwise None is returned.
    """
    if not raw:
        return None

    host = raw.strip().lower()
    if host.startswith("*."):
        host = host[2:]
    host = host.rstrip('.')

    # "user:pass@host" from archived URLs
    if "@" in host:
        host = host.rsplit("@", 1)[1]
    # "host:8080"
    if ":" in host and not host.startswith("["):
        host = host.split(":", 1)[0]

    if not host or any(c.isspace() for c in host):
        return None

    if subdomains_only and not is_subdomain(host, target):
        return None

    return host


def extract_url_host(line: str) -> Optional[str]:
    """Host of the first http(s) URL in a line, or None."""
    match = HOST_RE.search(line)
    if match:
        return match.group(1)
    return None


def subdomain_url_pattern(target: str) -> Pattern:
    """Regex matching http(s) URLs whose host ends with ".<target>".

    The host must end right after the target, so a.example.com.evil.net
    is not read as a.example.com.
    """
    return re.compile(
        r'https?://([^/\s"\'<>]+\.' + re.escape(target) + r')(?=[/:?#\s"\'<>]|$)',
        re.IGNORECASE,
    )


def extract_subdomains_from_text(text: str, target: str) -> List[str]:
    """All subdomain hosts referenced by URLs in text, in document order.

    Duplicates are kept; callers de-duplicate per job.
    """
    return [m.group(1) for m in subdomain_url_pattern(target).finditer(text)]
