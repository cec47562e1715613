"""Load runtime configuration from the environment and an optional .env file.

Settings are read once at startup. A malformed value never stops the server:
it is logged and the default is used instead.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .time import format_duration, parse_duration

logger = logging.getLogger(__name__)

DEFAULT_DNS_SERVERS = ["8.8.8.8:53", "1.1.1.1:53", "208.67.222.222:53"]
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SubdomainScanner/2.0)"


@dataclass
class TimeoutConfig:
    """Per-source deadlines in seconds."""
    wayback: float = 300.0
    crtsh: float = 300.0
    dns: float = 600.0
    search: float = 300.0
    permute: float = 600.0
    zone: float = 120.0

    def for_source(self, source: str) -> float:
        return getattr(self, source)


@dataclass
class DNSConfig:
    servers: List[str] = field(default_factory=lambda: list(DEFAULT_DNS_SERVERS))
    concurrency: int = 50
    permute_concurrency: int = 50
    timeout: float = 3.0


@dataclass
class HTTPConfig:
    user_agent: str = DEFAULT_USER_AGENT
    max_redirects: int = 3
    timeout: float = 10.0
    max_body_size: int = 1024 * 1024
    skip_tls_verify: bool = True


@dataclass
class RateLimitConfig:
    requests_per_second: int = 10
    burst_size: int = 20


@dataclass
class SecurityConfig:
    allowed_domains: List[str] = field(default_factory=list)
    blocked_user_agents: List[str] = field(default_factory=lambda: ["bot", "crawler", "spider"])
    max_concurrent_jobs: int = 10
    enable_cors: bool = True


@dataclass
class Config:
    """All settings for one server process."""
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    stream_queue_size: int = 100
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    dns: DNSConfig = field(default_factory=DNSConfig)
    http: HTTPConfig = field(default_factory=HTTPConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Sanitized view for GET /api/config."""
        return {
            'timeouts': {
                name: format_duration(getattr(self.timeouts, name))
                for name in ('wayback', 'crtsh', 'dns', 'search', 'permute', 'zone')
            },
            'dns': {
                'servers': self.dns.servers,
                'concurrency': self.dns.concurrency,
                'permute_concurrency': self.dns.permute_concurrency,
                'timeout': format_duration(self.dns.timeout),
            },
            'http': {
                'max_redirects': self.http.max_redirects,
                'timeout': format_duration(self.http.timeout),
                'max_body_size': self.http.max_body_size,
                'skip_tls_verify': self.http.skip_tls_verify,
            },
            'rate_limit': {
                'requests_per_second': self.rate_limit.requests_per_second,
                'burst_size': self.rate_limit.burst_size,
            },
            'max_concurrent_jobs': self.security.max_concurrent_jobs,
        }


# ============================================================================
# ENV PARSING
# ============================================================================

def _env_str(key: str, default: str) -> str:
    value = os.getenv(key)
    return value if value else default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring invalid integer {key}={value!r}, using {default}")
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if not value:
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    logger.warning(f"Ignoring invalid boolean {key}={value!r}, using {default}")
    return default


def _env_duration(key: str, default: float) -> float:
    value = os.getenv(key)
    if not value:
        return default
    try:
        return parse_duration(value)
    except ValueError:
        logger.warning(f"Ignoring invalid duration {key}={value!r}, using {format_duration(default)}")
        return default


def _env_list(key: str, default: List[str]) -> List[str]:
    value = os.getenv(key)
    if value is None or value == "":
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config(env_file: Optional[Path] = None) -> Config:
    """Build a Config from the process environment.

    If env_file is given (or a .env exists in the working directory) it is
    loaded first; variables already set in the environment win.
    """
    if env_file is None:
        env_file = Path.cwd() / ".env"
    if Path(env_file).exists():
        load_dotenv(env_file)

    log_file = os.getenv("LOG_FILE")

    config = Config(
        host=_env_str("HOST", "0.0.0.0"),
        port=_env_int("PORT", 8080),
        log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        log_file=Path(log_file) if log_file else None,
        stream_queue_size=_env_int("STREAM_QUEUE_SIZE", 100),
        timeouts=TimeoutConfig(
            wayback=_env_duration("TIMEOUT_WAYBACK", 300.0),
            crtsh=_env_duration("TIMEOUT_CRTSH", 300.0),
            dns=_env_duration("TIMEOUT_DNS", 600.0),
            search=_env_duration("TIMEOUT_SEARCH", 300.0),
            permute=_env_duration("TIMEOUT_PERMUTE", 600.0),
            zone=_env_duration("TIMEOUT_ZONE", 120.0),
        ),
        dns=DNSConfig(
            servers=_env_list("DNS_SERVERS", DEFAULT_DNS_SERVERS),
            concurrency=_env_int("DNS_CONCURRENCY", 50),
            permute_concurrency=_env_int("PERMUTE_CONCURRENCY", 50),
            timeout=_env_duration("DNS_TIMEOUT", 3.0),
        ),
        http=HTTPConfig(
            user_agent=_env_str("HTTP_USER_AGENT", DEFAULT_USER_AGENT),
            max_redirects=_env_int("HTTP_MAX_REDIRECTS", 3),
            timeout=_env_duration("HTTP_TIMEOUT", 10.0),
            max_body_size=_env_int("HTTP_MAX_BODY_SIZE", 1024 * 1024),
            skip_tls_verify=_env_bool("HTTP_SKIP_TLS_VERIFY", True),
        ),
        rate_limit=RateLimitConfig(
            requests_per_second=_env_int("RATE_LIMIT_RPS", 10),
            burst_size=_env_int("RATE_LIMIT_BURST", 20),
        ),
        security=SecurityConfig(
            allowed_domains=_env_list("ALLOWED_DOMAINS", []),
            blocked_user_agents=_env_list("BLOCKED_USER_AGENTS", ["bot", "crawler", "spider"]),
            max_concurrent_jobs=_env_int("MAX_CONCURRENT_JOBS", 10),
            enable_cors=_env_bool("ENABLE_CORS", True),
        ),
    )

    if not config.dns.servers:
        logger.warning("DNS_SERVERS is empty, falling back to public resolvers")
        config.dns.servers = list(DEFAULT_DNS_SERVERS)

    return config
