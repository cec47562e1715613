"""HTTP API server entrypoint.

Streams discovered subdomains to clients as server-sent events, one stream
per (target, source), and exposes probing and job control endpoints.

ARCHITECTURE:
1. load_config() reads .env / environment once at startup
2. create_app() wires registry, rate limiter, middlewares and routes
3. The client context opens one shared ClientSession and DNSResolver
4. Each stream request registers a job, runs a StreamPublisher and writes
   its events until a terminal event or disconnect
5. Shutdown cancels every job still running
"""

import argparse
import asyncio
import logging
import platform
import sys
import time
from contextlib import aclosing
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlparse

import aiohttp
from aiohttp import web

from subenum import __version__
from subenum.scanner.jobs import JobRegistry
from subenum.scanner.normalization import validate_target
from subenum.scanner.probes.http_probe import HTTPProber
from subenum.scanner.resolver import DNSResolver
from subenum.scanner.sources import Source, build_sources
from subenum.scanner.stream import StreamPublisher
from subenum.scanner.wordlists import COMMON_SUBDOMAINS, category_sizes
from subenum.util.concurrency import TokenBucket
from subenum.util.config import Config, load_config
from subenum.util.log import setup_logging
from subenum.util.types import (
    InvalidTarget,
    JobStatus,
    ProbeResult,
    ScanStats,
    RateLimitExceeded,
    SourceName,
    TooManyJobs,
)

logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", Config)
REGISTRY_KEY = web.AppKey("registry", JobRegistry)
LIMITER_KEY = web.AppKey("limiter", TokenBucket)
SOURCES_KEY = web.AppKey("sources", Dict[SourceName, Source])
SESSION_KEY = web.AppKey("session", aiohttp.ClientSession)
PROBER_KEY = web.AppKey("prober", HTTPProber)
STARTED_KEY = web.AppKey("started", float)
STATS_KEY = web.AppKey("stats", ScanStats)
RESOLVER_KEY = web.AppKey("resolver", DNSResolver)

SECURITY_HEADERS = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'X-XSS-Protection': '1; mode=block',
}

SSE_HEADERS = {
    'Content-Type': 'text/event-stream',
    'Cache-Control': 'no-cache',
    'Connection': 'keep-alive',
    'X-Accel-Buffering': 'no',
}


# ============================================================================
# MIDDLEWARES
# ============================================================================

@web.middleware
async def access_log_middleware(request: web.Request, handler):
    start = time.monotonic()
    status = 500
    try:
        response = await handler(request)
        status = response.status
        return response
    except web.HTTPException as e:
        status = e.status
        raise
    finally:
        elapsed = (time.monotonic() - start) * 1000
        logger.info(f"{request.method} {request.path_qs} {status} {request.remote} {elapsed:.0f}ms")


@web.middleware
async def blocked_agent_middleware(request: web.Request, handler):
    user_agent = request.headers.get('User-Agent', '').lower()
    for needle in request.app[CONFIG_KEY].security.blocked_user_agents:
        if needle and needle.lower() in user_agent:
            logger.warning(f"Blocked user agent from {request.remote}: {user_agent!r}")
            raise web.HTTPForbidden(text="Forbidden")
    return await handler(request)


@web.middleware
async def rate_limit_middleware(request: web.Request, handler):
    if request.method != 'OPTIONS':
        try:
            await request.app[LIMITER_KEY].acquire()
        except RateLimitExceeded:
            raise web.HTTPTooManyRequests(text="Rate limit exceeded")
    return await handler(request)


async def add_response_headers(request: web.Request, response: web.StreamResponse):
    """on_response_prepare hook: security headers and optional CORS."""
    response.headers.update(SECURITY_HEADERS)
    if request.app[CONFIG_KEY].security.enable_cors:
        response.headers['Access-Control-Allow-Origin'] = '*'
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type'


# ============================================================================
# HANDLERS
# ============================================================================

def _target_from(request: web.Request) -> str:
    try:
        return validate_target(request.query.get('target'))
    except InvalidTarget as e:
        raise web.HTTPBadRequest(text=str(e))


async def stream_handler(request: web.Request) -> web.StreamResponse:
    """GET /api/{source}/stream?target=example.com"""
    try:
        source_name = SourceName(request.match_info['source'])
    except ValueError:
        raise web.HTTPNotFound(text=f"unknown source: {request.match_info['source']}")
    target = _target_from(request)

    app = request.app
    registry = app[REGISTRY_KEY]
    source = app[SOURCES_KEY].get(source_name)
    if source is None:
        raise web.HTTPNotFound(text=f"source disabled: {source_name.value}")
    try:
        job = registry.register(target, source_name)
    except TooManyJobs as e:
        raise web.HTTPServiceUnavailable(text=str(e))

    publisher = StreamPublisher(source, job, registry, queue_size=app[CONFIG_KEY].stream_queue_size,
                                stats=app[STATS_KEY])
    response = web.StreamResponse(headers=SSE_HEADERS)
    try:
        await response.prepare(request)
    except (ConnectionError, asyncio.CancelledError):
        job.token.cancel("client disconnected")
        registry.release(job, JobStatus.CANCELLED)
        raise

    try:
        async with aclosing(publisher.events()) as events:
            async for event in events:
                await response.write(event.to_sse())
    except ConnectionResetError:
        logger.info(f"Client disconnected from {source_name.value} stream for {target}")
    return response


def domain_allowed(hostname: Optional[str], allowed) -> bool:
    """True if no allow-list is set or hostname is (under) an allowed domain."""
    if not allowed:
        return True
    if not hostname:
        return False
    hostname = hostname.lower().rstrip('.')
    allowed = [domain.lower().rstrip('.') for domain in allowed]
    return any(hostname == domain or hostname.endswith('.' + domain) for domain in allowed)


async def probe_host_with_fallback(prober: HTTPProber, host: str) -> ProbeResult:
    """Try https://host first, then http://host if nothing answered."""
    result = await prober.probe(f"https://{host}")
    if result.status != "0":
        return result
    logger.debug(f"HTTPS probe failed for {host} ({result.error}), falling back to HTTP")
    return await prober.probe(f"http://{host}")


async def probe_handler(request: web.Request) -> web.Response:
    """GET /api/probe?url=https://a.example.com or ?host=a.example.com"""
    url = request.query.get('url', '').strip()
    host = request.query.get('host', '').strip().lower()
    if not url and not host:
        raise web.HTTPBadRequest(text="missing url or host parameter")

    try:
        hostname = urlparse(url).hostname if url else host
    except ValueError:
        raise web.HTTPBadRequest(text="invalid url parameter")
    allowed = request.app[CONFIG_KEY].security.allowed_domains
    prober = request.app[PROBER_KEY]

    if not domain_allowed(hostname, allowed):
        result = ProbeResult(url=url or host, status="0", title="Domain not allowed",
                             error="domain not allowed")
        return web.json_response(result.to_dict())

    if url:
        result = await prober.probe(url)
    else:
        result = await probe_host_with_fallback(prober, host)
    request.app[STATS_KEY].record_probe(result)
    return web.json_response(result.to_dict())


async def abort_handler(request: web.Request) -> web.Response:
    """POST /api/abort?target=example.com"""
    target = _target_from(request)
    request.app[REGISTRY_KEY].abort(target)
    return web.Response(status=204)


async def status_handler(request: web.Request) -> web.Response:
    target = _target_from(request)
    return web.json_response(request.app[REGISTRY_KEY].status(target))


async def jobs_handler(request: web.Request) -> web.Response:
    registry = request.app[REGISTRY_KEY]
    jobs = registry.jobs()
    return web.json_response({
        'active': len(jobs),
        'jobs': [job.to_dict() for job in jobs],
        'completed': registry.completed_count,
        'cancelled': registry.cancelled_count,
        'failed': registry.failed_count,
    })


async def job_detail_handler(request: web.Request) -> web.Response:
    """GET /api/jobs/{job_id}"""
    job_id = request.match_info['job_id']
    job = request.app[REGISTRY_KEY].find(job_id)
    if job is None:
        raise web.HTTPNotFound(text=f"no running job: {job_id}")
    data = job.to_dict()
    data['cancelled'] = job.token.cancelled
    return web.json_response(data)


async def stats_handler(request: web.Request) -> web.Response:
    app = request.app
    registry = app[REGISTRY_KEY]
    resolver = app.get(RESOLVER_KEY)
    data = app[STATS_KEY].to_dict()
    data.update({
        'dns_queries': resolver.queries if resolver is not None else 0,
        'active_jobs': len(registry),
        'completed_jobs': registry.completed_count,
        'cancelled_jobs': registry.cancelled_count,
        'failed_jobs': registry.failed_count,
        'uptime_seconds': round(time.monotonic() - app[STARTED_KEY], 1),
    })
    return web.json_response(data)


async def config_handler(request: web.Request) -> web.Response:
    data = request.app[CONFIG_KEY].to_dict()
    data['sources'] = [name.value for name in SourceName]
    data['wordlists'] = category_sizes(COMMON_SUBDOMAINS)
    return web.json_response(data)


async def version_handler(request: web.Request) -> web.Response:
    return web.json_response({
        'version': __version__,
        'python': platform.python_version(),
        'aiohttp': aiohttp.__version__,
        'uptime_seconds': round(time.monotonic() - request.app[STARTED_KEY], 1),
    })


async def preflight_handler(request: web.Request) -> web.Response:
    return web.Response(status=204)


# ============================================================================
# APPLICATION
# ============================================================================

async def client_context(app: web.Application):
    """Shared outbound clients for the lifetime of the server."""
    config = app[CONFIG_KEY]
    connector = aiohttp.TCPConnector(limit=100, limit_per_host=10)
    session = aiohttp.ClientSession(connector=connector)
    app[SESSION_KEY] = session
    if SOURCES_KEY not in app:
        resolver = DNSResolver(config.dns.servers, timeout=config.dns.timeout)
        app[RESOLVER_KEY] = resolver
        app[SOURCES_KEY] = build_sources(config, session, resolver)
    if PROBER_KEY not in app:
        app[PROBER_KEY] = HTTPProber(config.http, session)
    app[LIMITER_KEY].start()
    app[STARTED_KEY] = time.monotonic()

    logger.info(f"Sources enabled: {', '.join(name.value for name in app[SOURCES_KEY])}")

    yield

    cancelled = app[REGISTRY_KEY].cancel_all("shutdown")
    if cancelled:
        logger.info(f"Cancelled {cancelled} running jobs on shutdown")
    await app[LIMITER_KEY].stop()
    await session.close()


def create_app(config: Optional[Config] = None,
               sources: Optional[Dict[SourceName, Source]] = None,
               prober: Optional[HTTPProber] = None) -> web.Application:
    """Build the aiohttp application.

    Args:
        config: Settings (defaults to load_config())
        sources: Pre-built sources; built from config at startup if omitted
        prober: Pre-built prober; uses the shared session if omitted
    """
    config = config or load_config()

    app = web.Application(middlewares=[
        access_log_middleware,
        blocked_agent_middleware,
        rate_limit_middleware,
    ])
    app[CONFIG_KEY] = config
    app[REGISTRY_KEY] = JobRegistry(max_jobs=config.security.max_concurrent_jobs)
    app[STATS_KEY] = ScanStats()
    app[LIMITER_KEY] = TokenBucket(rate=config.rate_limit.requests_per_second,
                                   burst=config.rate_limit.burst_size)
    if sources is not None:
        app[SOURCES_KEY] = sources
    if prober is not None:
        app[PROBER_KEY] = prober

    app.cleanup_ctx.append(client_context)
    app.on_response_prepare.append(add_response_headers)

    app.router.add_get('/api/{source}/stream', stream_handler)
    app.router.add_get('/api/probe', probe_handler)
    app.router.add_post('/api/abort', abort_handler)
    app.router.add_get('/api/status', status_handler)
    app.router.add_get('/api/jobs', jobs_handler)
    app.router.add_get('/api/jobs/{job_id}', job_detail_handler)
    app.router.add_get('/api/stats', stats_handler)
    app.router.add_get('/api/config', config_handler)
    app.router.add_get('/api/version', version_handler)
    app.router.add_route('OPTIONS', '/api/{tail:.*}', preflight_handler)
    return app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='subenum',
        description='Subdomain discovery server with live event streams',
    )
    parser.add_argument('--host', help='Bind address (default: HOST or 0.0.0.0)')
    parser.add_argument('--port', type=int, help='Listen port (default: PORT or 8080)')
    parser.add_argument('--log-level', help='DEBUG, INFO, WARNING or ERROR')
    parser.add_argument('--log-file', help='Also write logs to this file')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    try:
        config = load_config()
        if args.host:
            config.host = args.host
        if args.port:
            config.port = args.port
        if args.log_level:
            config.log_level = args.log_level.upper()
        if args.log_file:
            config.log_file = Path(args.log_file)

        setup_logging(log_file=config.log_file, level=config.log_level)
        logger.info(f"Starting subenum {__version__} on {config.host}:{config.port}")

        web.run_app(create_app(config), host=config.host, port=config.port,
                    print=None, access_log=None)
        return 0

    except KeyboardInterrupt:
        return 130

    except OSError as e:
        logging.error(f"Failed to start server: {e}")
        return 1

    except Exception as e:
        logging.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
