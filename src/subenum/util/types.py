"""Core data types, enums and exceptions used across the scanner.

Every job status, stream event kind and source name has one defined value
here so handlers, the registry and the publisher never pass magic strings.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .time import now_utc


class SourceName(Enum):
    """Discovery techniques exposed as /api/<source>/stream."""
    WAYBACK = "wayback"
    CRTSH = "crtsh"
    DNS = "dns"
    SEARCH = "search"
    PERMUTE = "permute"
    ZONE = "zone"


class JobStatus(Enum):
    """Lifecycle of a (target, source) job.

    Running: the source is still producing
    Completed: the source ran to exhaustion
    Cancelled: deadline, supersede, abort or client disconnect
    Failed: the upstream broke; partial results may have been emitted
    """
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class EventKind(Enum):
    """Stream event kinds. The last three are terminal."""
    HOST = "host"
    INFO = "info"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (EventKind.COMPLETE, EventKind.CANCELLED, EventKind.FAILED)


# ============================================================================
# EXCEPTIONS
# ============================================================================

class SubenumError(Exception):
    """Base class for errors raised by this package."""


class SourceError(SubenumError):
    """An upstream fetch or parse failed; the job ends early."""


class InvalidTarget(SubenumError):
    """Target parameter is missing or not a hostname."""


class RateLimitExceeded(SubenumError):
    """No inbound token became free within the grace window."""


class TooManyJobs(SubenumError):
    """The registry already holds the maximum number of running jobs."""


# ============================================================================
# CANCELLATION
# ============================================================================

class CancelToken:
    """In-memory cancellation signal shared by a job and its workers.

    Sources poll `cancelled` at every loop iteration; the publisher awaits
    `wait()` alongside the producer queue.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> bool:
        """Set the signal. Returns False if it was already set."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> str:
        await self._event.wait()
        return self.reason or "cancelled"


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(eq=False)
class Job:
    """One running (target, source) discovery operation."""
    target: str
    source: SourceName
    token: CancelToken = field(default_factory=CancelToken)
    started_at: datetime = field(default_factory=now_utc)
    status: JobStatus = JobStatus.RUNNING
    found: int = 0

    @property
    def key(self):
        return (self.target, self.source)

    @property
    def job_id(self) -> str:
        return f"{self.target}_{self.source.value}_{int(self.started_at.timestamp() * 1000)}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for the jobs/status API."""
        return {
            'id': self.job_id,
            'target': self.target,
            'source': self.source.value,
            'status': self.status.value,
            'started_at': self.started_at.isoformat(),
            'found': self.found,
        }


@dataclass
class ProbeResult:
    """Outcome of one HTTP(S) fetch against a candidate host.

    status is the numeric HTTP status as a string, "0" when no response
    was received. error is empty on success.
    """
    url: str
    status: str
    title: str
    error: str = ""
    probe_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status != "0" and not self.error

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'status': self.status,
            'title': self.title,
            'error': self.error,
            'probe_time_ms': round(self.probe_time_ms, 2),
        }


@dataclass
class ScanStats:
    """Server-wide counters since startup, served by /api/stats."""
    hosts_found: int = 0
    probes: int = 0
    successful_probes: int = 0
    per_source: Dict[str, int] = field(default_factory=dict)

    def record_host(self, source: SourceName):
        self.hosts_found += 1
        self.per_source[source.value] = self.per_source.get(source.value, 0) + 1

    def record_probe(self, result: ProbeResult):
        self.probes += 1
        if result.success:
            self.successful_probes += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_subdomains': self.hosts_found,
            'total_probes': self.probes,
            'successful_probes': self.successful_probes,
            'per_source': dict(self.per_source),
        }


@dataclass(frozen=True)
class StreamEvent:
    """A single message pushed to the client."""
    kind: EventKind
    data: str

    @property
    def terminal(self) -> bool:
        return self.kind.terminal

    def to_sse(self) -> bytes:
        """Render as a server-sent event frame.

        Hosts go out as plain `data:` frames; everything else is named.
        """
        lines = []
        if self.kind is not EventKind.HOST:
            lines.append(f"event: {self.kind.value}")
        for line in self.data.splitlines() or [""]:
            lines.append(f"data: {line}")
        return ("\n".join(lines) + "\n\n").encode("utf-8")
