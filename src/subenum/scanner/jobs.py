"""Job registry: who is currently scanning what.

One slot per (target, source). Starting a job on a busy slot cancels the
old job first (supersede); aborting a target cancels every source for it.
The registry only flips in-memory cancel tokens, it never waits on I/O.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from subenum.util.types import Job, JobStatus, SourceName, TooManyJobs

logger = logging.getLogger(__name__)


class JobRegistry:
    """Process-wide table of running jobs.

    Created once per application and handed to the request handlers.
    All operations serialize on a single lock.
    """

    def __init__(self, max_jobs: Optional[int] = None):
        """Initialize an empty registry.

        Args:
            max_jobs: Cap on simultaneously running jobs (None = unlimited)
        """
        self.max_jobs = max_jobs
        self._jobs: Dict[Tuple[str, SourceName], Job] = {}
        self._lock = threading.Lock()
        self.completed_count = 0
        self.cancelled_count = 0
        self.failed_count = 0

    def register(self, target: str, source: SourceName) -> Job:
        """Install a new job for (target, source), superseding any old one.

        Raises:
            TooManyJobs: if the cap is reached and no slot is being replaced
        """
        job = Job(target=target, source=source)
        with self._lock:
            previous = self._jobs.get(job.key)
            if previous is None and self.max_jobs is not None and len(self._jobs) >= self.max_jobs:
                raise TooManyJobs(f"maximum of {self.max_jobs} concurrent jobs reached")
            if previous is not None:
                previous.token.cancel("superseded")
                previous.status = JobStatus.CANCELLED
            self._jobs[job.key] = job

        if previous is not None:
            logger.info(f"Superseded running {source.value} job for {target} ({previous.job_id})")
        logger.info(f"Started {source.value} job for {target} ({job.job_id})")
        return job

    def release(self, job: Job, status: JobStatus) -> bool:
        """Record a job's final status and drop it from its slot.

        The slot is only cleared if it still holds this very job, so a job
        that was superseded cannot evict its replacement.
        """
        with self._lock:
            job.status = status
            if status is JobStatus.COMPLETED:
                self.completed_count += 1
            elif status is JobStatus.FAILED:
                self.failed_count += 1
            else:
                self.cancelled_count += 1

            if self._jobs.get(job.key) is job:
                del self._jobs[job.key]
                return True
            return False

    def abort(self, target: str) -> int:
        """Cancel and remove every job for target. Returns how many."""
        with self._lock:
            doomed = [job for key, job in self._jobs.items() if key[0] == target]
            for job in doomed:
                job.token.cancel("aborted")
                job.status = JobStatus.CANCELLED
                del self._jobs[job.key]

        logger.info(f"Cancelled {len(doomed)} jobs for target: {target}")
        return len(doomed)

    def cancel_all(self, reason: str = "shutdown") -> int:
        with self._lock:
            jobs = list(self._jobs.values())
            for job in jobs:
                job.token.cancel(reason)
                job.status = JobStatus.CANCELLED
            self._jobs.clear()
        return len(jobs)

    def status(self, target: str) -> Dict[str, Any]:
        """Snapshot of which sources are active for target."""
        with self._lock:
            sources = sorted(key[1].value for key in self._jobs if key[0] == target)
        return {
            'target': target,
            'active': bool(sources),
            'sources': sources,
        }

    def get(self, target: str, source: SourceName) -> Optional[Job]:
        with self._lock:
            return self._jobs.get((target, source))

    def find(self, job_id: str) -> Optional[Job]:
        """Running job with this id, or None."""
        with self._lock:
            for job in self._jobs.values():
                if job.job_id == job_id:
                    return job
        return None

    def jobs(self) -> List[Job]:
        with self._lock:
            return list(self._jobs.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
