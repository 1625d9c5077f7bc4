# src/jobs/poller.py — v1
"""Poll a remote job until it reaches a terminal status.

Cancellation is local: it stops waiting but leaves the remote job running.
Polling is bounded by ``timeout_s``; a job still running past the bound is
reported as a FAILURE carrying a ``TIMEOUT`` diagnostic.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from iscadmin.core.models import Job, JobMessage, JobStatus, OutcomeCategory

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 1.0
DEFAULT_POLL_TIMEOUT_S = 3600.0
TIMEOUT_KEY = "TIMEOUT"


class CancellationToken:
    """Client-side cancellation signal shared between a UI scope and a poll loop."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True


@dataclass(frozen=True)
class PollProgress:
    """Emitted after every non-terminal status fetch."""

    job_id: str
    iteration: int
    job: Job
    elapsed_s: float


@dataclass(frozen=True)
class PollResult:
    category: OutcomeCategory
    job: Job | None = None
    timed_out: bool = False


class JobPoller:
    """Repeatedly fetch a job's status until it is terminal, cancelled or too old.

    Args:
        fetch_status: Async callable returning the current Job for an id.
        interval_s: Delay between status fetches.
        timeout_s: Maximum time spent polling one job.
        on_progress: Optional observer called with a PollProgress per iteration.
        clock: Monotonic clock (injectable for tests).
    """

    def __init__(
        self,
        fetch_status: Callable[[str], Awaitable[Job]],
        interval_s: float = DEFAULT_POLL_INTERVAL_S,
        timeout_s: float = DEFAULT_POLL_TIMEOUT_S,
        on_progress: Callable[[PollProgress], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch_status = fetch_status
        self._interval_s = interval_s
        self._timeout_s = timeout_s
        self._on_progress = on_progress
        self._clock = clock

    async def poll(self, job_id: str, token: CancellationToken | None = None) -> PollResult:
        """Poll ``job_id`` to a classified result.

        Status fetch errors propagate unchanged.
        """
        start = self._clock()
        iteration = 0
        last: Job | None = None

        while True:
            if token is not None and token.cancelled:
                logger.info("Polling of job %s cancelled after %d fetches", job_id, iteration)
                return PollResult(OutcomeCategory.CANCELLED, last)

            job = await self._fetch_status(job_id)
            iteration += 1
            last = job

            if job.is_terminal:
                category = OutcomeCategory.from_status(job.status)
                logger.info(
                    "Job %s finished with %s after %d fetches", job_id, category.value, iteration
                )
                return PollResult(category, job)

            elapsed = self._clock() - start
            if self._on_progress is not None:
                self._on_progress(PollProgress(job_id, iteration, job, elapsed))

            if elapsed >= self._timeout_s:
                logger.warning(
                    "Job %s still %s after %.0fs, giving up", job_id, job.status.value, elapsed
                )
                return PollResult(OutcomeCategory.FAILURE, _with_timeout(job, elapsed), True)

            delay = min(self._interval_s, self._timeout_s - elapsed)
            if token is not None:
                await token.wait(delay)
            else:
                await asyncio.sleep(delay)


def _with_timeout(job: Job, elapsed: float) -> Job:
    message = JobMessage(
        key=TIMEOUT_KEY,
        text=f"job still {job.status.value} after {elapsed:.0f}s",
        type="ERROR",
    )
    # Diagnostic first so it is the code/message pair a failure report shows.
    return job.model_copy(
        update={"status": JobStatus.FAILURE, "messages": [message, *job.messages]}
    )
