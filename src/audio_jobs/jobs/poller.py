"""
Status poller: one bounded-lifetime loop per job.

State machine:
    IDLE ──run()──> POLLING ──> SUCCEEDED   (status has a result URL)
                             ├─> FAILED      (status failed, query error, deadline)
                             └─> CANCELLED   (token cancelled)

Cadence:
    The first query goes out one interval after run() starts, then one
    per interval. Queries are strictly sequential: tick N+1 is not
    issued until tick N's response has been handled.

Cancellation:
    A CancelToken is the single source of truth for stopping. It is
    checked while sleeping (the sleep wakes as soon as the token is
    cancelled) and again after every query returns, so a response that
    lands after cancellation is discarded rather than acted on.

A failed query is not retried; the job ends FAILED on the first
transport or parse error. There is no deadline unless max_duration_s is
given.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from audio_jobs.core.config import Defaults
from audio_jobs.core.logging import get_logger, set_job_id, success, verbose, warn
from audio_jobs.core.metrics import JobMetrics, metrics as default_metrics
from audio_jobs.jobs.errors import JobError, PollingFailedError
from audio_jobs.jobs.models import Failed, Job, JobStatus, Succeeded
from audio_jobs.jobs.service import GenerationService

_LOG = get_logger("audio-jobs.poller")


class CancelToken:
    """
    Cooperative cancellation flag with an interruptible sleep.

    Usage:
        token = CancelToken()
        task = asyncio.create_task(poller.run(job, token))
        ...
        token.cancel()   # no further queries; in-flight result discarded
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to `seconds`. Returns True if cancelled before or during the sleep."""
        if self._event.is_set():
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


class PollState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (PollState.SUCCEEDED, PollState.FAILED, PollState.CANCELLED)


@dataclass(frozen=True)
class PollOutcome:
    """
    How a poll loop ended.

    Attributes:
        state: SUCCEEDED, FAILED or CANCELLED.
        job_id: Job that was polled.
        status: Last status acted on (None on error or cancellation).
        error: The query error for FAILED-by-error outcomes.
        queries: Number of status queries issued.
    """
    state: PollState
    job_id: str
    status: Optional[JobStatus] = None
    error: Optional[JobError] = None
    queries: int = 0

    @property
    def result_url(self) -> Optional[str]:
        if isinstance(self.status, Succeeded):
            return self.status.result_url
        return None


class StatusPoller:
    """
    Polls one job until a terminal state.

    A poller runs once; create a new one per job.

    Args:
        service: Where to query status.
        interval_s: Delay between queries (default 0.5s).
        max_duration_s: Optional overall deadline; None polls until terminal.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        service: GenerationService,
        interval_s: float = Defaults.POLLING_INTERVAL_MS / 1000.0,
        max_duration_s: Optional[float] = Defaults.POLLING_MAX_DURATION_S,
        metrics: JobMetrics = default_metrics,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._service = service
        self.interval_s = interval_s
        self.max_duration_s = max_duration_s
        self._metrics = metrics
        self._clock = clock
        self._state = PollState.IDLE
        self._queries = 0

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def queries(self) -> int:
        return self._queries

    async def run(self, job: Job, token: CancelToken) -> PollOutcome:
        """
        Poll `job` until it is terminal or `token` is cancelled.

        Never raises for job-level failures; they come back as a FAILED
        outcome. asyncio.CancelledError propagates after the poller has
        moved to CANCELLED.

        Raises:
            RuntimeError: If this poller was already started.
        """
        if self._state is not PollState.IDLE:
            raise RuntimeError(f"poller already {self._state.value}")
        self._state = PollState.POLLING
        set_job_id(job.id)
        started = self._clock()
        verbose(_LOG, "poll_started", interval_s=self.interval_s)

        try:
            return await self._loop(job, token, started)
        except asyncio.CancelledError:
            self._state = PollState.CANCELLED
            verbose(_LOG, "poll_task_cancelled", queries=self._queries)
            raise

    async def _loop(self, job: Job, token: CancelToken, started: float) -> PollOutcome:
        while True:
            if await token.sleep(self.interval_s):
                return self._finish(job, PollState.CANCELLED)

            if self.max_duration_s is not None and self._clock() - started > self.max_duration_s:
                error = PollingFailedError(
                    f"Job did not finish within {self.max_duration_s}s",
                    {"job_id": job.id, "max_duration_s": self.max_duration_s},
                )
                return self._finish(job, PollState.FAILED, error=error)

            self._queries += 1
            self._metrics.inc_status_queries()
            try:
                status = await self._service.get_job_status(job.id)
            except Exception as e:
                if token.cancelled:
                    return self._finish(job, PollState.CANCELLED)
                if isinstance(e, PollingFailedError):
                    error = e
                else:
                    error = PollingFailedError(
                        f"Status query failed: {e}",
                        {"job_id": job.id, "error_type": type(e).__name__},
                    )
                return self._finish(job, PollState.FAILED, error=error)

            if token.cancelled:
                verbose(_LOG, "poll_result_discarded", status=type(status).__name__)
                return self._finish(job, PollState.CANCELLED)

            if isinstance(status, Succeeded):
                return self._finish(job, PollState.SUCCEEDED, status=status)
            if isinstance(status, Failed):
                return self._finish(job, PollState.FAILED, status=status)

            verbose(_LOG, "poll_tick", state="pending", queries=self._queries)

    def _finish(
        self,
        job: Job,
        state: PollState,
        status: Optional[JobStatus] = None,
        error: Optional[JobError] = None,
    ) -> PollOutcome:
        self._state = state
        if state is PollState.SUCCEEDED:
            success(_LOG, "poll_done", state=state.value, queries=self._queries)
        elif state is PollState.FAILED:
            warn(_LOG, "poll_done", state=state.value, queries=self._queries,
                 error=error.message if error else None)
        else:
            verbose(_LOG, "poll_done", state=state.value, queries=self._queries)
        return PollOutcome(state=state, job_id=job.id, status=status, error=error, queries=self._queries)
