from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from photoforge_workflow.core.job import JobStatus, JobUpdate, ProcessingJob
from photoforge_workflow.core.settings import DEFAULT_MAX_POLL_FAILURES, DEFAULT_POLL_INTERVAL_SECONDS
from photoforge_workflow.util.errors import PhotoForgeError, PollingLostError, RemoteRequestError, TransientNetworkError

FetchStatus = Callable[[str], Awaitable[JobUpdate]]
UpdateCb = Callable[[JobUpdate], None]
Sleep = Callable[[float], Awaitable[None]]


class JobPoller:
    """Polls one processing job at a time until it reaches a terminal status.

    Starting a job cancels whatever job this poller was following before, so a
    workflow that owns a single poller can never have two polls in flight.
    """

    def __init__(
        self,
        fetch_status: FetchStatus,
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_consecutive_failures: int = DEFAULT_MAX_POLL_FAILURES,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._fetch_status = fetch_status
        self.interval_seconds = interval_seconds
        self.max_consecutive_failures = max(1, max_consecutive_failures)
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._job: ProcessingJob | None = None
        self.consecutive_failures = 0

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def active_job_id(self) -> str | None:
        return self._job.job_id if self.active and self._job is not None else None

    def start(self, job: ProcessingJob, on_update: UpdateCb) -> Callable[[], None]:
        """Begin polling job; returns a callable that cancels this poll loop."""
        self.cancel()
        if job.is_terminal:
            raise ValueError(f"Job {job.job_id} is already {job.status.value}.")
        if job.status == JobStatus.IDLE:
            job.status = JobStatus.PROCESSING
        self._job = job
        self.consecutive_failures = 0
        task = asyncio.get_running_loop().create_task(self._run(job, on_update))
        self._task = task

        def cancel() -> None:
            if self._task is task:
                self.cancel()

        return cancel

    def cancel(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()

    async def wait(self) -> None:
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def _run(self, job: ProcessingJob, on_update: UpdateCb) -> None:
        while True:
            update = await self._poll_once(job)
            if update is not None:
                if update.error is None:
                    job.apply(update)
                on_update(update)
                if update.is_terminal or update.error is not None:
                    return
            await self._sleep(self.interval_seconds)

    async def _poll_once(self, job: ProcessingJob) -> JobUpdate | None:
        try:
            update = await self._fetch_status(job.job_id)
        except TransientNetworkError as e:
            self.consecutive_failures += 1
            if self.consecutive_failures < self.max_consecutive_failures:
                return None
            lost = PollingLostError(job.job_id, self.consecutive_failures, e)
            return self._error_update(job, lost)
        except PhotoForgeError as e:
            return self._error_update(job, e)
        except Exception as e:
            unexpected = RemoteRequestError(f"Status check for job {job.job_id} failed: {e!r}")
            unexpected.__cause__ = e
            return self._error_update(job, unexpected)
        self.consecutive_failures = 0
        return update

    @staticmethod
    def _error_update(job: ProcessingJob, error: Exception) -> JobUpdate:
        # Job state is unknown, not failed: report what we last saw
        return JobUpdate(
            job_id=job.job_id,
            status=job.status,
            progress_pct=job.progress_pct,
            stage=job.stage,
            eta_text=job.eta_text,
            message=str(error),
            error=error,
        )
