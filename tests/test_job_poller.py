from __future__ import annotations

import asyncio

import pytest

from photoforge_workflow.core.job import JobStatus, JobUpdate, ProcessingJob
from photoforge_workflow.core.job_poller import JobPoller
from photoforge_workflow.util.errors import AuthError, PollingLostError, RemoteRequestError, TransientNetworkError


async def _no_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


class ScriptedStatus:
    """Returns (or raises) scripted items in order; repeats the last one when exhausted."""

    def __init__(self, script: list[object]) -> None:
        self.script = list(script)
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, job_id: str) -> JobUpdate:
        self.calls.append(job_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
            if isinstance(item, Exception):
                raise item
            status, progress, stage = item
            return JobUpdate(job_id=job_id, status=status, progress_pct=progress, stage=stage)
        finally:
            self.in_flight -= 1


def _run_until_done(fetch: ScriptedStatus, job: ProcessingJob, **kwargs: object) -> list[JobUpdate]:
    updates: list[JobUpdate] = []

    async def main() -> None:
        poller = JobPoller(fetch, interval_seconds=0, sleep=_no_sleep, **kwargs)
        poller.start(job, updates.append)
        await poller.wait()
        assert poller.active is False

    asyncio.run(main())
    return updates


def test_polls_until_completed_and_stops() -> None:
    fetch = ScriptedStatus([
        (JobStatus.PROCESSING, 10, "aligning"),
        (JobStatus.PROCESSING, 55, "meshing"),
        (JobStatus.COMPLETED, 100, "finalizing"),
    ])
    job = ProcessingJob(job_id="job-1")

    updates = _run_until_done(fetch, job)

    assert [u.progress_pct for u in updates] == [10, 55, 100]
    assert job.status == JobStatus.COMPLETED
    assert job.progress_pct == 100
    assert len(fetch.calls) == 3
    assert fetch.max_in_flight == 1


def test_failed_status_is_terminal_without_retry() -> None:
    fetch = ScriptedStatus([
        (JobStatus.PROCESSING, 20, "reconstructing"),
        (JobStatus.FAILED, 20, "reconstructing"),
    ])
    job = ProcessingJob(job_id="job-1")

    updates = _run_until_done(fetch, job)

    assert updates[-1].status == JobStatus.FAILED
    assert job.status == JobStatus.FAILED
    assert len(fetch.calls) == 2


def test_unknown_stage_is_passed_through() -> None:
    fetch = ScriptedStatus([
        (JobStatus.PROCESSING, 40, "gaussian_splatting_v2"),
        (JobStatus.COMPLETED, 100, ""),
    ])
    job = ProcessingJob(job_id="job-1")
    updates = _run_until_done(fetch, job)
    assert updates[0].stage == "gaussian_splatting_v2"
    assert job.stage == "gaussian_splatting_v2"


def test_single_transient_error_is_not_surfaced() -> None:
    fetch = ScriptedStatus([
        (JobStatus.PROCESSING, 10, "aligning"),
        TransientNetworkError("timeout"),
        (JobStatus.COMPLETED, 100, ""),
    ])
    job = ProcessingJob(job_id="job-1")

    updates = _run_until_done(fetch, job, max_consecutive_failures=3)

    assert all(u.error is None for u in updates)
    assert job.status == JobStatus.COMPLETED
    assert len(fetch.calls) == 3


def test_consecutive_transient_errors_surface_polling_lost() -> None:
    fetch = ScriptedStatus([
        (JobStatus.PROCESSING, 30, "meshing"),
        TransientNetworkError("timeout"),
        TransientNetworkError("timeout"),
        TransientNetworkError("timeout"),
    ])
    job = ProcessingJob(job_id="job-1")

    updates = _run_until_done(fetch, job, max_consecutive_failures=3)

    assert isinstance(updates[-1].error, PollingLostError)
    assert updates[-1].error.attempts == 3
    # Losing contact is not a job failure
    assert job.status == JobStatus.PROCESSING
    assert job.progress_pct == 30
    assert len(fetch.calls) == 4


def test_success_resets_failure_count() -> None:
    fetch = ScriptedStatus([
        TransientNetworkError("timeout"),
        TransientNetworkError("timeout"),
        (JobStatus.PROCESSING, 50, "meshing"),
        TransientNetworkError("timeout"),
        TransientNetworkError("timeout"),
        (JobStatus.COMPLETED, 100, ""),
    ])
    job = ProcessingJob(job_id="job-1")
    updates = _run_until_done(fetch, job, max_consecutive_failures=3)
    assert updates[-1].status == JobStatus.COMPLETED
    assert all(u.error is None for u in updates)


def test_auth_error_stops_polling_immediately() -> None:
    fetch = ScriptedStatus([AuthError("key revoked")])
    job = ProcessingJob(job_id="job-1")
    updates = _run_until_done(fetch, job)
    assert len(updates) == 1
    assert isinstance(updates[0].error, AuthError)
    assert len(fetch.calls) == 1


def test_starting_second_job_cancels_first() -> None:
    fetch = ScriptedStatus([(JobStatus.PROCESSING, 10, "aligning")])
    first = ProcessingJob(job_id="job-a")
    second = ProcessingJob(job_id="job-b")

    async def main() -> tuple[list[str], bool, str | None]:
        poller = JobPoller(fetch, interval_seconds=0, sleep=_no_sleep)
        cancel_first = poller.start(first, lambda _u: None)
        for _ in range(5):
            await asyncio.sleep(0)
        poller.start(second, lambda _u: None)
        calls_at_switch = len(fetch.calls)
        for _ in range(10):
            await asyncio.sleep(0)
        # The stale cancel handle must not stop the new loop
        cancel_first()
        active, active_id = poller.active, poller.active_job_id
        poller.cancel()
        return fetch.calls[calls_at_switch:], active, active_id

    later_calls, active, active_id = asyncio.run(main())

    assert later_calls
    assert set(later_calls) == {"job-b"}
    assert active is True
    assert active_id == "job-b"
    assert fetch.max_in_flight == 1


def test_cancel_stops_network_activity() -> None:
    fetch = ScriptedStatus([(JobStatus.PROCESSING, 10, "aligning")])
    job = ProcessingJob(job_id="job-1")

    async def main() -> int:
        poller = JobPoller(fetch, interval_seconds=0, sleep=_no_sleep)
        cancel = poller.start(job, lambda _u: None)
        for _ in range(4):
            await asyncio.sleep(0)
        cancel()
        await poller.wait()
        calls = len(fetch.calls)
        for _ in range(10):
            await asyncio.sleep(0)
        assert len(fetch.calls) == calls
        return calls

    assert asyncio.run(main()) >= 1
    assert job.status == JobStatus.PROCESSING


def test_terminal_job_cannot_be_polled() -> None:
    job = ProcessingJob(job_id="job-1", status=JobStatus.COMPLETED)

    async def main() -> None:
        JobPoller(ScriptedStatus([(JobStatus.COMPLETED, 100, "")])).start(job, lambda _u: None)

    with pytest.raises(ValueError):
        asyncio.run(main())


def test_unexpected_fetch_error_is_surfaced_not_swallowed() -> None:
    fetch = ScriptedStatus([
        (JobStatus.PROCESSING, 35, "meshing"),
        UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte"),
    ])
    job = ProcessingJob(job_id="job-1")

    updates = _run_until_done(fetch, job)

    assert len(updates) == 2
    error = updates[-1].error
    assert isinstance(error, RemoteRequestError)
    assert isinstance(error.__cause__, UnicodeDecodeError)
    assert updates[-1].progress_pct == 35
    assert job.status == JobStatus.PROCESSING
