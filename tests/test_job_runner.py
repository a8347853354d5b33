from __future__ import annotations

import asyncio

from conftest import FakeJobClient, progress

from versionsweep.core.client.base import RemoteFailure
from versionsweep.core.jobs import (
    ErrorKind,
    JobMode,
    JobRequest,
    JobRunner,
    OutcomeStatus,
    PollSettings,
)

SITE = "https://contoso.example.com/sites/hr"
REPORT = JobRequest(site_url=SITE, mode=JobMode.REPORT, report_url=f"{SITE}/Shared%20Documents/r.csv")
CLEANUP = JobRequest(site_url=SITE, mode=JobMode.CLEANUP, delete_before_days=180)


def _runner(client, clock, **kwargs):
    poll = kwargs.pop("poll", PollSettings(interval_seconds=1, max_wait_seconds=3))
    return JobRunner(client, poll, clock=clock, sleep=clock.sleep, **kwargs)


def test_first_poll_terminal_counts_one_poll(clock):
    client = FakeJobClient(scripts={SITE: [progress("Completed", versions_deleted=5)]})

    outcome = asyncio.run(_runner(client, clock).run(REPORT))

    assert outcome.status == OutcomeStatus.COMPLETED
    assert outcome.polls == 1
    assert outcome.progress.versions_deleted == 5
    assert outcome.handle.value == REPORT.report_url
    assert clock.sleeps == [1]


def test_submission_failure_makes_no_polls(clock, submission_error):
    client = FakeJobClient(submit_errors={SITE: submission_error})

    outcome = asyncio.run(_runner(client, clock).run(REPORT))

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_kind == ErrorKind.SUBMISSION_ERROR
    assert outcome.polls == 0
    assert outcome.handle is None
    assert "403" in outcome.detail
    assert client.polled == []


def test_always_in_progress_times_out_after_three_polls(clock, in_progress):
    client = FakeJobClient(scripts={SITE: [in_progress]})

    outcome = asyncio.run(_runner(client, clock).run(REPORT))

    assert outcome.status == OutcomeStatus.TIMED_OUT
    assert outcome.error_kind == ErrorKind.POLL_TIMEOUT
    assert outcome.polls == 3
    assert outcome.detail == "in_progress"
    assert len(client.polled) == 3


def test_not_found_then_completed(clock):
    client = FakeJobClient(scripts={SITE: [progress("NoReportFound"), progress("Completed")]})

    outcome = asyncio.run(_runner(client, clock).run(REPORT))

    assert outcome.status == OutcomeStatus.COMPLETED
    assert outcome.polls == 2


def test_unknown_status_keeps_polling(clock):
    client = FakeJobClient(scripts={SITE: [progress("Paused"), progress("Done")]})

    outcome = asyncio.run(_runner(client, clock).run(REPORT))

    assert outcome.status == OutcomeStatus.COMPLETED
    assert outcome.polls == 2


def test_remote_job_failure(clock):
    failed = progress("Failed", error_message="Library is locked", versions_processed=3)
    client = FakeJobClient(scripts={SITE: [progress("Running"), failed]})

    outcome = asyncio.run(_runner(client, clock).run(REPORT))

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_kind == ErrorKind.JOB_FAILED
    assert outcome.detail == "Library is locked"
    assert outcome.polls == 2
    assert outcome.progress.versions_processed == 3


def test_failed_progress_read_is_terminal_by_default(clock):
    client = FakeJobClient(scripts={SITE: [RemoteFailure("HTTP 503 Service Unavailable")]})

    outcome = asyncio.run(_runner(client, clock).run(REPORT))

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_kind == ErrorKind.REMOTE_FAILURE
    assert outcome.polls == 1
    assert len(client.polled) == 1


def test_failed_progress_read_retried_when_configured(clock):
    client = FakeJobClient(scripts={SITE: [RemoteFailure("HTTP 503", status_code=503), progress("Completed")]})
    poll = PollSettings(interval_seconds=1, max_wait_seconds=10, retry_attempts=2, retry_wait_seconds=0)

    outcome = asyncio.run(_runner(client, clock, poll=poll).run(REPORT))

    assert outcome.status == OutcomeStatus.COMPLETED
    assert outcome.polls == 1
    assert len(client.polled) == 2


def test_cleanup_is_fire_and_forget_by_default(clock):
    client = FakeJobClient()

    outcome = asyncio.run(_runner(client, clock).run(CLEANUP))

    assert outcome.status == OutcomeStatus.COMPLETED
    assert outcome.polls == 0
    assert outcome.detail is None
    assert outcome.handle.value == "work-1"
    assert client.polled == []


def test_cleanup_progress_tracked_when_enabled(clock):
    client = FakeJobClient(scripts={SITE: [progress("InProgress"), progress("Completed", versions_deleted=40)]})

    outcome = asyncio.run(_runner(client, clock, track_cleanup_progress=True).run(CLEANUP))

    assert outcome.status == OutcomeStatus.COMPLETED
    assert outcome.polls == 2
    assert outcome.progress.versions_deleted == 40


def test_cleanup_without_threshold_is_a_submission_error(clock):
    client = FakeJobClient()
    request = JobRequest(site_url=SITE, mode=JobMode.CLEANUP)

    outcome = asyncio.run(_runner(client, clock).run(request))

    assert outcome.error_kind == ErrorKind.SUBMISSION_ERROR
    assert client.submitted == []


def test_cancel_event_ends_waiting_job(in_progress):
    client = FakeJobClient(scripts={SITE: [in_progress]})
    poll = PollSettings(interval_seconds=30, max_wait_seconds=3600)

    async def scenario():
        cancel_event = asyncio.Event()
        runner = JobRunner(client, poll, cancel_event=cancel_event)
        task = asyncio.create_task(runner.run(REPORT))
        await asyncio.sleep(0.01)
        cancel_event.set()
        return await asyncio.wait_for(task, timeout=5)

    outcome = asyncio.run(scenario())

    assert outcome.status == OutcomeStatus.CANCELLED
    assert outcome.error_kind == ErrorKind.CANCELLED
    assert outcome.polls == 0
    assert client.submitted


def test_permanent_read_failure_is_not_retried(clock):
    client = FakeJobClient(scripts={SITE: [RemoteFailure("HTTP 403 unauthorized", status_code=403)]})
    poll = PollSettings(interval_seconds=1, max_wait_seconds=10, retry_attempts=3, retry_wait_seconds=0)

    outcome = asyncio.run(_runner(client, clock, poll=poll).run(REPORT))

    assert outcome.error_kind == ErrorKind.REMOTE_FAILURE
    assert len(client.polled) == 1


def test_cancel_event_keeps_injected_clock(clock, in_progress):
    client = FakeJobClient(scripts={SITE: [in_progress]})

    async def scenario():
        runner = _runner(client, clock, cancel_event=asyncio.Event())
        return await asyncio.wait_for(runner.run(REPORT), timeout=5)

    outcome = asyncio.run(scenario())

    assert outcome.status == OutcomeStatus.TIMED_OUT
    assert outcome.polls == 3
    assert clock.sleeps == [1, 1, 1]


def test_cancel_event_cuts_injected_sleep_short(virtual_clock, in_progress):
    client = FakeJobClient(scripts={SITE: [in_progress]})
    poll = PollSettings(interval_seconds=30, max_wait_seconds=3600)

    async def scenario():
        cancel_event = asyncio.Event()
        runner = _runner(client, virtual_clock, poll=poll, cancel_event=cancel_event)

        async def cancel_later():
            await virtual_clock.sleep(45)
            cancel_event.set()

        outcome, _ = await asyncio.gather(runner.run(REPORT), cancel_later())
        return outcome

    outcome = asyncio.run(virtual_clock.drive(scenario()))

    assert outcome.status == OutcomeStatus.CANCELLED
    assert outcome.polls == 1
    assert virtual_clock.now == 45
