"""
Job runner for a single site.

Drives one job through ``Submitted -> Polling -> {Completed, Failed,
TimedOut}``. Cleanup jobs are fire-and-forget unless progress tracking is
enabled; report jobs always poll until a terminal state or the deadline.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from versionsweep.core.client.base import JobClient
from versionsweep.core.client.retries import RetryPolicy

from .models import (
    ErrorKind,
    JobCancelled,
    JobError,
    JobFailed,
    JobHandle,
    JobMode,
    JobOutcome,
    JobRequest,
    JobStatus,
    OutcomeStatus,
    PollTimeout,
    ProgressReadFailed,
    RawProgress,
)

logger = logging.getLogger(__name__)


@dataclass
class PollSettings:
    """Timing of the poll loop."""

    interval_seconds: float = 30.0
    max_wait_seconds: float = 3600.0
    retry_attempts: int = 1
    retry_wait_seconds: float = 5.0


class JobRunner:
    """Runs one job request to a terminal outcome.

    The runner never raises for an expected failure: submission errors,
    remote read failures, failed jobs, timeouts and cancellation all come
    back as a ``JobOutcome``.
    """

    def __init__(
        self,
        client: JobClient,
        poll: PollSettings | None = None,
        *,
        track_cleanup_progress: bool = False,
        cancel_event: asyncio.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the job runner.

        Args:
            client: Remote job client
            poll: Poll interval, deadline and read retry settings
            track_cleanup_progress: Poll cleanup jobs instead of treating
                submission as terminal
            cancel_event: When set, waiting jobs end as cancelled
            clock: Monotonic time source
            sleep: Non-busy wait used between polls
        """
        self.client = client
        self.poll = poll or PollSettings()
        self.track_cleanup_progress = track_cleanup_progress
        self.cancel_event = cancel_event
        self._clock = clock
        self._sleep = sleep
        self._retry = RetryPolicy(
            attempts=self.poll.retry_attempts,
            wait_seconds=self.poll.retry_wait_seconds,
        )

    def requires_polling(self, mode: JobMode) -> bool:
        return mode == JobMode.REPORT or self.track_cleanup_progress

    async def run(self, request: JobRequest) -> JobOutcome:
        """Submit the job and, where needed, poll it to a terminal state."""
        try:
            handle = await self._submit(request)
        except Exception as e:
            logger.warning("Submission failed for %s: %s", request.site_url, e)
            return JobOutcome(
                status=OutcomeStatus.FAILED,
                error_kind=ErrorKind.SUBMISSION_ERROR,
                detail=str(e) or type(e).__name__,
            )

        logger.info("Submitted %s job for %s: %s", request.mode.value, request.site_url, handle.value)

        if not self.requires_polling(request.mode):
            logger.info("Batch delete job submitted for %s, progress not tracked", request.site_url)
            return JobOutcome(status=OutcomeStatus.COMPLETED, handle=handle)

        try:
            progress, polls = await self._poll_until_terminal(request.site_url, handle)
        except JobError as e:
            return self._outcome_from_error(e, handle)

        logger.info("Job completed for %s after %d poll(s)", request.site_url, polls)
        return JobOutcome(
            status=OutcomeStatus.COMPLETED,
            handle=handle,
            progress=progress,
            polls=polls,
        )

    async def _submit(self, request: JobRequest) -> JobHandle:
        if request.mode == JobMode.CLEANUP:
            if request.delete_before_days is None:
                raise ValueError("Cleanup request requires delete_before_days")
            return await self.client.submit_cleanup_job(request.site_url, request.delete_before_days)

        if not request.report_url:
            raise ValueError("Report request requires report_url")
        return await self.client.submit_report_job(request.site_url, request.report_url)

    async def _poll_until_terminal(
        self,
        site_url: str,
        handle: JobHandle,
    ) -> tuple[RawProgress, int]:
        """Poll at a fixed interval until a terminal status or the deadline.

        Returns:
            Final progress and the number of poll calls made

        Raises:
            JobFailed: The remote job reported failure
            PollTimeout: The deadline passed without a terminal status
            JobCancelled: The cancel event was set while waiting
        """
        started = self._clock()
        deadline = started + self.poll.max_wait_seconds
        polls = 0

        while True:
            if await self._wait(self.poll.interval_seconds):
                raise _with_polls(JobCancelled("Run cancelled while polling"), polls)

            try:
                progress = await self._retry.call(self.client.fetch_progress, site_url, handle)
            except Exception as e:
                raise _with_polls(ProgressReadFailed(str(e) or type(e).__name__), polls + 1) from e
            polls += 1

            logger.debug(
                "Poll %d for %s: %s (%s)", polls, site_url, progress.status.value, progress.raw_status,
            )

            if progress.status == JobStatus.COMPLETED:
                return progress, polls

            if progress.status == JobStatus.FAILED:
                message = progress.error_message or f"Remote job failed ({progress.raw_status})"
                raise _with_polls(JobFailed(message, progress), polls)

            if progress.status == JobStatus.UNKNOWN:
                logger.warning("Unrecognized job status for %s: %r", site_url, progress.raw_status)

            now = self._clock()
            if now >= deadline:
                raise _with_polls(PollTimeout(progress.status, now - started), polls)

    async def _wait(self, seconds: float) -> bool:
        """Wait between polls. Returns True if the run was cancelled."""
        if self.cancel_event is None:
            await self._sleep(seconds)
            return False

        if self.cancel_event.is_set():
            return True

        # The injected sleep paces the loop; the event only cuts it short
        sleeper = asyncio.ensure_future(self._sleep(seconds))
        cancelled = asyncio.ensure_future(self.cancel_event.wait())
        try:
            await asyncio.wait({sleeper, cancelled}, return_when=asyncio.FIRST_COMPLETED)
            if sleeper.done():
                sleeper.result()
        finally:
            sleeper.cancel()
            cancelled.cancel()
        return self.cancel_event.is_set()

    def _outcome_from_error(self, error: JobError, handle: JobHandle) -> JobOutcome:
        status = {
            ErrorKind.POLL_TIMEOUT: OutcomeStatus.TIMED_OUT,
            ErrorKind.CANCELLED: OutcomeStatus.CANCELLED,
        }.get(error.kind, OutcomeStatus.FAILED)

        if isinstance(error, PollTimeout):
            logger.warning(
                "Job for %s timed out after %.0fs, last status %s",
                handle.site_url, error.waited_seconds, error.last_status.value,
            )
        else:
            logger.warning("Job for %s ended %s: %s", handle.site_url, status.value, error)

        return JobOutcome(
            status=status,
            handle=handle,
            error_kind=error.kind,
            detail=str(error),
            progress=error.progress if isinstance(error, JobFailed) else None,
            polls=error.polls,
        )


def _with_polls(error: JobError, polls: int) -> JobError:
    error.polls = polls
    return error
