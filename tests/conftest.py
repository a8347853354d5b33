from __future__ import annotations

import asyncio
import heapq
import logging
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

import pytest

from versionsweep.core.client.base import JobClient, SubmissionError
from versionsweep.core.jobs.models import JobHandle, JobMode, JobStatus, RawProgress
from versionsweep.core.tenant import TenantSettings


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class VirtualClock:
    """Shared virtual time for concurrent tasks.

    ``sleep`` parks the caller until ``drive`` advances time to its wake
    point. Time only moves once every task is parked, one wake-up at a
    time, so overlapping sleeps behave as they would on a real clock.
    """

    SETTLE_STEPS = 100

    def __init__(self):
        self.now = 0.0
        self._sleepers: list = []
        self._seq = 0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        wake = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self.now + seconds, self._seq, wake))
        self._seq += 1
        await wake

    async def drive(self, coro):
        task = asyncio.ensure_future(coro)
        while True:
            for _ in range(self.SETTLE_STEPS):
                await asyncio.sleep(0)
            if task.done():
                return task.result()
            if not self._sleepers:
                raise RuntimeError("tasks blocked on something other than the clock")
            at, _, wake = heapq.heappop(self._sleepers)
            if wake.cancelled():
                continue
            self.now = max(self.now, at)
            wake.set_result(None)


def progress(status: str, **counters) -> RawProgress:
    from versionsweep.core.client.progress import normalize_status

    return RawProgress(raw_status=status, status=normalize_status(status), **counters)


class FakeJobClient(JobClient):
    """In-memory job client.

    ``submit_errors`` maps a site URL to the exception its submission
    raises. ``scripts`` maps a site URL to the sequence of progress values
    (or exceptions) returned by successive polls; the last entry repeats.
    """

    def __init__(self, scripts=None, submit_errors=None, default=None):
        self.scripts = {k: list(v) for k, v in (scripts or {}).items()}
        self.submit_errors = dict(submit_errors or {})
        self.default = default or progress("Completed")
        self.submitted: list[tuple[str, JobMode, str]] = []
        self.polled: list[str] = []
        self.closed = False

    def _submit(self, site_url: str, mode: JobMode, value: str) -> JobHandle:
        error = self.submit_errors.get(site_url)
        if error is not None:
            raise error
        self.submitted.append((site_url, mode, value))
        return JobHandle(value=value, mode=mode, site_url=site_url)

    async def submit_cleanup_job(self, site_url, delete_before_days):
        return self._submit(site_url, JobMode.CLEANUP, f"work-{len(self.submitted) + 1}")

    async def submit_report_job(self, site_url, report_url):
        return self._submit(site_url, JobMode.REPORT, report_url)

    async def fetch_progress(self, site_url, handle):
        self.polled.append(site_url)
        script = self.scripts.get(site_url)
        if not script:
            return self.default
        item = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        self.closed = True


class FakeTenantAdmin:
    def __init__(self, settings: TenantSettings | None = None, read_error=None, write_error=None):
        self.settings = settings or TenantSettings()
        self.read_error = read_error
        self.write_error = write_error
        self.updates: list[dict] = []

    async def get_settings(self) -> TenantSettings:
        if self.read_error is not None:
            raise self.read_error
        return self.settings

    async def update_settings(self, changes: dict) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.updates.append(changes)

    async def close(self) -> None:
        pass


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def virtual_clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def submission_error() -> SubmissionError:
    return SubmissionError("HTTP 403 unauthorized", status_code=403)


@pytest.fixture
def in_progress() -> RawProgress:
    return RawProgress(raw_status="InProgress", status=JobStatus.IN_PROGRESS)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logging.getLogger("versionsweep").handlers.clear()
