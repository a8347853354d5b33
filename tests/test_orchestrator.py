from __future__ import annotations

import asyncio

import pytest
from conftest import FakeJobClient, FakeTenantAdmin, progress

from versionsweep.core.config.models import AppConfig
from versionsweep.core.jobs import (
    ErrorKind,
    JobMode,
    JobRunner,
    OutcomeStatus,
    PollSettings,
)
from versionsweep.core.orchestrator import JobPlan, SweepOrchestrator, run_sweep
from versionsweep.core.sites import Site
from versionsweep.core.tenant import ActionStatus, TenantConfigurationError, TenantSettings

SITES = [Site(url=f"https://contoso.example.com/sites/s{i}") for i in range(1, 4)]


def _orchestrator(client, clock, mode=JobMode.REPORT, **kwargs):
    runner = JobRunner(
        client,
        PollSettings(interval_seconds=1, max_wait_seconds=3),
        clock=clock,
        sleep=clock.sleep,
    )
    plan = JobPlan(mode=mode, delete_before_days=30, run_stamp="20250101-000000")
    return SweepOrchestrator(runner, plan, **kwargs)


def test_all_sites_complete(clock):
    client = FakeJobClient()

    report = asyncio.run(_orchestrator(client, clock).run(SITES))

    assert report.summary.by_status == {"completed": 3}
    assert [r.site_url for r in report.records] == [s.url for s in SITES]
    assert all(r.polls == 1 for r in report.records)
    assert report.finished_at is not None


def test_failed_submission_does_not_stop_later_sites(clock, submission_error):
    sites = SITES[:2]
    client = FakeJobClient(submit_errors={sites[0].url: submission_error})

    report = asyncio.run(_orchestrator(client, clock).run(sites))

    first, second = report.records
    assert (first.status, first.error_kind) == (OutcomeStatus.FAILED, ErrorKind.SUBMISSION_ERROR)
    assert second.status == OutcomeStatus.COMPLETED
    assert report.summary.unsuccessful == 1


@pytest.mark.parametrize("concurrency", [1, 3])
def test_one_record_per_site_whatever_happens(clock, submission_error, in_progress, concurrency):
    client = FakeJobClient(
        scripts={
            SITES[1].url: [progress("Failed", error_message="boom")],
            SITES[2].url: [in_progress],
        },
        submit_errors={SITES[0].url: submission_error},
    )

    report = asyncio.run(_orchestrator(client, clock, concurrency=concurrency).run(SITES))

    assert len(report.records) == len(SITES)
    assert sum(report.summary.by_status.values()) == len(SITES)
    assert [r.status for r in report.records] == [
        OutcomeStatus.FAILED,
        OutcomeStatus.FAILED,
        OutcomeStatus.TIMED_OUT,
    ]


def test_concurrency_is_bounded(clock):
    in_flight = 0
    peak = 0

    class SlowClient(FakeJobClient):
        async def fetch_progress(self, site_url, handle):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return progress("Completed")

    sites = [Site(url=f"https://contoso.example.com/sites/p{i}") for i in range(6)]
    report = asyncio.run(_orchestrator(SlowClient(), clock, concurrency=2).run(sites))

    assert report.summary.completed == 6
    assert peak <= 2


def test_each_site_deadline_starts_at_its_own_submission(virtual_clock, in_progress):
    class StaggeredClient(FakeJobClient):
        def __init__(self, **kwargs):
            super().__init__(**kwargs)
            self.poll_times: dict[str, list[float]] = {}

        async def submit_report_job(self, site_url, report_url):
            if site_url == SITES[1].url:
                await virtual_clock.sleep(5)
            return await super().submit_report_job(site_url, report_url)

        async def fetch_progress(self, site_url, handle):
            self.poll_times.setdefault(site_url, []).append(virtual_clock.now)
            return await super().fetch_progress(site_url, handle)

    client = StaggeredClient(default=in_progress)
    orchestrator = _orchestrator(client, virtual_clock, concurrency=2)

    report = asyncio.run(virtual_clock.drive(orchestrator.run(SITES)))

    assert [r.status for r in report.records] == [OutcomeStatus.TIMED_OUT] * 3
    assert [r.polls for r in report.records] == [3, 3, 3]
    # s1 and s2 overlap, s3 starts when s1 frees its slot at t=3
    assert client.poll_times == {
        SITES[0].url: [1, 2, 3],
        SITES[1].url: [6, 7, 8],
        SITES[2].url: [4, 5, 6],
    }


def test_unexpected_error_becomes_local_error_record(clock):
    class BrokenClient(FakeJobClient):
        async def submit_report_job(self, site_url, report_url):
            return None  # not a handle

    report = asyncio.run(_orchestrator(BrokenClient(), clock).run(SITES[:1]))

    record = report.records[0]
    assert record.status == OutcomeStatus.FAILED
    assert record.error_kind == ErrorKind.LOCAL_ERROR
    assert "AttributeError" in record.detail


def test_cancelled_before_start(clock):
    client = FakeJobClient()
    cancel_event = asyncio.Event()
    cancel_event.set()

    report = asyncio.run(_orchestrator(client, clock, cancel_event=cancel_event).run(SITES))

    assert report.summary.by_status == {"cancelled": 3}
    assert client.submitted == []


def test_outcome_callback_errors_are_contained(clock):
    seen = []

    def on_outcome(record):
        seen.append(record.site_url)
        raise RuntimeError("display gone")

    report = asyncio.run(_orchestrator(FakeJobClient(), clock, on_outcome=on_outcome).run(SITES))

    assert seen == [s.url for s in SITES]
    assert report.summary.completed == 3


def test_report_url_is_inside_the_site():
    plan = JobPlan(
        mode=JobMode.REPORT,
        report_library="Shared Documents",
        report_folder="/Reports/2025/",
        run_stamp="20250101-000000",
    )

    request = plan.request_for(Site(url="https://contoso.example.com/sites/hr"))

    assert request.report_url == (
        "https://contoso.example.com/sites/hr/Shared%20Documents/Reports/2025/"
        "VersionExpirationReport_20250101-000000.csv"
    )


def test_nested_report_library_keeps_its_path():
    plan = JobPlan(
        mode=JobMode.REPORT,
        report_library="/Shared Documents/Reports/",
        run_stamp="20250101-000000",
    )

    assert plan.report_url_for("https://contoso.example.com/sites/hr/") == (
        "https://contoso.example.com/sites/hr/Shared%20Documents/Reports/"
        "VersionExpirationReport_20250101-000000.csv"
    )


def _config(**policy):
    return AppConfig.model_validate({
        "jobs": {"poll": {"interval_seconds": 0.001, "max_wait_seconds": 1}},
        "tenant_policy": policy,
    })


def test_run_sweep_with_explicit_sites():
    client = FakeJobClient()

    report = asyncio.run(run_sweep(_config(), mode=JobMode.CLEANUP, sites=SITES, job_client=client))

    assert report.mode == JobMode.CLEANUP
    assert report.summary.completed == 3
    assert [s[1] for s in client.submitted] == [JobMode.CLEANUP] * 3
    assert report.tenant_actions == []
    assert not client.closed


def test_run_sweep_applies_tenant_policy_before_sites():
    client = FakeJobClient()
    admin = FakeTenantAdmin(TenantSettings(auto_expiration_enabled=True))

    report = asyncio.run(run_sweep(
        _config(major_version_limit=100),
        mode=JobMode.CLEANUP,
        sites=SITES,
        job_client=client,
        admin_client=admin,
    ))

    assert [a.status for a in report.tenant_actions] == [ActionStatus.SKIPPED]
    assert admin.updates == []
    assert report.summary.completed == 3


def test_run_sweep_tenant_failure_is_fatal():
    client = FakeJobClient()
    admin = FakeTenantAdmin(read_error=RuntimeError("HTTP 401"))

    with pytest.raises(TenantConfigurationError):
        asyncio.run(run_sweep(
            _config(enable_auto_expiration=True),
            mode=JobMode.CLEANUP,
            sites=SITES,
            job_client=client,
            admin_client=admin,
        ))

    assert client.submitted == []


def test_run_sweep_report_mode_leaves_tenant_alone():
    admin = FakeTenantAdmin()

    report = asyncio.run(run_sweep(
        _config(enable_auto_expiration=True),
        mode=JobMode.REPORT,
        sites=SITES,
        job_client=FakeJobClient(),
        admin_client=admin,
    ))

    assert report.tenant_actions == []
    assert admin.updates == []
