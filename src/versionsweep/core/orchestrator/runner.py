"""
Sweep orchestrator.

Coordinates the full workflow: tenant policy → per-site job → outcome
records → summary. Every site yields exactly one record, whatever happens
to its job.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Sequence
from urllib.parse import quote

from versionsweep.core.client.admin import HttpTenantAdminClient
from versionsweep.core.client.base import JobClient
from versionsweep.core.client.http_client import HttpJobClient
from versionsweep.core.config.models import AppConfig, SitesConfig
from versionsweep.core.jobs.models import (
    ErrorKind,
    JobMode,
    JobRequest,
    OutcomeRecord,
    OutcomeStatus,
    utcnow,
)
from versionsweep.core.jobs.runner import JobRunner
from versionsweep.core.logging import site_context
from versionsweep.core.sites import Site, build_site_filter, filter_sites, load_sites_file
from versionsweep.core.tenant import TenantActionOutcome, apply_tenant_policy

from .summary import RunSummary, summarize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobPlan:
    """Static, per-run parameters used to build one request per site."""

    mode: JobMode
    delete_before_days: int | None = None
    report_library: str = "Shared Documents"
    report_folder: str | None = None
    report_file_prefix: str = "VersionExpirationReport"
    run_stamp: str = field(default_factory=lambda: utcnow().strftime("%Y%m%d-%H%M%S"))

    def report_url_for(self, site_url: str) -> str:
        """Build a report location inside the given site."""
        parts = _segments(self.report_library)
        if self.report_folder:
            parts.extend(_segments(self.report_folder))
        parts.append(f"{self.report_file_prefix}_{self.run_stamp}.csv")
        path = "/".join(quote(p, safe="-_.~") for p in parts)
        return f"{site_url.rstrip('/')}/{path}"

    def request_for(self, site: Site) -> JobRequest:
        if self.mode == JobMode.CLEANUP:
            return JobRequest(
                site_url=site.url,
                mode=JobMode.CLEANUP,
                delete_before_days=self.delete_before_days,
            )
        return JobRequest(
            site_url=site.url,
            mode=JobMode.REPORT,
            report_url=self.report_url_for(site.url),
        )


def _segments(path: str) -> list[str]:
    return [p for p in path.strip("/").split("/") if p]


@dataclass
class SweepReport:
    """Everything a result sink needs from one run."""

    mode: JobMode
    records: list[OutcomeRecord]
    summary: RunSummary
    tenant_actions: list[TenantActionOutcome] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "tenant_actions": [a.to_dict() for a in self.tenant_actions],
            "summary": self.summary.to_dict(),
            "records": [r.to_dict() for r in self.records],
        }


OutcomeCallback = Callable[[OutcomeRecord], None]


class SweepOrchestrator:
    """Runs one job per site and collects one outcome record per site.

    Sites are processed sequentially by default. With ``concurrency > 1``
    up to that many sites run at once; each keeps its own poll deadline and
    records are still returned in input order.
    """

    def __init__(
        self,
        runner: JobRunner,
        plan: JobPlan,
        *,
        concurrency: int = 1,
        cancel_event: asyncio.Event | None = None,
        on_outcome: OutcomeCallback | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            runner: Per-site job runner
            plan: Request parameters for this run
            concurrency: Maximum sites in flight
            cancel_event: When set, unstarted sites are recorded as cancelled
            on_outcome: Called once per record as soon as it exists
        """
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.runner = runner
        self.plan = plan
        self.concurrency = concurrency
        self.cancel_event = cancel_event
        self.on_outcome = on_outcome

    async def run(
        self,
        sites: Sequence[Site],
        tenant_actions: list[TenantActionOutcome] | None = None,
    ) -> SweepReport:
        """Process every site and summarize the outcomes."""
        started_at = utcnow()
        logger.info(
            "Starting %s sweep over %d site(s), concurrency=%d",
            self.plan.mode.value, len(sites), self.concurrency,
        )

        if self.concurrency == 1:
            records = [await self.process_site(site) for site in sites]
        else:
            semaphore = asyncio.Semaphore(self.concurrency)

            async def bounded(site: Site) -> OutcomeRecord:
                async with semaphore:
                    return await self.process_site(site)

            records = list(await asyncio.gather(*(bounded(site) for site in sites)))

        summary = summarize(records)
        logger.info("Sweep finished: %s", summary.status_line())

        return SweepReport(
            mode=self.plan.mode,
            records=records,
            summary=summary,
            tenant_actions=list(tenant_actions or []),
            started_at=started_at,
            finished_at=utcnow(),
        )

    async def process_site(self, site: Site) -> OutcomeRecord:
        """Run one site's job; never raises."""
        with site_context(site.url, self.plan.mode.value):
            record = await self._process(site)

            logger.info("%s %s", record.mode.value, record.status.value)
            if self.on_outcome is not None:
                try:
                    self.on_outcome(record)
                except Exception:
                    logger.exception("Outcome callback failed")

        return record

    async def _process(self, site: Site) -> OutcomeRecord:
        request = self.plan.request_for(site)

        if self.cancel_event is not None and self.cancel_event.is_set():
            return _local_record(
                request, OutcomeStatus.CANCELLED, ErrorKind.CANCELLED, "Run cancelled before start",
            )

        try:
            outcome = await self.runner.run(request)
        except Exception as e:
            logger.exception("Unexpected error while processing site")
            return _local_record(
                request, OutcomeStatus.FAILED, ErrorKind.LOCAL_ERROR, f"{type(e).__name__}: {e}",
            )
        return OutcomeRecord.from_outcome(request, outcome)


def _local_record(
    request: JobRequest,
    status: OutcomeStatus,
    kind: ErrorKind,
    detail: str,
) -> OutcomeRecord:
    return OutcomeRecord(
        site_url=request.site_url,
        mode=request.mode,
        status=status,
        recorded_at=utcnow(),
        error_kind=kind,
        detail=detail,
    )


async def resolve_sites(config: SitesConfig, admin: HttpTenantAdminClient | None = None) -> list[Site]:
    """List and filter the sites a sweep targets.

    Raises:
        RemoteFailure: If the tenant site list cannot be read
        SiteListError: If the sites file cannot be read
    """
    if config.from_tenant:
        if admin is None:
            raise ValueError("Listing sites from the tenant requires an admin client")
        sites = await admin.list_sites()
    else:
        sites = load_sites_file(config.source)

    predicate = build_site_filter(
        include_personal_sites=config.include_personal_sites,
        include_patterns=config.include_patterns,
        exclude_patterns=config.exclude_patterns,
    )
    selected = filter_sites(sites, predicate)
    logger.info("Selected %d of %d site(s)", len(selected), len(sites))
    return selected


async def run_sweep(
    config: AppConfig,
    *,
    mode: JobMode | None = None,
    sites: Sequence[Site] | None = None,
    dry_run: bool = False,
    job_client: JobClient | None = None,
    admin_client: HttpTenantAdminClient | None = None,
    cancel_event: asyncio.Event | None = None,
    on_outcome: OutcomeCallback | None = None,
) -> SweepReport:
    """Convenience function running a complete sweep from configuration.

    Site listing and the tenant policy step happen before any site is
    processed; their failures propagate and abort the run.

    Args:
        config: Application configuration
        mode: Job mode (overrides config)
        sites: Explicit site list (skips listing and filtering)
        dry_run: Report tenant policy changes without applying them
        job_client: Job client to use (default: HttpJobClient)
        admin_client: Admin client to use (default: HttpTenantAdminClient)
        cancel_event: Cancels waiting and unstarted sites when set
        on_outcome: Called once per record

    Returns:
        SweepReport with one record per site

    Raises:
        TenantConfigurationError: If the tenant policy step fails
        RemoteFailure: If the tenant site list cannot be read
        SiteListError: If the sites file cannot be read
    """
    mode = mode or config.jobs.mode
    tenant = config.tenant
    policy = config.tenant_policy.to_policy()

    needs_admin = sites is None and config.sites.from_tenant
    needs_admin = needs_admin or (mode == JobMode.CLEANUP and not policy.is_empty)

    owns_admin = admin_client is None and needs_admin
    if owns_admin:
        admin_client = HttpTenantAdminClient(
            tenant.admin_url,
            access_token=tenant.access_token,
            timeout=tenant.timeout_seconds,
        )

    owns_client = job_client is None
    if job_client is None:
        job_client = HttpJobClient(access_token=tenant.access_token, timeout=tenant.timeout_seconds)

    try:
        if sites is None:
            sites = await resolve_sites(config.sites, admin_client)

        tenant_actions: list[TenantActionOutcome] = []
        if mode == JobMode.CLEANUP and not policy.is_empty and admin_client is not None:
            result = await apply_tenant_policy(admin_client, policy, dry_run=dry_run)
            tenant_actions = result.outcomes

        jobs = config.jobs
        runner = JobRunner(
            job_client,
            jobs.poll.to_settings(),
            track_cleanup_progress=jobs.track_cleanup_progress,
            cancel_event=cancel_event,
        )
        plan = JobPlan(
            mode=mode,
            delete_before_days=jobs.delete_before_days,
            report_library=jobs.report.library,
            report_folder=jobs.report.folder,
            report_file_prefix=jobs.report.file_prefix,
        )
        orchestrator = SweepOrchestrator(
            runner,
            plan,
            concurrency=jobs.concurrency,
            cancel_event=cancel_event,
            on_outcome=on_outcome,
        )
        return await orchestrator.run(sites, tenant_actions)

    finally:
        if owns_client:
            await job_client.close()
        if owns_admin and admin_client is not None:
            await admin_client.close()
