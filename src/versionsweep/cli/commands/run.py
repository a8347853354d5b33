"""
Run commands for cleanup and report sweeps.
"""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from versionsweep.cli.common import CONFIG_OPTION, console, err_console, load_config_or_exit
from versionsweep.core.jobs.models import JobMode, OutcomeRecord, OutcomeStatus

app = typer.Typer(
    help="Run cleanup or report sweeps",
    no_args_is_help=True,
)


STATUS_STYLES = {
    OutcomeStatus.COMPLETED: "green",
    OutcomeStatus.FAILED: "red",
    OutcomeStatus.TIMED_OUT: "yellow",
    OutcomeStatus.CANCELLED: "dim",
}


@app.command("cleanup")
def run_cleanup(
    config_path: Optional[Path] = CONFIG_OPTION,
    sites_file: Optional[Path] = typer.Option(
        None, "--sites-file", "-s", help="Site list file (overrides sites.source)",
    ),
    older_than: Optional[int] = typer.Option(
        None, "--older-than", "-d", help="Delete versions older than N days",
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Export results to this file",
    ),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-n", help="Sites processed at the same time",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show tenant policy changes without applying them",
    ),
    fail_on_error: bool = typer.Option(
        False, "--fail-on-error", help="Exit with code 2 if any site did not complete",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Submit version batch-delete jobs to every selected site.

    Examples:
        versionsweep run cleanup --older-than 180
        versionsweep run cleanup -s sites.txt -o data/cleanup.csv
    """
    config = load_config_or_exit(config_path, verbose=verbose)
    if older_than is not None:
        config.jobs.delete_before_days = older_than
    _run(
        config, JobMode.CLEANUP,
        sites_file=sites_file, output=output, concurrency=concurrency,
        dry_run=dry_run, fail_on_error=fail_on_error,
    )


@app.command("report")
def run_report(
    config_path: Optional[Path] = CONFIG_OPTION,
    sites_file: Optional[Path] = typer.Option(
        None, "--sites-file", "-s", help="Site list file (overrides sites.source)",
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Export results to this file",
    ),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-n", help="Sites processed at the same time",
    ),
    fail_on_error: bool = typer.Option(
        False, "--fail-on-error", help="Exit with code 2 if any site did not complete",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Generate a version expiration report in every selected site.

    Nothing is deleted; use this as the dry run for a cleanup.

    Examples:
        versionsweep run report
        versionsweep run report -s sites.yaml -o data/report.json
    """
    config = load_config_or_exit(config_path, verbose=verbose)
    _run(
        config, JobMode.REPORT,
        sites_file=sites_file, output=output, concurrency=concurrency,
        dry_run=True, fail_on_error=fail_on_error,
    )


def _run(
    config,
    mode: JobMode,
    *,
    sites_file: Optional[Path],
    output: Optional[Path],
    concurrency: Optional[int],
    dry_run: bool,
    fail_on_error: bool,
) -> None:
    """Run a sweep and print the summary."""
    from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

    from versionsweep.core.client.base import RemoteFailure
    from versionsweep.core.export import write_results
    from versionsweep.core.orchestrator.runner import resolve_sites, run_sweep
    from versionsweep.core.sites import SiteListError
    from versionsweep.core.tenant import TenantConfigurationError

    if sites_file is not None:
        config.sites.source = str(sites_file)
    if concurrency is not None:
        config.jobs.concurrency = concurrency
    if output is not None:
        config.output.path = output
        config.output.format = None

    console.print()
    console.print(f"[bold]Starting {mode.value} sweep[/bold]")
    if mode == JobMode.REPORT:
        console.print("[yellow]Report mode - no versions will be deleted[/yellow]")
    elif dry_run:
        console.print("[yellow]Dry run - tenant settings will not be changed[/yellow]")
    console.print()

    async def execute():
        from versionsweep.core.client.admin import HttpTenantAdminClient

        tenant = config.tenant
        cancel_event = asyncio.Event()
        _install_cancel_handler(cancel_event)

        async with HttpTenantAdminClient(
            tenant.admin_url,
            access_token=tenant.access_token,
            timeout=tenant.timeout_seconds,
        ) as admin:
            sites = await resolve_sites(config.sites, admin)

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=console,
            ) as progress:
                task = progress.add_task(f"[cyan]{mode.value}[/cyan]", total=len(sites))

                def on_outcome(record: OutcomeRecord) -> None:
                    progress.advance(task)

                return await run_sweep(
                    config,
                    mode=mode,
                    sites=sites,
                    dry_run=dry_run,
                    admin_client=admin,
                    cancel_event=cancel_event,
                    on_outcome=on_outcome,
                )

    try:
        report = asyncio.run(execute())
    except TenantConfigurationError as e:
        err_console.print(f"[red]Tenant configuration failed, no site was processed:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except (RemoteFailure, SiteListError) as e:
        err_console.print(f"[red]Cannot list sites:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    show_report(report)

    if config.output.path is not None:
        path = write_results(report, config.output.path, config.output.resolved_format())
        console.print(f"[green]Results written to[/green] {path}")

    if fail_on_error and report.summary.unsuccessful:
        raise typer.Exit(2)


def _install_cancel_handler(cancel_event: asyncio.Event) -> None:
    """Set the cancel event on Ctrl+C where the platform allows it."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        pass  # Windows: KeyboardInterrupt ends the run instead


def show_report(report) -> None:
    """Print tenant actions, per-site rows and totals."""
    from versionsweep.core.orchestrator.summary import format_bytes, sort_records

    if report.tenant_actions:
        actions = Table(title="Tenant Actions")
        actions.add_column("Action", style="cyan")
        actions.add_column("Status")
        actions.add_column("Detail")
        for action in report.tenant_actions:
            actions.add_row(action.action, action.status.value, escape(action.detail))
        console.print(actions)
        console.print()

    table = Table(title=f"{report.mode.value.title()} Results")
    table.add_column("Site", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Deleted", justify="right")
    table.add_column("Released", justify="right")
    table.add_column("Detail", max_width=60)

    for record in sort_records(report.records):
        style = STATUS_STYLES.get(record.status, "default")
        table.add_row(
            record.site_url,
            f"[{style}]{record.status.value}[/{style}]",
            "-" if record.versions_deleted is None else str(record.versions_deleted),
            "-" if record.storage_released_bytes is None else format_bytes(record.storage_released_bytes),
            escape(record.detail or ""),
        )

    summary = report.summary
    if summary.total > 1:
        table.add_section()
        table.add_row(
            "[bold]Total[/bold]",
            f"{summary.completed}/{summary.total}",
            str(summary.versions_deleted),
            format_bytes(summary.storage_released_bytes),
            "",
        )

    console.print(table)
    console.print()

    for status, count in sorted(summary.by_status.items()):
        console.print(f"  {status}: {count}")
    if report.duration_seconds is not None:
        console.print(f"  [dim]Duration: {report.duration_seconds:.1f}s[/dim]")
