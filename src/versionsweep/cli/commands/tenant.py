"""
Tenant version policy commands.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from versionsweep.cli.common import CONFIG_OPTION, console, err_console, load_config_or_exit

app = typer.Typer(
    help="Show or apply tenant-wide version settings",
    no_args_is_help=True,
)


def _admin(config):
    from versionsweep.core.client.admin import HttpTenantAdminClient

    tenant = config.tenant
    return HttpTenantAdminClient(
        tenant.admin_url,
        access_token=tenant.access_token,
        timeout=tenant.timeout_seconds,
    )


@app.command("show")
def show_settings(config_path: Optional[Path] = CONFIG_OPTION) -> None:
    """Show current tenant version settings."""
    from versionsweep.core.client.base import RemoteFailure

    config = load_config_or_exit(config_path)

    async def fetch():
        async with _admin(config) as admin:
            return await admin.get_settings()

    try:
        settings = asyncio.run(fetch())
    except RemoteFailure as e:
        err_console.print(f"[red]Cannot read tenant settings:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    table = Table(title="Tenant Version Settings", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Auto-expiration", "on" if settings.auto_expiration_enabled else "off")
    table.add_row("Major version limit", str(settings.major_version_limit or "-"))
    table.add_row("Expire versions after (days)", str(settings.expire_versions_after_days or "-"))
    console.print(table)


@app.command("apply")
def apply_policy(
    config_path: Optional[Path] = CONFIG_OPTION,
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show planned changes without applying them",
    ),
) -> None:
    """Apply the configured tenant_policy section."""
    from versionsweep.core.tenant import ActionStatus, TenantConfigurationError, apply_tenant_policy

    config = load_config_or_exit(config_path)
    policy = config.tenant_policy.to_policy()

    if policy.is_empty:
        console.print("[dim]tenant_policy configures no action.[/dim]")
        return

    async def execute():
        async with _admin(config) as admin:
            return await apply_tenant_policy(admin, policy, dry_run=dry_run)

    try:
        result = asyncio.run(execute())
    except TenantConfigurationError as e:
        err_console.print(f"[red]Tenant configuration failed:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    styles = {
        ActionStatus.APPLIED: "green",
        ActionStatus.UNCHANGED: "dim",
        ActionStatus.SKIPPED: "yellow",
        ActionStatus.PLANNED: "cyan",
    }
    for outcome in result.outcomes:
        style = styles[outcome.status]
        console.print(f"[{style}]{outcome.status.value:>9}[/{style}]  {outcome.action}: {escape(outcome.detail)}")
