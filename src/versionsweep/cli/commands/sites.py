"""
Site listing commands.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from versionsweep.cli.common import CONFIG_OPTION, console, err_console, load_config_or_exit

app = typer.Typer(
    help="Inspect the site selection",
    no_args_is_help=True,
)


@app.command("list")
def list_sites(
    config_path: Optional[Path] = CONFIG_OPTION,
    sites_file: Optional[Path] = typer.Option(
        None, "--sites-file", "-s", help="Site list file (overrides sites.source)",
    ),
    include_personal: bool = typer.Option(
        False, "--include-personal", help="Include personal sites",
    ),
    format: str = typer.Option(
        "table", "--format", "-f", help="Output format (table, json)",
    ),
) -> None:
    """List the sites a sweep would target, after filters."""
    from versionsweep.core.client.admin import HttpTenantAdminClient
    from versionsweep.core.client.base import RemoteFailure
    from versionsweep.core.orchestrator.runner import resolve_sites
    from versionsweep.core.sites import SiteListError

    config = load_config_or_exit(config_path)
    if sites_file is not None:
        config.sites.source = str(sites_file)
    if include_personal:
        config.sites.include_personal_sites = True

    async def fetch():
        tenant = config.tenant
        async with HttpTenantAdminClient(
            tenant.admin_url,
            access_token=tenant.access_token,
            timeout=tenant.timeout_seconds,
        ) as admin:
            return await resolve_sites(config.sites, admin)

    try:
        sites = asyncio.run(fetch())
    except (RemoteFailure, SiteListError) as e:
        err_console.print(f"[red]Cannot list sites:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if format == "json":
        data = [
            {"url": s.url, "title": s.title, "personal": s.is_personal_site}
            for s in sites
        ]
        console.print_json(json.dumps(data))
        return

    if not sites:
        console.print("[dim]No sites match the current selection.[/dim]")
        return

    table = Table(title=f"Sites ({len(sites)})")
    table.add_column("URL", style="cyan")
    table.add_column("Title")
    table.add_column("Personal", justify="center")
    for site in sites:
        table.add_row(site.url, site.title or "", "yes" if site.is_personal_site else "")
    console.print(table)
