"""
versionsweep CLI - Main entry point.

Tenant-wide file version cleanup and expiration reporting, one
asynchronous job per site.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.markup import escape
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from versionsweep import __app_name__, __version__
from versionsweep.cli.common import console, err_console
from versionsweep.core.config.loader import DEFAULT_CONFIG_PATH

# Tokens and admin URLs usually live in .env next to app.yaml
load_dotenv()
install_rich_traceback(show_locals=False, width=120)

app = typer.Typer(
    name=__app_name__,
    help="Tenant-wide file version cleanup and reporting",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def _show_version(value: bool) -> None:
    if not value:
        return
    console.print(f"[bold cyan]{__app_name__}[/bold cyan] [green]{__version__}[/green]")
    raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None, "--version", "-v",
        help="Show version and exit",
        callback=_show_version,
        is_eager=True,
    ),
) -> None:
    """versionsweep - File version cleanup across every site of a tenant.

    Start with [yellow]versionsweep init[/yellow], check the selection with
    [yellow]versionsweep sites list[/yellow], then run a report before any cleanup.
    """


from .commands import run as run_commands, sites, tenant  # noqa: E402

app.add_typer(run_commands.app, name="run", help="Run cleanup or report sweeps")
app.add_typer(sites.app, name="sites", help="Inspect the site selection")
app.add_typer(tenant.app, name="tenant", help="Show or apply tenant-wide version settings")


NEXT_STEPS = (
    "Next steps:\n"
    "  1. Set [cyan]VERSIONSWEEP_ADMIN_URL[/cyan] and [cyan]VERSIONSWEEP_TOKEN[/cyan] (or edit the file)\n"
    "  2. Check the selection: [yellow]versionsweep sites list[/yellow]\n"
    "  3. Dry run: [yellow]versionsweep run report[/yellow]\n"
    "  4. Clean up: [yellow]versionsweep run cleanup --older-than 365[/yellow]"
)


@app.command()
def init(
    path: Path = typer.Option(
        DEFAULT_CONFIG_PATH, "--path", "-p", help="Where to write the configuration",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing file",
    ),
) -> None:
    """Write a starter app.yaml."""
    from versionsweep.core.config import write_default_config

    if not write_default_config(path, force=force):
        err_console.print(f"[yellow]{path} already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"[bold green]Configuration written to {path}[/bold green]\n\n{NEXT_STEPS}",
        title=f"[bold]{__app_name__} init[/bold]",
        border_style="green",
    ))


@app.command()
def validate(
    path: Path = typer.Argument(DEFAULT_CONFIG_PATH, help="Configuration file to check"),
) -> None:
    """Check a configuration file, environment references included."""
    from versionsweep.core.config import validate_config_file

    problems = validate_config_file(path)
    if not problems:
        console.print(f"[green]OK[/green] {path}")
        return

    err_console.print(f"[red]{path}: {len(problems)} problem(s)[/red]")
    for problem in problems:
        err_console.print(f"  - {escape(problem)}")
    raise typer.Exit(1)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
