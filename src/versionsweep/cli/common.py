"""
Helpers shared by CLI commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from versionsweep.core.config import AppConfig, ConfigError, load_app_config
from versionsweep.core.logging import setup_logging

console = Console()
err_console = Console(stderr=True)


CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to app.yaml (default: $VERSIONSWEEP_CONFIG, then configs/app.yaml)",
)


def load_config_or_exit(path: Optional[Path], *, verbose: bool = False) -> AppConfig:
    """Load configuration and set up logging, exiting 1 on config errors."""
    try:
        config = load_app_config(path)
    except ConfigError as e:
        err_console.print(f"[red]Error loading configuration:[/red] {escape(str(e))}")
        if e.details:
            err_console.print(f"[dim]{escape(e.details)}[/dim]")
        raise typer.Exit(1)

    log = config.logging
    setup_logging(
        level="DEBUG" if verbose else log.level,
        log_file=log.file,
        json_format=log.json_format,
        rich_console=log.rich_console,
    )
    return config
