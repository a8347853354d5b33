"""
Logging infrastructure for versionsweep.

Provides:
- Rich console output with a ``[site]`` prefix
- JSON lines for the log file
- Per-site context that follows each asyncio task, so concurrent sites
  keep their own prefix
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from rich.console import Console


LOGGER_NAME = "versionsweep"

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.INFO: "default",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}

_site: contextvars.ContextVar[str | None] = contextvars.ContextVar("versionsweep_site", default=None)
_mode: contextvars.ContextVar[str | None] = contextvars.ContextVar("versionsweep_mode", default=None)


# =============================================================================
# Site Context
# =============================================================================


@contextlib.contextmanager
def site_context(site: str | None, mode: str | None = None) -> Iterator[None]:
    """Tag every record logged inside the block with a site and job mode."""
    site_token = _site.set(site)
    mode_token = _mode.set(mode)
    try:
        yield
    finally:
        _mode.reset(mode_token)
        _site.reset(site_token)


def current_site() -> str | None:
    return _site.get()


class SiteContextFilter(logging.Filter):
    """Copy the active site context onto records that lack one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "site", None) is None:
            record.site = _site.get()
        if getattr(record, "mode", None) is None:
            record.mode = _mode.get()
        return True


# =============================================================================
# Formatters and Handlers
# =============================================================================


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with site and mode when known."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("site", "mode"):
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class RichConsoleHandler(logging.Handler):
    """Handler that outputs to Rich console with formatting."""

    def __init__(self, console: "Console | None" = None, level: int = logging.INFO):
        super().__init__(level)
        if console is None:
            from rich.console import Console
            console = Console(stderr=True)
        self.console = console

    def emit(self, record: logging.LogRecord) -> None:
        try:
            from rich.markup import escape

            style = LEVEL_STYLES.get(record.levelno, "default")
            text = f"[{style}]{escape(self.format(record))}[/{style}]"

            site = getattr(record, "site", None)
            if site:
                text = f"[cyan]\\[{escape(site)}][/cyan] {text}"

            self.console.print(text)
            if record.exc_info:
                self.console.print_exception()
        except Exception:
            self.handleError(record)


def _console_handler(rich_console: bool, level: int) -> logging.Handler:
    handler: logging.Handler
    if rich_console:
        handler = RichConsoleHandler(level=level)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    return handler


def _file_handler(path: Path, json_format: bool) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


# =============================================================================
# Setup
# =============================================================================


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    json_format: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure the ``versionsweep`` logger tree.

    Calling it again replaces the previous handlers.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR)
        log_file: JSON-lines (or plain) log file; the file gets every level
        json_format: Use JSON lines for the log file
        rich_console: Use Rich for console output

    Returns:
        The package logger
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()

    handlers = [_console_handler(rich_console, numeric_level)]
    if log_file:
        handlers.append(_file_handler(Path(log_file), json_format))
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(numeric_level)

    context_filter = SiteContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)
        logger.addHandler(handler)

    return logger
