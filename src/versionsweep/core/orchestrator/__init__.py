"""Orchestrator - per-site job coordination and run summaries."""

from .runner import JobPlan, SweepOrchestrator, SweepReport, run_sweep
from .summary import RunSummary, format_bytes, sort_records, summarize

__all__ = [
    "JobPlan",
    "SweepOrchestrator",
    "SweepReport",
    "run_sweep",
    "RunSummary",
    "format_bytes",
    "sort_records",
    "summarize",
]
