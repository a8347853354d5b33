"""
Result export.

Writes one row per site to CSV, or the full report to JSON / JSON lines.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path

from versionsweep.core.config.models import OutputFormat
from versionsweep.core.orchestrator.runner import SweepReport
from versionsweep.core.orchestrator.summary import sort_records


CSV_COLUMNS = [
    "site_url",
    "mode",
    "status",
    "error_kind",
    "handle",
    "versions_processed",
    "versions_deleted",
    "versions_failed",
    "storage_released_bytes",
    "polls",
    "recorded_at",
    "detail",
]


def write_results(
    report: SweepReport,
    path: Path | str,
    format: OutputFormat | str = OutputFormat.CSV,
) -> Path:
    """Export a sweep report.

    CSV and JSONL rows are sorted by status, then site URL. JSON holds the
    summary and tenant actions as well.

    Args:
        report: Completed sweep report
        path: Output file path
        format: csv, json or jsonl

    Returns:
        The written path
    """
    path = Path(path)
    format = OutputFormat(format)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows = [r.to_dict() for r in sort_records(report.records)]

    if format == OutputFormat.CSV:
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS, extrasaction="ignore")
            writer.writeheader()
            for row in rows:
                writer.writerow({k: "" if v is None else v for k, v in row.items()})

    elif format == OutputFormat.JSON:
        data = report.to_dict()
        data["records"] = rows
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)

    else:
        with open(path, "w", encoding="utf-8") as f:
            for row in rows:
                f.write(json.dumps(row, default=str) + "\n")

    return path
