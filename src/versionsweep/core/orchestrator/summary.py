"""
Run summary aggregation.

Pure functions over outcome records: grouped counts, counter totals and
the ordering used by tabular sinks.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

from versionsweep.core.jobs.models import COUNTER_FIELDS, OutcomeRecord, OutcomeStatus


@dataclass(frozen=True)
class RunSummary:
    """Derived statistics for a set of outcome records."""

    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_error_kind: dict[str, int] = field(default_factory=dict)
    versions_processed: int = 0
    versions_deleted: int = 0
    versions_failed: int = 0
    storage_released_bytes: int = 0

    def count(self, status: OutcomeStatus | str) -> int:
        key = status.value if isinstance(status, OutcomeStatus) else status
        return self.by_status.get(key, 0)

    @property
    def completed(self) -> int:
        return self.count(OutcomeStatus.COMPLETED)

    @property
    def unsuccessful(self) -> int:
        return self.total - self.completed

    def status_line(self) -> str:
        """One-line description such as ``3 site(s): completed=2, failed=1``."""
        parts = ", ".join(f"{k}={v}" for k, v in sorted(self.by_status.items()))
        return f"{self.total} site(s): {parts or 'none'}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "by_status": dict(self.by_status),
            "by_error_kind": dict(self.by_error_kind),
            "versions_processed": self.versions_processed,
            "versions_deleted": self.versions_deleted,
            "versions_failed": self.versions_failed,
            "storage_released_bytes": self.storage_released_bytes,
        }


def summarize(records: Iterable[OutcomeRecord]) -> RunSummary:
    """Summarize outcome records.

    Missing counters count as zero. The input is not modified, so the
    same records always produce the same summary.
    """
    records = list(records)
    status_counts = Counter(r.status.value for r in records)
    kind_counts = Counter(r.error_kind.value for r in records if r.error_kind is not None)
    totals = {name: sum(getattr(r, name) or 0 for r in records) for name in COUNTER_FIELDS}

    return RunSummary(
        total=len(records),
        by_status=dict(status_counts),
        by_error_kind=dict(kind_counts),
        **totals,
    )


# Completed rows first, then the unsuccessful ones
STATUS_ORDER = {
    OutcomeStatus.COMPLETED: 0,
    OutcomeStatus.FAILED: 1,
    OutcomeStatus.TIMED_OUT: 2,
    OutcomeStatus.CANCELLED: 3,
}


def sort_records(records: Iterable[OutcomeRecord]) -> list[OutcomeRecord]:
    """Order records by status, then by site URL."""
    return sorted(records, key=lambda r: (STATUS_ORDER[r.status], r.site_url.lower()))


def format_bytes(num_bytes: int | float | None) -> str:
    """Human-scaled byte size, e.g. ``1.5 GB``."""
    value = float(num_bytes or 0)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(value) < 1024 or unit == "TB":
            if unit == "B":
                return f"{int(value)} B"
            return f"{value:.2f} {unit}"
        value /= 1024
