"""
Job data structures.

Requests, handles, normalized statuses and per-site outcome records
shared by the job runner, the orchestrator and the result sinks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# =============================================================================
# Enums
# =============================================================================


class JobMode(str, Enum):
    """Kind of job submitted to a site."""

    CLEANUP = "cleanup"
    REPORT = "report"


class JobStatus(str, Enum):
    """Normalized remote job status."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class OutcomeStatus(str, Enum):
    """Terminal state of one site's processing."""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class ErrorKind(str, Enum):
    """Classification of a non-successful outcome."""

    SUBMISSION_ERROR = "submission_error"
    REMOTE_FAILURE = "remote_failure"
    JOB_FAILED = "job_failed"
    POLL_TIMEOUT = "poll_timeout"
    CANCELLED = "cancelled"
    LOCAL_ERROR = "local_error"


# =============================================================================
# Requests and handles
# =============================================================================


@dataclass(frozen=True)
class JobRequest:
    """Parameters for one job submission."""

    site_url: str
    mode: JobMode
    delete_before_days: int | None = None
    report_url: str | None = None


@dataclass(frozen=True)
class JobHandle:
    """Identifier returned by a submission.

    The value is a work-item id for cleanup jobs and the report file URL
    for report jobs.
    """

    value: str
    mode: JobMode
    site_url: str


@dataclass
class RawProgress:
    """Progress as reported by the remote service, after parsing."""

    raw_status: str
    status: JobStatus
    versions_processed: int | None = None
    versions_deleted: int | None = None
    versions_failed: int | None = None
    storage_released_bytes: int | None = None
    error_message: str | None = None


# =============================================================================
# Outcomes
# =============================================================================


COUNTER_FIELDS = (
    "versions_processed",
    "versions_deleted",
    "versions_failed",
    "storage_released_bytes",
)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


@dataclass
class JobOutcome:
    """Result of running one job, success or classified failure."""

    status: OutcomeStatus
    handle: JobHandle | None = None
    error_kind: ErrorKind | None = None
    detail: str | None = None
    progress: RawProgress | None = None
    polls: int = 0
    observed_at: datetime = field(default_factory=utcnow)

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.COMPLETED


@dataclass(frozen=True)
class OutcomeRecord:
    """Final, immutable result for one site in one run."""

    site_url: str
    mode: JobMode
    status: OutcomeStatus
    recorded_at: datetime
    error_kind: ErrorKind | None = None
    handle: str | None = None
    detail: str | None = None
    polls: int = 0
    versions_processed: int | None = None
    versions_deleted: int | None = None
    versions_failed: int | None = None
    storage_released_bytes: int | None = None

    @classmethod
    def from_outcome(cls, request: JobRequest, outcome: JobOutcome) -> OutcomeRecord:
        """Freeze a runner outcome into a record."""
        progress = outcome.progress
        return cls(
            site_url=request.site_url,
            mode=request.mode,
            status=outcome.status,
            recorded_at=outcome.observed_at,
            error_kind=outcome.error_kind,
            handle=outcome.handle.value if outcome.handle else None,
            detail=outcome.detail,
            polls=outcome.polls,
            versions_processed=progress.versions_processed if progress else None,
            versions_deleted=progress.versions_deleted if progress else None,
            versions_failed=progress.versions_failed if progress else None,
            storage_released_bytes=progress.storage_released_bytes if progress else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a flat dictionary for export."""
        return {
            "site_url": self.site_url,
            "mode": self.mode.value,
            "status": self.status.value,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "handle": self.handle,
            "detail": self.detail,
            "polls": self.polls,
            "versions_processed": self.versions_processed,
            "versions_deleted": self.versions_deleted,
            "versions_failed": self.versions_failed,
            "storage_released_bytes": self.storage_released_bytes,
            "recorded_at": self.recorded_at.isoformat(),
        }


# =============================================================================
# Errors
# =============================================================================


class JobError(Exception):
    """Base exception for a job that reached a non-successful end."""

    kind: ErrorKind = ErrorKind.LOCAL_ERROR
    polls: int = 0


class ProgressReadFailed(JobError):
    """A poll attempt itself failed to execute."""

    kind = ErrorKind.REMOTE_FAILURE


class JobFailed(JobError):
    """The remote job reported a failed terminal state."""

    kind = ErrorKind.JOB_FAILED

    def __init__(self, message: str, progress: RawProgress | None = None):
        super().__init__(message)
        self.progress = progress


class PollTimeout(JobError):
    """No terminal state was observed before the deadline."""

    kind = ErrorKind.POLL_TIMEOUT

    def __init__(self, last_status: JobStatus, waited_seconds: float):
        super().__init__(last_status.value)
        self.last_status = last_status
        self.waited_seconds = waited_seconds


class JobCancelled(JobError):
    """The run was cancelled while the job was waiting."""

    kind = ErrorKind.CANCELLED
