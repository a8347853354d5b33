"""Jobs - request/outcome models and the per-site job runner."""

from .models import (
    ErrorKind,
    JobHandle,
    JobMode,
    JobOutcome,
    JobRequest,
    JobStatus,
    OutcomeRecord,
    OutcomeStatus,
    RawProgress,
)
from .runner import JobRunner, PollSettings

__all__ = [
    "ErrorKind",
    "JobHandle",
    "JobMode",
    "JobOutcome",
    "JobRequest",
    "JobStatus",
    "OutcomeRecord",
    "OutcomeStatus",
    "RawProgress",
    "JobRunner",
    "PollSettings",
]
