"""
Job client base classes.

Defines the interface contract for the remote job API of a single site.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from versionsweep.core.jobs.models import JobHandle, RawProgress


class JobClient(ABC):
    """Abstract base class for site job clients.

    Every operation is scoped to one site URL. Implementations keep no
    per-site state between calls.
    """

    @abstractmethod
    async def submit_cleanup_job(self, site_url: str, delete_before_days: int) -> JobHandle:
        """Submit a batch delete of file versions older than a threshold.

        Raises:
            SubmissionError: If the site is unreachable, unauthorized, or
                rejects the parameters
        """
        pass

    @abstractmethod
    async def submit_report_job(self, site_url: str, report_url: str) -> JobHandle:
        """Submit a version expiration report job.

        Raises:
            SubmissionError: If the destination is invalid or the site is
                unreachable
        """
        pass

    @abstractmethod
    async def fetch_progress(self, site_url: str, handle: JobHandle) -> RawProgress:
        """Fetch the current progress of a submitted job.

        A job that is not queryable yet is reported with status
        ``JobStatus.NOT_FOUND`` rather than raised.

        Raises:
            RemoteFailure: If the progress request itself fails
        """
        pass

    async def close(self) -> None:
        """Release client resources."""
        pass

    async def __aenter__(self) -> "JobClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class RemoteFailure(Exception):
    """A remote call failed to execute.

    ``status_code`` is None when no HTTP response arrived (``cause`` then
    holds the transport error) or when the call was refused locally.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.url, self.status_code, self.cause = url, status_code, cause

    @property
    def transient(self) -> bool:
        """Whether repeating the same call could succeed."""
        code = self.status_code
        if code is None:
            return self.cause is not None
        return code == 429 or code >= 500


class SubmissionError(RemoteFailure):
    """A job submission was rejected or the site was unreachable."""
