"""Remote job clients - job API, tenant admin, progress parsing."""

from .base import JobClient, RemoteFailure, SubmissionError
from .http_client import HttpJobClient
from .admin import HttpTenantAdminClient
from .progress import normalize_status, parse_progress
from .retries import RetryPolicy

__all__ = [
    "JobClient",
    "RemoteFailure",
    "SubmissionError",
    "HttpJobClient",
    "HttpTenantAdminClient",
    "normalize_status",
    "parse_progress",
    "RetryPolicy",
]
