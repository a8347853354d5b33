"""
HTTP job client implementation using httpx.

Provides async access to the per-site version job API with:
- Bearer token pass-through
- Connection pooling shared across sites
- Status code classification into submission/remote failures
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

import httpx

from versionsweep.core.jobs.models import JobHandle, JobMode, JobStatus, RawProgress

from .base import JobClient, RemoteFailure, SubmissionError
from .progress import parse_progress


USER_AGENT = "versionsweep/0.1 (+https://github.com/versionsweep/versionsweep)"

# Relative endpoints under a site URL
CLEANUP_SUBMIT_PATH = "_api/site/versions/batchdelete"
CLEANUP_PROGRESS_PATH = "_api/site/versions/batchdelete/progress"
REPORT_SUBMIT_PATH = "_api/site/versions/expirationreport"
REPORT_STATUS_PATH = "_api/site/versions/expirationreport/status"


def site_endpoint(site_url: str, path: str) -> str:
    """Join a site URL and an API path."""
    return f"{site_url.rstrip('/')}/{path.lstrip('/')}"


def is_within_site(site_url: str, target_url: str) -> bool:
    """Check that a URL points inside the given site."""
    site = urlparse(site_url)
    target = urlparse(target_url)
    if (site.scheme, site.netloc.lower()) != (target.scheme, target.netloc.lower()):
        return False
    site_path = site.path.rstrip("/").lower()
    target_path = target.path.lower()
    return target_path.startswith(site_path + "/")


class HttpClientBase:
    """Shared httpx client handling for the job and admin clients."""

    def __init__(
        self,
        access_token: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the HTTP client wrapper.

        Args:
            access_token: Bearer token sent on every request
            timeout: Request timeout in seconds
            http_client: Pre-built client (tests inject a MockTransport one)
        """
        self.timeout = timeout
        self.default_headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        }
        if access_token:
            self.default_headers["Authorization"] = f"Bearer {access_token}"

        self._client = http_client
        self._owns_client = http_client is None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers=self.default_headers,
                limits=httpx.Limits(
                    max_connections=20,
                    max_keepalive_connections=10,
                ),
            )
            self._owns_client = True
        return self._client

    async def _request(
        self,
        method: str,
        url: str,
        *,
        error_cls: type[RemoteFailure] = RemoteFailure,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, converting transport errors to ``error_cls``."""
        client = self._ensure_client()
        headers = {**self.default_headers, **kwargs.pop("headers", {})}
        try:
            return await client.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise error_cls(f"Transport error: {e}", url=url, cause=e) from e

    @staticmethod
    def _raise_for_status(
        response: httpx.Response,
        error_cls: type[RemoteFailure] = RemoteFailure,
    ) -> None:
        """Raise ``error_cls`` for any non-2xx response."""
        if response.is_success:
            return

        if response.status_code in (401, 403):
            reason = "unauthorized"
        elif response.status_code == 429:
            reason = "throttled"
        else:
            reason = response.reason_phrase or "error"

        body = response.text.strip()
        message = f"HTTP {response.status_code} {reason}"
        if body:
            message = f"{message}: {body[:200]}"

        raise error_cls(message, url=str(response.request.url), status_code=response.status_code)

    async def close(self) -> None:
        """Close the HTTP client if we created it."""
        if self._client and self._owns_client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class HttpJobClient(HttpClientBase, JobClient):
    """Job client for the site version job REST endpoints."""

    async def submit_cleanup_job(self, site_url: str, delete_before_days: int) -> JobHandle:
        if delete_before_days < 0:
            raise SubmissionError(
                f"delete_before_days must be >= 0, got {delete_before_days}",
                url=site_url,
            )

        url = site_endpoint(site_url, CLEANUP_SUBMIT_PATH)
        response = await self._request(
            "POST",
            url,
            json={"deleteBeforeDays": delete_before_days},
            error_cls=SubmissionError,
        )
        self._raise_for_status(response, SubmissionError)

        try:
            work_item_id = response.json().get("workItemId")
        except (ValueError, AttributeError) as e:
            raise SubmissionError(f"Unreadable submission response: {e}", url=url, cause=e) from e

        if not work_item_id:
            raise SubmissionError("Submission response carried no workItemId", url=url)

        return JobHandle(value=str(work_item_id), mode=JobMode.CLEANUP, site_url=site_url)

    async def submit_report_job(self, site_url: str, report_url: str) -> JobHandle:
        if not is_within_site(site_url, report_url):
            raise SubmissionError(
                f"Report destination {report_url} is not inside site {site_url}",
                url=site_url,
            )

        url = site_endpoint(site_url, REPORT_SUBMIT_PATH)
        response = await self._request(
            "POST",
            url,
            json={"reportUrl": report_url},
            error_cls=SubmissionError,
        )
        if response.status_code == 409:
            raise SubmissionError(
                f"Report destination already exists: {report_url}",
                url=url,
                status_code=409,
            )
        self._raise_for_status(response, SubmissionError)

        return JobHandle(value=report_url, mode=JobMode.REPORT, site_url=site_url)

    async def fetch_progress(self, site_url: str, handle: JobHandle) -> RawProgress:
        if handle.site_url != site_url:
            raise RemoteFailure(
                f"Handle belongs to {handle.site_url}, not {site_url}",
                url=site_url,
            )

        if handle.mode == JobMode.CLEANUP:
            url = site_endpoint(site_url, CLEANUP_PROGRESS_PATH)
            params = {"workItemId": handle.value}
        else:
            url = site_endpoint(site_url, REPORT_STATUS_PATH)
            params = {"reportUrl": handle.value}

        response = await self._request("GET", url, params=params)

        if response.status_code == 404:
            return RawProgress(raw_status="not_found", status=JobStatus.NOT_FOUND)

        self._raise_for_status(response)

        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        return parse_progress(payload)
