"""
Tenant administration client.

Reads and updates tenant-wide version settings and enumerates sites
through the tenant admin endpoint.
"""

from __future__ import annotations

from typing import Any

from versionsweep.core.sites import Site
from versionsweep.core.tenant import TenantSettings

from .base import RemoteFailure
from .http_client import HttpClientBase, site_endpoint


SETTINGS_PATH = "_api/tenant/settings"
SITES_PATH = "_api/tenant/sites"

# Wire field names for TenantSettings attributes
SETTINGS_FIELDS = {
    "auto_expiration_enabled": "EnableAutoExpirationVersionTrim",
    "major_version_limit": "MajorVersionLimit",
    "expire_versions_after_days": "ExpireVersionsAfterDays",
}


class HttpTenantAdminClient(HttpClientBase):
    """Admin endpoint client for tenant settings and site enumeration."""

    def __init__(self, admin_url: str, **kwargs: Any):
        super().__init__(**kwargs)
        self.admin_url = admin_url

    async def get_settings(self) -> TenantSettings:
        url = site_endpoint(self.admin_url, SETTINGS_PATH)
        response = await self._request("GET", url)
        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteFailure(f"Unreadable tenant settings: {e}", url=url, cause=e) from e

        return TenantSettings(
            auto_expiration_enabled=bool(data.get(SETTINGS_FIELDS["auto_expiration_enabled"], False)),
            major_version_limit=data.get(SETTINGS_FIELDS["major_version_limit"]),
            expire_versions_after_days=data.get(SETTINGS_FIELDS["expire_versions_after_days"]),
        )

    async def update_settings(self, changes: dict[str, Any]) -> None:
        """Patch tenant settings.

        Args:
            changes: TenantSettings attribute names mapped to new values
        """
        body = {SETTINGS_FIELDS[name]: value for name, value in changes.items()}
        url = site_endpoint(self.admin_url, SETTINGS_PATH)
        response = await self._request("PATCH", url, json=body)
        self._raise_for_status(response)

    async def list_sites(self) -> list[Site]:
        url = site_endpoint(self.admin_url, SITES_PATH)
        response = await self._request("GET", url)
        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteFailure(f"Unreadable site list: {e}", url=url, cause=e) from e

        if isinstance(data, dict):
            data = data.get("value", [])

        sites: list[Site] = []
        for item in data:
            site_url = item.get("Url") or item.get("url")
            if not site_url:
                continue
            sites.append(
                Site(
                    url=str(site_url).rstrip("/"),
                    title=item.get("Title") or item.get("title"),
                    is_personal_site=bool(
                        item.get("IsPersonalSite", item.get("isPersonalSite", False))
                    ),
                )
            )
        return sites
