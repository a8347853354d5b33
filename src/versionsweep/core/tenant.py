"""
Tenant-wide version policy step.

Runs once before the per-site loop. Any failure here is fatal for the
whole run; a conflicting action is skipped and reported, not failed.
In a dry run each pending change is reported as planned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class ActionStatus(str, Enum):
    """Outcome of one tenant action."""

    APPLIED = "applied"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    PLANNED = "planned"


@dataclass
class TenantSettings:
    """Tenant-wide version settings."""

    auto_expiration_enabled: bool = False
    major_version_limit: int | None = None
    expire_versions_after_days: int | None = None


@dataclass
class TenantPolicy:
    """Desired tenant changes."""

    enable_auto_expiration: bool = False
    major_version_limit: int | None = None
    expire_versions_after_days: int | None = None

    @property
    def is_empty(self) -> bool:
        return not self.enable_auto_expiration and self.major_version_limit is None


@dataclass(frozen=True)
class TenantActionOutcome:
    """Result of one planned tenant action."""

    action: str
    status: ActionStatus
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "status": self.status.value, "detail": self.detail}


@dataclass
class TenantPolicyResult:
    """All tenant action outcomes plus the settings seen before changes."""

    before: TenantSettings
    outcomes: list[TenantActionOutcome] = field(default_factory=list)

    @property
    def skipped(self) -> list[TenantActionOutcome]:
        return [o for o in self.outcomes if o.status == ActionStatus.SKIPPED]


class TenantAdmin(Protocol):
    """Admin operations required by the policy step."""

    async def get_settings(self) -> TenantSettings: ...

    async def update_settings(self, changes: dict[str, Any]) -> None: ...


class TenantConfigurationError(Exception):
    """Tenant settings could not be read or changed. Aborts the run."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


ENABLE_AUTO_EXPIRATION = "enable_auto_expiration"
SET_VERSION_LIMIT = "set_version_limit"


async def apply_tenant_policy(
    admin: TenantAdmin,
    policy: TenantPolicy,
    *,
    dry_run: bool = False,
) -> TenantPolicyResult:
    """Apply the tenant policy before any site is processed.

    An explicit version limit cannot coexist with auto-expiration; when
    auto-expiration is (or is about to be) active the limit action is
    skipped and the tenant is left as is.

    Args:
        admin: Tenant admin client
        policy: Desired changes
        dry_run: Report planned changes without writing them

    Returns:
        TenantPolicyResult with one outcome per configured action

    Raises:
        TenantConfigurationError: If reading or writing settings fails
    """
    try:
        settings = await admin.get_settings()
    except Exception as e:
        raise TenantConfigurationError(f"Cannot read tenant settings: {e}", cause=e) from e

    result = TenantPolicyResult(before=settings)
    auto_expiration = settings.auto_expiration_enabled

    if policy.enable_auto_expiration:
        if auto_expiration:
            result.outcomes.append(TenantActionOutcome(
                ENABLE_AUTO_EXPIRATION, ActionStatus.UNCHANGED, "Auto-expiration already enabled",
            ))
        elif dry_run:
            result.outcomes.append(TenantActionOutcome(
                ENABLE_AUTO_EXPIRATION, ActionStatus.PLANNED, "Dry run: would enable auto-expiration",
            ))
        else:
            await _update(admin, {"auto_expiration_enabled": True})
            logger.info("Enabled tenant auto-expiration version trim")
            result.outcomes.append(TenantActionOutcome(
                ENABLE_AUTO_EXPIRATION, ActionStatus.APPLIED, "Auto-expiration enabled",
            ))
        auto_expiration = True

    if policy.major_version_limit is not None:
        result.outcomes.append(
            await _apply_version_limit(admin, policy, settings, auto_expiration, dry_run)
        )

    return result


async def _apply_version_limit(
    admin: TenantAdmin,
    policy: TenantPolicy,
    settings: TenantSettings,
    auto_expiration: bool,
    dry_run: bool,
) -> TenantActionOutcome:
    limit = policy.major_version_limit

    if auto_expiration:
        logger.warning(
            "Skipping version limit %s: auto-expiration is enabled on the tenant", limit
        )
        return TenantActionOutcome(
            SET_VERSION_LIMIT,
            ActionStatus.SKIPPED,
            "Explicit version limit cannot be set while auto-expiration is enabled",
        )

    changes: dict[str, Any] = {}
    if settings.major_version_limit != limit:
        changes["major_version_limit"] = limit
    if (
        policy.expire_versions_after_days is not None
        and settings.expire_versions_after_days != policy.expire_versions_after_days
    ):
        changes["expire_versions_after_days"] = policy.expire_versions_after_days

    if not changes:
        return TenantActionOutcome(
            SET_VERSION_LIMIT, ActionStatus.UNCHANGED, f"Version limit already {limit}",
        )

    if dry_run:
        return TenantActionOutcome(
            SET_VERSION_LIMIT, ActionStatus.PLANNED, f"Dry run: would set {changes}",
        )

    await _update(admin, changes)
    logger.info("Set tenant version settings: %s", changes)
    return TenantActionOutcome(SET_VERSION_LIMIT, ActionStatus.APPLIED, f"Set {changes}")


async def _update(admin: TenantAdmin, changes: dict[str, Any]) -> None:
    try:
        await admin.update_settings(changes)
    except Exception as e:
        raise TenantConfigurationError(f"Cannot update tenant settings: {e}", cause=e) from e
