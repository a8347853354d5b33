"""
Pydantic configuration models for versionsweep.

These models provide type-safe configuration with validation for:
- Tenant connection settings
- Site selection
- Job and polling behavior
- Tenant-wide version policy
- Output and logging
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from versionsweep.core.jobs.models import JobMode
from versionsweep.core.jobs.runner import PollSettings
from versionsweep.core.tenant import TenantPolicy


# =============================================================================
# Enums
# =============================================================================


class OutputFormat(str, Enum):
    """Supported result export formats."""

    CSV = "csv"
    JSON = "json"
    JSONL = "jsonl"


# =============================================================================
# Tenant Configuration
# =============================================================================


class TenantConfig(BaseModel):
    """Tenant admin endpoint and credentials."""

    admin_url: str = Field(
        default="",
        description="Tenant admin site URL",
    )
    access_token: str | None = Field(
        default=None,
        description="Bearer token sent to every endpoint (use ${ENV_VAR})",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Request timeout in seconds",
    )

    @field_validator("admin_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")


# =============================================================================
# Site Selection
# =============================================================================


class SitesConfig(BaseModel):
    """Which sites the sweep targets."""

    source: str = Field(
        default="tenant",
        description="'tenant' to list sites from the admin endpoint, or a file path",
    )
    include_personal_sites: bool = Field(
        default=False,
        description="Include personal (OneDrive-style) sites",
    )
    include_patterns: list[str] = Field(
        default_factory=list,
        description="Glob patterns a site URL must match (empty = all)",
    )
    exclude_patterns: list[str] = Field(
        default_factory=list,
        description="Glob patterns that exclude a site URL",
    )

    @property
    def from_tenant(self) -> bool:
        return self.source.strip().lower() == "tenant"


# =============================================================================
# Job Configuration
# =============================================================================


class PollConfig(BaseModel):
    """Poll loop timing."""

    interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Fixed wait between progress checks",
    )
    max_wait_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Per-site deadline measured from submission",
    )
    retry_attempts: int = Field(
        default=1,
        ge=1,
        le=10,
        description="Attempts per progress check (1 = a failed check is final)",
    )
    retry_wait_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Wait between attempts of one progress check",
    )

    def to_settings(self) -> PollSettings:
        return PollSettings(
            interval_seconds=self.interval_seconds,
            max_wait_seconds=self.max_wait_seconds,
            retry_attempts=self.retry_attempts,
            retry_wait_seconds=self.retry_wait_seconds,
        )


class ReportDestinationConfig(BaseModel):
    """Where report jobs write their file inside each site."""

    library: str = Field(
        default="Shared Documents",
        min_length=1,
        description="Document library path inside the site",
    )
    folder: str | None = Field(
        default=None,
        description="Optional folder inside the library",
    )
    file_prefix: str = Field(
        default="VersionExpirationReport",
        min_length=1,
        description="Report file name prefix; a run timestamp is appended",
    )


class JobsConfig(BaseModel):
    """Job submission settings."""

    mode: JobMode = Field(
        default=JobMode.REPORT,
        description="cleanup (batch delete) or report (dry run)",
    )
    delete_before_days: int = Field(
        default=365,
        ge=0,
        description="Cleanup deletes versions older than this many days",
    )
    track_cleanup_progress: bool = Field(
        default=False,
        description="Poll cleanup jobs to completion instead of fire-and-forget",
    )
    concurrency: int = Field(
        default=1,
        ge=1,
        le=20,
        description="Sites processed at the same time",
    )
    poll: PollConfig = Field(default_factory=PollConfig)
    report: ReportDestinationConfig = Field(default_factory=ReportDestinationConfig)


# =============================================================================
# Tenant Policy
# =============================================================================


class TenantPolicyConfig(BaseModel):
    """Tenant-wide version settings applied before the site loop."""

    enable_auto_expiration: bool = Field(
        default=False,
        description="Turn on automatic version trimming for the tenant",
    )
    major_version_limit: int | None = Field(
        default=None,
        ge=1,
        le=50000,
        description="Explicit major version limit (skipped while auto-expiration is on)",
    )
    expire_versions_after_days: int | None = Field(
        default=None,
        ge=0,
        description="Delete versions older than this, alongside the explicit limit",
    )

    @model_validator(mode="after")
    def expiry_needs_limit(self) -> "TenantPolicyConfig":
        if self.expire_versions_after_days is not None and self.major_version_limit is None:
            raise ValueError("expire_versions_after_days requires major_version_limit")
        return self

    def to_policy(self) -> TenantPolicy:
        return TenantPolicy(
            enable_auto_expiration=self.enable_auto_expiration,
            major_version_limit=self.major_version_limit,
            expire_versions_after_days=self.expire_versions_after_days,
        )


# =============================================================================
# Output Configuration
# =============================================================================


class OutputConfig(BaseModel):
    """Result export settings."""

    path: Path | None = Field(
        default=None,
        description="Export file path (default: no export)",
    )
    format: OutputFormat | None = Field(
        default=None,
        description="Export format (inferred from the path suffix if not set)",
    )

    def resolved_format(self) -> OutputFormat:
        if self.format is not None:
            return self.format
        if self.path is not None:
            suffix = self.path.suffix.lstrip(".").lower()
            for fmt in OutputFormat:
                if fmt.value == suffix:
                    return fmt
        return OutputFormat.CSV


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=Path("logs/versionsweep.log"),
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    tenant: TenantConfig = Field(default_factory=TenantConfig)
    sites: SitesConfig = Field(default_factory=SitesConfig)
    jobs: JobsConfig = Field(default_factory=JobsConfig)
    tenant_policy: TenantPolicyConfig = Field(default_factory=TenantPolicyConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
