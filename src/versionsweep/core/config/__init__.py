"""Configuration loading and validation."""

from .models import (
    # Enums
    OutputFormat,
    # Config models
    AppConfig,
    TenantConfig,
    SitesConfig,
    PollConfig,
    ReportDestinationConfig,
    JobsConfig,
    TenantPolicyConfig,
    OutputConfig,
    LoggingConfig,
)
from .loader import ConfigError, load_app_config, validate_config_file, write_default_config

__all__ = [
    # Enums
    "OutputFormat",
    # Config models
    "AppConfig",
    "TenantConfig",
    "SitesConfig",
    "PollConfig",
    "ReportDestinationConfig",
    "JobsConfig",
    "TenantPolicyConfig",
    "OutputConfig",
    "LoggingConfig",
    # Loaders
    "ConfigError",
    "load_app_config",
    "validate_config_file",
    "write_default_config",
]
