"""
Configuration file handling.

``app.yaml`` is read with PyYAML, ``${VAR}`` / ``${VAR:-default}``
references are filled from the environment, and the result is validated
by the pydantic models. The file location defaults to
``$VERSIONSWEEP_CONFIG`` and then ``configs/app.yaml``.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import AppConfig


CONFIG_ENV_VAR = "VERSIONSWEEP_CONFIG"
DEFAULT_CONFIG_PATH = Path("configs/app.yaml")

ENV_REFERENCE = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")


class ConfigError(Exception):
    """The configuration file is missing, unreadable or invalid.

    ``errors`` holds one ``location: message`` line per validation problem.
    """

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        details: str | None = None,
        errors: list[str] | None = None,
    ):
        super().__init__(message)
        self.path = path
        self.details = details
        self.errors = errors or []


def default_config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)


def expand_env(value: Any) -> Any:
    """Substitute environment references in every string of a YAML tree.

    Unset variables without a default become empty strings.
    """
    if isinstance(value, str):
        return ENV_REFERENCE.sub(
            lambda m: os.environ.get(m.group("name"), m.group("default") or ""),
            value,
        )
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    return value


def read_config_data(path: Path) -> dict[str, Any]:
    """Parse a YAML configuration file into a mapping.

    Raises:
        ConfigError: If the file is missing, unreadable, not YAML, or not
            a mapping at the top level
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {path}", path=path) from None
    except OSError as e:
        raise ConfigError(f"Cannot read {path}", path=path, details=str(e)) from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}", path=path, details=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {path} must be a mapping", path=path)
    return data


def _validation_messages(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
        for item in error.errors()
    ]


def load_app_config(path: Path | str | None = None, expand: bool = True) -> AppConfig:
    """Load and validate ``app.yaml``.

    Without an explicit path a missing default file means built-in
    defaults; an explicit path must exist.

    Raises:
        ConfigError: If the file cannot be read or fails validation
    """
    if path is None:
        path = default_config_path()
        if not path.exists():
            return AppConfig()
    path = Path(path)

    data = read_config_data(path)
    if expand:
        data = expand_env(data)

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        messages = _validation_messages(e)
        raise ConfigError(
            f"Invalid configuration in {path} ({len(messages)} error(s))",
            path=path,
            details="\n".join(messages),
            errors=messages,
        ) from e


def validate_config_file(path: Path | str) -> list[str]:
    """Check a configuration file and list its problems.

    Returns:
        Problem descriptions, empty when the file is valid
    """
    try:
        load_app_config(Path(path))
    except ConfigError as e:
        return e.errors or [str(e)]
    return []


DEFAULT_APP_CONFIG = """\
# versionsweep configuration
# Values support ${ENV_VAR} and ${ENV_VAR:-default} expansion.

tenant:
  admin_url: ${VERSIONSWEEP_ADMIN_URL:-https://contoso-admin.example.com}
  access_token: ${VERSIONSWEEP_TOKEN:-}
  timeout_seconds: 30

sites:
  source: tenant            # or a path to a .txt / .yaml site list
  include_personal_sites: false
  include_patterns: []
  exclude_patterns: []

jobs:
  mode: report              # report (dry run) or cleanup
  delete_before_days: 365
  track_cleanup_progress: false
  concurrency: 1
  poll:
    interval_seconds: 30
    max_wait_seconds: 3600
    retry_attempts: 1
    retry_wait_seconds: 5
  report:
    library: Shared Documents
    folder: VersionReports
    file_prefix: VersionExpirationReport

tenant_policy:
  enable_auto_expiration: false
  major_version_limit: null
  expire_versions_after_days: null

output:
  path: data/results.csv
  format: csv

logging:
  level: INFO
  file: logs/versionsweep.log
  json_format: true
  rich_console: true
"""


def write_default_config(path: Path | str = DEFAULT_CONFIG_PATH, force: bool = False) -> bool:
    """Write a commented starter ``app.yaml``.

    Returns:
        False when the file exists and ``force`` is not set
    """
    path = Path(path)
    if path.exists() and not force:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_APP_CONFIG, encoding="utf-8")
    return True
