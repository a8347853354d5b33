"""
Progress parsing utilities.

Turns the loosely typed progress payloads returned by the remote job API
into ``RawProgress`` with a normalized ``JobStatus``.
"""

from __future__ import annotations

import json
import re
from typing import Any

from versionsweep.core.jobs.models import JobStatus, RawProgress


# =============================================================================
# Status Normalization
# =============================================================================


# Keys are compared after lowercasing and stripping separators
STATUS_SYNONYMS: dict[str, JobStatus] = {
    # In progress
    "inprogress": JobStatus.IN_PROGRESS,
    "running": JobStatus.IN_PROGRESS,
    "pending": JobStatus.IN_PROGRESS,
    "queued": JobStatus.IN_PROGRESS,
    "notstarted": JobStatus.IN_PROGRESS,
    "started": JobStatus.IN_PROGRESS,
    # Completed
    "completed": JobStatus.COMPLETED,
    "complete": JobStatus.COMPLETED,
    "succeeded": JobStatus.COMPLETED,
    "success": JobStatus.COMPLETED,
    "done": JobStatus.COMPLETED,
    # Failed
    "failed": JobStatus.FAILED,
    "failure": JobStatus.FAILED,
    "error": JobStatus.FAILED,
    "cancelled": JobStatus.FAILED,
    "canceled": JobStatus.FAILED,
    # Not yet visible
    "noreportfound": JobStatus.NOT_FOUND,
    "notfound": JobStatus.NOT_FOUND,
    "nojobfound": JobStatus.NOT_FOUND,
}


def normalize_status(value: Any) -> JobStatus:
    """Map a raw status value to ``JobStatus``.

    Unrecognized or empty values map to ``JobStatus.UNKNOWN``.

    Args:
        value: Raw status (string, enum member or None)

    Returns:
        Normalized status
    """
    if value is None:
        return JobStatus.UNKNOWN

    if isinstance(value, JobStatus):
        return value

    key = re.sub(r"[\s_\-]+", "", str(value)).lower()
    if not key:
        return JobStatus.UNKNOWN

    return STATUS_SYNONYMS.get(key, JobStatus.UNKNOWN)


# =============================================================================
# Payload Parsing
# =============================================================================


def _lookup(data: dict[str, Any], *names: str) -> Any:
    """Case-insensitive key lookup, first match wins."""
    lowered = {str(k).lower(): v for k, v in data.items()}
    for name in names:
        if name.lower() in lowered:
            return lowered[name.lower()]
    return None


def _as_int(value: Any) -> int | None:
    """Coerce a counter value to int, None when missing or unparsable."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    try:
        return int(float(str(value).replace(",", "").strip()))
    except ValueError:
        return None


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _decode_structured_text(text: str) -> dict[str, Any] | None:
    """Decode a JSON document that may itself be JSON-encoded as a string."""
    value: Any = text
    for _ in range(2):
        if not isinstance(value, str):
            break
        try:
            value = json.loads(value)
        except ValueError:
            return None
    return value if isinstance(value, dict) else None


def parse_progress(payload: Any) -> RawProgress:
    """Parse a progress payload from either job type.

    Accepts a dictionary, a JSON string (optionally double encoded), or a
    bare status word. Anything unparsable yields ``JobStatus.UNKNOWN`` with
    the original text kept in ``raw_status``.

    Args:
        payload: Decoded response body or raw response text

    Returns:
        RawProgress with normalized status and any counters present
    """
    data: dict[str, Any] | None
    if isinstance(payload, dict):
        data = payload
    elif isinstance(payload, str):
        text = payload.strip()
        data = _decode_structured_text(text)
        if data is None:
            return RawProgress(raw_status=text, status=normalize_status(text))
    else:
        return RawProgress(raw_status=str(payload), status=JobStatus.UNKNOWN)

    raw_status = _lookup(data, "status", "state", "jobStatus")
    raw_text = _as_text(raw_status) or ""

    return RawProgress(
        raw_status=raw_text,
        status=normalize_status(raw_text),
        versions_processed=_as_int(_lookup(data, "versionsProcessed", "versions_processed")),
        versions_deleted=_as_int(_lookup(data, "versionsDeleted", "versions_deleted")),
        versions_failed=_as_int(_lookup(data, "versionsFailed", "versions_failed")),
        storage_released_bytes=_as_int(
            _lookup(data, "storageReleasedInBytes", "storage_released_in_bytes", "storageReleasedBytes")
        ),
        error_message=_as_text(_lookup(data, "errorMessage", "error_message", "error")),
    )
