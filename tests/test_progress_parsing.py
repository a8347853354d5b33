from __future__ import annotations

import json

import pytest

from versionsweep.core.client.progress import normalize_status, parse_progress
from versionsweep.core.jobs.models import JobStatus


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("InProgress", JobStatus.IN_PROGRESS),
        ("in progress", JobStatus.IN_PROGRESS),
        ("NotStarted", JobStatus.IN_PROGRESS),
        ("Completed", JobStatus.COMPLETED),
        ("SUCCEEDED", JobStatus.COMPLETED),
        ("Failed", JobStatus.FAILED),
        ("Cancelled", JobStatus.FAILED),
        ("no_report_found", JobStatus.NOT_FOUND),
        ("sideways", JobStatus.UNKNOWN),
        ("", JobStatus.UNKNOWN),
        (None, JobStatus.UNKNOWN),
    ],
)
def test_normalize_status(raw, expected):
    assert normalize_status(raw) == expected


def test_parse_cleanup_progress_dict():
    result = parse_progress({
        "Status": "Completed",
        "VersionsProcessed": 120,
        "VersionsDeleted": "100",
        "VersionsFailed": 2,
        "StorageReleasedInBytes": "1,048,576",
    })

    assert result.status == JobStatus.COMPLETED
    assert result.raw_status == "Completed"
    assert result.versions_processed == 120
    assert result.versions_deleted == 100
    assert result.versions_failed == 2
    assert result.storage_released_bytes == 1048576
    assert result.error_message is None


def test_parse_double_encoded_json():
    inner = json.dumps({"status": "Failed", "errorMessage": "Access denied"})

    result = parse_progress(json.dumps(inner))

    assert result.status == JobStatus.FAILED
    assert result.error_message == "Access denied"


def test_parse_bare_status_word():
    result = parse_progress("  New  ")

    assert result.status == JobStatus.UNKNOWN
    assert result.raw_status == "New"


def test_parse_missing_counters_stay_none():
    result = parse_progress({"state": "running", "versionsDeleted": "n/a"})

    assert result.status == JobStatus.IN_PROGRESS
    assert result.versions_deleted is None
    assert result.storage_released_bytes is None


def test_parse_unexpected_payload_type():
    result = parse_progress([1, 2, 3])

    assert result.status == JobStatus.UNKNOWN
