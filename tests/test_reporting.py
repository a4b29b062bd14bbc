import csv
from datetime import datetime
from pathlib import Path

import pytest

from storage_migrator.models import (
    ChecksumResult,
    Classification,
    JobReport,
    MigrationJob,
    ResourceKind,
    Stage,
)
from storage_migrator.reporting import ReportGenerator

from conftest import DEST, SOURCE


def _report(classification, src=None, dst=None, **kwargs):
    job = MigrationJob("photos", ResourceKind.CONTAINER, SOURCE, DEST, log_scope_id=kwargs.pop("scope", "s1"))
    return JobReport(
        job=job,
        classification=classification,
        stages=[Stage.IDLE],
        started_at=datetime(2024, 1, 1, 12, 0, 0),
        finished_at=datetime(2024, 1, 1, 12, 1, 0),
        source_checksum=src,
        destination_checksum=dst,
        **kwargs,
    )


def test_verified_report_shows_both_digests():
    text = ReportGenerator().format_report(_report(
        Classification.VERIFIED,
        ChecksumResult("aaa", 3, ResourceKind.CONTAINER),
        ChecksumResult("aaa", 3, ResourceKind.CONTAINER),
        log_dir=Path("/logs/photos_1"),
    ))
    assert "VERIFIED" in text
    assert text.count("aaa (3 objects)") == 2
    assert "/logs/photos_1" in text
    assert "Degraded" not in text


def test_failed_report_shows_stage_and_unavailable_digests():
    text = ReportGenerator().format_report(_report(
        Classification.FAILED,
        failed_stage=Stage.SOURCE_CHECK,
        failure_reason="NotFound",
    ))
    assert "FAILED" in text
    assert "Failed at:" in text and "source_check (NotFound)" in text
    assert text.count("unavailable") == 2


def test_incomplete_report_names_missing_side():
    text = ReportGenerator().format_report(_report(
        Classification.INCOMPLETE,
        ChecksumResult("aaa", 1, ResourceKind.CONTAINER),
        ChecksumResult.unavailable(ResourceKind.CONTAINER, "throttled"),
    ))
    assert "INCOMPLETE" in text
    assert "unavailable (throttled)" in text
    assert "NOT confirmed" in text


def test_degraded_report():
    text = ReportGenerator().format_report(_report(
        Classification.VERIFIED,
        ChecksumResult("aaa", 4, ResourceKind.CONTAINER, fallback_count=2),
        ChecksumResult("aaa", 4, ResourceKind.CONTAINER, fallback_count=2),
    ))
    assert "[size-only for 2]" in text
    assert "Degraded verification" in text


def test_summary_counts_every_classification():
    reports = [
        _report(Classification.VERIFIED),
        _report(Classification.VERIFIED),
        _report(Classification.FAILED),
    ]
    summary = ReportGenerator().format_summary(reports)
    assert summary == "3 job(s) -- Verified: 2, Mismatched: 0, Incomplete: 0, Failed: 1"


def test_export_requires_catalog(tmp_path):
    with pytest.raises(ValueError):
        ReportGenerator().export_history_csv(str(tmp_path / "out.csv"))


def test_export_history_csv(db_ops, tmp_path):
    db_ops.record_job(_report(Classification.VERIFIED,
                              ChecksumResult("aaa", 1, ResourceKind.CONTAINER),
                              ChecksumResult("aaa", 1, ResourceKind.CONTAINER), scope="s1"))
    db_ops.record_job(_report(Classification.FAILED, failed_stage=Stage.TRANSFERRING,
                              failure_reason="Interrupted", scope="s2"))

    out = tmp_path / "history.csv"
    ReportGenerator(db_ops).export_history_csv(str(out))

    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))

    assert [r["Classification"] for r in rows] == ["Verified", "Failed"]
    assert rows[0]["Source Digest"] == "aaa"
    assert rows[1]["Source Digest"] == "unavailable"
    assert rows[1]["Failed Stage"] == "transferring"
    assert rows[1]["Failure Reason"] == "Interrupted"
    assert rows[0]["Degraded"] == "no"


def test_export_filtered(db_ops, tmp_path):
    db_ops.record_job(_report(Classification.VERIFIED, scope="s1"))
    db_ops.record_job(_report(Classification.MISMATCHED, scope="s2"))

    out = tmp_path / "mismatched.csv"
    ReportGenerator(db_ops).export_history_csv(str(out), classification="Mismatched")

    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 1
    assert rows[0]["Classification"] == "Mismatched"
