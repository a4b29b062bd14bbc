import csv
import logging
from collections import Counter
from typing import Iterable, List, Optional

from .database.ops import DBOperations
from .models import ChecksumResult, Classification, JobReport


def _digest_line(label: str, result: Optional[ChecksumResult]) -> str:
    if result is None or not result.is_available:
        detail = f" ({result.error})" if result is not None and result.error else ""
        return f"  {label:<19} unavailable{detail}"
    line = f"  {label:<19} {result.digest} ({result.object_count} objects)"
    if result.degraded:
        line += f" [size-only for {result.fallback_count}]"
    return line


class ReportGenerator:
    def __init__(self, db_ops: Optional[DBOperations] = None):
        self.db = db_ops

    def format_report(self, report: JobReport) -> str:
        """
        Human-readable outcome of one job. Always shows both digests and the
        classification, whatever stage the job ended in.
        """
        job = report.job
        lines = [
            f"{job.resource_kind.value.capitalize()} '{job.resource_name}' "
            f"({job.source.account} -> {job.destination.account})",
            f"  {'Result:':<19} {report.classification.value.upper()}",
            _digest_line("Source digest:", report.source_checksum),
            _digest_line("Destination digest:", report.destination_checksum),
        ]

        if report.classification is Classification.FAILED:
            stage = report.failed_stage.value if report.failed_stage else "unknown"
            lines.append(f"  {'Failed at:':<19} {stage} ({report.failure_reason})")
        elif report.classification is Classification.INCOMPLETE:
            lines.append("  Verification could not be performed; the copy is NOT confirmed.")

        if report.degraded:
            lines.append("  Degraded verification: some blobs had no content hash and were compared by size.")
        if report.log_dir:
            lines.append(f"  {'Logs:':<19} {report.log_dir}")
        return "\n".join(lines)

    def format_summary(self, reports: Iterable[JobReport]) -> str:
        reports = list(reports)
        counts = Counter(r.classification for r in reports)
        parts = [f"{c.value}: {counts.get(c, 0)}" for c in Classification]
        return f"{len(reports)} job(s) -- " + ", ".join(parts)

    def export_history_csv(self, output_csv: str, classification: Optional[str] = None):
        """
        Writes one row per recorded job from the history catalog.
        """
        if self.db is None:
            raise ValueError("A job history catalog is required to export history.")

        jobs = self.db.fetch_jobs(classification=classification)
        headers = [
            "Job ID",
            "Resource",
            "Kind",
            "Source Account",
            "Destination Account",
            "Classification",
            "Failed Stage",
            "Failure Reason",
            "Source Digest",
            "Destination Digest",
            "Degraded",
            "Started",
            "Finished",
            "Log Folder",
        ]

        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(headers)
            for job in reversed(jobs):  # oldest first
                writer.writerow(self._row(job))

        logging.info(f"Exported {len(jobs)} job(s) to {output_csv}")

    def _row(self, job: dict) -> List:
        return [
            job["id"],
            job["resource_name"],
            job["resource_kind"],
            job["source_account"],
            job["dest_account"],
            job["classification"],
            job["failed_stage"] or "",
            job["failure_reason"] or "",
            job["source_digest"] or "unavailable",
            job["dest_digest"] or "unavailable",
            "yes" if job["degraded"] else "no",
            job["started_at"],
            job["finished_at"],
            job["log_dir"] or "",
        ]
