import sqlite3
import logging
from typing import Optional, List, Dict, Any

from ..exceptions import DatabaseError
from ..models import JobReport, ResourceKind

_JOB_COLUMNS = [
    "id", "log_scope_id", "resource_name", "resource_kind", "source_account", "dest_account",
    "classification", "failed_stage", "failure_reason", "reconcile_status", "transfer_exit_code",
    "source_digest", "source_objects", "dest_digest", "dest_objects", "degraded", "log_dir",
    "started_at", "finished_at",
]

class DBOperations:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def record_job(self, report: JobReport) -> int:
        """
        Stores a finished job and its stage history. Returns the row id.
        """
        job = report.job
        src = report.source_checksum
        dst = report.destination_checksum

        try:
            with self.conn:
                cur = self.conn.cursor()
                cur.execute("""
                    INSERT INTO migration_jobs (
                        log_scope_id, resource_name, resource_kind, source_account, dest_account,
                        classification, failed_stage, failure_reason, reconcile_status,
                        transfer_exit_code, source_digest, source_objects, dest_digest,
                        dest_objects, degraded, log_dir, started_at, finished_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    job.log_scope_id, job.resource_name, job.resource_kind.value,
                    job.source.account, job.destination.account,
                    report.classification.value,
                    report.failed_stage.value if report.failed_stage else None,
                    report.failure_reason,
                    report.reconcile.status.value if report.reconcile else None,
                    report.transfer.exit_code if report.transfer else None,
                    src.digest if src else None, src.object_count if src else None,
                    dst.digest if dst else None, dst.object_count if dst else None,
                    int(report.degraded),
                    str(report.log_dir) if report.log_dir else None,
                    report.started_at.isoformat(), report.finished_at.isoformat(),
                ))

                if cur.lastrowid is None:
                    raise DatabaseError("Database INSERT failed to return a row ID.")
                job_id = cur.lastrowid

                cur.executemany(
                    "INSERT INTO job_stages (job_id, seq, stage) VALUES (?, ?, ?)",
                    [(job_id, seq, stage.value) for seq, stage in enumerate(report.stages)],
                )
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to record job {job.log_scope_id}: {e}") from e

        logging.debug(f"Recorded job {job.log_scope_id} as #{job_id}")
        return job_id

    def fetch_jobs(self,
                   classification: Optional[str] = None,
                   resource_name: Optional[str] = None) -> List[Dict[str, Any]]:
        """Jobs newest first, optionally filtered."""
        clauses = []
        params: List[Any] = []
        if classification:
            clauses.append("classification = ?")
            params.append(classification)
        if resource_name:
            clauses.append("resource_name = ?")
            params.append(resource_name)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        cur = self.conn.cursor()
        cur.execute(f"SELECT {', '.join(_JOB_COLUMNS)} FROM migration_jobs {where} ORDER BY id DESC", params)
        return [dict(zip(_JOB_COLUMNS, row)) for row in cur.fetchall()]

    def fetch_job(self, job_id: int) -> Optional[Dict[str, Any]]:
        cur = self.conn.cursor()
        cur.execute(f"SELECT {', '.join(_JOB_COLUMNS)} FROM migration_jobs WHERE id = ?", (job_id,))
        row = cur.fetchone()
        return dict(zip(_JOB_COLUMNS, row)) if row else None

    def fetch_stages(self, job_id: int) -> List[str]:
        cur = self.conn.cursor()
        cur.execute("SELECT stage FROM job_stages WHERE job_id = ? ORDER BY seq", (job_id,))
        return [row[0] for row in cur.fetchall()]

    def last_verified_digest(self, resource_name: str, kind: ResourceKind) -> Optional[str]:
        """Destination digest of the most recent Verified run for this resource."""
        cur = self.conn.cursor()
        cur.execute("""
            SELECT dest_digest FROM migration_jobs
            WHERE resource_name = ? AND resource_kind = ? AND classification = 'Verified'
            ORDER BY id DESC LIMIT 1
        """, (resource_name, kind.value))
        row = cur.fetchone()
        return row[0] if row else None
