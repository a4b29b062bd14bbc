#!/usr/bin/env python

import argparse
import sqlite3
from pathlib import Path
from typing import Optional

from storage_migrator.database.ops import DBOperations
from storage_migrator.models import ResourceKind


def connect_db(db_path: Path) -> sqlite3.Connection:
    if not db_path.exists():
        raise SystemExit(f"DB not found: {db_path}")
    return sqlite3.connect(db_path)


def list_jobs(db_ops: DBOperations, classification: Optional[str] = None, resource: Optional[str] = None):
    jobs = db_ops.fetch_jobs(classification=classification, resource_name=resource)
    if not jobs:
        print("No jobs recorded.")
        return

    print("id   | classification | kind      | resource                  | started             | source_digest                    | dest_digest")
    print("-----+----------------+-----------+---------------------------+---------------------+----------------------------------+------------")
    for job in jobs:
        print(f"{job['id']:4d} | {job['classification'].ljust(14)} | {job['resource_kind'].ljust(9)} | "
              f"{job['resource_name'][:25].ljust(25)} | {job['started_at'][:19]} | "
              f"{(job['source_digest'] or 'unavailable').ljust(32)} | {job['dest_digest'] or 'unavailable'}")


def show_job(db_ops: DBOperations, job_id: int):
    job = db_ops.fetch_job(job_id)
    if not job:
        print(f"No job with id={job_id}")
        return

    print("Job:")
    print(f"  id:              {job['id']}")
    print(f"  scope id:        {job['log_scope_id']}")
    print(f"  resource:        {job['resource_kind']} '{job['resource_name']}'")
    print(f"  accounts:        {job['source_account']} -> {job['dest_account']}")
    print(f"  classification:  {job['classification']}")
    if job["failed_stage"]:
        print(f"  failed at:       {job['failed_stage']} ({job['failure_reason']})")
    print(f"  reconcile:       {job['reconcile_status'] or '-'}")
    print(f"  transfer exit:   {job['transfer_exit_code'] if job['transfer_exit_code'] is not None else '-'}")
    print(f"  source digest:   {job['source_digest'] or 'unavailable'} ({job['source_objects'] or 0} objects)")
    print(f"  dest digest:     {job['dest_digest'] or 'unavailable'} ({job['dest_objects'] or 0} objects)")
    print(f"  degraded:        {'yes' if job['degraded'] else 'no'}")
    print(f"  started:         {job['started_at']}")
    print(f"  finished:        {job['finished_at']}")
    print(f"  logs:            {job['log_dir'] or '-'}")

    print("\n  Stages:")
    for seq, stage in enumerate(db_ops.fetch_stages(job_id)):
        print(f"  {seq:3d}  {stage}")


def show_last_verified(db_ops: DBOperations, resource: str, kind: str):
    digest = db_ops.last_verified_digest(resource, ResourceKind(kind))
    if digest is None:
        print(f"No verified migration recorded for {kind} '{resource}'")
    else:
        print(f"{kind} '{resource}' last verified with digest {digest}")


def parse_args():
    p = argparse.ArgumentParser(description="Query helper for the migration_history SQLite DB.")
    p.add_argument("--db", required=True, help="Path to migration_history.db (typically under your log root)")
    p.add_argument("--kind", choices=[k.value for k in ResourceKind], default=ResourceKind.CONTAINER.value)
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--jobs", action="store_true", help="List all recorded jobs")
    group.add_argument("--classification", choices=["Verified", "Mismatched", "Incomplete", "Failed"],
                       help="List jobs with this classification")
    group.add_argument("--resource", help="List jobs for one container/share")
    group.add_argument("--job-id", type=int, help="Show details and stage history for a job")
    group.add_argument("--last-verified", metavar="RESOURCE", help="Show the last verified digest for a resource")
    return p.parse_args()


def main():
    args = parse_args()
    db_path = Path(args.db).resolve()
    conn = connect_db(db_path)
    db_ops = DBOperations(conn)

    try:
        if args.jobs:
            list_jobs(db_ops)
        elif args.classification:
            list_jobs(db_ops, classification=args.classification)
        elif args.resource:
            list_jobs(db_ops, resource=args.resource)
        elif args.job_id is not None:
            show_job(db_ops, args.job_id)
        elif args.last_verified:
            show_last_verified(db_ops, args.last_verified, args.kind)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
