"""
Database schema definitions.
"""
import sqlite3
import logging

CURRENT_SCHEMA_VERSION = 1

def init_schema(conn: sqlite3.Connection):
    """
    Applies the job history schema to the database.
    Idempotent: safe to run on every startup.
    """
    with conn:
        # 1. Version Tracking
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
        """)

        cur = conn.cursor()
        cur.execute("SELECT version FROM schema_version")
        if not cur.fetchone():
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_SCHEMA_VERSION,))

        # 2. One row per finished job
        conn.execute("""
        CREATE TABLE IF NOT EXISTS migration_jobs (
            id                  INTEGER PRIMARY KEY AUTOINCREMENT,
            log_scope_id        TEXT NOT NULL UNIQUE,
            resource_name       TEXT NOT NULL,
            resource_kind       TEXT NOT NULL,       -- container/share
            source_account      TEXT NOT NULL,
            dest_account        TEXT NOT NULL,
            classification      TEXT NOT NULL,       -- Verified/Mismatched/Incomplete/Failed
            failed_stage        TEXT,
            failure_reason      TEXT,
            reconcile_status    TEXT,
            transfer_exit_code  INTEGER,
            source_digest       TEXT,                -- NULL = unavailable or never computed
            source_objects      INTEGER,
            dest_digest         TEXT,
            dest_objects        INTEGER,
            degraded            INTEGER NOT NULL DEFAULT 0,
            log_dir             TEXT,
            started_at          TEXT NOT NULL,
            finished_at         TEXT NOT NULL
        );
        """)

        # 3. Ordered state transitions for each job
        conn.execute("""
        CREATE TABLE IF NOT EXISTS job_stages (
            job_id      INTEGER NOT NULL,
            seq         INTEGER NOT NULL,
            stage       TEXT NOT NULL,
            PRIMARY KEY (job_id, seq),
            FOREIGN KEY(job_id) REFERENCES migration_jobs(id) ON DELETE CASCADE
        );
        """)

        # 4. Indices
        conn.execute("CREATE INDEX IF NOT EXISTS idx_jobs_resource ON migration_jobs(resource_name, resource_kind);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_jobs_classification ON migration_jobs(classification);")

    logging.debug("Database schema initialized.")
