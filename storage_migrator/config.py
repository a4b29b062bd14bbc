"""
Configuration constants for the storage migrator.
"""
from pathlib import Path

# --- Checksum ---
# Digest reported for a resource with no objects. Two empty resources verify.
EMPTY_DIGEST = "0"

# --- External Tools ---
AZCOPY_EXECUTABLE = "azcopy"
AZ_EXECUTABLE = "az"

# AzCopy reads its log folder from this variable. We hand it a per-call copy
# of the environment so concurrent invocations never share a log folder.
AZCOPY_LOG_ENV = "AZCOPY_LOG_LOCATION"

# Fail the copy at the first blob whose MD5 does not match (containers only)
AZCOPY_MD5_MODE = "FailIfDifferent"

# Seconds to wait for a single `az` control-plane call
AZ_TIMEOUT_SEC = 300

# --- Endpoints ---
BLOB_HOST = "https://{account}.blob.core.windows.net"
FILE_HOST = "https://{account}.file.core.windows.net"

# --- Logging & Bookkeeping ---
DEFAULT_LOG_ROOT = Path.home() / "storage_migrator_logs"
LOG_SCOPE_TIMESTAMP = "%Y%m%d_%H%M%S"  # {resource}_{yyyyMMdd_HHmmss}
JOB_LOG_NAME = "migration.log"
APP_LOG_NAME = "migrator.log"
DEFAULT_DB_NAME = "migration_history.db"

# --- Credentials ---
SOURCE_SAS_ENV = "MIGRATOR_SOURCE_SAS"
DEST_SAS_ENV = "MIGRATOR_DEST_SAS"
