"""
Per-job log folders.

Each job gets {log_root}/{resource}_{yyyyMMdd_HHmmss}. Two jobs for the same
resource inside one second get _1, _2, ... suffixes instead of sharing a folder.
"""
import logging
import re
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from . import config

# Characters that are awkward in folder names on any platform
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def scope_dir_name(resource_name: str, when: datetime) -> str:
    safe = _UNSAFE_CHARS.sub("_", resource_name) or "resource"
    return f"{safe}_{when.strftime(config.LOG_SCOPE_TIMESTAMP)}"


def create_log_scope(log_root: Path, resource_name: str, when: Optional[datetime] = None) -> Path:
    """
    Creates and returns a fresh, never-before-used folder for one job.
    mkdir(exist_ok=False) is the claim, so racing callers cannot both win.
    """
    when = when or datetime.now()
    log_root.mkdir(parents=True, exist_ok=True)
    base = scope_dir_name(resource_name, when)

    suffix = 0
    while True:
        candidate = log_root / (base if suffix == 0 else f"{base}_{suffix}")
        try:
            candidate.mkdir()
            return candidate
        except FileExistsError:
            suffix += 1


@contextmanager
def job_log_handler(log_dir: Path, level: int = logging.DEBUG) -> Iterator[Path]:
    """
    Mirrors all log records into {log_dir}/migration.log while the job runs.
    """
    log_file = log_dir / config.JOB_LOG_NAME
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))

    root = logging.getLogger()
    root.addHandler(handler)
    try:
        yield log_file
    finally:
        root.removeHandler(handler)
        handler.close()
