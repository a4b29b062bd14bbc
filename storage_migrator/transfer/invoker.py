import logging
import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from .. import config
from ..exceptions import ToolNotFoundError
from ..models import ResourceKind, TransferResult

# SAS tokens travel as URL query strings; never let them reach a log line.
_SAS_QUERY = re.compile(r"\?[^\s]*")


def redact(text: str) -> str:
    return _SAS_QUERY.sub("?<SAS>", text)


def find_tool(name: str, configured: Optional[str] = None) -> str:
    """
    Resolves an executable from an explicit path or the PATH.
    Raises ToolNotFoundError if neither works.
    """
    if configured:
        path = Path(configured).expanduser()
        if path.is_file():
            return str(path)
        resolved = shutil.which(configured)
        if resolved:
            return resolved
        raise ToolNotFoundError(f"{name} not found at {configured}")

    resolved = shutil.which(name)
    if not resolved:
        raise ToolNotFoundError(f"{name} is not installed or not on PATH")
    return resolved


class TransferInvoker:
    """
    Runs 'azcopy copy' for one resource.

    Strategies:
      - Containers: --check-md5 FailIfDifferent (abort at the first mismatch).
      - Shares: no per-file hash check; the aggregate checksum is the only verification.
    """

    def __init__(self, azcopy_path: str = config.AZCOPY_EXECUTABLE):
        self.azcopy_path = azcopy_path

    def build_command(self, source_url: str, dest_url: str, kind: ResourceKind) -> List[str]:
        cmd = [self.azcopy_path, "copy", source_url, dest_url, "--recursive"]
        if kind is ResourceKind.CONTAINER:
            cmd.extend(["--check-md5", config.AZCOPY_MD5_MODE])
        return cmd

    def build_env(self, log_dir: Path) -> Dict[str, str]:
        """
        A copy of the current environment pointing AzCopy at this job's log folder.
        os.environ itself is never modified.
        """
        env = dict(os.environ)
        env[config.AZCOPY_LOG_ENV] = str(log_dir)
        return env

    def transfer(self, source_url: str, dest_url: str, kind: ResourceKind, log_dir: Path) -> TransferResult:
        cmd = self.build_command(source_url, dest_url, kind)
        shown = [redact(part) for part in cmd]
        logging.info(f"Running: {' '.join(shown)}")
        logging.info(f"AzCopy logs: {log_dir}")

        try:
            # Output is left attached to the console so AzCopy's progress stays visible.
            proc = subprocess.run(cmd, env=self.build_env(log_dir), check=False)
        except KeyboardInterrupt:
            # subprocess.run has already killed the child before re-raising
            logging.warning("Transfer interrupted by user.")
            return TransferResult(exit_code=None, succeeded=False, interrupted=True, command=shown)
        except (OSError, subprocess.SubprocessError) as e:
            logging.error(f"Failed to start transfer: {e}")
            return TransferResult(exit_code=None, succeeded=False, error=str(e), command=shown)

        if proc.returncode != 0:
            logging.error(f"azcopy exited with code {proc.returncode}")
            return TransferResult(exit_code=proc.returncode, succeeded=False, command=shown)

        logging.info("azcopy completed successfully.")
        return TransferResult(exit_code=0, succeeded=True, command=shown)
