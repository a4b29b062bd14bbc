import os
import subprocess
from types import SimpleNamespace

import pytest

from storage_migrator import config
from storage_migrator.exceptions import ToolNotFoundError
from storage_migrator.models import ResourceKind
from storage_migrator.transfer.invoker import TransferInvoker, find_tool, redact

SRC = "https://src.blob.core.windows.net/photos?sv=2024&sig=secret1"
DST = "https://dst.blob.core.windows.net/photos?sv=2024&sig=secret2"


def test_container_command_checks_md5():
    cmd = TransferInvoker("azcopy").build_command(SRC, DST, ResourceKind.CONTAINER)
    assert cmd == ["azcopy", "copy", SRC, DST, "--recursive", "--check-md5", "FailIfDifferent"]


def test_share_command_has_no_md5_option():
    cmd = TransferInvoker("azcopy").build_command(SRC, DST, ResourceKind.SHARE)
    assert "--check-md5" not in cmd
    assert "--recursive" in cmd


def test_env_is_a_copy(tmp_path, monkeypatch):
    monkeypatch.delenv(config.AZCOPY_LOG_ENV, raising=False)
    env = TransferInvoker().build_env(tmp_path)
    assert env[config.AZCOPY_LOG_ENV] == str(tmp_path)
    assert config.AZCOPY_LOG_ENV not in os.environ


def test_redact_hides_sas():
    assert redact(SRC) == "https://src.blob.core.windows.net/photos?<SAS>"
    assert "secret" not in redact(f"copy {SRC} {DST}")


def test_successful_transfer(monkeypatch, tmp_path):
    seen = {}

    def fake_run(cmd, env=None, check=False):
        seen["cmd"] = cmd
        seen["env"] = env
        return SimpleNamespace(returncode=0)

    monkeypatch.setattr(subprocess, "run", fake_run)
    res = TransferInvoker("azcopy").transfer(SRC, DST, ResourceKind.CONTAINER, tmp_path)

    assert res.succeeded
    assert res.exit_code == 0
    assert seen["env"][config.AZCOPY_LOG_ENV] == str(tmp_path)
    assert all("secret" not in part for part in res.command)


def test_nonzero_exit_is_failure(monkeypatch, tmp_path):
    monkeypatch.setattr(subprocess, "run", lambda *a, **k: SimpleNamespace(returncode=1))
    res = TransferInvoker().transfer(SRC, DST, ResourceKind.SHARE, tmp_path)

    assert not res.succeeded
    assert res.exit_code == 1
    assert res.failure_reason == "1"


def test_missing_executable_is_failure(monkeypatch, tmp_path):
    def boom(*a, **k):
        raise FileNotFoundError("azcopy")

    monkeypatch.setattr(subprocess, "run", boom)
    res = TransferInvoker().transfer(SRC, DST, ResourceKind.CONTAINER, tmp_path)

    assert not res.succeeded
    assert res.exit_code is None
    assert "azcopy" in res.failure_reason


def test_keyboard_interrupt_is_reported(monkeypatch, tmp_path):
    def interrupt(*a, **k):
        raise KeyboardInterrupt

    monkeypatch.setattr(subprocess, "run", interrupt)
    res = TransferInvoker().transfer(SRC, DST, ResourceKind.CONTAINER, tmp_path)

    assert not res.succeeded
    assert res.interrupted
    assert res.failure_reason == "Interrupted"


def test_find_tool_explicit_file(tmp_path):
    tool = tmp_path / "azcopy"
    tool.write_text("#!/bin/sh\n")
    assert find_tool("azcopy", str(tool)) == str(tool)


def test_find_tool_missing(monkeypatch):
    monkeypatch.setattr("shutil.which", lambda name: None)
    with pytest.raises(ToolNotFoundError):
        find_tool("azcopy")
    with pytest.raises(ToolNotFoundError):
        find_tool("azcopy", "/nowhere/azcopy")


def test_find_tool_on_path(monkeypatch):
    monkeypatch.setattr("shutil.which", lambda name: f"/usr/bin/{name}")
    assert find_tool("azcopy") == "/usr/bin/azcopy"
