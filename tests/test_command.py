"""
Tests for external command execution and host helpers.
"""

import os
from pathlib import Path

import pytest

from vitals_monitor.utils.command import CommandError, find_program, run_command
from vitals_monitor.utils.host import get_host_info
from vitals_monitor.utils.sysfs import read_file, read_int


@pytest.mark.asyncio
async def test_run_command_collects_output() -> None:
    result = await run_command("sh", "-c", "echo out; echo err >&2; exit 3")

    assert result.returncode == 3
    assert not result.ok
    assert result.stdout == "out"
    assert result.stderr == "err"


@pytest.mark.asyncio
async def test_run_command_timeout_kills_child() -> None:
    with pytest.raises(CommandError, match="timed out"):
        await run_command("sleep", "5", timeout=0.1)


@pytest.mark.asyncio
async def test_run_command_missing_program() -> None:
    with pytest.raises(CommandError):
        await run_command("/nonexistent/definitely-not-a-program")


def test_find_program_in_extra_location(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("PATH", "")
    tool = tmp_path / "radeontop"
    tool.write_text("#!/bin/sh\n")
    os.chmod(tool, 0o755)

    assert find_program("radeontop") is None
    assert find_program("radeontop", (str(tmp_path),)) == str(tool)
    assert find_program("radeontop", (tmp_path / "missing",)) is None


def test_sysfs_helpers(tmp_path: Path) -> None:
    value = tmp_path / "value"
    value.write_text(" 42\n")

    assert read_file(value) == "42"
    assert read_int(value) == 42
    assert read_file(tmp_path / "missing", default="n/a") == "n/a"
    with pytest.raises(OSError):
        read_int(tmp_path / "missing")


def test_host_info() -> None:
    info = get_host_info()

    assert info.hostname
    assert info.cpu_count >= 1
    assert info.memory_total_mib > 0
    assert info.hostname in info.describe()
