"""Tests for the ssh-backed remote queries."""

from __future__ import annotations

import shlex
import shutil
import subprocess

import pytest

from conftest import FakeDevice, FakeRunner, parse_ssh
from ecc_timelapse.errors import DateError, RemoteError, UsageError
from ecc_timelapse.remote import (
    LIST_DIRS_SCRIPT,
    SKIPPED,
    Remote,
    sh_command,
    split_nul,
    ssh_base,
)


def test_ssh_base_is_non_interactive() -> None:
    cmd = ssh_base("printer")
    assert cmd[0] == "ssh"
    assert "BatchMode=yes" in cmd
    assert "ConnectTimeout=10" in cmd
    assert cmd[-2:] == ["--", "printer"]


def test_sh_command_quotes_arguments() -> None:
    line = sh_command('test -d "$1"', "/remote/Vase A")
    assert shlex.split(line) == ["sh", "-eu", "-c", 'test -d "$1"', "_", "/remote/Vase A"]


def test_split_nul_keeps_odd_names() -> None:
    data = b"Vase A\0Box\0new\nline\0\0"
    assert split_nul(data) == ["Vase A", "Box", "new\nline"]


def test_list_print_dirs(config) -> None:
    device = FakeDevice(config.remote_dir, folders={"Vase A": "2024-01-01", "Box": "2024-01-02"})
    runner = FakeRunner()
    runner.capture_handler = device.capture

    assert Remote(config, runner).list_print_dirs() == ["Vase A", "Box"]
    _script, args = parse_ssh(runner.queries[0])
    assert args == [config.remote_dir]


def test_list_print_dirs_failure(config) -> None:
    runner = FakeRunner()
    runner.capture_handler = lambda cmd: (255, b"")
    with pytest.raises(RemoteError, match="ssh exit 255"):
        Remote(config, runner).list_print_dirs()


def test_list_print_dirs_dry_run(config) -> None:
    runner = FakeRunner(dry_run=True)
    assert Remote(config, runner).list_print_dirs() is SKIPPED
    assert runner.queries == []


def test_folder_date(config) -> None:
    device = FakeDevice(config.remote_dir, folders={"Vase A": "2024-02-29"})
    runner = FakeRunner()
    runner.capture_handler = device.capture

    assert Remote(config, runner).folder_date("Vase A") == "2024-02-29"
    _script, args = parse_ssh(runner.queries[-1])
    assert args == ["/remote/tlp/Vase A"]


def test_folder_date_missing_folder(config) -> None:
    device = FakeDevice(config.remote_dir, folders={})
    runner = FakeRunner()
    runner.capture_handler = device.capture
    with pytest.raises(RemoteError, match="not found"):
        Remote(config, runner).folder_date("Gone")


def test_folder_date_malformed(config) -> None:
    device = FakeDevice(config.remote_dir, folders={"Box": "Jan"})
    runner = FakeRunner()
    runner.capture_handler = device.capture
    with pytest.raises(DateError):
        Remote(config, runner).folder_date("Box")


def test_folder_path_validates_name(config) -> None:
    remote = Remote(config, FakeRunner())
    assert remote.folder_path("Box") == "/remote/tlp/Box"
    with pytest.raises(UsageError):
        remote.folder_path("a/b")


def test_remote_arg_quotes_for_remote_shell(config) -> None:
    remote = Remote(config, FakeRunner())
    assert remote.remote_arg("/remote/tlp/Vase A/") == "printer:'/remote/tlp/Vase A/'"


def _run_sh(script: str, *args: str) -> subprocess.CompletedProcess:
    return subprocess.run(["sh", "-eu", "-c", script, "_", *args], capture_output=True)


@pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX sh")
def test_list_dirs_script_under_real_shell(tmp_path) -> None:
    for name in ("Vase A", "Box", "new\nline"):
        (tmp_path / name).mkdir()
    (tmp_path / "stray.jpg").write_bytes(b"x")

    proc = _run_sh(LIST_DIRS_SCRIPT, str(tmp_path))

    assert proc.returncode == 0, proc.stderr
    assert sorted(split_nul(proc.stdout)) == sorted(["Vase A", "Box", "new\nline"])


@pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX sh")
def test_list_dirs_script_empty_and_missing(tmp_path) -> None:
    proc = _run_sh(LIST_DIRS_SCRIPT, str(tmp_path))
    assert proc.returncode == 0
    assert split_nul(proc.stdout) == []

    proc = _run_sh(LIST_DIRS_SCRIPT, str(tmp_path / "gone"))
    assert proc.returncode != 0
    assert proc.stdout == b""
