"""Shared fakes for the pipeline tests.

Nothing here touches the network or a real encoder: ssh queries are answered
by :class:`FakeDevice`, transfers and encodes are recorded by
:class:`FakeRunner` and :class:`FakeEncoder`.
"""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from ecc_timelapse.config import Config

VALID_MAGIC = b"MP4OK"


def write_frames(folder: Path, indices, ext: str = ".jpg") -> list[Path]:
    folder.mkdir(parents=True, exist_ok=True)
    paths = []
    for i in indices:
        path = folder / f"tlp_layer_{i}{ext}"
        path.write_bytes(f"frame {i}".encode())
        paths.append(path)
    return paths


def write_valid_mp4(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(VALID_MAGIC + b" video")
    return path


class FakeValidator:
    """Valid means the file exists and starts with ``MP4OK``."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def is_valid(self, path) -> bool:
        self.calls.append(str(path))
        try:
            with open(path, "rb") as fh:
                return fh.read(len(VALID_MAGIC)) == VALID_MAGIC
        except OSError:
            return False


class FakeEncoder:
    """Writes a valid stub video and remembers which frames it was fed."""

    def __init__(self, mode: str = "ok") -> None:
        self.ffmpeg = "ffmpeg"
        self.mode = mode
        self.calls: list[dict[str, Any]] = []

    def encode(self, pattern, output, framerate, video_filter=None) -> int:
        workdir = Path(pattern).parent
        frames = [os.path.realpath(workdir / n) for n in sorted(os.listdir(workdir))]
        self.calls.append(
            {
                "pattern": pattern,
                "output": str(output),
                "framerate": framerate,
                "filter": video_filter,
                "frames": frames,
                "scratch": sorted(os.listdir(workdir)),
            }
        )
        if self.mode == "ok":
            Path(output).write_bytes(VALID_MAGIC + b" encoded")
            return 0
        Path(output).write_bytes(b"partial garbage")
        if self.mode == "killed":
            raise SystemExit(143)
        if self.mode == "invalid":
            return 0
        return 1


class FakeRunner:
    """Records commands; filesystem helpers act for real."""

    def __init__(self, dry_run: bool = False) -> None:
        self.dry_run = dry_run
        self.commands: list[list[str]] = []
        self.pipes: list[tuple[list[str], list[str]]] = []
        self.queries: list[list[str]] = []
        self.notes: list[str] = []
        self.removed: list[Path] = []
        self.run_handler: Callable[[list[str]], int] = lambda cmd: 0
        self.pipe_handler: Callable[[list[str], list[str]], tuple[int, int]] = (
            lambda producer, consumer: (0, 0)
        )
        self.capture_handler: Callable[[list[str]], tuple[int, bytes]] = (
            lambda cmd: (0, b"")
        )

    def note(self, text: str) -> None:
        self.notes.append(text)

    def run(self, cmd) -> int:
        cmd = [str(c) for c in cmd]
        self.commands.append(cmd)
        return self.run_handler(cmd)

    def pipe(self, producer, consumer) -> tuple[int, int]:
        producer, consumer = list(producer), list(consumer)
        self.pipes.append((producer, consumer))
        return self.pipe_handler(producer, consumer)

    def capture(self, cmd, *, timeout=None) -> subprocess.CompletedProcess:
        cmd = [str(c) for c in cmd]
        self.queries.append(cmd)
        code, out = self.capture_handler(cmd)
        return subprocess.CompletedProcess(cmd, code, out, b"")

    def makedirs(self, path) -> None:
        if not self.dry_run:
            os.makedirs(path, exist_ok=True)

    def rmtree(self, path) -> None:
        self.removed.append(Path(path))
        if not self.dry_run:
            shutil.rmtree(path)


def parse_ssh(cmd: list[str]) -> tuple[str, list[str]]:
    """Split an ssh argv into the remote script and its positional args."""

    assert cmd[0] == "ssh"
    words = shlex.split(cmd[-1])
    assert words[:3] == ["sh", "-eu", "-c"] and words[4] == "_"
    return words[3], words[5:]


class FakeDevice:
    """Answers the pipeline's ssh queries for a set of remote folders."""

    def __init__(
        self,
        remote_dir: str,
        folders: Optional[dict[str, str]] = None,
        frames: Optional[dict[str, list[int]]] = None,
        tools: tuple[str, ...] = ("rsync", "tar"),
    ) -> None:
        self.remote_dir = remote_dir
        self.folders = dict(folders or {})
        self.frames = dict(frames or {})
        self.tools = set(tools)
        self.reachable = True

    def capture(self, cmd: list[str]) -> tuple[int, bytes]:
        if not self.reachable:
            return 255, b""
        script, args = parse_ssh(cmd)
        if "ls -ld" in script:
            name = args[0].rsplit("/", 1)[-1]
            return 0, f"{self.folders[name]}\n".encode()
        if "for d in" in script:
            return 0, b"".join(n.encode() + b"\0" for n in self.folders)
        if "command -v" in script:
            return (0 if args[0] in self.tools else 1), b""
        if "stat -c" in script:
            return 0, b""
        if "test -d" in script:
            path = args[0].rstrip("/")
            if path == self.remote_dir:
                return 0, b""
            name = path.rsplit("/", 1)[-1]
            return (0 if name in self.folders else 1), b""
        raise AssertionError(f"unexpected remote script: {script}")

    def rsync(self, cmd: list[str]) -> int:
        assert cmd[0] == "rsync"
        src, dest = cmd[-2], cmd[-1]
        name = shlex.split(src.split(":", 1)[1])[0].rstrip("/").rsplit("/", 1)[-1]
        write_frames(Path(dest), self.frames.get(name, [1, 2, 3]))
        return 0


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(host="printer", remote_dir="/remote/tlp", base_dir=tmp_path / "ecc")


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def validator() -> FakeValidator:
    return FakeValidator()
