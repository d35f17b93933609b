"""Execution strategies for side-effecting commands.

``CommandRunner`` performs the work.  ``DryRunRunner`` only prints what would
be done, so components never branch on a dry-run flag themselves.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Sequence

from .errors import LaunchError, TimelapseError

PROG = "ecc-timelapse"


def format_command(cmd: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(part)) for part in cmd)


class CommandRunner:
    """Run commands and filesystem mutations for real."""

    dry_run = False

    def note(self, text: str) -> None:
        logging.info("%s", text)

    def run(self, cmd: Sequence[str]) -> int:
        logging.info("exec: %s", format_command(cmd))
        try:
            proc = subprocess.run([str(part) for part in cmd])
        except OSError as exc:
            raise LaunchError(f"cannot run {cmd[0]}: {exc}") from exc
        return proc.returncode

    def pipe(self, producer: Sequence[str], consumer: Sequence[str]) -> tuple[int, int]:
        """Run ``producer | consumer`` and return both exit statuses."""

        logging.info(
            "exec: %s | %s", format_command(producer), format_command(consumer)
        )
        try:
            first = subprocess.Popen([str(p) for p in producer], stdout=subprocess.PIPE)
        except OSError as exc:
            raise LaunchError(f"cannot run {producer[0]}: {exc}") from exc
        try:
            second = subprocess.run([str(p) for p in consumer], stdin=first.stdout)
        except OSError as exc:
            first.kill()
            raise LaunchError(f"cannot run {consumer[0]}: {exc}") from exc
        finally:
            if first.stdout is not None:
                first.stdout.close()
            first.wait()
        return first.returncode, second.returncode

    def capture(
        self, cmd: Sequence[str], *, timeout: float | None = None
    ) -> subprocess.CompletedProcess[bytes]:
        """Run a read-only query and collect its output as bytes."""

        logging.debug("query: %s", format_command(cmd))
        return subprocess.run(
            [str(part) for part in cmd],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout,
            check=False,
        )

    def makedirs(self, path: Path) -> None:
        os.makedirs(path, exist_ok=True)

    def rmtree(self, path: Path) -> None:
        shutil.rmtree(path)
        logging.info("removed %s", path)


class DryRunRunner(CommandRunner):
    """Describe side effects on stdout instead of performing them."""

    dry_run = True

    def __init__(self, stream=None) -> None:
        self.stream = stream

    def _emit(self, text: str) -> None:
        print(f"{PROG}: dry-run: {text}", file=self.stream or sys.stdout)

    def note(self, text: str) -> None:
        self._emit(text)

    def run(self, cmd: Sequence[str]) -> int:
        self._emit(format_command(cmd))
        return 0

    def pipe(self, producer: Sequence[str], consumer: Sequence[str]) -> tuple[int, int]:
        self._emit(f"{format_command(producer)} | {format_command(consumer)}")
        return 0, 0

    def capture(
        self, cmd: Sequence[str], *, timeout: float | None = None
    ) -> subprocess.CompletedProcess[bytes]:
        raise TimelapseError(
            f"internal: attempted network action during --dry-run: {format_command(cmd)}"
        )

    def makedirs(self, path: Path) -> None:
        self._emit(f"mkdir -p -- {path}")

    def rmtree(self, path: Path) -> None:
        self._emit(f"rm -rf -- {path}")
