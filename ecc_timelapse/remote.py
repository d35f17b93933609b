"""Read-only access to the capture device over ssh."""

from __future__ import annotations

import logging
import shlex
import subprocess
from typing import Union

from .config import SSH_CONNECT_TIMEOUT, Config
from .dates import REMOTE_DATE_SCRIPT, parse_date_token
from .errors import RemoteError
from .naming import validate_print_folder_name

PROBE_TIMEOUT = 30
LIST_TIMEOUT = 120

# Prints each directory directly under $1 as "<name>\0".
LIST_DIRS_SCRIPT = (
    'remote_dir="$1"; test -d "$remote_dir"; '
    'for d in "$remote_dir"/*/; do [ -d "$d" ] || continue; '
    'd="${d%/}"; printf \'%s\\0\' "${d##*/}"; done'
)


class _Skipped:
    """Returned instead of a listing when the remote was not consulted."""

    def __repr__(self) -> str:
        return "SKIPPED"


SKIPPED = _Skipped()
Listing = Union[list[str], _Skipped]


def ssh_base(host: str) -> list[str]:
    return [
        "ssh",
        "-o",
        "BatchMode=yes",
        "-o",
        f"ConnectTimeout={SSH_CONNECT_TIMEOUT}",
        "--",
        host,
    ]


def sh_command(script: str, *args: str) -> str:
    """Return a remote command line running *script* with positional *args*."""

    parts = ["sh", "-eu", "-c", shlex.quote(script), "_"]
    parts.extend(shlex.quote(arg) for arg in args)
    return " ".join(parts)


def split_nul(data: bytes) -> list[str]:
    names = []
    for chunk in data.split(b"\0"):
        if chunk:
            names.append(chunk.decode("utf-8", "surrogateescape"))
    return names


class Remote:
    def __init__(self, config: Config, runner) -> None:
        self.config = config
        self.runner = runner

    @property
    def host(self) -> str:
        return self.config.host

    @property
    def remote_dir(self) -> str:
        return self.config.remote_dir

    def folder_path(self, name: str) -> str:
        validate_print_folder_name(name)
        return f"{self.remote_dir.rstrip('/')}/{name}"

    def remote_arg(self, path: str) -> str:
        """``host:path`` with *path* quoted for the remote shell."""

        return f"{self.host}:{shlex.quote(path)}"

    def ssh_argv(self, script: str, *args: str) -> list[str]:
        return ssh_base(self.host) + [sh_command(script, *args)]

    def _query(
        self, script: str, *args: str, timeout: float | None = PROBE_TIMEOUT
    ) -> subprocess.CompletedProcess[bytes]:
        return self.runner.capture(self.ssh_argv(script, *args), timeout=timeout)

    def check(self, script: str, *args: str) -> bool:
        """Run a probe; any failure, including a timeout, reads as False."""

        try:
            proc = self._query(script, *args)
        except (OSError, subprocess.TimeoutExpired) as exc:
            logging.debug("probe failed on %s: %s", self.host, exc)
            return False
        return proc.returncode == 0

    def has_command(self, tool: str) -> bool:
        return self.check('command -v "$1" >/dev/null 2>&1', tool)

    def supports_stat_mtime_epoch(self, path: str) -> bool:
        return self.check('stat -c %Y -- "$1" >/dev/null 2>&1', path)

    def require_dir(self, path: str) -> None:
        if not self.check('test -d "$1"', path):
            raise RemoteError(
                f"remote dir not found or not a directory: {self.host}:{path}"
            )

    def list_print_dirs(self) -> Listing:
        """Names of the directories directly under the remote base dir."""

        if self.runner.dry_run:
            logging.info(
                "dry-run: would list remote directories under %s:%s",
                self.host,
                self.remote_dir,
            )
            return SKIPPED
        try:
            proc = self._query(LIST_DIRS_SCRIPT, self.remote_dir, timeout=LIST_TIMEOUT)
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise RemoteError(f"remote listing failed: {exc}") from exc
        if proc.returncode != 0:
            raise RemoteError(f"remote listing failed (ssh exit {proc.returncode})")
        return split_nul(proc.stdout)

    def folder_date(self, name: str) -> str:
        path = self.folder_path(name)
        self.require_dir(path)
        try:
            proc = self._query(REMOTE_DATE_SCRIPT, path)
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise RemoteError(f"remote date query failed for {self.host}:{path}: {exc}") from exc
        if proc.returncode != 0:
            raise RemoteError(
                f"remote date query failed for {self.host}:{path} (ssh exit {proc.returncode})"
            )
        out = proc.stdout.decode("utf-8", "replace")
        return parse_date_token(out, f"{self.host}:{path}")
