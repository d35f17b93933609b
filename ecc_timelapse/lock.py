"""Single-run lock under ``state/lock``.

The lock is a directory: ``mkdir`` either creates it or fails because it
exists, which makes acquisition atomic.  ``meta.tsv`` inside it records who
holds it.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from dateutil import parser as dateparser

from .errors import LockHeldError
from .manifest import now_utc_iso, read_tsv

LOCK_NAME = "lock"
META_NAME = "meta.tsv"


def _format_age(started_at: str) -> str:
    try:
        started = dateparser.isoparse(started_at)
    except (ValueError, OverflowError):
        return ""
    if started.tzinfo is None:
        started = started.replace(tzinfo=timezone.utc)
    seconds = int((datetime.now(timezone.utc) - started).total_seconds())
    if seconds < 0:
        return ""
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours}h{minutes:02d}m{secs:02d}s"


def read_owner(meta_path: Path) -> dict[str, str]:
    try:
        owner = read_tsv(meta_path)
    except OSError:
        return {}
    age = _format_age(owner.get("started_at_utc", ""))
    if age:
        owner["age"] = age
    return owner


class RunLock:
    def __init__(self, state_dir: Path, mode: str, argv: Sequence[str] = ()) -> None:
        self.state_dir = Path(state_dir)
        self.mode = mode
        self.argv = list(argv)
        self.acquired = False

    @property
    def lock_dir(self) -> Path:
        return self.state_dir / LOCK_NAME

    @property
    def meta_path(self) -> Path:
        return self.lock_dir / META_NAME

    def acquire(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        try:
            os.mkdir(self.lock_dir)
        except FileExistsError:
            raise LockHeldError(str(self.lock_dir), read_owner(self.meta_path)) from None
        self.acquired = True
        meta = (
            f"pid\t{os.getpid()}\n"
            f"started_at_utc\t{now_utc_iso()}\n"
            f"mode\t{self.mode}\n"
            f"argv\t{shlex.join(self.argv)}\n"
        )
        self.meta_path.write_text(meta, encoding="utf-8")
        logging.debug("lock acquired: %s", self.lock_dir)

    def release(self) -> None:
        if not self.acquired:
            return
        shutil.rmtree(self.lock_dir, ignore_errors=True)
        self.acquired = False
        logging.debug("lock released: %s", self.lock_dir)

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
