"""Guarded deletion of rendered print folders under ``incoming/``."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .errors import PruneGuardError


def safe_prune(path: Path | str, incoming_root: Path | str, runner) -> Path:
    """Remove *path* if it is a directory strictly inside *incoming_root*.

    Both paths are resolved at call time.  Any failed check raises
    :class:`PruneGuardError`; nothing is deleted in that case.
    """

    if not str(path):
        raise PruneGuardError("refuse to prune empty path")
    if not os.path.isdir(path):
        raise PruneGuardError(f"refuse to prune (not a directory): {path}")

    incoming_abs = Path(os.path.realpath(incoming_root))
    dir_abs = Path(os.path.realpath(path))
    root = Path(dir_abs.anchor or "/")

    if dir_abs == root:
        raise PruneGuardError("refuse to prune root directory")
    if incoming_abs == Path(incoming_abs.anchor or "/"):
        raise PruneGuardError("internal: incoming dir resolved to root (unsafe)")
    if dir_abs == incoming_abs:
        raise PruneGuardError(f"refuse to prune incoming root: {dir_abs}")
    if incoming_abs not in dir_abs.parents:
        raise PruneGuardError(
            f"refuse to prune outside incoming dir: {dir_abs} (incoming={incoming_abs})"
        )

    logging.debug("prune: %s", dir_abs)
    runner.rmtree(dir_abs)
    return dir_abs
