"""Frame enumeration and the contiguous scratch sequence fed to ffmpeg."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

FRAME_PREFIX = "tlp_layer_"
SCRATCH_EXT = ".jpg"


def frame_index(name: str) -> int | None:
    """Return the integer index of ``tlp_layer_<n>[.ext]`` or ``None``."""

    if not name.startswith(FRAME_PREFIX):
        return None
    stem = name.rsplit("_", 1)[-1]
    if "." in stem:
        stem = stem.split(".", 1)[0]
    if not stem.isascii() or not stem.isdigit():
        return None
    return int(stem)


def enumerate_frames(frames_dir: Path | str) -> list[Path]:
    """Absolute frame paths ordered by numeric index.

    Files whose suffix is not a non-negative integer are ignored.  When two
    files share an index, the later one in name order wins.
    """

    by_index: dict[int, Path] = {}
    for entry in sorted(os.listdir(frames_dir)):
        index = frame_index(entry)
        if index is None:
            continue
        path = Path(frames_dir, entry)
        if not path.is_file():
            continue
        by_index[index] = path.resolve()
    return [by_index[i] for i in sorted(by_index)]


def scratch_name(position: int) -> str:
    return f"{position:06d}{SCRATCH_EXT}"


def scratch_pattern(workdir: Path | str) -> str:
    return os.path.join(str(workdir), f"%06d{SCRATCH_EXT}")


def link_frames(frames: list[Path], workdir: Path) -> str:
    """Expose *frames* as ``000001.jpg``, ``000002.jpg``... under *workdir*.

    Symlinks are used when the filesystem allows them, then hard links, then
    copies.  Returns the ffmpeg input pattern.
    """

    for position, src in enumerate(frames, start=1):
        dst = workdir / scratch_name(position)
        try:
            os.symlink(src, dst)
            continue
        except OSError as exc:
            logging.debug("symlink failed for %s: %s", src, exc)
        try:
            os.link(src, dst)
        except OSError:
            shutil.copy2(src, dst)
    return scratch_pattern(workdir)
