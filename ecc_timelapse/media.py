"""ffmpeg encoder and ffprobe validator."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from PIL import Image

FFMPEG_FALLBACKS = ("/opt/homebrew/bin/ffmpeg", "/usr/local/bin/ffmpeg")
FFPROBE_TIMEOUT = 30

FFMPEG_OUTPUT_FLAGS = [
    "-c:v",
    "libx264",
    "-pix_fmt",
    "yuv420p",
    "-movflags",
    "+faststart",
]


def pick_ffmpeg() -> Optional[str]:
    if shutil.which("ffmpeg"):
        return "ffmpeg"
    for candidate in FFMPEG_FALLBACKS:
        if os.access(candidate, os.X_OK):
            return candidate
    return None


def _parse_duration(text: str) -> Optional[float]:
    value = text.strip().splitlines()[0].strip() if text.strip() else ""
    try:
        duration = float(value)
    except ValueError:
        return None
    return duration if duration > 0 else None


class FfprobeValidator:
    """A file is valid when ffprobe reports a positive container duration."""

    def __init__(self, ffprobe: str = "ffprobe", timeout: float = FFPROBE_TIMEOUT) -> None:
        self.ffprobe = ffprobe
        self.timeout = timeout

    def duration(self, path: Path | str) -> Optional[float]:
        if not os.path.isfile(path):
            return None
        cmd = [
            self.ffprobe,
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            "--",
            str(path),
        ]
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logging.debug("ffprobe TIMEOUT (%ss): %s", self.timeout, path)
            return None
        except OSError as exc:
            logging.debug("ffprobe unavailable for %s: %s", path, exc)
            return None
        if proc.returncode != 0:
            logging.debug("ffprobe exited %s for %s", proc.returncode, path)
            return None
        return _parse_duration(proc.stdout)

    def is_valid(self, path: Path | str) -> bool:
        return self.duration(path) is not None


def even_pad_filter(first_frame: Path | str) -> Optional[str]:
    """Pad filter rounding odd frame dimensions up to even ones.

    ``yuv420p`` needs even width and height; returns ``None`` when the frame
    already fits or cannot be read.
    """

    try:
        with Image.open(first_frame) as img:
            width, height = img.size
    except (OSError, ValueError) as exc:
        logging.debug("cannot read frame size from %s: %s", first_frame, exc)
        return None
    if width % 2 == 0 and height % 2 == 0:
        return None
    return f"pad={width + width % 2}:{height + height % 2}:0:0"


class FfmpegEncoder:
    def __init__(self, runner, ffmpeg: Optional[str] = None) -> None:
        self.runner = runner
        self.ffmpeg = ffmpeg

    def command(
        self,
        pattern: str,
        output: Path | str,
        framerate: int,
        video_filter: Optional[str] = None,
    ) -> list[str]:
        cmd = [
            self.ffmpeg or "ffmpeg",
            "-hide_banner",
            "-y",
            "-framerate",
            str(framerate),
            "-i",
            pattern,
        ]
        if video_filter:
            cmd += ["-vf", video_filter]
        cmd += FFMPEG_OUTPUT_FLAGS
        cmd.append(str(output))
        return cmd

    def encode(
        self,
        pattern: str,
        output: Path | str,
        framerate: int,
        video_filter: Optional[str] = None,
    ) -> int:
        return self.runner.run(self.command(pattern, output, framerate, video_filter))

