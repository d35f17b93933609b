"""Render frame folders to mp4 and publish them atomically.

A render links the frames into a contiguous ``%06d.jpg`` sequence inside a
scratch directory, encodes to a hidden temporary file next to the final
output, validates it, and only then renames it into place.  The scratch
directory and an unpublished temporary file are removed on every exit path.
"""

from __future__ import annotations

import enum
import logging
import os
import shutil
import tempfile
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .dates import local_dir_date
from .errors import LaunchError, RenderError, UsageError
from .frames import enumerate_frames, link_frames
from .media import even_pad_filter
from .naming import output_filename, validate_print_folder_name
from .prune import safe_prune
from .sync import local_folders, skip_notice


class RenderState(str, enum.Enum):
    PENDING = "pending"
    RENDERING = "rendering"
    VALIDATED = "validated"
    PUBLISHED = "published"
    SKIPPED = "skipped"


@dataclass
class RenderSummary:
    published: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    pruned: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class RenderEngine:
    def __init__(self, config, remote, manifest, encoder, validator, runner) -> None:
        self.config = config
        self.remote = remote
        self.manifest = manifest
        self.encoder = encoder
        self.validator = validator
        self.runner = runner

    def render_folder(self, frames_dir: Path, output_path: Path) -> RenderState:
        if not frames_dir.is_dir():
            raise RenderError(f"frames dir not found: {frames_dir}")

        if self.validator.is_valid(output_path):
            logging.info("render: skip (valid output exists): %s", output_path)
            return RenderState.PUBLISHED

        frames = enumerate_frames(frames_dir)
        if not frames:
            logging.info("render: skip (no tlp_layer_<n> frames): %s", frames_dir)
            return RenderState.SKIPPED

        self.runner.makedirs(self.config.work_dir)
        self.runner.makedirs(output_path.parent)

        if self.runner.dry_run:
            self.runner.note(f"would render {len(frames)} frames from {frames_dir}")
            self.runner.note(
                f"would write output to {output_path} (atomic temp then mv)"
            )
            return RenderState.PENDING

        if not self.encoder.ffmpeg:
            raise RenderError("ffmpeg not found")
        return self._encode_and_publish(frames, output_path)

    def _encode_and_publish(self, frames: list[Path], output_path: Path) -> RenderState:
        try:
            workdir = Path(tempfile.mkdtemp(prefix="render.", dir=self.config.work_dir))
        except OSError as exc:
            raise RenderError(f"cannot create scratch dir in {self.config.work_dir}: {exc}") from exc
        tmp_out: Optional[Path] = None
        published = False
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{output_path.name}.tmp.", suffix=".mp4", dir=output_path.parent
            )
            os.close(fd)
            tmp_out = Path(tmp_name)

            pattern = link_frames(frames, workdir)
            logging.debug("render: %s %s", RenderState.RENDERING.value, output_path.name)
            logging.info("render: %d frames -> %s", len(frames), tmp_out)
            status = self.encoder.encode(
                pattern, tmp_out, self.config.framerate, even_pad_filter(frames[0])
            )
            if status != 0:
                raise RenderError(f"ffmpeg exited {status} while rendering {output_path}")

            if not self.validator.is_valid(tmp_out):
                raise RenderError(f"render produced invalid mp4 (ffprobe failed): {tmp_out}")
            logging.debug("render: %s %s", RenderState.VALIDATED.value, tmp_out.name)

            os.replace(tmp_out, output_path)
            published = True
            if not self.validator.is_valid(output_path):
                raise RenderError(f"render output failed ffprobe after move: {output_path}")
        except (OSError, LaunchError) as exc:
            raise RenderError(f"render failed for {output_path}: {exc}") from exc
        finally:
            shutil.rmtree(workdir, ignore_errors=True)
            if tmp_out is not None and not published:
                with suppress(FileNotFoundError):
                    tmp_out.unlink()
        return RenderState.PUBLISHED

    def _prune(self, frames_dir: Path, summary: RenderSummary, name: str) -> None:
        if self.config.keep_frames or not frames_dir.is_dir():
            return
        safe_prune(frames_dir, self.config.incoming_dir, self.runner)
        summary.pruned.append(name)

    def render_all(self, only: Optional[str] = None) -> RenderSummary:
        """Render local folders under ``incoming/`` (or just *only*).

        A failed render is recorded and the loop moves on to the next folder.
        """

        summary = RenderSummary()
        names = [only] if only else local_folders(self.config.incoming_dir)
        if not names:
            logging.info(
                "render: no local print directories found under %s",
                self.config.incoming_dir,
            )

        for name in names:
            validate_print_folder_name(name)
            frames_dir = self.config.incoming_dir / name

            if self.manifest.is_processed(name):
                skip_notice(name)
                summary.skipped.append(name)
                self._prune(frames_dir, summary, name)
                continue

            if not frames_dir.is_dir():
                logging.info("render: skip (missing local dir): %s", frames_dir)
                summary.skipped.append(name)
                continue

            if self.runner.dry_run:
                # no remote access in dry-run; local mtime gives a placeholder
                derived_date = local_dir_date(frames_dir)
            else:
                derived_date = self.remote.folder_date(name)
            output_path = self.config.output_dir / output_filename(derived_date, name)

            logging.info("render: %s -> %s", name, output_path)
            try:
                state = self.render_folder(frames_dir, output_path)
            except RenderError as exc:
                logging.error("render failed for %s: %s", name, exc)
                summary.failed.append(name)
                continue

            if self.runner.dry_run:
                if state is RenderState.PENDING or self.validator.is_valid(output_path):
                    self._prune(frames_dir, summary, name)
                continue

            if self.validator.is_valid(output_path):
                self.manifest.refresh(name, derived_date)
                summary.published.append(name)
                self._prune(frames_dir, summary, name)
            else:
                logging.info(
                    "render: skip prune/manifest (output not valid): %s", output_path
                )
                summary.skipped.append(name)
        return summary

    def render_input(self, input_dir: Path | str) -> RenderState:
        """Render an arbitrary local directory, dated by its mtime."""

        if not os.path.isdir(input_dir):
            raise UsageError(f"--input is not a directory: {input_dir}")
        local_folder = Path(os.path.realpath(input_dir))
        name = validate_print_folder_name(local_folder.name)
        derived_date = local_dir_date(local_folder)
        output_path = self.config.output_dir / output_filename(derived_date, name)
        logging.info("render: input=%s output=%s", local_folder, output_path)
        return self.render_folder(local_folder, output_path)
