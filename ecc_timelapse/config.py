"""Run configuration and the local directory layout."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .errors import UsageError

DEFAULT_HOST = "elegoo"
DEFAULT_REMOTE_DIR = "/user-resource/aic_tlp"
DEFAULT_FRAMERATE = 30
DEFAULT_BASE_DIR = "./ecc"

OUTPUT_EXT = ".mp4"
SSH_CONNECT_TIMEOUT = 10


@dataclass(frozen=True, slots=True)
class Config:
    """Everything a run needs, built once at startup."""

    host: str
    remote_dir: str
    base_dir: Path
    framerate: int = DEFAULT_FRAMERATE
    dry_run: bool = False
    force: bool = False
    keep_frames: bool = False
    verbose: int = 0

    @property
    def incoming_dir(self) -> Path:
        return self.base_dir / "incoming"

    @property
    def output_dir(self) -> Path:
        return self.base_dir / "output"

    @property
    def state_dir(self) -> Path:
        return self.base_dir / "state"

    @property
    def manifest_dir(self) -> Path:
        return self.state_dir / "manifest"

    @property
    def logs_dir(self) -> Path:
        return self.base_dir / "logs"

    @property
    def work_dir(self) -> Path:
        return self.base_dir / "work"

    def layout(self) -> list[tuple[str, Path]]:
        return [
            ("base_dir", self.base_dir),
            ("incoming", self.incoming_dir),
            ("output", self.output_dir),
            ("state", self.state_dir),
            ("manifest", self.manifest_dir),
            ("logs", self.logs_dir),
            ("work", self.work_dir),
        ]


def parse_framerate(value: str) -> int:
    try:
        rate = int(value)
    except (TypeError, ValueError):
        raise UsageError(f"invalid FRAMERATE: {value!r}") from None
    if rate <= 0:
        raise UsageError(f"FRAMERATE must be positive: {value!r}")
    return rate


def config_from_env(
    environ: Mapping[str, str] | None = None, **overrides: object
) -> Config:
    """Build a :class:`Config` from ``ECC_*`` environment variables.

    Keyword ``overrides`` (the command-line flags) take precedence.
    """

    env = os.environ if environ is None else environ
    values: dict[str, object] = {
        "host": env.get("ECC_HOST") or DEFAULT_HOST,
        "remote_dir": env.get("ECC_REMOTE_DIR") or DEFAULT_REMOTE_DIR,
        "base_dir": Path(env.get("ECC_BASE_DIR") or DEFAULT_BASE_DIR),
        "framerate": parse_framerate(env.get("FRAMERATE") or str(DEFAULT_FRAMERATE)),
    }
    values.update(overrides)
    return Config(**values)  # type: ignore[arg-type]


def ensure_layout(config: Config, runner) -> None:
    for _label, path in config.layout():
        runner.makedirs(path)
