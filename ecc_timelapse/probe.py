"""Capability probing and transport selection."""

from __future__ import annotations

import enum
import logging
import shutil
from dataclasses import dataclass


class Transport(str, enum.Enum):
    RSYNC = "rsync"
    TAR = "tar"
    SCP = "scp"


@dataclass(frozen=True, slots=True)
class Capabilities:
    rsync_local: bool = False
    rsync_remote: bool = False
    tar_local: bool = False
    tar_remote: bool = False
    # diagnostic only; folder dates come from `ls --full-time`
    stat_mtime_epoch: bool = False
    probed: bool = True


def local_has(tool: str) -> bool:
    return shutil.which(tool) is not None


def guess_local_capabilities() -> Capabilities:
    """Best local guess used when the remote must not be contacted."""

    rsync = local_has("rsync")
    tar = local_has("tar")
    return Capabilities(
        rsync_local=rsync,
        rsync_remote=rsync,
        tar_local=tar,
        tar_remote=tar,
        stat_mtime_epoch=False,
        probed=False,
    )


def probe_capabilities(remote) -> Capabilities:
    """Check which transfer tools exist on both ends.

    The remote base directory must exist; the individual tool checks never
    fail the run and simply report the tool as unavailable.
    """

    if remote.runner.dry_run:
        return guess_local_capabilities()

    remote.require_dir(remote.remote_dir)
    caps = Capabilities(
        rsync_local=local_has("rsync"),
        rsync_remote=remote.has_command("rsync"),
        tar_local=local_has("tar"),
        tar_remote=remote.has_command("tar"),
        stat_mtime_epoch=remote.supports_stat_mtime_epoch(remote.remote_dir),
    )
    logging.debug(
        "remote probe: rsync(local=%d,remote=%d) tar(local=%d,remote=%d) stat_mtime_epoch=%d",
        caps.rsync_local,
        caps.rsync_remote,
        caps.tar_local,
        caps.tar_remote,
        caps.stat_mtime_epoch,
    )
    return caps


def select_transport(caps: Capabilities) -> Transport:
    if caps.rsync_local and caps.rsync_remote:
        return Transport.RSYNC
    if caps.tar_local and caps.tar_remote:
        return Transport.TAR
    return Transport.SCP
