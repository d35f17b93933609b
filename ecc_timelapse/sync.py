"""Sync print folders from the device into ``incoming/``."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from .naming import validate_print_folder_name
from .remote import SKIPPED
from .runner import PROG


def skip_notice(name: str) -> None:
    print(f"{PROG}: SKIP already-rendered: {name}", file=sys.stderr)


def local_folders(incoming_dir) -> list[str]:
    if not incoming_dir.is_dir():
        return []
    return sorted(p.name for p in incoming_dir.iterdir() if p.is_dir())


class SyncEngine:
    def __init__(self, config, remote, transferer, manifest, runner) -> None:
        self.config = config
        self.remote = remote
        self.transferer = transferer
        self.manifest = manifest
        self.runner = runner

    def targets(self, only: Optional[str]) -> Optional[list[str]]:
        if only:
            return [validate_print_folder_name(only)]
        listing = self.remote.list_print_dirs()
        if listing is SKIPPED:
            return None
        return list(listing)

    def sync(self, only: Optional[str] = None) -> list[str]:
        """Transfer every unprocessed target; returns the names transferred."""

        if only and self.manifest.is_processed(only):
            skip_notice(only)
            return []

        targets = self.targets(only)
        if targets is None:
            self.runner.note(
                "would list remote per-print directories from "
                f"{self.config.host}:{self.config.remote_dir}"
            )
            self.runner.note(f"example: {self.transferer.example()}")
            self.runner.note(
                "tip: pass --print <remote-folder> to show an exact per-folder sync command"
            )
            return []

        transferred: list[str] = []
        if not targets:
            logging.info("no remote print directories found")
        for name in targets:
            validate_print_folder_name(name)
            if self.manifest.is_processed(name):
                skip_notice(name)
                continue
            logging.info("sync: %s", name)
            if self.transferer.transfer(name):
                transferred.append(name)

        self.update_manifest(only)
        return transferred

    def update_manifest(self, only: Optional[str]) -> None:
        if self.runner.dry_run:
            logging.info("dry-run: skip manifest update")
            return
        names = [only] if only else local_folders(self.config.incoming_dir)
        for name in names:
            self.manifest.refresh(name, self.remote.folder_date(name))
