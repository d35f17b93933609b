"""Per print folder state records.

Each folder gets one ``<sha256>.tsv`` file under ``state/manifest``, written as
``key<TAB>value`` lines.  Records are rewritten wholesale through a temporary
file and ``os.replace`` so readers never see a partial record.
"""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .naming import output_filename, validate_print_folder_name

FIELDS = (
    "remote_folder",
    "derived_date",
    "output_filename",
    "processed",
    "updated_at_utc",
)


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def manifest_key(name: str) -> str:
    return hashlib.sha256(name.encode("utf-8", "surrogateescape")).hexdigest()


@dataclass(frozen=True, slots=True)
class ManifestRecord:
    remote_folder: str
    derived_date: str
    output_filename: str
    processed: bool = False
    updated_at: str = ""

    def same_state(self, other: "ManifestRecord") -> bool:
        return (
            self.remote_folder == other.remote_folder
            and self.derived_date == other.derived_date
            and self.output_filename == other.output_filename
            and self.processed == other.processed
        )

    def to_tsv(self) -> str:
        values = (
            self.remote_folder,
            self.derived_date,
            self.output_filename,
            "1" if self.processed else "0",
            self.updated_at,
        )
        return "".join(f"{k}\t{v}\n" for k, v in zip(FIELDS, values))


def read_tsv(path: Path | str) -> dict[str, str]:
    """Parse a ``key<TAB>value`` file; the first occurrence of a key wins."""

    values: dict[str, str] = {}
    with open(path, "r", encoding="utf-8", errors="surrogateescape") as fh:
        for line in fh:
            line = line.rstrip("\n")
            key, sep, value = line.partition("\t")
            if not sep or key in values:
                continue
            values[key] = value
    return values


class ManifestStore:
    def __init__(self, manifest_dir: Path, output_dir: Path, validator) -> None:
        self.manifest_dir = Path(manifest_dir)
        self.output_dir = Path(output_dir)
        self.validator = validator

    def path_for(self, name: str) -> Path:
        validate_print_folder_name(name)
        return self.manifest_dir / f"{manifest_key(name)}.tsv"

    def get(self, name: str) -> Optional[ManifestRecord]:
        path = self.path_for(name)
        try:
            values = read_tsv(path)
        except FileNotFoundError:
            return None
        except OSError as exc:
            logging.warning("unreadable manifest %s: %s", path, exc)
            return None
        return ManifestRecord(
            remote_folder=values.get("remote_folder", name),
            derived_date=values.get("derived_date", ""),
            output_filename=values.get("output_filename", ""),
            processed=values.get("processed") == "1",
            updated_at=values.get("updated_at_utc", ""),
        )

    def upsert(self, record: ManifestRecord) -> bool:
        """Write *record* unless the stored one already matches it."""

        path = self.path_for(record.remote_folder)
        existing = self.get(record.remote_folder)
        if existing is not None and existing.same_state(record):
            logging.info("manifest: up-to-date for %s", record.remote_folder)
            return False

        stamped = replace(record, updated_at=now_utc_iso())
        self.manifest_dir.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f"{path.name}.tmp.{os.getpid()}")
        try:
            with open(tmp, "w", encoding="utf-8", errors="surrogateescape") as fh:
                fh.write(stamped.to_tsv())
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, path)
        finally:
            if tmp.exists():
                tmp.unlink()
        logging.info("manifest: upsert %s (processed=%d)", path, stamped.processed)
        return True

    def output_path(self, record: ManifestRecord) -> Path:
        return self.output_dir / record.output_filename

    def is_processed(self, name: str) -> bool:
        """True only if the record says processed and the output still validates."""

        record = self.get(name)
        if record is None or not record.processed or not record.output_filename:
            return False
        return self.validator.is_valid(self.output_path(record))

    def refresh(self, name: str, derived_date: str) -> ManifestRecord:
        """Recompute the record for *name* from the output on disk."""

        out_name = output_filename(derived_date, name)
        record = ManifestRecord(
            remote_folder=name,
            derived_date=derived_date,
            output_filename=out_name,
            processed=self.validator.is_valid(self.output_dir / out_name),
        )
        self.upsert(record)
        return record
