"""Derive the YYYY-MM-DD prefix used in output names.

Remote folders are dated from ``ls --full-time`` (birth time when the remote
``ls`` supports ``--time=birth``, modification time otherwise).  Only the
fixed-position date field is printed remotely, so folder names containing
spaces never shift the parsed columns.  Local folders are dated from their
modification time.
"""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

from dateutil import parser as dateparser

from .errors import DateError, UsageError
from .naming import DATE_RE

# $1 is the remote folder path.  The read loop keeps the date column and
# discards the trailing name.
REMOTE_DATE_SCRIPT = (
    'd="$1"; '
    '{ ls -ld --full-time --time=birth -- "$d" 2>/dev/null || ls -ld --full-time -- "$d"; } '
    '| while IFS=" " read -r perm links owner group size date time tz rest; '
    'do printf "%s\\n" "$date"; done'
)


def parse_date_token(output: str, where: str) -> str:
    """Validate the first line of *output* as a calendar date."""

    token = (output or "").split("\n", 1)[0].strip()
    if not DATE_RE.fullmatch(token):
        raise DateError(
            f"failed to derive remote date (expected YYYY-MM-DD) for {where} (got: {token!r})"
        )
    try:
        dateparser.isoparse(token)
    except ValueError:
        raise DateError(
            f"failed to derive remote date (not a calendar date) for {where} (got: {token!r})"
        ) from None
    return token


def local_dir_date(path: Path | str) -> str:
    """Return the local modification date of directory *path*."""

    if not os.path.isdir(path):
        raise UsageError(f"not a directory: {path}")
    try:
        epoch = int(os.stat(path).st_mtime)
    except OSError as exc:
        raise UsageError(f"failed to stat mtime for: {path}: {exc}") from exc
    out = datetime.fromtimestamp(epoch).strftime("%Y-%m-%d")
    if not DATE_RE.fullmatch(out):
        raise DateError(f"invalid local derived date for: {path} (got: {out!r})")
    return out
