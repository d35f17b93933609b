"""Print folder names and the output names derived from them."""

from __future__ import annotations

import re

from .config import OUTPUT_EXT
from .errors import UsageError

DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


def validate_print_folder_name(name: str) -> str:
    """Return *name* unchanged if it is a usable print folder name."""

    if not name:
        raise UsageError("print folder name is empty")
    if name in (".", ".."):
        raise UsageError(f"invalid print folder name: {name}")
    if "\0" in name:
        raise UsageError("invalid print folder name (NUL byte)")
    if "/" in name:
        raise UsageError(f"invalid print folder name (contains '/'): {name}")
    return name


def output_filename(derived_date: str, name: str) -> str:
    validate_print_folder_name(name)
    if not DATE_RE.fullmatch(derived_date or ""):
        raise UsageError(f"invalid derived date: {derived_date}")
    return f"{derived_date}_{name}{OUTPUT_EXT}"
