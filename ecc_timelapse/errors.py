"""Error types raised by the timelapse pipeline.

Every failure carries the process exit status the command line reports for it,
so callers only need to catch :class:`TimelapseError`.
"""

from __future__ import annotations

EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_LOCKED = 3


class TimelapseError(Exception):
    """Base class for pipeline failures."""

    exit_code = EXIT_FAILURE


class UsageError(TimelapseError):
    """Invalid folder name, argument combination or input directory."""

    exit_code = EXIT_USAGE


class LockHeldError(TimelapseError):
    """Another run already holds the state lock."""

    exit_code = EXIT_LOCKED

    def __init__(self, lock_dir: str, owner: dict[str, str] | None = None) -> None:
        self.lock_dir = lock_dir
        self.owner = dict(owner or {})
        msg = f"another run is already in progress (lock exists: {lock_dir})"
        for key in ("pid", "started_at_utc", "mode"):
            value = self.owner.get(key)
            if value:
                msg += f" {key}={value}"
        age = self.owner.get("age")
        if age:
            msg += f" age={age}"
        super().__init__(msg)


class RemoteError(TimelapseError):
    """ssh failure, missing remote directory or failed remote command."""


class DateError(RemoteError):
    """A derived date did not match YYYY-MM-DD."""


class LaunchError(TimelapseError):
    """An external tool could not be started at all."""


class TransferError(TimelapseError):
    """The selected transfer tool exited non-zero."""


class RenderError(TimelapseError):
    """Encoding failed or produced an output that does not validate."""


class PruneGuardError(TimelapseError):
    """A prune target failed one of the safety checks."""
