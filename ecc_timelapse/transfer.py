"""Copy one print folder from the device into ``incoming/``."""

from __future__ import annotations

import logging
import shlex

from .config import Config
from .errors import TransferError
from .naming import validate_print_folder_name
from .probe import Transport
from .remote import Remote, sh_command, ssh_base
from .runner import format_command

TAR_SCRIPT = 'cd -- "$1"; tar -cf - -- "$2"'


class Transferer:
    transport: Transport
    # Whether an existing local folder means there is nothing to fetch.
    skip_existing = True

    def __init__(self, config: Config, remote: Remote, runner) -> None:
        self.config = config
        self.remote = remote
        self.runner = runner

    def dest_dir(self, name: str):
        return self.config.incoming_dir / validate_print_folder_name(name)

    def transfer(self, name: str) -> bool:
        """Fetch *name*; returns False when skipped because it exists locally."""

        dest = self.dest_dir(name)
        if self.skip_existing and dest.is_dir() and not self.config.force:
            logging.info("skip (local exists): %s", dest)
            return False
        self._transfer(name)
        return True

    def _transfer(self, name: str) -> None:
        raise NotImplementedError

    def example(self) -> str:
        raise NotImplementedError

    def _fail(self, name: str, status: int) -> None:
        raise TransferError(
            f"{self.transport.value} failed for {self.remote.host}:"
            f"{self.remote.folder_path(name)} (exit {status})"
        )


class RsyncTransferer(Transferer):
    """Incremental copy; always runs and resumes partial files."""

    transport = Transport.RSYNC
    skip_existing = False

    def command(self, name: str) -> list[str]:
        src = self.remote.remote_arg(self.remote.folder_path(name) + "/")
        cmd = ["rsync", "-rlt", "--no-owner", "--no-group", "--partial"]
        if self.config.verbose:
            cmd += ["-v", "--stats"]
        return cmd + ["--", src, f"{self.dest_dir(name)}/"]

    def _transfer(self, name: str) -> None:
        self.runner.makedirs(self.dest_dir(name))
        status = self.runner.run(self.command(name))
        if status != 0:
            self._fail(name, status)

    def example(self) -> str:
        return (
            f'rsync -rlt --no-owner --no-group --partial -- '
            f'"{self.config.host}:{self.config.remote_dir}/<print-folder>/" '
            f'"{self.config.incoming_dir}/<print-folder>/"'
        )


class TarTransferer(Transferer):
    """Streams the whole folder through ``ssh ... tar -cf - | tar -xf -``."""

    transport = Transport.TAR

    def commands(self, name: str) -> tuple[list[str], list[str]]:
        validate_print_folder_name(name)
        producer = ssh_base(self.config.host) + [
            sh_command(TAR_SCRIPT, self.config.remote_dir, name)
        ]
        consumer = ["tar", "-xf", "-", "-C", str(self.config.incoming_dir)]
        return producer, consumer

    def _transfer(self, name: str) -> None:
        self.runner.makedirs(self.config.incoming_dir)
        producer, consumer = self.commands(name)
        ssh_status, tar_status = self.runner.pipe(producer, consumer)
        if ssh_status != 0:
            self._fail(name, ssh_status)
        if tar_status != 0:
            self._fail(name, tar_status)

    def example(self) -> str:
        remote_cmd = (
            f"sh -eu -c {shlex.quote(TAR_SCRIPT)} _ "
            f"{shlex.quote(self.config.remote_dir)} <print-folder>"
        )
        producer = format_command(ssh_base(self.config.host) + [remote_cmd])
        return f'{producer} | tar -xf - -C "{self.config.incoming_dir}"'


class ScpTransferer(Transferer):
    """Plain recursive copy; the fallback when neither end has rsync or tar."""

    transport = Transport.SCP

    def command(self, name: str) -> list[str]:
        src = self.remote.remote_arg(self.remote.folder_path(name))
        return ["scp", "-p", "-r", src, f"{self.config.incoming_dir}/"]

    def _transfer(self, name: str) -> None:
        self.runner.makedirs(self.config.incoming_dir)
        status = self.runner.run(self.command(name))
        if status != 0:
            self._fail(name, status)

    def example(self) -> str:
        return (
            f'scp -p -r "{self.config.host}:{self.config.remote_dir}/<print-folder>" '
            f'"{self.config.incoming_dir}/"'
        )


TRANSFERERS = {
    Transport.RSYNC: RsyncTransferer,
    Transport.TAR: TarTransferer,
    Transport.SCP: ScpTransferer,
}


def make_transferer(transport: Transport, config: Config, remote: Remote, runner) -> Transferer:
    return TRANSFERERS[transport](config, remote, runner)
