"""Command line entry point for the ECC timelapse pipeline."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from contextlib import ExitStack
from functools import cached_property
from typing import Optional, Sequence

from .config import Config, config_from_env, ensure_layout
from .errors import EXIT_FAILURE, LockHeldError, TimelapseError, UsageError
from .lock import RunLock
from .manifest import ManifestStore
from .media import FfmpegEncoder, FfprobeValidator, pick_ffmpeg
from .naming import output_filename, validate_print_folder_name
from .probe import Capabilities, Transport, probe_capabilities, select_transport
from .remote import SKIPPED, Remote
from .render import RenderEngine
from .runner import PROG, CommandRunner, DryRunRunner
from .sync import SyncEngine, local_folders
from .transfer import make_transferer

DESCRIPTION = "Sync per-print timelapse frames from the printer and render them to mp4."

EPILOG = """\
Local layout (under $ECC_BASE_DIR, default ./ecc):
  incoming/  synced frames, one folder per print
  output/    rendered mp4s
  state/     run lock and manifest records
  logs/      logs
  work/      scratch space for renders

Environment variables (defaults shown):
  ECC_HOST=elegoo
  ECC_REMOTE_DIR=/user-resource/aic_tlp
  FRAMERATE=30

Default (no mode flag): runs sync then render.  --input implies --render-only.
"""


class Pipeline:
    """Components for one invocation, built from a single :class:`Config`."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.runner = DryRunRunner() if config.dry_run else CommandRunner()
        self.remote = Remote(config, self.runner)
        self.validator = FfprobeValidator()
        self.manifest = ManifestStore(config.manifest_dir, config.output_dir, self.validator)
        self.encoder = FfmpegEncoder(self.runner, pick_ffmpeg())

    @cached_property
    def capabilities(self) -> Capabilities:
        return probe_capabilities(self.remote)

    @cached_property
    def transport(self) -> Transport:
        return select_transport(self.capabilities)

    def log_transport(self) -> None:
        note = "" if self.capabilities.probed else " (remote probe skipped, local guess)"
        logging.info("transport=%s%s", self.transport.value, note)

    @cached_property
    def sync_engine(self) -> SyncEngine:
        self.log_transport()
        transferer = make_transferer(self.transport, self.config, self.remote, self.runner)
        return SyncEngine(self.config, self.remote, transferer, self.manifest, self.runner)

    @cached_property
    def render_engine(self) -> RenderEngine:
        return RenderEngine(
            self.config,
            self.remote,
            self.manifest,
            self.encoder,
            self.validator,
            self.runner,
        )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog=PROG,
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ap.add_argument(
        "--dry-run",
        action="store_true",
        help="Print what would be done; no remote access, no changes.",
    )
    ap.add_argument(
        "--keep-frames",
        action="store_true",
        help="Do not delete incoming/<print-folder>/ after a successful render.",
    )
    ap.add_argument(
        "--force",
        action="store_true",
        help="Re-fetch folders that already exist locally (tar/scp transports).",
    )
    ap.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v, -vv).",
    )
    ap.add_argument(
        "--list-remote",
        action="store_true",
        help="Print remote per-print directory names (one per line).",
    )
    ap.add_argument(
        "--print",
        dest="print_folder",
        metavar="FOLDER",
        help="Show resolved paths and output naming for a folder; limits sync/render to it.",
    )
    ap.add_argument(
        "--print-one",
        action="store_true",
        help="Pick one folder and show its resolved naming.",
    )
    mode = ap.add_mutually_exclusive_group()
    mode.add_argument(
        "--sync-only",
        dest="mode",
        action="store_const",
        const="sync",
        help="Sync remote -> incoming/ only.",
    )
    mode.add_argument(
        "--render-only",
        dest="mode",
        action="store_const",
        const="render",
        help="Render incoming/ into output/ only.",
    )
    ap.add_argument(
        "--input",
        dest="input_dir",
        metavar="DIR",
        help="Render a single local directory (no ssh); implies --render-only.",
    )
    return ap


def resolve_mode(args: argparse.Namespace) -> str:
    if args.mode:
        return args.mode
    if args.input_dir:
        return "render"
    if not (args.list_remote or args.print_folder or args.print_one):
        return "both"
    return ""


def check_args(args: argparse.Namespace, mode: str) -> None:
    if args.print_folder is not None:
        validate_print_folder_name(args.print_folder)
    if args.print_folder and args.print_one:
        raise UsageError("only one of --print or --print-one allowed")
    if args.input_dir and (args.print_folder or args.print_one):
        raise UsageError(
            "--input cannot be combined with --print/--print-one (it renders exactly one local directory)"
        )
    if args.input_dir and mode == "sync":
        raise UsageError("--input cannot be combined with --sync-only")
    if args.print_one and not mode and args.dry_run:
        raise UsageError("--print-one is not available in --dry-run (requires remote listing)")


def print_paths(config: Config, name: str) -> None:
    print("Resolved paths:")
    for label, path in config.layout():
        print(f"  {label + ':':<11} {path}")
    print("Remote target:")
    print(f"  {config.host}:{config.remote_dir}/{name}")


def print_report(pipeline: Pipeline, name: str) -> None:
    config = pipeline.config
    manifest = pipeline.manifest
    print_paths(config, name)
    manifest_path = manifest.path_for(name)

    if config.dry_run:
        print("Derived output (dry-run: remote timestamp not queried):")
        print("  date:       <YYYY-MM-DD>")
        print(f"  mp4:        {config.output_dir}/<YYYY-MM-DD>_{name}.mp4")
        print(f"  manifest:   {manifest_path}")
        return

    processed = manifest.is_processed(name)
    if processed:
        record = manifest.get(name)
        if record is None or not record.derived_date or not record.output_filename:
            raise TimelapseError(
                f"manifest inconsistent for processed folder: {name} ({manifest_path})"
            )
        derived_date = record.derived_date
        output_path = config.output_dir / record.output_filename
        print("Derived output (from manifest; already processed):")
    else:
        derived_date = pipeline.remote.folder_date(name)
        output_path = config.output_dir / output_filename(derived_date, name)
        print("Derived output:")

    print(f"  date:       {derived_date}")
    print(f"  mp4:        {output_path}")
    if pipeline.validator.is_valid(output_path):
        print("  mp4_valid:  yes")
    elif output_path.exists():
        print("  mp4_valid:  no (ffprobe failed)")
    else:
        print("  mp4_valid:  no (missing)")
    print(f"  manifest:   {manifest_path}")
    print(f"  processed:  {'yes' if processed else 'no'}")


def list_remote(pipeline: Pipeline) -> int:
    config = pipeline.config
    if config.verbose:
        pipeline.log_transport()
    if config.dry_run:
        pipeline.runner.note(
            f"would list remote per-print directories from {config.host}:{config.remote_dir}"
        )
        return 0
    listing = pipeline.remote.list_print_dirs()
    if listing is not SKIPPED:
        for name in listing:
            print(name)
    return 0


def print_one_remote(pipeline: Pipeline) -> int:
    listing = pipeline.remote.list_print_dirs()
    if listing is SKIPPED or not listing:
        config = pipeline.config
        raise TimelapseError(
            f"no remote print directories found under {config.host}:{config.remote_dir}"
        )
    name = validate_print_folder_name(listing[0])
    print(f"Selected remote folder (first): {name}")
    print("")
    print_report(pipeline, name)
    return 0


def dispatch_render(pipeline: Pipeline, args: argparse.Namespace) -> int:
    config = pipeline.config
    engine = pipeline.render_engine
    if args.input_dir:
        engine.render_input(args.input_dir)
        return 0

    only = args.print_folder
    if args.print_one:
        locals_ = local_folders(config.incoming_dir)
        if not locals_:
            raise TimelapseError(f"no local print directories found under {config.incoming_dir}")
        only = locals_[0]
        logging.info("render: selected local folder (first): %s", only)

    summary = engine.render_all(only)
    if summary.failed:
        logging.error("render failed for: %s", ", ".join(summary.failed))
        return EXIT_FAILURE
    return 0


def run(config: Config, args: argparse.Namespace, mode: str, argv: Sequence[str]) -> int:
    pipeline = Pipeline(config)

    if args.list_remote:
        return list_remote(pipeline)

    with ExitStack() as stack:
        if not config.dry_run and mode in ("sync", "render", "both"):
            stack.enter_context(RunLock(config.state_dir, mode, argv))

        if args.print_folder:
            print_report(pipeline, args.print_folder)

        if args.print_one and not mode:
            return print_one_remote(pipeline)

        if not mode:
            return 0

        ensure_layout(config, pipeline.runner)
        status = 0
        if mode in ("sync", "both"):
            pipeline.sync_engine.sync(args.print_folder)
        if mode in ("render", "both"):
            status = dispatch_render(pipeline, args)
        return status


def _raise_exit(signum: int, _frame: object) -> None:
    raise SystemExit(128 + signum)


def install_signal_handlers() -> None:
    for name in ("SIGTERM", "SIGHUP"):
        signum = getattr(signal, name, None)
        if signum is not None:
            signal.signal(signum, _raise_exit)


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    ap = build_parser()
    args = ap.parse_args(argv)

    level = (
        logging.WARNING
        if args.verbose == 0
        else (logging.INFO if args.verbose == 1 else logging.DEBUG)
    )
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s: %(message)s")
    install_signal_handlers()

    mode = resolve_mode(args)
    try:
        check_args(args, mode)
        config = config_from_env(
            dry_run=args.dry_run,
            force=args.force,
            keep_frames=args.keep_frames,
            verbose=args.verbose,
        )
        return run(config, args, mode, argv)
    except LockHeldError as exc:
        print(f"{PROG}: {exc}", file=sys.stderr)
        return exc.exit_code
    except TimelapseError as exc:
        print(f"{PROG}: error: {exc}", file=sys.stderr)
        return exc.exit_code
    except OSError as exc:
        print(f"{PROG}: error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print(f"{PROG}: interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
