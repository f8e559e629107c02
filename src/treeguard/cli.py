"""Command-line entry point."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from treeguard.config import CliOverrides, load_effective_config
from treeguard.engine import MODE_BUILD, MODE_VERIFY, MODE_VERIFY_UPDATE, IntegrityChecker
from treeguard.errors import TreeguardError
from treeguard.logging import configure_logging, get_logger, verbosity_to_level
from treeguard.logging.setup import ROOT_LOGGER_NAME
from treeguard.manifest.builder import ProgressCallback
from treeguard.manifest.hashing import SUPPORTED_ALGORITHMS
from treeguard.report import EXIT_FATAL, EXIT_OK, exit_status, render_build, render_verify

logger = get_logger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the argument parser for both modes."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("root", help="Directory tree to fingerprint")
    common.add_argument("manifest", help="Manifest JSON file to write or verify against")
    common.add_argument(
        "--skip",
        action="append",
        default=[],
        metavar="NAME",
        help="Directory name to exclude at any depth (repeatable)",
    )
    common.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=None,
        help="Print only corrupted entries and fatal errors",
    )
    common.add_argument(
        "--progress", action="store_true", default=None, help="Show a hashing progress bar"
    )
    common.add_argument("--workers", type=int, default=None, help="Hashing threads")
    common.add_argument("--algorithm", choices=SUPPORTED_ALGORITHMS, default=None)
    common.add_argument(
        "--config", default=None, help="TOML config file (default: ROOT/.treeguard.toml)"
    )
    common.add_argument("--run-log", default=None, help="Append a JSON line per run to this file")
    common.add_argument("-v", "--verbose", action="count", default=0)

    parser = argparse.ArgumentParser(
        prog="treeguard",
        description="Record and re-check directory content to catch silent corruption.",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser(MODE_BUILD, parents=[common], help="Write a fresh manifest for ROOT")
    verify = sub.add_parser(MODE_VERIFY, parents=[common], help="Check ROOT against a manifest")
    verify.add_argument(
        "--update",
        action="store_true",
        help="Write the current state back to the manifest after verifying",
    )
    verify.add_argument(
        "--accept-corrupted",
        action="store_true",
        default=None,
        help="With --update, store the new content of corrupted files too",
    )
    verify.add_argument(
        "--match-empty-files",
        action="store_true",
        default=None,
        help="Allow zero-byte files to be reported as moved",
    )
    return parser


@contextmanager
def progress_reporter(enabled: bool) -> Iterator[ProgressCallback | None]:
    """Yield a tqdm-backed progress callback, or None when disabled."""
    if not enabled:
        yield None
        return
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    with logging_redirect_tqdm(loggers=[package_logger]):
        with tqdm(desc="Hashing", unit="file", file=sys.stderr, dynamic_ncols=True) as bar:

            def advance(completed: int, path: str) -> None:
                bar.update(1)

            yield advance


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the treeguard command."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(verbosity_to_level(args.verbose))

    update = bool(getattr(args, "update", False))
    mode = MODE_BUILD if args.command == MODE_BUILD else MODE_VERIFY
    if mode == MODE_VERIFY and update:
        mode = MODE_VERIFY_UPDATE

    overrides = CliOverrides(
        extra_exclude_dirs=tuple(args.skip),
        workers=args.workers,
        algorithm=args.algorithm,
        accept_corrupted=getattr(args, "accept_corrupted", None),
        match_empty_files=getattr(args, "match_empty_files", None),
        quiet=args.quiet,
        progress=args.progress,
        run_log=Path(args.run_log) if args.run_log is not None else None,
    )
    try:
        config = load_effective_config(
            root=Path(args.root),
            manifest_path=Path(args.manifest),
            config_path=Path(args.config) if args.config is not None else None,
            overrides=overrides,
        )
    except TreeguardError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return EXIT_FATAL

    quiet = config.output.quiet
    if quiet and not args.verbose:
        configure_logging(logging.ERROR)
    logger.debug("Effective config: %s", json.dumps(config.to_public_dict(), sort_keys=True))

    checker = IntegrityChecker(config)
    show_progress = config.output.progress and not quiet
    try:
        with progress_reporter(show_progress) as progress:
            if mode == MODE_BUILD:
                build_outcome = checker.build(progress=progress)
            else:
                verify_outcome = checker.verify(update=update, progress=progress)
    except TreeguardError as exc:
        checker.record_failure(mode, exc)
        sys.stderr.write(f"error: {exc}\n")
        return EXIT_FATAL

    if mode == MODE_BUILD:
        render_build(build_outcome, sys.stdout, quiet=quiet)
        return EXIT_OK

    render_verify(verify_outcome, sys.stdout, quiet=quiet)
    status = exit_status(verify_outcome.report)
    if status != EXIT_OK and not quiet:
        sys.stderr.write("One or more corrupted files found.\n")
    return status


if __name__ == "__main__":
    raise SystemExit(main())
