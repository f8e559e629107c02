"""Human-readable rendering of build and verify outcomes."""

from __future__ import annotations

from typing import TextIO

from treeguard.engine import BuildOutcome, VerifyOutcome
from treeguard.manifest.models import (
    Added,
    Corrupted,
    DiffEntry,
    DiffReport,
    FileError,
    Modified,
    Moved,
    Removed,
    Unchanged,
)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CORRUPTED = 2

_SUMMARY_LABELS = (
    ("unchanged", "Verified"),
    ("corrupted", "Corrupted"),
    ("modified", "Modified"),
    ("moved", "Moved"),
    ("added", "Added"),
    ("removed", "Removed"),
)


def exit_status(report: DiffReport | None) -> int:
    """Map a run's report to a process exit code; builds pass None."""
    if report is not None and report.has_corruption:
        return EXIT_CORRUPTED
    return EXIT_OK


def format_entry(entry: DiffEntry) -> list[str]:
    """Return output lines for one non-unchanged entry."""
    if isinstance(entry, Corrupted):
        return [
            f"CORRUPTED {entry.path}",
            f"  expected: {entry.old.hex_digest} ({entry.old.size} bytes)",
            f"  found:    {entry.new.hex_digest} ({entry.new.size} bytes)",
            f"  mtime:    {entry.new.mtime} (unchanged)",
        ]
    if isinstance(entry, Modified):
        return [f"MODIFIED  {entry.path} (mtime {entry.old.mtime} -> {entry.new.mtime})"]
    if isinstance(entry, Moved):
        return [f"MOVED     {entry.old_path} -> {entry.new_path}"]
    if isinstance(entry, Added):
        return [f"ADDED     {entry.path}"]
    if isinstance(entry, Removed):
        return [f"REMOVED   {entry.path}"]
    if isinstance(entry, Unchanged):
        return []
    raise TypeError(f"Unknown diff entry: {entry!r}")


def render_verify(outcome: VerifyOutcome, out: TextIO, quiet: bool = False) -> None:
    """Write a verify outcome; quiet mode writes Corrupted entries only."""
    report = outcome.report
    shown: tuple[DiffEntry, ...] = report.corrupted if quiet else report.entries
    for entry in shown:
        for line in format_entry(entry):
            out.write(f"{line}\n")
    if quiet:
        return

    _render_skipped(outcome.errors, out)
    counts = report.counts()
    out.write("\n=== Summary ===\n")
    for kind, label in _SUMMARY_LABELS:
        out.write(f"{label + ':':<11} {counts[kind]}\n")
    out.write(f"{'Skipped:':<11} {len(outcome.errors)}\n")
    if outcome.updated is not None:
        out.write(f"\nUpdated reference manifest: {outcome.manifest_path}\n")


def render_build(outcome: BuildOutcome, out: TextIO, quiet: bool = False) -> None:
    """Write a build outcome; quiet mode writes nothing."""
    if quiet:
        return
    _render_skipped(outcome.errors, out)
    out.write(
        f"Manifest of {len(outcome.manifest)} files written to {outcome.manifest_path}\n"
    )


def _render_skipped(errors: tuple[FileError, ...], out: TextIO) -> None:
    if not errors:
        return
    out.write("\nSkipped paths:\n")
    for error in errors:
        out.write(f"  {error.path}: {error.reason}\n")
