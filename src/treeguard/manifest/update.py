"""Fold a diff report back into a reference manifest."""

from __future__ import annotations

from treeguard.manifest.models import (
    Added,
    Corrupted,
    DiffReport,
    FileRecord,
    Manifest,
    Modified,
    Moved,
    Removed,
    Unchanged,
)


def apply_report(
    reference: Manifest,
    report: DiffReport,
    *,
    accept_corrupted: bool = False,
) -> Manifest:
    """Return a new manifest reflecting the current state described by report.

    Corrupted paths keep their reference record so damaged content never
    becomes the trusted baseline, unless accept_corrupted is set. Reference
    paths the report does not mention are carried over unchanged.
    """
    records: dict[str, FileRecord] = dict(reference.items())
    for entry in report.entries:
        if isinstance(entry, (Unchanged, Added)):
            records[entry.path] = entry.record
        elif isinstance(entry, Modified):
            records[entry.path] = entry.new
        elif isinstance(entry, Corrupted):
            records[entry.path] = entry.new if accept_corrupted else entry.old
        elif isinstance(entry, Removed):
            records.pop(entry.path, None)
        elif isinstance(entry, Moved):
            records.pop(entry.old_path, None)
            records[entry.new_path] = entry.record
    return Manifest(records.values())
