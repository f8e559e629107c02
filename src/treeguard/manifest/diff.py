"""Manifest comparison and content-addressed move detection."""

from __future__ import annotations

from collections import defaultdict

from treeguard.manifest.models import (
    Added,
    Corrupted,
    DiffEntry,
    DiffReport,
    FileRecord,
    Manifest,
    Modified,
    Moved,
    Removed,
    Unchanged,
)

ContentIndex = dict[tuple[bytes, int], list[str]]


def diff_manifests(
    reference: Manifest,
    current: Manifest,
    *,
    match_empty_files: bool = False,
) -> DiffReport:
    """Classify every path of reference and current.

    Common paths are Unchanged when (digest, size) match; otherwise Corrupted if
    the mtime is identical and Modified if it differs. Paths present on one side
    only are paired into Moved entries by exact (digest, size) equality, one to
    one in ascending path order on both sides; the rest are Removed or Added.
    A file that moved and changed content is reported as Removed plus Added.

    Zero-byte files share a single digest, so pairing them would invent moves
    between unrelated files. They are only move-matched when match_empty_files
    is set.
    """
    reference_paths = reference.paths()
    current_paths = current.paths()

    corrupted: list[Corrupted] = []
    modified: list[Modified] = []
    unchanged: list[Unchanged] = []
    for path in sorted(reference_paths & current_paths):
        old = reference[path]
        new = current[path]
        if old.content_key == new.content_key:
            unchanged.append(Unchanged(path=path, record=new))
        elif old.mtime == new.mtime:
            corrupted.append(Corrupted(path=path, old=old, new=new))
        else:
            modified.append(Modified(path=path, old=old, new=new))

    reference_only = [reference[path] for path in sorted(reference_paths - current_paths)]
    current_only = [current[path] for path in sorted(current_paths - reference_paths)]
    moved, removed, added = _match_moves(
        reference_only,
        current_only,
        current=current,
        match_empty_files=match_empty_files,
    )

    entries: list[DiffEntry] = []
    entries.extend(corrupted)
    entries.extend(modified)
    entries.extend(moved)
    entries.extend(added)
    entries.extend(removed)
    entries.extend(unchanged)
    return DiffReport(entries=tuple(entries))


def build_content_index(records: list[FileRecord], *, match_empty_files: bool) -> ContentIndex:
    """Group record paths by (digest, size), preserving input order."""
    index: ContentIndex = defaultdict(list)
    for record in records:
        if record.size == 0 and not match_empty_files:
            continue
        index[record.content_key].append(record.path)
    return index


def _match_moves(
    reference_only: list[FileRecord],
    current_only: list[FileRecord],
    *,
    current: Manifest,
    match_empty_files: bool,
) -> tuple[list[Moved], list[Removed], list[Added]]:
    reference_index = build_content_index(reference_only, match_empty_files=match_empty_files)
    current_index = build_content_index(current_only, match_empty_files=match_empty_files)

    moved: list[Moved] = []
    paired_old: set[str] = set()
    paired_new: set[str] = set()
    for key in sorted(reference_index.keys() & current_index.keys()):
        old_paths = sorted(reference_index[key])
        new_paths = sorted(current_index[key])
        for old_path, new_path in zip(old_paths, new_paths):
            moved.append(Moved(old_path=old_path, new_path=new_path, record=current[new_path]))
            paired_old.add(old_path)
            paired_new.add(new_path)
    moved.sort(key=lambda item: (item.old_path, item.new_path))

    removed = [
        Removed(path=record.path, record=record)
        for record in reference_only
        if record.path not in paired_old
    ]
    added = [
        Added(path=record.path, record=record)
        for record in current_only
        if record.path not in paired_new
    ]
    return moved, removed, added
