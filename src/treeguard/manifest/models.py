"""Typed models for manifests and diff reports."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import ClassVar

from treeguard.errors import DuplicatePathError

UNCHANGED = "unchanged"
CORRUPTED = "corrupted"
MODIFIED = "modified"
MOVED = "moved"
ADDED = "added"
REMOVED = "removed"

# Report group order.
DIFF_KINDS = (CORRUPTED, MODIFIED, MOVED, ADDED, REMOVED, UNCHANGED)


@dataclass(slots=True, frozen=True)
class FileRecord:
    """One file's content fingerprint at snapshot time."""

    path: str
    digest: bytes
    size: int
    mtime: int

    @property
    def hex_digest(self) -> str:
        """Return the lowercase hex form of the digest."""
        return self.digest.hex()

    @property
    def content_key(self) -> tuple[bytes, int]:
        """Return the (digest, size) pair used for content matching."""
        return (self.digest, self.size)


@dataclass(slots=True, frozen=True)
class FileError:
    """A per-file failure that excluded one path from a manifest."""

    path: str
    reason: str


class Manifest(Mapping[str, FileRecord]):
    """Immutable mapping of relative path to FileRecord, ordered by path."""

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[FileRecord] = ()) -> None:
        output: dict[str, FileRecord] = {}
        for record in sorted(records, key=lambda item: item.path):
            if record.path in output:
                raise DuplicatePathError(record.path)
            output[record.path] = record
        self._records = output

    def __getitem__(self, path: str) -> FileRecord:
        return self._records[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"Manifest({len(self._records)} records)"

    def records(self) -> tuple[FileRecord, ...]:
        """Return records in ascending path order."""
        return tuple(self._records.values())

    def paths(self) -> frozenset[str]:
        """Return the path keyspace."""
        return frozenset(self._records)

    def without(self, paths: Iterable[str]) -> Manifest:
        """Return a new manifest with the given paths dropped."""
        dropped = set(paths)
        return Manifest(record for record in self._records.values() if record.path not in dropped)

    def subset(self, paths: Iterable[str]) -> Manifest:
        """Return a new manifest holding only the given paths that exist here."""
        return Manifest(self._records[path] for path in set(paths) if path in self._records)

    def merged(self, records: Iterable[FileRecord]) -> Manifest:
        """Return a new manifest where the given records replace same-path entries."""
        output = dict(self._records)
        for record in records:
            output[record.path] = record
        return Manifest(output.values())


@dataclass(slots=True, frozen=True)
class Unchanged:
    """Content identical to the reference; record is the current one."""

    kind: ClassVar[str] = UNCHANGED

    path: str
    record: FileRecord


@dataclass(slots=True, frozen=True)
class Corrupted:
    """Content differs while the stored mtime is unchanged."""

    kind: ClassVar[str] = CORRUPTED

    path: str
    old: FileRecord
    new: FileRecord


@dataclass(slots=True, frozen=True)
class Modified:
    """Content and mtime both differ; an expected edit."""

    kind: ClassVar[str] = MODIFIED

    path: str
    old: FileRecord
    new: FileRecord


@dataclass(slots=True, frozen=True)
class Added:
    """Path present on disk but absent in the reference."""

    kind: ClassVar[str] = ADDED

    path: str
    record: FileRecord


@dataclass(slots=True, frozen=True)
class Removed:
    """Path present in the reference but absent on disk."""

    kind: ClassVar[str] = REMOVED

    path: str
    record: FileRecord


@dataclass(slots=True, frozen=True)
class Moved:
    """Reference content found unchanged at a new path."""

    kind: ClassVar[str] = MOVED

    old_path: str
    new_path: str
    record: FileRecord

    @property
    def path(self) -> str:
        return self.new_path


DiffEntry = Unchanged | Corrupted | Modified | Added | Removed | Moved


@dataclass(slots=True, frozen=True)
class DiffReport:
    """Classified comparison between a reference and a current manifest."""

    entries: tuple[DiffEntry, ...]

    def counts(self) -> dict[str, int]:
        """Return per-kind counts, every kind present, in report group order."""
        output = {kind: 0 for kind in DIFF_KINDS}
        for entry in self.entries:
            output[entry.kind] += 1
        return output

    @property
    def corrupted(self) -> tuple[Corrupted, ...]:
        return tuple(entry for entry in self.entries if isinstance(entry, Corrupted))

    @property
    def modified(self) -> tuple[Modified, ...]:
        return tuple(entry for entry in self.entries if isinstance(entry, Modified))

    @property
    def moved(self) -> tuple[Moved, ...]:
        return tuple(entry for entry in self.entries if isinstance(entry, Moved))

    @property
    def added(self) -> tuple[Added, ...]:
        return tuple(entry for entry in self.entries if isinstance(entry, Added))

    @property
    def removed(self) -> tuple[Removed, ...]:
        return tuple(entry for entry in self.entries if isinstance(entry, Removed))

    @property
    def unchanged(self) -> tuple[Unchanged, ...]:
        return tuple(entry for entry in self.entries if isinstance(entry, Unchanged))

    @property
    def has_corruption(self) -> bool:
        return any(isinstance(entry, Corrupted) for entry in self.entries)


@dataclass(slots=True, frozen=True)
class BuildResult:
    """A freshly built manifest plus the paths that could not be processed."""

    manifest: Manifest
    errors: tuple[FileError, ...]
