"""Manifest building, comparison and persistence."""

from .builder import build_manifest, build_record, build_records, default_workers
from .diff import build_content_index, diff_manifests
from .hashing import DEFAULT_ALGORITHM, SUPPORTED_ALGORITHMS, digest_size, hash_file, hash_stream
from .models import (
    DIFF_KINDS,
    Added,
    BuildResult,
    Corrupted,
    DiffEntry,
    DiffReport,
    FileError,
    FileRecord,
    Manifest,
    Modified,
    Moved,
    Removed,
    Unchanged,
)
from .store import dump_manifest, load_manifest, parse_manifest, save_manifest
from .update import apply_report
from .walker import iter_files

__all__ = [
    "Added",
    "BuildResult",
    "Corrupted",
    "DEFAULT_ALGORITHM",
    "DIFF_KINDS",
    "DiffEntry",
    "DiffReport",
    "FileError",
    "FileRecord",
    "Manifest",
    "Modified",
    "Moved",
    "Removed",
    "SUPPORTED_ALGORITHMS",
    "Unchanged",
    "apply_report",
    "build_content_index",
    "build_manifest",
    "build_record",
    "build_records",
    "default_workers",
    "diff_manifests",
    "digest_size",
    "dump_manifest",
    "hash_file",
    "hash_stream",
    "iter_files",
    "load_manifest",
    "parse_manifest",
    "save_manifest",
]
