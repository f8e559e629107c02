"""Durable JSON representation of manifests."""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Final

from treeguard.errors import DuplicatePathError, ManifestFormatError, ManifestPathError
from treeguard.manifest.models import FileRecord, Manifest
from treeguard.manifest.paths import validate_manifest_path

MANIFEST_FIELDS: Final[frozenset[str]] = frozenset({"path", "hash", "size", "mtime"})
_HEX_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(?:[0-9a-f]{2})+$")


def manifest_to_rows(manifest: Manifest) -> list[dict[str, object]]:
    """Return the durable row form, ordered by path."""
    return [
        {
            "path": record.path,
            "hash": record.hex_digest,
            "size": record.size,
            "mtime": record.mtime,
        }
        for record in manifest.records()
    ]


def dump_manifest(manifest: Manifest) -> str:
    """Serialize a manifest to its JSON text."""
    return json.dumps(manifest_to_rows(manifest), indent=2, sort_keys=True) + "\n"


def save_manifest(manifest: Manifest, path: Path) -> None:
    """Atomically write a manifest to path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(dump_manifest(manifest))
        os.replace(temp_name, path)
    finally:
        if os.path.exists(temp_name):
            os.unlink(temp_name)


def load_manifest(path: Path) -> Manifest:
    """Load and validate a manifest file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestFormatError(str(path), exc.strerror or str(exc)) from exc
    return parse_manifest(text, source=str(path))


def parse_manifest(text: str, source: str = "<string>") -> Manifest:
    """Parse manifest JSON text, rejecting anything but a list of valid records."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestFormatError(source, f"invalid JSON ({exc.msg} at line {exc.lineno})") from exc
    if not isinstance(payload, list):
        raise ManifestFormatError(source, "top-level value must be a list of records")

    records: list[FileRecord] = []
    seen: set[str] = set()
    digest_length: int | None = None
    for position, row in enumerate(payload):
        record = _parse_row(row, position, source)
        if record.path in seen:
            raise DuplicatePathError(record.path, source=source)
        seen.add(record.path)
        if digest_length is None:
            digest_length = len(record.digest)
        elif len(record.digest) != digest_length:
            raise ManifestFormatError(
                source, f"record {position} has a {len(record.digest)}-byte hash, "
                f"expected {digest_length} bytes like the records before it"
            )
        records.append(record)
    return Manifest(records)


def _parse_row(row: object, position: int, source: str) -> FileRecord:
    if not isinstance(row, dict):
        raise ManifestFormatError(source, f"record {position} must be an object")
    keys = set(row.keys())
    if keys != MANIFEST_FIELDS:
        missing = sorted(MANIFEST_FIELDS - keys)
        extra = sorted(keys - MANIFEST_FIELDS)
        raise ManifestFormatError(
            source, f"record {position} fields differ (missing={missing}, unexpected={extra})"
        )

    path = row["path"]
    if not isinstance(path, str):
        raise ManifestFormatError(source, f"record {position} 'path' must be a string")
    try:
        validate_manifest_path(path)
    except ManifestPathError as exc:
        raise ManifestFormatError(source, f"record {position}: {exc.reason}") from exc

    hex_digest = row["hash"]
    if not isinstance(hex_digest, str) or not _HEX_PATTERN.match(hex_digest):
        raise ManifestFormatError(
            source, f"record {position} 'hash' must be a lowercase hex string"
        )

    size = _non_negative_int(row["size"], "size", position, source)
    mtime = _non_negative_int(row["mtime"], "mtime", position, source)
    return FileRecord(path=path, digest=bytes.fromhex(hex_digest), size=size, mtime=mtime)


def _non_negative_int(value: object, field: str, position: int, source: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ManifestFormatError(
            source, f"record {position} '{field}' must be a non-negative integer"
        )
    return value
