from __future__ import annotations

import hashlib

import pytest

from treeguard.errors import DuplicatePathError
from treeguard.manifest import FileRecord, Manifest


def _record(path: str, content: bytes = b"x", mtime: int = 100) -> FileRecord:
    return FileRecord(
        path=path, digest=hashlib.sha256(content).digest(), size=len(content), mtime=mtime
    )


def test_manifest_orders_records_by_path() -> None:
    manifest = Manifest([_record("b"), _record("a/z"), _record("a/b")])

    assert list(manifest) == ["a/b", "a/z", "b"]
    assert [record.path for record in manifest.records()] == ["a/b", "a/z", "b"]


def test_duplicate_path_is_a_contract_violation() -> None:
    with pytest.raises(DuplicatePathError, match="duplicate path 'a.txt'"):
        Manifest([_record("a.txt"), _record("a.txt", b"other")])


def test_derivations_return_new_values() -> None:
    original = Manifest([_record("a"), _record("b")])

    dropped = original.without(["a"])
    merged = original.merged([_record("b", b"new"), _record("c")])
    subset = original.subset(["b", "missing"])

    assert list(original) == ["a", "b"]
    assert list(dropped) == ["b"]
    assert list(merged) == ["a", "b", "c"]
    assert merged["b"].digest == hashlib.sha256(b"new").digest()
    assert list(subset) == ["b"]


def test_equality_is_mapping_equality() -> None:
    assert Manifest([_record("a"), _record("b")]) == Manifest([_record("b"), _record("a")])
    assert Manifest([_record("a")]) != Manifest([_record("a", mtime=101)])


def test_hex_digest_is_lowercase() -> None:
    record = _record("a", b"abc")

    assert record.hex_digest == hashlib.sha256(b"abc").hexdigest()
    assert record.hex_digest == record.hex_digest.lower()
