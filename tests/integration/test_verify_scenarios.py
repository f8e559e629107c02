from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from treeguard.config import CliOverrides, load_effective_config
from treeguard.engine import IntegrityChecker
from treeguard.errors import HashAlgorithmMismatchError, ManifestFormatError
from treeguard.manifest import load_manifest


def _write(path: Path, content: str, mtime: int = 1_600_000_000) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    os.utime(path, (mtime, mtime))


def _checker(root: Path, manifest: Path, **overrides: object) -> IntegrityChecker:
    config = load_effective_config(
        root, manifest, overrides=CliOverrides(**overrides)  # type: ignore[arg-type]
    )
    return IntegrityChecker(config)


def test_corruption_with_preserved_mtime_is_detected(tmp_path: Path) -> None:
    root = tmp_path / "root"
    _write(root / "a" / "1.txt", "x")
    _write(root / "a" / "2.txt", "y")
    manifest = tmp_path / "m0.json"
    _checker(root, manifest).build()

    _write(root / "a" / "1.txt", "z")

    outcome = _checker(root, manifest).verify()

    assert [(entry.kind, entry.path) for entry in outcome.report.entries] == [
        ("corrupted", "a/1.txt"),
        ("unchanged", "a/2.txt"),
    ]
    assert outcome.has_corruption is True
    assert outcome.updated is None


def test_verify_update_folds_changes_and_keeps_corrupted_baseline(tmp_path: Path) -> None:
    root = tmp_path / "root"
    _write(root / "keep.txt", "keep")
    _write(root / "edit.txt", "v1")
    _write(root / "rot.txt", "good")
    _write(root / "old" / "name.txt", "moving")
    _write(root / "gone.txt", "bye")
    manifest = tmp_path / "m.json"
    _checker(root, manifest).build()
    baseline = load_manifest(manifest)

    _write(root / "edit.txt", "v2", mtime=1_700_000_000)
    _write(root / "rot.txt", "evil")
    (root / "old" / "name.txt").rename(root / "new.txt")
    (root / "gone.txt").unlink()
    _write(root / "added.txt", "hi")

    outcome = _checker(root, manifest).verify(update=True)

    counts = outcome.report.counts()
    assert counts == {
        "corrupted": 1,
        "modified": 1,
        "moved": 1,
        "added": 1,
        "removed": 1,
        "unchanged": 1,
    }
    stored = load_manifest(manifest)
    assert stored == outcome.updated
    assert list(stored) == ["added.txt", "edit.txt", "keep.txt", "new.txt", "rot.txt"]
    assert stored["rot.txt"] == baseline["rot.txt"]
    assert stored["edit.txt"].mtime == 1_700_000_000

    second = _checker(root, manifest).verify()
    assert second.report.counts()["corrupted"] == 1
    assert second.report.counts()["unchanged"] == 4


def test_accept_corrupted_rebaselines(tmp_path: Path) -> None:
    root = tmp_path / "root"
    _write(root / "rot.txt", "good")
    manifest = tmp_path / "m.json"
    _checker(root, manifest).build()
    _write(root / "rot.txt", "evil")

    _checker(root, manifest, accept_corrupted=True).verify(update=True)

    assert _checker(root, manifest).verify().has_corruption is False


def test_manifest_inside_root_is_not_fingerprinted(tmp_path: Path) -> None:
    _write(tmp_path / "data.txt", "d")
    manifest = tmp_path / "manifest.json"

    outcome = _checker(tmp_path, manifest).build()

    assert list(outcome.manifest) == ["data.txt"]
    assert _checker(tmp_path, manifest).verify().report.counts()["added"] == 0


def test_malformed_reference_aborts_before_scanning(tmp_path: Path) -> None:
    root = tmp_path / "root"
    _write(root / "a.txt", "a")
    manifest = tmp_path / "m.json"
    manifest.write_text(json.dumps({"a.txt": {}}), encoding="utf-8")

    with pytest.raises(ManifestFormatError):
        _checker(root, manifest).verify()


def test_algorithm_mismatch_is_fatal(tmp_path: Path) -> None:
    root = tmp_path / "root"
    _write(root / "a.txt", "a")
    manifest = tmp_path / "m.json"
    _checker(root, manifest).build()

    with pytest.raises(HashAlgorithmMismatchError):
        _checker(root, manifest, algorithm="blake2b").verify()


@pytest.mark.skipif(
    not hasattr(os, "geteuid") or os.geteuid() == 0,
    reason="permission bits are not enforced for this user",
)
def test_unreadable_file_is_skipped_not_removed(tmp_path: Path) -> None:
    root = tmp_path / "root"
    _write(root / "a.txt", "a")
    _write(root / "locked.txt", "secret")
    manifest = tmp_path / "m.json"
    _checker(root, manifest).build()
    locked = root / "locked.txt"
    locked.chmod(0)
    try:
        outcome = _checker(root, manifest).verify(update=True)
    finally:
        locked.chmod(0o644)

    assert [error.path for error in outcome.errors] == ["locked.txt"]
    assert outcome.report.removed == ()
    assert outcome.updated is not None
    assert "locked.txt" in outcome.updated
