from __future__ import annotations

import hashlib
import os
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from treeguard.errors import BuildCancelledError
from treeguard.manifest import build_manifest, build_record
from treeguard.manifest.builder import build_record as real_build_record


def _write(path: Path, content: bytes, mtime: int | None = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))


def test_build_record_captures_digest_size_and_whole_second_mtime(tmp_path: Path) -> None:
    target = tmp_path / "doc.txt"
    _write(target, b"payload", mtime=1_700_000_000)

    record = build_record(target, "doc.txt")

    assert record.path == "doc.txt"
    assert record.digest == hashlib.sha256(b"payload").digest()
    assert record.size == 7
    assert record.mtime == 1_700_000_000


@pytest.mark.parametrize("workers", [1, 4])
def test_build_manifest_covers_every_file(tmp_path: Path, workers: int) -> None:
    for index in range(25):
        _write(tmp_path / f"dir{index % 3}" / f"file{index}.txt", f"content {index}".encode())

    result = build_manifest(tmp_path, workers=workers)

    assert len(result.manifest) == 25
    assert result.errors == ()
    assert list(result.manifest) == sorted(result.manifest)
    record = result.manifest["dir1/file4.txt"]
    assert record.digest == hashlib.sha256(b"content 4").digest()


def test_progress_callback_runs_once_per_file(tmp_path: Path) -> None:
    for name in ("a.txt", "b.txt", "c/d.txt"):
        _write(tmp_path / name, name.encode())
    calls: list[tuple[int, str]] = []

    build_manifest(tmp_path, workers=2, progress=lambda done, path: calls.append((done, path)))

    assert [done for done, _ in calls] == [1, 2, 3]
    assert sorted(path for _, path in calls) == ["a.txt", "b.txt", "c/d.txt"]


def test_per_file_read_error_is_collected_and_build_continues(tmp_path: Path) -> None:
    _write(tmp_path / "good.txt", b"good")
    _write(tmp_path / "bad.txt", b"bad")

    def flaky(full_path: Path, relative: str, algorithm: str, chunk_size: int):
        if relative == "bad.txt":
            raise PermissionError(13, "Permission denied")
        return real_build_record(full_path, relative, algorithm, chunk_size)

    with patch("treeguard.manifest.builder.build_record", side_effect=flaky):
        result = build_manifest(tmp_path, workers=2)

    assert list(result.manifest) == ["good.txt"]
    assert [(error.path, error.reason) for error in result.errors] == [
        ("bad.txt", "Permission denied")
    ]


def test_excluded_directories_yield_no_records(tmp_path: Path) -> None:
    _write(tmp_path / "keep.txt", b"1")
    _write(tmp_path / "node_modules" / "lib.js", b"2")
    _write(tmp_path / "pkg" / "node_modules" / "deep" / "lib.js", b"3")

    result = build_manifest(tmp_path, ("node_modules",))

    assert list(result.manifest) == ["keep.txt"]


def test_set_cancel_event_stops_the_build(tmp_path: Path) -> None:
    for index in range(5):
        _write(tmp_path / f"{index}.txt", b"x")
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(BuildCancelledError) as excinfo:
        build_manifest(tmp_path, cancel_event=cancel)

    assert excinfo.value.completed == 0


def test_cancel_from_progress_callback_stops_dispatch(tmp_path: Path) -> None:
    for index in range(50):
        _write(tmp_path / f"{index:02d}.txt", b"x")
    cancel = threading.Event()

    def stop_after_first(done: int, path: str) -> None:
        cancel.set()

    with pytest.raises(BuildCancelledError) as excinfo:
        build_manifest(tmp_path, workers=1, progress=stop_after_first, cancel_event=cancel)

    assert 1 <= excinfo.value.completed < 50
