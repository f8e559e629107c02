from __future__ import annotations

import hashlib

from treeguard.manifest import (
    Added,
    Corrupted,
    FileRecord,
    Manifest,
    Modified,
    Moved,
    Removed,
    Unchanged,
    diff_manifests,
)


def _record(path: str, content: bytes, mtime: int = 100) -> FileRecord:
    return FileRecord(
        path=path, digest=hashlib.sha256(content).digest(), size=len(content), mtime=mtime
    )


def test_diff_of_manifest_with_itself_is_all_unchanged() -> None:
    manifest = Manifest(
        [_record("a.txt", b"a"), _record("b/c.txt", b"c"), _record("empty", b"")]
    )

    report = diff_manifests(manifest, manifest)

    assert all(isinstance(entry, Unchanged) for entry in report.entries)
    assert [entry.path for entry in report.entries] == ["a.txt", "b/c.txt", "empty"]
    assert report.counts()["unchanged"] == 3
    assert report.has_corruption is False


def test_content_change_with_same_mtime_is_corrupted() -> None:
    reference = Manifest([_record("p", b"h1", mtime=500)])
    current = Manifest([_record("p", b"h2", mtime=500)])

    report = diff_manifests(reference, current)

    assert report.entries == (
        Corrupted(path="p", old=reference["p"], new=current["p"]),
    )
    assert report.has_corruption is True


def test_content_change_with_new_mtime_is_modified() -> None:
    reference = Manifest([_record("p", b"h1", mtime=500)])
    current = Manifest([_record("p", b"h2", mtime=501)])

    report = diff_manifests(reference, current)

    assert report.entries == (Modified(path="p", old=reference["p"], new=current["p"]),)
    assert report.corrupted == ()


def test_size_change_alone_counts_as_content_change() -> None:
    old = _record("p", b"same")
    new = FileRecord(path="p", digest=old.digest, size=old.size + 1, mtime=old.mtime)

    report = diff_manifests(Manifest([old]), Manifest([new]))

    assert isinstance(report.entries[0], Corrupted)


def test_touched_but_identical_file_is_unchanged() -> None:
    reference = Manifest([_record("p", b"same", mtime=1)])
    current = Manifest([_record("p", b"same", mtime=2)])

    report = diff_manifests(reference, current)

    assert report.entries == (Unchanged(path="p", record=current["p"]),)


def test_rename_is_one_move_and_nothing_else() -> None:
    reference = Manifest([_record("a.txt", b"hello", mtime=10)])
    current = Manifest([_record("b.txt", b"hello", mtime=99)])

    report = diff_manifests(reference, current)

    assert report.entries == (
        Moved(old_path="a.txt", new_path="b.txt", record=current["b.txt"]),
    )
    assert report.added == ()
    assert report.removed == ()


def test_duplicate_content_pairs_one_to_one_in_path_order() -> None:
    reference = Manifest([_record("x1", b"dup"), _record("x2", b"dup")])
    current = Manifest([_record("y2", b"dup"), _record("y1", b"dup")])

    report = diff_manifests(reference, current)

    assert [(entry.old_path, entry.new_path) for entry in report.moved] == [
        ("x1", "y1"),
        ("x2", "y2"),
    ]
    assert len(report.entries) == 2


def test_duplicate_surplus_is_left_as_added_or_removed() -> None:
    reference = Manifest([_record("a", b"dup"), _record("b", b"dup"), _record("c", b"dup")])
    current = Manifest([_record("z", b"dup")])

    report = diff_manifests(reference, current)

    assert [(entry.old_path, entry.new_path) for entry in report.moved] == [("a", "z")]
    assert [entry.path for entry in report.removed] == ["b", "c"]
    assert report.added == ()


def test_moved_and_edited_file_is_removed_plus_added() -> None:
    reference = Manifest([_record("old.txt", b"v1")])
    current = Manifest([_record("new.txt", b"v2")])

    report = diff_manifests(reference, current)

    assert report.moved == ()
    assert [entry.path for entry in report.removed] == ["old.txt"]
    assert [entry.path for entry in report.added] == ["new.txt"]


def test_empty_files_are_not_move_matched_by_default() -> None:
    reference = Manifest([_record("gone/.keep", b"")])
    current = Manifest([_record("other/.keep", b"")])

    default = diff_manifests(reference, current)
    matched = diff_manifests(reference, current, match_empty_files=True)

    assert default.moved == ()
    assert [entry.path for entry in default.removed] == ["gone/.keep"]
    assert [entry.path for entry in default.added] == ["other/.keep"]
    assert [(entry.old_path, entry.new_path) for entry in matched.moved] == [
        ("gone/.keep", "other/.keep")
    ]


def test_entries_are_grouped_by_kind_and_sorted_by_path() -> None:
    reference = Manifest(
        [
            _record("same", b"s"),
            _record("rot-b", b"1", mtime=5),
            _record("rot-a", b"1", mtime=5),
            _record("edit", b"1", mtime=5),
            _record("from", b"moved"),
            _record("zz-gone", b"gone"),
            _record("aa-gone", b"gone too"),
        ]
    )
    current = Manifest(
        [
            _record("same", b"s"),
            _record("rot-b", b"2", mtime=5),
            _record("rot-a", b"2", mtime=5),
            _record("edit", b"2", mtime=6),
            _record("to", b"moved"),
            _record("new-b", b"nb"),
            _record("new-a", b"na"),
        ]
    )

    report = diff_manifests(reference, current)

    assert [(entry.kind, entry.path) for entry in report.entries] == [
        ("corrupted", "rot-a"),
        ("corrupted", "rot-b"),
        ("modified", "edit"),
        ("moved", "to"),
        ("added", "new-a"),
        ("added", "new-b"),
        ("removed", "aa-gone"),
        ("removed", "zz-gone"),
        ("unchanged", "same"),
    ]
    assert report.counts() == {
        "corrupted": 2,
        "modified": 1,
        "moved": 1,
        "added": 2,
        "removed": 2,
        "unchanged": 1,
    }


def test_added_and_removed_carry_their_records() -> None:
    reference = Manifest([_record("old", b"o")])
    current = Manifest([_record("new", b"n")])

    report = diff_manifests(reference, current)

    assert report.added == (Added(path="new", record=current["new"]),)
    assert report.removed == (Removed(path="old", record=reference["old"]),)
