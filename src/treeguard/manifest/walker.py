"""Deterministic, lazily evaluated directory walk with subtree pruning."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

from treeguard.errors import RootUnreadableError
from treeguard.logging import get_logger
from treeguard.manifest.models import FileError
from treeguard.manifest.paths import relative_posix_path

logger = get_logger(__name__)

ErrorSink = Callable[[FileError], None]


def iter_files(
    root: Path,
    exclude_dirs: Iterable[str] = (),
    *,
    on_error: ErrorSink | None = None,
    skip_paths: Iterable[str] = (),
) -> Iterator[tuple[Path, str]]:
    """Yield (absolute path, relative POSIX path) for regular files under root.

    Directories whose base name is in exclude_dirs are pruned at any depth.
    Symbolic links are never followed or reported, whether they point at files
    or directories. Entries are visited in ascending name order per directory,
    so an unmodified tree always yields the same sequence.

    The root is checked eagerly: a missing or unreadable root raises
    RootUnreadableError on the call, not on first iteration.
    """
    resolved = root.resolve()
    first_level = _scan_root(resolved)
    return _walk(
        root=resolved,
        first_level=first_level,
        excluded=frozenset(exclude_dirs),
        skipped=frozenset(skip_paths),
        on_error=on_error,
    )


def _scan_root(root: Path) -> list[os.DirEntry[str]]:
    if not root.exists():
        raise RootUnreadableError(root, "does not exist")
    if not root.is_dir():
        raise RootUnreadableError(root, "not a directory")
    try:
        with os.scandir(root) as entries:
            return sorted(entries, key=lambda item: item.name)
    except OSError as exc:
        raise RootUnreadableError(root, exc.strerror or str(exc)) from exc


def _walk(
    *,
    root: Path,
    first_level: list[os.DirEntry[str]],
    excluded: frozenset[str],
    skipped: frozenset[str],
    on_error: ErrorSink | None,
) -> Iterator[tuple[Path, str]]:
    # Depth-first; each stack frame is an iterator over one sorted directory.
    stack: list[Iterator[os.DirEntry[str]]] = [iter(first_level)]
    while stack:
        entry = next(stack[-1], None)
        if entry is None:
            stack.pop()
            continue
        full_path = Path(entry.path)
        relative = relative_posix_path(root, full_path)
        try:
            if entry.is_symlink():
                logger.debug("Skipping symlink %s", relative)
                continue
            if entry.is_dir(follow_symlinks=False):
                if entry.name in excluded:
                    logger.debug("Pruning excluded directory %s", relative)
                    continue
                children = _scan_dir(full_path)
                stack.append(iter(children))
                continue
            if not entry.is_file(follow_symlinks=False):
                continue
        except OSError as exc:
            _report(on_error, relative, exc)
            continue
        if relative in skipped:
            continue
        yield full_path, relative


def _scan_dir(path: Path) -> list[os.DirEntry[str]]:
    with os.scandir(path) as entries:
        return sorted(entries, key=lambda item: item.name)


def _report(on_error: ErrorSink | None, relative: str, exc: OSError) -> None:
    error = FileError(path=relative, reason=exc.strerror or str(exc))
    logger.info("Skipping %s: %s", relative, error.reason)
    if on_error is not None:
        on_error(error)
