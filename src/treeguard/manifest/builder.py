"""Parallel record building over a walked tree."""

from __future__ import annotations

import os
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path

from treeguard.errors import BuildCancelledError
from treeguard.logging import get_logger
from treeguard.manifest.hashing import DEFAULT_ALGORITHM, DEFAULT_CHUNK_SIZE, hash_stream
from treeguard.manifest.models import BuildResult, FileError, FileRecord, Manifest
from treeguard.manifest.walker import iter_files

logger = get_logger(__name__)

ProgressCallback = Callable[[int, str], None]

# In-flight files per worker.
_DISPATCH_FACTOR = 4


def default_workers() -> int:
    """Return the default hashing pool size."""
    return min(32, (os.cpu_count() or 1) + 4)


def build_record(
    full_path: Path,
    relative_path: str,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> FileRecord:
    """Fingerprint one file.

    The mtime is taken from the open handle before any content is read, so a
    write racing the read leaves a newer mtime than the hashed content. This is
    best effort, not a transactional guarantee.
    """
    with full_path.open("rb") as handle:
        stat = os.fstat(handle.fileno())
        mtime = max(0, stat.st_mtime_ns // 1_000_000_000)
        digest, size = hash_stream(handle, algorithm=algorithm, chunk_size=chunk_size)
    return FileRecord(path=relative_path, digest=digest, size=size, mtime=mtime)


def build_records(
    files: Iterable[tuple[Path, str]],
    *,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    workers: int | None = None,
    progress: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
    errors: list[FileError] | None = None,
) -> list[FileRecord]:
    """Hash walked files on a bounded pool, collecting results on this thread."""
    pool_size = workers if workers is not None else default_workers()
    max_in_flight = max(1, pool_size * _DISPATCH_FACTOR)
    records: list[FileRecord] = []
    pending: dict[Future[FileRecord], str] = {}
    completed = 0
    source = iter(files)
    exhausted = False

    def collect(future: Future[FileRecord], relative: str) -> None:
        nonlocal completed
        try:
            records.append(future.result())
        except OSError as exc:
            error = FileError(path=relative, reason=exc.strerror or str(exc))
            logger.info("Skipping %s: %s", relative, error.reason)
            if errors is not None:
                errors.append(error)
        completed += 1
        if progress is not None:
            progress(completed, relative)

    executor = ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="treeguard-hash")
    try:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise BuildCancelledError(completed)
            while not exhausted and len(pending) < max_in_flight:
                item = next(source, None)
                if item is None:
                    exhausted = True
                    break
                full_path, relative = item
                future = executor.submit(build_record, full_path, relative, algorithm, chunk_size)
                pending[future] = relative
            if not pending:
                break
            done, _ = wait(pending, timeout=0.5, return_when=FIRST_COMPLETED)
            for future in sorted(done, key=lambda item: pending[item]):
                collect(future, pending.pop(future))
    except KeyboardInterrupt:
        logger.info("Interrupted; waiting for in-flight files")
        raise BuildCancelledError(completed) from None
    finally:
        executor.shutdown(wait=True, cancel_futures=True)
    return records


def build_manifest(
    root: Path,
    exclude_dirs: Iterable[str] = (),
    *,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    workers: int | None = None,
    progress: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
    skip_paths: Iterable[str] = (),
) -> BuildResult:
    """Walk root and fingerprint every regular file into a new Manifest."""
    started = time.perf_counter()
    errors: list[FileError] = []
    files = iter_files(root, exclude_dirs, on_error=errors.append, skip_paths=skip_paths)
    records = build_records(
        files,
        algorithm=algorithm,
        chunk_size=chunk_size,
        workers=workers,
        progress=progress,
        cancel_event=cancel_event,
        errors=errors,
    )
    manifest = Manifest(records)
    logger.info(
        "Built manifest of %d files (%d skipped) in %.3fs",
        len(manifest),
        len(errors),
        time.perf_counter() - started,
    )
    return BuildResult(
        manifest=manifest,
        errors=tuple(sorted(errors, key=lambda item: item.path)),
    )
