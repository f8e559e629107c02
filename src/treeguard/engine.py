"""Build and verify orchestration over the manifest engine."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path

from treeguard.config import TreeguardConfig
from treeguard.errors import HashAlgorithmMismatchError
from treeguard.logging import JsonlRunLog, RunEvent, get_logger, utc_timestamp
from treeguard.manifest.builder import ProgressCallback, build_manifest
from treeguard.manifest.diff import diff_manifests
from treeguard.manifest.hashing import digest_size
from treeguard.manifest.models import BuildResult, DiffReport, FileError, Manifest
from treeguard.manifest.paths import inside_root
from treeguard.manifest.store import load_manifest, save_manifest
from treeguard.manifest.update import apply_report

logger = get_logger(__name__)

MODE_BUILD = "build"
MODE_VERIFY = "verify"
MODE_VERIFY_UPDATE = "verify+update"


@dataclass(slots=True, frozen=True)
class BuildOutcome:
    """Result of a build run."""

    manifest: Manifest
    errors: tuple[FileError, ...]
    manifest_path: Path
    duration_ms: int


@dataclass(slots=True, frozen=True)
class VerifyOutcome:
    """Result of a verify run, with the updated manifest when one was written."""

    report: DiffReport
    errors: tuple[FileError, ...]
    updated: Manifest | None
    manifest_path: Path
    duration_ms: int

    @property
    def has_corruption(self) -> bool:
        return self.report.has_corruption


class IntegrityChecker:
    """Builds and verifies manifests for one root directory."""

    def __init__(self, config: TreeguardConfig) -> None:
        self._config = config
        self._root = config.root
        self._manifest_path = config.manifest_path
        self._internal_paths = self._compute_internal_paths()
        self._run_log = (
            JsonlRunLog(config.output.run_log) if config.output.run_log is not None else None
        )

    @property
    def config(self) -> TreeguardConfig:
        return self._config

    def build(
        self,
        progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> BuildOutcome:
        """Fingerprint the tree and write a fresh manifest."""
        started = time.perf_counter()
        result = self._scan(progress=progress, cancel_event=cancel_event)
        save_manifest(result.manifest, self._manifest_path)
        logger.info("Wrote %d records to %s", len(result.manifest), self._manifest_path)
        outcome = BuildOutcome(
            manifest=result.manifest,
            errors=result.errors,
            manifest_path=self._manifest_path,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        self._record_run(
            mode=MODE_BUILD,
            ok=True,
            counts={"files": len(result.manifest)},
            skipped=len(result.errors),
        )
        return outcome

    def verify(
        self,
        update: bool = False,
        progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> VerifyOutcome:
        """Compare the tree against the stored manifest, optionally folding changes back."""
        started = time.perf_counter()
        reference = load_manifest(self._manifest_path)
        self._check_digest_size(reference)
        result = self._scan(progress=progress, cancel_event=cancel_event)

        # Unreadable files are withheld so they are neither reported Removed nor
        # dropped from the baseline.
        withheld = _withheld_paths(reference, result.errors)
        comparable = reference.without(withheld)
        report = diff_manifests(
            comparable,
            result.manifest,
            match_empty_files=self._config.verify.match_empty_files,
        )

        updated: Manifest | None = None
        if update:
            updated = apply_report(
                comparable,
                report,
                accept_corrupted=self._config.verify.accept_corrupted,
            ).merged(reference.subset(withheld).records())
            save_manifest(updated, self._manifest_path)
            logger.info("Updated %s with %d records", self._manifest_path, len(updated))

        outcome = VerifyOutcome(
            report=report,
            errors=result.errors,
            updated=updated,
            manifest_path=self._manifest_path,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        self._record_run(
            mode=MODE_VERIFY_UPDATE if update else MODE_VERIFY,
            ok=not report.has_corruption,
            counts=report.counts(),
            skipped=len(result.errors),
        )
        return outcome

    def record_failure(self, mode: str, error: Exception) -> None:
        """Append a failed run to the run log, when one is configured."""
        self._record_run(mode=mode, ok=False, counts={}, skipped=0, error=str(error))

    def _scan(
        self,
        progress: ProgressCallback | None,
        cancel_event: threading.Event | None,
    ) -> BuildResult:
        scan = self._config.scan
        logger.info("Scanning %s (exclude=%s)", self._root, list(scan.exclude_dirs))
        return build_manifest(
            self._root,
            scan.exclude_dirs,
            algorithm=scan.algorithm,
            chunk_size=scan.chunk_size,
            workers=scan.workers,
            progress=progress,
            cancel_event=cancel_event,
            skip_paths=self._internal_paths,
        )

    def _check_digest_size(self, reference: Manifest) -> None:
        # Store guarantees one digest length per manifest.
        first = next(iter(reference.values()), None)
        if first is None:
            return
        expected = digest_size(self._config.scan.algorithm)
        if len(first.digest) != expected:
            raise HashAlgorithmMismatchError(
                self._config.scan.algorithm, expected, len(first.digest)
            )

    def _compute_internal_paths(self) -> tuple[str, ...]:
        candidates = [self._manifest_path]
        if self._config.config_path is not None:
            candidates.append(self._config.config_path)
        if self._config.output.run_log is not None:
            candidates.append(self._config.output.run_log)
        output: list[str] = []
        for candidate in candidates:
            relative = inside_root(self._root, candidate)
            if relative is not None:
                output.append(relative)
        return tuple(output)

    def _record_run(
        self,
        mode: str,
        ok: bool,
        counts: dict[str, int],
        skipped: int,
        error: str | None = None,
    ) -> None:
        if self._run_log is None:
            return
        self._run_log.append(
            RunEvent(
                timestamp=utc_timestamp(),
                mode=mode,
                root=str(self._root),
                manifest=str(self._manifest_path),
                ok=ok,
                counts=counts,
                skipped=skipped,
                error=error,
            )
        )


def _withheld_paths(reference: Manifest, errors: tuple[FileError, ...]) -> set[str]:
    """Return reference paths at or below any path that failed in this run."""
    failed = {error.path for error in errors}
    prefixes = tuple(f"{path}/" for path in failed)
    return {path for path in reference if path in failed or path.startswith(prefixes)}
