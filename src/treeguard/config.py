"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, replace
from pathlib import Path

from treeguard.errors import ConfigError
from treeguard.manifest.builder import default_workers
from treeguard.manifest.hashing import DEFAULT_ALGORITHM, DEFAULT_CHUNK_SIZE, SUPPORTED_ALGORITHMS
from treeguard.manifest.paths import normalize_user_path

CONFIG_FILE_NAME = ".treeguard.toml"
MAX_WORKERS_CAP = 256
MAX_CHUNK_SIZE_CAP = 256 * 1024 * 1024


@dataclass(slots=True, frozen=True)
class ScanConfig:
    """Walk and hashing settings."""

    exclude_dirs: tuple[str, ...]
    workers: int
    algorithm: str
    chunk_size: int


@dataclass(slots=True, frozen=True)
class VerifyConfig:
    """Classification and update policy."""

    match_empty_files: bool
    accept_corrupted: bool


@dataclass(slots=True, frozen=True)
class OutputConfig:
    """Output toggles."""

    quiet: bool
    progress: bool
    run_log: Path | None


@dataclass(slots=True, frozen=True)
class TreeguardConfig:
    """Fully merged configuration for one run."""

    root: Path
    manifest_path: Path
    config_path: Path | None
    scan: ScanConfig
    verify: VerifyConfig
    output: OutputConfig

    def to_public_dict(self) -> dict[str, object]:
        """Return a serializable config snapshot."""
        return {
            "root": str(self.root),
            "manifest_path": str(self.manifest_path),
            "config_path": str(self.config_path) if self.config_path is not None else None,
            "scan": {
                "exclude_dirs": list(self.scan.exclude_dirs),
                "workers": self.scan.workers,
                "algorithm": self.scan.algorithm,
                "chunk_size": self.scan.chunk_size,
            },
            "verify": {
                "match_empty_files": self.verify.match_empty_files,
                "accept_corrupted": self.verify.accept_corrupted,
            },
            "output": {
                "quiet": self.output.quiet,
                "progress": self.output.progress,
                "run_log": str(self.output.run_log) if self.output.run_log is not None else None,
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional command-line values applied at highest precedence.

    extra_exclude_dirs extends the configured exclusions instead of replacing them.
    """

    extra_exclude_dirs: tuple[str, ...] = ()
    workers: int | None = None
    algorithm: str | None = None
    accept_corrupted: bool | None = None
    match_empty_files: bool | None = None
    quiet: bool | None = None
    progress: bool | None = None
    run_log: Path | None = None


def default_config(root: Path, manifest_path: Path) -> TreeguardConfig:
    """Build default config for a root and manifest location."""
    return TreeguardConfig(
        root=root.resolve(),
        manifest_path=manifest_path.resolve(),
        config_path=None,
        scan=ScanConfig(
            exclude_dirs=(),
            workers=default_workers(),
            algorithm=DEFAULT_ALGORITHM,
            chunk_size=DEFAULT_CHUNK_SIZE,
        ),
        verify=VerifyConfig(match_empty_files=False, accept_corrupted=False),
        output=OutputConfig(quiet=False, progress=False, run_log=None),
    )


def load_config_file(config_path: Path) -> dict[str, object]:
    """Load a TOML config file; a missing file yields an empty payload."""
    if not config_path.exists():
        return {}
    try:
        with config_path.open("rb") as handle:
            payload = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"{config_path} is not valid TOML: {exc}") from exc
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{key}' must be a table.")
    return value


def _tuple_of_strings(value: object, name: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ConfigError(f"Config field '{name}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ConfigError(f"Config field '{name}' must contain only strings.")
        output.append(item)
    return tuple(output)


def _optional_bool(value: object, name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"Config field '{name}' must be a boolean.")
    return value


def _optional_positive_int_with_cap(value: object, name: str, default: int, cap: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"Config field '{name}' must be a positive integer.")
    if value > cap:
        raise ConfigError(f"Config field '{name}' must be <= {cap}.")
    return value


def _optional_algorithm(value: object, name: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or value not in SUPPORTED_ALGORITHMS:
        raise ConfigError(
            f"Config field '{name}' must be one of: {', '.join(SUPPORTED_ALGORITHMS)}."
        )
    return value


def normalize_exclude_dirs(names: tuple[str, ...], name: str) -> tuple[str, ...]:
    """Validate directory base names, dropping duplicates and keeping first-seen order."""
    output: list[str] = []
    for raw in names:
        normalized = normalize_user_path(raw)
        if not normalized or "/" in normalized or normalized in (".", ".."):
            raise ConfigError(
                f"Config field '{name}' entry '{raw}' must be a single directory name."
            )
        if normalized not in output:
            output.append(normalized)
    return tuple(output)


def merge_config(base: TreeguardConfig, payload: dict[str, object]) -> TreeguardConfig:
    """Merge a config file payload over defaults."""
    scan_payload = _get_table(payload, "scan")
    verify_payload = _get_table(payload, "verify")
    output_payload = _get_table(payload, "output")

    exclude_dirs = base.scan.exclude_dirs
    if "exclude_dirs" in scan_payload:
        exclude_dirs = normalize_exclude_dirs(
            _tuple_of_strings(scan_payload["exclude_dirs"], "scan.exclude_dirs"),
            "scan.exclude_dirs",
        )

    run_log = base.output.run_log
    if "run_log" in output_payload:
        raw_run_log = output_payload["run_log"]
        if not isinstance(raw_run_log, str) or not raw_run_log:
            raise ConfigError("Config field 'output.run_log' must be a non-empty string.")
        run_log = (base.root / raw_run_log).resolve()

    return TreeguardConfig(
        root=base.root,
        manifest_path=base.manifest_path,
        config_path=base.config_path,
        scan=ScanConfig(
            exclude_dirs=exclude_dirs,
            workers=_optional_positive_int_with_cap(
                scan_payload.get("workers"), "scan.workers", base.scan.workers, MAX_WORKERS_CAP
            ),
            algorithm=_optional_algorithm(
                scan_payload.get("algorithm"), "scan.algorithm", base.scan.algorithm
            ),
            chunk_size=_optional_positive_int_with_cap(
                scan_payload.get("chunk_size"),
                "scan.chunk_size",
                base.scan.chunk_size,
                MAX_CHUNK_SIZE_CAP,
            ),
        ),
        verify=VerifyConfig(
            match_empty_files=_optional_bool(
                verify_payload.get("match_empty_files"),
                "verify.match_empty_files",
                base.verify.match_empty_files,
            ),
            accept_corrupted=_optional_bool(
                verify_payload.get("accept_corrupted"),
                "verify.accept_corrupted",
                base.verify.accept_corrupted,
            ),
        ),
        output=OutputConfig(
            quiet=_optional_bool(output_payload.get("quiet"), "output.quiet", base.output.quiet),
            progress=_optional_bool(
                output_payload.get("progress"), "output.progress", base.output.progress
            ),
            run_log=run_log,
        ),
    )


def apply_cli_overrides(config: TreeguardConfig, overrides: CliOverrides) -> TreeguardConfig:
    """Apply command-line overrides at highest precedence."""
    extra = normalize_exclude_dirs(overrides.extra_exclude_dirs, "--skip")
    exclude_dirs = config.scan.exclude_dirs + tuple(
        name for name in extra if name not in config.scan.exclude_dirs
    )
    return TreeguardConfig(
        root=config.root,
        manifest_path=config.manifest_path,
        config_path=config.config_path,
        scan=ScanConfig(
            exclude_dirs=exclude_dirs,
            workers=_optional_positive_int_with_cap(
                overrides.workers, "--workers", config.scan.workers, MAX_WORKERS_CAP
            ),
            algorithm=_optional_algorithm(
                overrides.algorithm, "--algorithm", config.scan.algorithm
            ),
            chunk_size=config.scan.chunk_size,
        ),
        verify=VerifyConfig(
            match_empty_files=(
                overrides.match_empty_files
                if overrides.match_empty_files is not None
                else config.verify.match_empty_files
            ),
            accept_corrupted=(
                overrides.accept_corrupted
                if overrides.accept_corrupted is not None
                else config.verify.accept_corrupted
            ),
        ),
        output=OutputConfig(
            quiet=overrides.quiet if overrides.quiet is not None else config.output.quiet,
            progress=(
                overrides.progress if overrides.progress is not None else config.output.progress
            ),
            run_log=(
                overrides.run_log.resolve()
                if overrides.run_log is not None
                else config.output.run_log
            ),
        ),
    )


def load_effective_config(
    root: Path,
    manifest_path: Path,
    config_path: Path | None = None,
    overrides: CliOverrides | None = None,
) -> TreeguardConfig:
    """Load effective config using merge order defaults -> config file -> overrides."""
    base = default_config(root, manifest_path)
    if config_path is not None:
        resolved_config = config_path.resolve()
        if not resolved_config.exists():
            raise ConfigError(f"Config file {resolved_config} does not exist.")
    else:
        resolved_config = base.root / CONFIG_FILE_NAME
    payload = load_config_file(resolved_config)
    if resolved_config.exists():
        base = replace(base, config_path=resolved_config)
    merged = merge_config(base, payload)
    return apply_cli_overrides(merged, overrides or CliOverrides())
