"""Fatal error taxonomy for manifest builds and verification runs."""

from __future__ import annotations

from pathlib import Path


class TreeguardError(Exception):
    """Base class for errors that abort a run."""


class RootUnreadableError(TreeguardError):
    """Raised when the scanned root directory cannot be enumerated."""

    def __init__(self, root: Path, reason: str) -> None:
        super().__init__(f"Cannot read root directory {root}: {reason}")
        self.root = root
        self.reason = reason


class ManifestFormatError(TreeguardError):
    """Raised when a stored manifest is not a well-formed record list."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Malformed manifest {source}: {reason}")
        self.source = source
        self.reason = reason


class DuplicatePathError(ManifestFormatError):
    """Raised when two records share one relative path."""

    def __init__(self, path: str, source: str = "<memory>") -> None:
        super().__init__(source, f"duplicate path '{path}'")
        self.path = path


class ManifestPathError(TreeguardError):
    """Raised when a manifest path is not a normalized relative POSIX path."""

    def __init__(self, reason: str, hint: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint


class HashAlgorithmMismatchError(TreeguardError):
    """Raised when reference digests were produced by a different algorithm."""

    def __init__(self, algorithm: str, expected_size: int, found_size: int) -> None:
        super().__init__(
            f"Reference digests are {found_size} bytes but '{algorithm}' produces "
            f"{expected_size}; rebuild the manifest or pass the matching --algorithm."
        )
        self.algorithm = algorithm
        self.expected_size = expected_size
        self.found_size = found_size


class BuildCancelledError(TreeguardError):
    """Raised when a build stops on a cancellation request."""

    def __init__(self, completed: int) -> None:
        super().__init__(f"Cancelled after {completed} files; nothing was written.")
        self.completed = completed


class ConfigError(TreeguardError, ValueError):
    """Raised for invalid configuration values."""
