"""Relative path normalization for manifest keys."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final

from treeguard.errors import ManifestPathError

WINDOWS_ABSOLUTE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:[\\/]")


def relative_posix_path(root: Path, full_path: Path) -> str:
    """Return the forward-slash path of full_path below root."""
    return full_path.relative_to(root).as_posix()


def validate_manifest_path(candidate: str) -> str:
    """Return candidate unchanged if it is a normalized relative POSIX path."""
    if not candidate:
        raise ManifestPathError(
            reason="Path is empty.",
            hint="Store paths relative to the scanned root, such as 'docs/a.txt'.",
        )
    if "\\" in candidate:
        raise ManifestPathError(
            reason=f"Path '{candidate}' uses backslash separators.",
            hint="Manifest paths are forward-slash separated.",
        )
    if candidate.startswith("/") or WINDOWS_ABSOLUTE_PATTERN.match(candidate):
        raise ManifestPathError(
            reason=f"Path '{candidate}' is absolute.",
            hint="Store paths relative to the scanned root.",
        )
    parts = candidate.split("/")
    if any(part in ("", ".") for part in parts):
        raise ManifestPathError(
            reason=f"Path '{candidate}' is not normalized.",
            hint="Remove empty and '.' segments.",
        )
    if any(part == ".." for part in parts):
        raise ManifestPathError(
            reason=f"Path '{candidate}' escapes the root.",
            hint="Remove '..' segments.",
        )
    return candidate


def normalize_user_path(candidate: str) -> str:
    """Normalize a user-supplied relative path to manifest form."""
    normalized = candidate.replace("\\", "/").strip()
    while "//" in normalized:
        normalized = normalized.replace("//", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.rstrip("/")


def inside_root(root: Path, candidate: Path) -> str | None:
    """Return candidate's relative path when it resolves inside root, else None."""
    resolved_root = root.resolve()
    resolved = candidate.resolve(strict=False)
    if not resolved.is_relative_to(resolved_root):
        return None
    if resolved == resolved_root:
        return None
    return relative_posix_path(resolved_root, resolved)
