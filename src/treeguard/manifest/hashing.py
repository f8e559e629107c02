"""Streamed content hashing."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import BinaryIO

DEFAULT_ALGORITHM = "sha256"
DEFAULT_CHUNK_SIZE = 1024 * 1024
SUPPORTED_ALGORITHMS = ("blake2b", "sha256", "sha3_256", "sha512")


def new_hasher(algorithm: str = DEFAULT_ALGORITHM) -> hashlib._Hash:
    """Return a fresh hash object for a supported algorithm name."""
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise ValueError(
            f"Unsupported hash algorithm '{algorithm}'. "
            f"Choose one of: {', '.join(SUPPORTED_ALGORITHMS)}."
        )
    return hashlib.new(algorithm)


def digest_size(algorithm: str = DEFAULT_ALGORITHM) -> int:
    """Return the digest length in bytes for an algorithm."""
    return new_hasher(algorithm).digest_size


def hash_stream(
    handle: BinaryIO,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> tuple[bytes, int]:
    """Hash an open binary handle in bounded chunks, returning (digest, size)."""
    digest = new_hasher(algorithm)
    size = 0
    while True:
        chunk = handle.read(chunk_size)
        if not chunk:
            break
        digest.update(chunk)
        size += len(chunk)
    return digest.digest(), size


def hash_file(
    path: Path,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> tuple[bytes, int]:
    """Hash a file by path."""
    with path.open("rb") as handle:
        return hash_stream(handle, algorithm=algorithm, chunk_size=chunk_size)
