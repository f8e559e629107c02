"""Structured JSONL run log."""

from __future__ import annotations

import json
from collections import deque
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path


@dataclass(slots=True, frozen=True)
class RunEvent:
    """Summary of a single build or verify run."""

    timestamp: str
    mode: str
    root: str
    manifest: str
    ok: bool
    counts: dict[str, int]
    skipped: int
    error: str | None = None


def utc_timestamp() -> str:
    """ISO-8601 UTC time with millisecond precision and a Z suffix."""
    now = datetime.now(tz=UTC)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class JsonlRunLog:
    """One JSON object per run, appended to a file that is never rewritten."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def append(self, event: RunEvent) -> None:
        line = json.dumps(asdict(event), sort_keys=True, separators=(",", ":"))
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as stream:
            stream.write(line + "\n")

    def read(self, limit: int = 50) -> list[dict[str, object]]:
        """Return up to ``limit`` most recent events, oldest first.

        Blank and unparsable lines are ignored so a torn final write does not
        hide earlier runs.
        """
        if limit < 1 or not self._path.is_file():
            return []
        recent: deque[dict[str, object]] = deque(maxlen=limit)
        with self._path.open(encoding="utf-8") as stream:
            for raw in stream:
                if not raw.strip():
                    continue
                try:
                    event = json.loads(raw)
                except json.JSONDecodeError:
                    continue
                if isinstance(event, dict):
                    recent.append(event)
        return list(recent)
