"""Local JSON file storage implementation."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

from commitwatch.core.github import format_github_timestamp, parse_github_timestamp
from commitwatch.exceptions import WatermarkError
from commitwatch.store.base import CycleOutputStore, WatermarkStore

_WATERMARK_KEY = "last_checked"


def _atomic_write_json(path: Path, payload: Any) -> None:
    """Write *payload* to a sibling temp file, then rename it over *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(payload, f, indent=2)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class JsonWatermarkStore(WatermarkStore):
    """``{"last_checked": "YYYY-MM-DDTHH:MM:SSZ"}`` in a small state file.

    Writes are read-modify-write: any other keys in the file are kept.
    """

    def __init__(self, path: str | Path = "data.json") -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text() or "{}")
        except json.JSONDecodeError as exc:
            raise WatermarkError(str(self.path), f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise WatermarkError(str(self.path), "expected a JSON object")
        return data

    def read(self) -> datetime | None:
        raw = self._load().get(_WATERMARK_KEY)
        if raw is None:
            return None
        value = parse_github_timestamp(raw) if isinstance(raw, str) else None
        if value is None:
            raise WatermarkError(str(self.path), f"unparseable {_WATERMARK_KEY}: {raw!r}")
        return value

    def write(self, value: datetime) -> None:
        data = self._load()
        data[_WATERMARK_KEY] = format_github_timestamp(value)
        _atomic_write_json(self.path, data)


class JsonCycleOutputStore(CycleOutputStore):
    """Overwrites a JSON file with the latest cycle's commits. No history is kept."""

    def __init__(self, path: str | Path = "commits.json") -> None:
        self.path = Path(path)

    def write(self, payload: list[dict[str, Any]]) -> None:
        _atomic_write_json(self.path, payload)
