"""Storage abstract interfaces. v1 uses local JSON files."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any


class WatermarkStore(ABC):
    """Holds the single "last checked" instant."""

    @abstractmethod
    def read(self) -> datetime | None:
        """Return the stored watermark, or None if none was ever written."""
        ...

    @abstractmethod
    def write(self, value: datetime) -> None:
        """Persist *value* as the new watermark."""
        ...


class CycleOutputStore(ABC):
    """Receives the flattened commit list of each cycle, replacing the previous one."""

    @abstractmethod
    def write(self, payload: list[dict[str, Any]]) -> None:
        ...
