"""Abstract repository contract for the rolling event log."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping


class EventLogRepository(ABC):
    """Append-only log keeping at most ``limit`` entries, oldest evicted first."""

    @abstractmethod
    def append(self, entry: Mapping[str, Any]) -> None:
        """Append ``entry`` evicting the oldest entries beyond the cap."""

    @abstractmethod
    def load(self) -> list[dict[str, Any]]:
        """Return every retained entry, oldest first."""

    @abstractmethod
    def recent(self, limit: int, event_type: str | None = None) -> list[dict[str, Any]]:
        """Return the newest ``limit`` entries, optionally of one type, oldest first."""
