"""Repository keeping the bounded rolling event log in a JSON array."""
from __future__ import annotations

from collections import deque
from pathlib import Path
from typing import Any, Deque, Mapping

from afkconsole.domain.repositories.event_log_repository import EventLogRepository
from afkconsole.infrastructure.repositories.json_document_store import JsonDocumentStore


class JsonEventLogRepository(EventLogRepository):
    """Persist at most ``limit`` log entries inside ``logs.json``.

    The retained entries are cached in memory; every append rewrites the
    file so it always mirrors the cache.
    """

    def __init__(self, file_path: Path, limit: int = 1000) -> None:
        if limit <= 0:
            raise ValueError("The event log limit must be positive.")
        self._store = JsonDocumentStore(file_path, list)
        self._limit = limit
        self._entries: Deque[dict[str, Any]] = deque(maxlen=limit)

        stored = self._store.load()
        if isinstance(stored, list):
            self._entries.extend(entry for entry in stored if isinstance(entry, dict))
        if not isinstance(stored, list) or len(stored) != len(self._entries):
            self._flush()

    @property
    def limit(self) -> int:
        return self._limit

    def append(self, entry: Mapping[str, Any]) -> None:
        """Append ``entry`` and persist the truncated log."""

        self._entries.append(dict(entry))
        self._flush()

    def load(self) -> list[dict[str, Any]]:
        """Return the retained entries, oldest first."""

        return list(self._entries)

    def recent(self, limit: int, event_type: str | None = None) -> list[dict[str, Any]]:
        """Return the newest ``limit`` matching entries, oldest first."""

        if limit <= 0:
            return []
        matching = [
            entry
            for entry in self._entries
            if event_type is None or entry.get("type") == event_type
        ]
        return matching[-limit:]

    def _flush(self) -> None:
        self._store.save(list(self._entries))
