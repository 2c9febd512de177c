"""Repository exposing the version marker document."""
from __future__ import annotations

from pathlib import Path

from afkconsole.domain.repositories.version_repository import VersionRepository
from afkconsole.infrastructure.repositories.json_document_store import JsonDocumentStore


class JsonVersionRepository(VersionRepository):
    """Read ``version.json``, creating it with ``default_version`` when absent."""

    def __init__(self, file_path: Path, default_version: str = "1.0.0") -> None:
        self._store = JsonDocumentStore(file_path, lambda: {"version": default_version})
        self._default_version = default_version

    def load(self) -> dict[str, str]:
        data = self._store.load()
        if not isinstance(data, dict) or not data.get("version"):
            return {"version": self._default_version}
        return {"version": str(data["version"])}
