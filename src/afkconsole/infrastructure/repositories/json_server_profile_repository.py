"""Repository storing the server profile as a JSON document."""
from __future__ import annotations

from pathlib import Path

from afkconsole.domain.models.server_profile import ServerProfile
from afkconsole.domain.repositories.server_profile_repository import ServerProfileRepository
from afkconsole.infrastructure.repositories.json_document_store import JsonDocumentStore


class JsonServerProfileRepository(ServerProfileRepository):
    """Persist the server profile inside ``info.json``."""

    def __init__(self, file_path: Path) -> None:
        self._store = JsonDocumentStore(file_path, lambda: ServerProfile().to_dict())

    def load(self) -> ServerProfile:
        """Return the stored profile or the default one."""

        data = self._store.load()
        if not isinstance(data, dict):
            return ServerProfile()
        return ServerProfile.from_dict(data)

    def save(self, profile: ServerProfile) -> None:
        """Persist ``profile``."""

        self._store.save(profile.to_dict())
