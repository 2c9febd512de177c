"""Repository storing behavior settings as a JSON document."""
from __future__ import annotations

import logging
from pathlib import Path

from afkconsole.domain.models.behavior_settings import (
    BehaviorSettings,
    migrate_settings_document,
)
from afkconsole.domain.repositories.settings_repository import SettingsRepository
from afkconsole.infrastructure.repositories.json_document_store import JsonDocumentStore

logger = logging.getLogger(__name__)


class JsonSettingsRepository(SettingsRepository):
    """Persist settings inside ``settings.json``, migrating on every read."""

    def __init__(self, file_path: Path) -> None:
        self._store = JsonDocumentStore(file_path, lambda: BehaviorSettings().to_dict())

    def load(self) -> BehaviorSettings:
        """Return the migrated settings, saving the migration immediately."""

        data = self._store.load()
        if not isinstance(data, dict):
            data = BehaviorSettings().to_dict()
            self._store.save(data)

        migrated, changed = migrate_settings_document(data)
        if changed:
            logger.info("Migrated legacy message fields in %s", self._store.file_path)
            self._store.save(migrated)
        return BehaviorSettings.from_dict(migrated)

    def save(self, settings: BehaviorSettings) -> None:
        """Persist ``settings``."""

        self._store.save(settings.to_dict())
