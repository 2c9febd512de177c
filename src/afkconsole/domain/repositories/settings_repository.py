"""Repository protocol for the behavior settings document."""
from __future__ import annotations

from typing import Protocol

from afkconsole.domain.models.behavior_settings import BehaviorSettings


class SettingsRepository(Protocol):
    """Persist and retrieve behavior settings."""

    def load(self) -> BehaviorSettings:
        """Return the migrated settings, persisting the migration when needed."""

    def save(self, settings: BehaviorSettings) -> None:
        """Persist the provided settings."""
