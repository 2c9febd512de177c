"""Repository protocol for the global server profile."""
from __future__ import annotations

from typing import Protocol

from afkconsole.domain.models.server_profile import ServerProfile


class ServerProfileRepository(Protocol):
    """Persist and retrieve the server profile."""

    def load(self) -> ServerProfile:
        """Return the stored profile, creating the default one when absent."""

    def save(self, profile: ServerProfile) -> None:
        """Persist the provided profile."""
