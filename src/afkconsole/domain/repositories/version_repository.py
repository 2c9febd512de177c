"""Repository protocol for the version marker."""
from __future__ import annotations

from typing import Protocol


class VersionRepository(Protocol):
    """Provide the stored version marker."""

    def load(self) -> dict[str, str]:
        """Return the version document."""
