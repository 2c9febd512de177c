"""Repository protocol for the proxy list."""
from __future__ import annotations

from typing import Protocol

from afkconsole.domain.models.proxy import ProxyPool


class ProxyRepository(Protocol):
    """Persist and retrieve the newline-delimited proxy list."""

    def load_text(self) -> str:
        """Return the raw proxy list."""

    def load(self) -> ProxyPool:
        """Return the parsed proxy pool."""

    def save_text(self, text: str) -> None:
        """Replace the raw proxy list."""
