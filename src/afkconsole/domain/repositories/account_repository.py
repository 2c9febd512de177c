"""Repository protocol for the ordered account list."""
from __future__ import annotations

from typing import Protocol, Sequence

from afkconsole.domain.models.account import Account


class AccountRepository(Protocol):
    """Persist and retrieve the account list."""

    def load(self) -> list[Account]:
        """Return every account in stored order."""

    def save(self, accounts: Sequence[Account]) -> None:
        """Replace the stored account list."""
