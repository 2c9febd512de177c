"""Repository storing the account list as a JSON array."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from afkconsole.domain.models.account import Account, migrate_account_documents
from afkconsole.domain.repositories.account_repository import AccountRepository
from afkconsole.infrastructure.repositories.json_document_store import JsonDocumentStore

logger = logging.getLogger(__name__)


class JsonAccountRepository(AccountRepository):
    """Persist accounts inside ``bots.json`` keeping their order."""

    def __init__(self, file_path: Path) -> None:
        self._store = JsonDocumentStore(file_path, list)

    def load(self) -> list[Account]:
        """Return the stored accounts, migrating missing auth modes."""

        data = self._store.load()
        if not isinstance(data, list):
            raise ValueError("The stored account list must be a JSON array.")

        documents, changed = migrate_account_documents(
            entry for entry in data if isinstance(entry, dict)
        )
        if changed:
            logger.info("Filled missing auth modes in %s", self._store.file_path)
            self._store.save(documents)
        return [Account.from_dict(document) for document in documents]

    def save(self, accounts: Sequence[Account]) -> None:
        """Replace the stored account list."""

        self._store.save([account.to_dict() for account in accounts])
