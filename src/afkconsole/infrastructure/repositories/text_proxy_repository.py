"""Repository storing the proxy list as newline-delimited text."""
from __future__ import annotations

from pathlib import Path

from afkconsole.domain.models.proxy import ProxyPool
from afkconsole.domain.repositories.proxy_repository import ProxyRepository
from afkconsole.infrastructure.repositories.json_document_store import TextDocumentStore


class TextProxyRepository(ProxyRepository):
    """Persist proxies inside ``proxies.txt``."""

    def __init__(self, file_path: Path) -> None:
        self._store = TextDocumentStore(file_path)

    def load_text(self) -> str:
        return self._store.load()

    def load(self) -> ProxyPool:
        """Parse the stored list into a pool."""

        return ProxyPool.from_text(self._store.load())

    def save_text(self, text: str) -> None:
        self._store.save(text)
