"""File-backed document store that creates its default on first read."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)


class JsonDocumentStore:
    """Persist one JSON document on disk, falling back to a default."""

    def __init__(self, file_path: Path, default_factory: Callable[[], Any]) -> None:
        """Initialize the store with its file path and default document factory."""

        self._file_path = file_path
        self._default_factory = default_factory
        self._file_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def file_path(self) -> Path:
        return self._file_path

    def load(self) -> Any:
        """Return the stored document, writing the default when missing or unreadable."""

        if not self._file_path.exists():
            return self._reset()
        try:
            with self._file_path.open("r", encoding="utf-8") as input_file:
                return json.load(input_file)
        except json.JSONDecodeError:
            logger.warning("Unreadable JSON in %s; restoring defaults", self._file_path)
            return self._reset()

    def save(self, document: Any) -> None:
        """Serialize and persist ``document``."""

        with self._file_path.open("w", encoding="utf-8") as output_file:
            json.dump(document, output_file, ensure_ascii=False, indent=2)

    def _reset(self) -> Any:
        document = self._default_factory()
        self.save(document)
        return document


class TextDocumentStore:
    """Persist a plain-text document, created empty on first read."""

    def __init__(self, file_path: Path, default: str = "") -> None:
        self._file_path = file_path
        self._default = default
        self._file_path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> str:
        if not self._file_path.exists():
            self.save(self._default)
            return self._default
        return self._file_path.read_text(encoding="utf-8")

    def save(self, text: str) -> None:
        self._file_path.write_text(text, encoding="utf-8")
