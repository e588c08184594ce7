"""
Persistence adapters.

A persistence adapter durably stores small JSON documents by key so the
store's selected state survives a process restart.
"""

from __future__ import annotations

import copy
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from ..exceptions import ValidationError
from ..file_ops import discard_document, read_document, write_private_document

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class PersistenceAdapter(ABC):
    """Abstract key/value store for persisted state documents."""

    @abstractmethod
    async def save(self, key: str, data: dict[str, Any]) -> None:
        """Store ``data`` under ``key``, replacing any previous document."""
        ...

    @abstractmethod
    async def load(self, key: str) -> dict[str, Any] | None:
        """Return the document stored under ``key``, or None."""
        ...

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete the document stored under ``key`` if present."""
        ...


class JsonFilePersistence(PersistenceAdapter):
    """Stores each key as ``{base_dir}/{key}.json``.

    Writes are atomic (temp file + rename) and the files are private to
    the current user.
    """

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)

    def path_for(self, key: str) -> Path:
        """Get the file path for a key."""
        if not _KEY_PATTERN.match(key):
            raise ValidationError("key", "must be a plain file name", key)
        return self.base_dir / f"{key}.json"

    async def save(self, key: str, data: dict[str, Any]) -> None:
        await write_private_document(self.path_for(key), data)

    async def load(self, key: str) -> dict[str, Any] | None:
        return await read_document(self.path_for(key))

    async def remove(self, key: str) -> None:
        await discard_document(self.path_for(key))


class InMemoryPersistence(PersistenceAdapter):
    """Keeps documents in a dict. Useful for tests and ephemeral runs."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.save_count = 0

    async def save(self, key: str, data: dict[str, Any]) -> None:
        self.save_count += 1
        self.documents[key] = copy.deepcopy(data)

    async def load(self, key: str) -> dict[str, Any] | None:
        data = self.documents.get(key)
        return copy.deepcopy(data) if data is not None else None

    async def remove(self, key: str) -> None:
        self.documents.pop(key, None)
