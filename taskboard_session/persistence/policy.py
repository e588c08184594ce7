"""
Field-selection policy for persisted store state.

Decides which StoreState fields survive a restart. Identity, session and
profile are sensitive and are never written; the provider keeps its own
durable session and ``initialize()`` re-derives everything from it.
Loading and initialization flags only make sense for the running
process. That leaves ``error`` as the only field an application may opt
in to; the default policy retains nothing.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..exceptions import ValidationError

if TYPE_CHECKING:
    from ..store import StoreState

PERSIST_VERSION = 1

SENSITIVE_FIELDS = frozenset({"identity", "session", "profile"})
RUNTIME_FIELDS = frozenset({"is_loading", "is_initialized"})
PERSISTABLE_FIELDS = frozenset({"error"})


@dataclass(frozen=True)
class PersistPolicy:
    """Names the StoreState fields that are persisted."""

    fields: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        for name in self.fields:
            if name in SENSITIVE_FIELDS:
                raise ValidationError("persist_fields", "sensitive field cannot be persisted", name)
            if name in RUNTIME_FIELDS:
                raise ValidationError("persist_fields", "runtime-only field", name)
            if name not in PERSISTABLE_FIELDS:
                raise ValidationError("persist_fields", "unknown state field", name)

    @classmethod
    def of(cls, fields: Iterable[str]) -> PersistPolicy:
        return cls(frozenset(f.strip() for f in fields if f.strip()))

    def select(self, state: StoreState) -> dict[str, Any]:
        """Pick the retained fields out of a snapshot."""
        return {name: getattr(state, name) for name in sorted(self.fields)}

    def envelope(self, state: StoreState) -> dict[str, Any]:
        """Build the stored document for a snapshot."""
        return {"version": PERSIST_VERSION, "state": self.select(state)}

    def restore(self, document: dict[str, Any] | None) -> dict[str, Any]:
        """Extract the retained fields from a stored document.

        Documents from another version, unknown fields and values of the
        wrong type are ignored.
        """
        if not isinstance(document, dict) or document.get("version") != PERSIST_VERSION:
            return {}
        stored = document.get("state")
        if not isinstance(stored, dict):
            return {}

        restored: dict[str, Any] = {}
        for name in self.fields:
            if name not in stored:
                continue
            value = stored[name]
            if value is None or isinstance(value, str):
                restored[name] = value
        return restored


DEFAULT_POLICY = PersistPolicy()
