"""
State persistence for the session store.

Adapters store JSON documents by key; the policy decides which store
fields are retained; the persister wires the two to a SessionStore.
"""

from .adapter import InMemoryPersistence, JsonFilePersistence, PersistenceAdapter
from .persister import DEFAULT_PERSIST_KEY, StatePersister
from .policy import (
    DEFAULT_POLICY,
    PERSIST_VERSION,
    PERSISTABLE_FIELDS,
    RUNTIME_FIELDS,
    SENSITIVE_FIELDS,
    PersistPolicy,
)

__all__ = [
    "DEFAULT_PERSIST_KEY",
    "DEFAULT_POLICY",
    "PERSIST_VERSION",
    "PERSISTABLE_FIELDS",
    "RUNTIME_FIELDS",
    "SENSITIVE_FIELDS",
    "InMemoryPersistence",
    "JsonFilePersistence",
    "PersistPolicy",
    "PersistenceAdapter",
    "StatePersister",
]
