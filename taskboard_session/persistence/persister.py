"""
Mirrors store snapshots to a persistence adapter.

The persister is the only piece that talks to durable storage on the
store's behalf. It restores the retained fields once, before
``initialize()``, and afterwards writes a new document whenever the
retained selection of a snapshot changes.

Usage:
    >>> persister = StatePersister(store, JsonFilePersistence(path))
    >>> await persister.rehydrate()
    >>> persister.attach()
    >>> await store.initialize()
    ...
    >>> await persister.flush()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ..exceptions import PersistenceIOError, ValidationError
from .adapter import PersistenceAdapter
from .policy import DEFAULT_POLICY, PersistPolicy

if TYPE_CHECKING:
    from ..store import SessionStore, StoreState

logger = logging.getLogger(__name__)

DEFAULT_PERSIST_KEY = "auth-storage"


class StatePersister:
    """Keeps one persisted document in sync with a SessionStore."""

    def __init__(
        self,
        store: SessionStore,
        adapter: PersistenceAdapter,
        policy: PersistPolicy = DEFAULT_POLICY,
        key: str = DEFAULT_PERSIST_KEY,
    ) -> None:
        """Initialize the persister.

        Args:
            store: Store whose snapshots are mirrored
            adapter: Durable storage for the document
            policy: Which fields are retained
            key: Document key (a plain name such as "auth-storage")
        """
        if not key:
            raise ValidationError("persist_key", "must not be empty")
        self.store = store
        self.adapter = adapter
        self.policy = policy
        self.key = key

        self._unsubscribe: Callable[[], None] | None = None
        self._last_selection: dict[str, Any] | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self._write_lock = asyncio.Lock()

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    async def rehydrate(self) -> dict[str, Any]:
        """Load the stored document and restore its fields into the store.

        An unreadable document is logged and the store keeps its
        uninitialized shape.

        Returns:
            The restored fields (empty when nothing was restored)
        """
        try:
            document = await self.adapter.load(self.key)
        except PersistenceIOError as e:
            logger.warning(f"Rehydration skipped for {self.key}: {e}")
            return {}

        restored = self.policy.restore(document)
        if restored:
            logger.debug(f"Rehydrating {sorted(restored)} from {self.key}")
            self.store.hydrate(restored)
        return restored

    def attach(self) -> None:
        """Start writing the document on every relevant state change."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.store.subscribe(self._on_state_change)

    def detach(self) -> None:
        """Stop following the store. Pending writes still complete."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def save(self) -> None:
        """Write the current selection immediately."""
        state = self.store.get_state()
        self._last_selection = self.policy.select(state)
        await self._write(self.policy.envelope(state))

    async def flush(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def clear(self) -> None:
        """Remove the stored document."""
        await self.flush()
        self._last_selection = None
        await self.adapter.remove(self.key)

    def _on_state_change(self, state: StoreState, previous: StoreState) -> None:
        selection = self.policy.select(state)
        if selection == self._last_selection:
            return
        self._last_selection = selection

        task = asyncio.get_running_loop().create_task(
            self._write(self.policy.envelope(state))
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, document: dict[str, Any]) -> None:
        async with self._write_lock:
            try:
                await self.adapter.save(self.key, document)
            except PersistenceIOError as e:
                logger.warning(f"Failed to persist {self.key}: {e}")
