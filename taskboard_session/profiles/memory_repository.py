"""
In-memory profile repository.

Holds profiles in a dict for local development and tests. Every call
suspends at least once so concurrent callers interleave the way they
would against the remote table.
"""

import asyncio
from typing import Any

from ..exceptions import ProfileExistsError, ProfileNotFoundError
from .repository import ProfileRepository
from .types import Profile


class InMemoryProfileRepository(ProfileRepository):
    """Profile repository backed by a dict keyed by identity id."""

    def __init__(self, latency: float = 0.0) -> None:
        """Initialize the repository.

        Args:
            latency: Seconds each call waits before touching the data
        """
        self.latency = latency
        self.calls: dict[str, int] = {"get_by_id": 0, "insert": 0, "update_by_id": 0}

        self._profiles: dict[str, Profile] = {}
        self._failures: dict[str, list[Exception]] = {}
        self._gates: dict[str, asyncio.Event] = {}

    def put(self, profile: Profile) -> None:
        """Store a profile directly, bypassing insert()."""
        self._profiles[profile.id] = profile

    def get(self, profile_id: str) -> Profile | None:
        """Read a profile directly, bypassing get_by_id()."""
        return self._profiles.get(profile_id)

    def __len__(self) -> int:
        return len(self._profiles)

    def inject_failure(self, operation: str, error: Exception) -> None:
        """Make the next call of ``operation`` raise ``error``."""
        self._failures.setdefault(operation, []).append(error)

    def pause(self, operation: str) -> asyncio.Event:
        """Hold every call of ``operation`` until the returned event is set."""
        gate = asyncio.Event()
        self._gates[operation] = gate
        return gate

    async def get_by_id(self, profile_id: str) -> Profile:
        await self._enter("get_by_id")
        profile = self._profiles.get(profile_id)
        if profile is None:
            raise ProfileNotFoundError(profile_id)
        return profile

    async def insert(self, profile: Profile) -> Profile:
        await self._enter("insert")
        if profile.id in self._profiles:
            raise ProfileExistsError(profile.id)
        self._profiles[profile.id] = profile
        return profile

    async def update_by_id(self, profile_id: str, changes: dict[str, Any]) -> Profile:
        await self._enter("update_by_id")
        current = self._profiles.get(profile_id)
        if current is None:
            raise ProfileNotFoundError(profile_id)
        updated = current.with_changes(changes)
        self._profiles[profile_id] = updated
        return updated

    async def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        await asyncio.sleep(self.latency)
        gate = self._gates.get(operation)
        if gate is not None:
            await gate.wait()
        queue = self._failures.get(operation)
        if queue:
            raise queue.pop(0)
