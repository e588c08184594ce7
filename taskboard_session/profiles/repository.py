"""
Profile repository abstract interface.

Defines the contract that all profile repositories must implement.
"""

from abc import ABC, abstractmethod
from typing import Any

from .types import Profile


class ProfileRepository(ABC):
    """Abstract profile repository.

    The repository is the durable owner of profiles. Implementations must
    signal an absent record with ``ProfileNotFoundError`` and nothing
    else: the store creates a profile only on that signal.
    """

    @abstractmethod
    async def get_by_id(self, profile_id: str) -> Profile:
        """Get a profile by identity id.

        Raises:
            ProfileNotFoundError: If no profile exists
            TransportError: If the remote store is unreachable
            RepositoryError: For any other failure
        """
        ...

    @abstractmethod
    async def insert(self, profile: Profile) -> Profile:
        """Create a profile and return the stored record.

        Raises:
            ProfileExistsError: If a profile with that id already exists
            TransportError: If the remote store is unreachable
            RepositoryError: For any other failure
        """
        ...

    @abstractmethod
    async def update_by_id(self, profile_id: str, changes: dict[str, Any]) -> Profile:
        """Apply a partial update and return the stored record.

        Raises:
            ProfileNotFoundError: If no profile exists
            TransportError: If the remote store is unreachable
            RepositoryError: For any other failure
        """
        ...

    async def close(self) -> None:
        """Release network resources. No-op by default."""
        return None
