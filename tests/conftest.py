"""
Shared test configuration and fixtures.

Provides in-memory identity provider, profile repository and store
fixtures so store behavior can be tested without the hosted service.
"""

import logging

import pytest

from taskboard_session.identity import InMemoryIdentityProvider
from taskboard_session.profiles import InMemoryProfileRepository
from taskboard_session.store import SessionStore

logger = logging.getLogger(__name__)

ALICE_EMAIL = "alice@example.com"
ALICE_PASSWORD = "correct-horse"
ALICE_ID = "user-alice"
BOB_EMAIL = "bob@example.com"
BOB_PASSWORD = "battery-staple"
BOB_ID = "user-bob"


@pytest.fixture
def provider() -> InMemoryIdentityProvider:
    """In-memory identity provider with two confirmed accounts."""
    provider = InMemoryIdentityProvider()
    provider.add_account(ALICE_EMAIL, ALICE_PASSWORD, name="Alice", user_id=ALICE_ID)
    provider.add_account(BOB_EMAIL, BOB_PASSWORD, name="Bob", user_id=BOB_ID)
    return provider


@pytest.fixture
def repository() -> InMemoryProfileRepository:
    """Empty in-memory profile repository."""
    return InMemoryProfileRepository()


@pytest.fixture
def store(provider: InMemoryIdentityProvider, repository: InMemoryProfileRepository):
    """Store wired to the in-memory collaborators."""
    store = SessionStore(provider, repository)
    yield store
    store.close()


class StateRecorder:
    """Store listener that keeps every (new, previous) pair it sees."""

    def __init__(self) -> None:
        self.calls = []

    def __call__(self, state, previous) -> None:
        self.calls.append((state, previous))

    @property
    def states(self):
        return [state for state, _ in self.calls]


@pytest.fixture
def recorder(store: SessionStore) -> StateRecorder:
    """Listener subscribed to the store fixture."""
    recorder = StateRecorder()
    store.subscribe(recorder)
    return recorder
