"""
Taskboard Session

Session and profile synchronization core for the taskboard web app.

Provides:
- A single authoritative store for identity, session and profile state
- Identity providers (hosted auth API, in-memory)
- Profile repositories with lazy profile creation (hosted table API, in-memory)
- State persistence with an explicit field-selection policy

Usage:

    >>> from taskboard_session import AppContext, SessionConfig
    >>> config = SessionConfig.from_environment()
    >>> async with AppContext.create(config) as ctx:
    ...     unsubscribe = ctx.store.subscribe(lambda state, previous: render(state))
    ...     await ctx.store.login("alice@example.com", "secret")
    ...     await ctx.store.update_profile({"name": "Alice"})

Testing without a backend:

    from taskboard_session import InMemoryIdentityProvider, InMemoryProfileRepository

    provider = InMemoryIdentityProvider()
    provider.add_account("alice@example.com", "secret", name="Alice")
    store = SessionStore(provider, InMemoryProfileRepository())
"""

from .config import SessionConfig
from .context import AppContext
from .exceptions import (
    EMAIL_NOT_CONFIRMED_MESSAGE,
    REGISTRATION_PENDING_MESSAGE,
    CredentialError,
    EmailNotConfirmedError,
    PersistenceIOError,
    ProfileExistsError,
    ProfileNotFoundError,
    RegistrationError,
    RegistrationPendingError,
    RepositoryError,
    SessionStoreError,
    TransportError,
    ValidationError,
)
from .identity import (
    HostedIdentityProvider,
    Identity,
    IdentityEventKind,
    IdentityProvider,
    InMemoryIdentityProvider,
    Session,
    SignUpResult,
)
from .persistence import (
    InMemoryPersistence,
    JsonFilePersistence,
    PersistenceAdapter,
    PersistPolicy,
    StatePersister,
)
from .profiles import (
    InMemoryProfileRepository,
    Profile,
    ProfileRepository,
    RestProfileRepository,
)
from .store import SessionStore, StorePhase, StoreState

__version__ = "0.1.0"

__all__ = [
    # Composition
    "AppContext",
    "SessionConfig",
    # Store
    "SessionStore",
    "StorePhase",
    "StoreState",
    # Identity
    "Identity",
    "IdentityEventKind",
    "IdentityProvider",
    "Session",
    "SignUpResult",
    "HostedIdentityProvider",
    "InMemoryIdentityProvider",
    # Profiles
    "Profile",
    "ProfileRepository",
    "InMemoryProfileRepository",
    "RestProfileRepository",
    # Persistence
    "PersistenceAdapter",
    "JsonFilePersistence",
    "InMemoryPersistence",
    "PersistPolicy",
    "StatePersister",
    # Exceptions
    "SessionStoreError",
    "CredentialError",
    "EmailNotConfirmedError",
    "RegistrationError",
    "RegistrationPendingError",
    "TransportError",
    "ProfileNotFoundError",
    "ProfileExistsError",
    "RepositoryError",
    "ValidationError",
    "PersistenceIOError",
    "EMAIL_NOT_CONFIRMED_MESSAGE",
    "REGISTRATION_PENDING_MESSAGE",
]
