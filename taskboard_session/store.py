"""
Session/profile store.

The store is the single authority for "who is signed in and what is
their profile". It holds one immutable ``StoreState`` snapshot, replaces
it on every transition and broadcasts the new snapshot to observers.

Two independent sources drive it:
- explicit operations (initialize, login, signup, logout, fetch_profile,
  update_profile, clear_error)
- identity-change notifications pushed by the identity provider

Both may trigger the same profile fetch. Fetches are serialized per
identity id so a missing profile is created exactly once, and every
remote result is checked against the current identity before it is
applied so a sign-out that lands mid-call wins.

Usage:
    >>> store = SessionStore(provider, repository)
    >>> unsubscribe = store.subscribe(lambda state, previous: render(state))
    >>> await store.initialize()
    >>> await store.login("alice@example.com", "secret")
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from .exceptions import (
    ProfileExistsError,
    ProfileNotFoundError,
    RegistrationPendingError,
    SessionStoreError,
    ValidationError,
)
from .identity.provider import IdentityProvider, Unsubscribe
from .identity.types import Identity, IdentityEventKind, Session
from .logging_utils import SessionLoggerAdapter, get_session_logger
from .profiles.repository import ProfileRepository
from .profiles.types import EDITABLE_FIELDS, IMMUTABLE_FIELDS, Profile

logger = get_session_logger("store")

# Fields that may be restored from persistence before initialize()
HYDRATABLE_FIELDS = frozenset({"identity", "profile", "session", "error"})

_PROFILE_FETCH_EVENTS = (IdentityEventKind.SIGNED_IN, IdentityEventKind.TOKEN_REFRESHED)


class StorePhase(Enum):
    """Lifecycle phase derived from the current state."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class StoreState:
    """Snapshot of the session/profile state.

    Invariants (maintained by SessionStore):
    - profile is set only for the current identity
    - session is set only when identity is set
    - is_initialized never reverts to False
    """

    identity: Identity | None = None
    profile: Profile | None = None
    session: Session | None = None
    is_loading: bool = False
    is_initialized: bool = False
    error: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @property
    def has_profile(self) -> bool:
        return self.profile is not None


StateListener = Callable[[StoreState, StoreState], None]


def _message(error: Exception, fallback: str) -> str:
    if isinstance(error, SessionStoreError):
        return error.message or fallback
    return str(error) or fallback


def validate_profile_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """Check a partial profile update before it reaches the repository.

    Raises:
        ValidationError: For immutable, unknown or mistyped fields
    """
    for key, value in changes.items():
        if key in IMMUTABLE_FIELDS:
            raise ValidationError(key, "field cannot be changed")
        if key not in EDITABLE_FIELDS:
            raise ValidationError(key, "unknown profile field")
        if key == "avatar_url":
            if value is not None and not isinstance(value, str):
                raise ValidationError(key, "must be a string or None", repr(value))
        elif not isinstance(value, str) or not value.strip():
            raise ValidationError(key, "must be a non-empty string", repr(value))
    return dict(changes)


class SessionStore:
    """Authoritative session/profile state for one process.

    Construct exactly one per process (see ``AppContext``) and hand it
    to every consumer. Observers read snapshots; only the store's own
    operations write state.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        repository: ProfileRepository,
        initial_state: StoreState | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            provider: Identity provider client
            repository: Profile repository
            initial_state: Starting snapshot (defaults to the uninitialized shape)
        """
        self.provider = provider
        self.repository = repository

        self._state = initial_state or StoreState()
        self._listeners: list[StateListener] = []
        self._init_task: asyncio.Task[None] | None = None
        self._provider_unsubscribe: Unsubscribe | None = None
        self._profile_locks: dict[str, asyncio.Lock] = {}
        self._profile_lock_users: dict[str, int] = {}
        self._log = SessionLoggerAdapter(logger, {"component": "session_store"})

    # -- observation ----------------------------------------------------------

    @property
    def state(self) -> StoreState:
        """Current snapshot."""
        return self._state

    def get_state(self) -> StoreState:
        """Current snapshot."""
        return self._state

    @property
    def phase(self) -> StorePhase:
        if self._state.identity is not None:
            return StorePhase.AUTHENTICATED
        if self._state.is_initialized:
            return StorePhase.UNAUTHENTICATED
        if self._init_task is not None:
            return StorePhase.INITIALIZING
        return StorePhase.UNINITIALIZED

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register an observer called with (new_state, previous_state).

        Returns:
            Callable that removes the observer
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- operations -----------------------------------------------------------

    async def initialize(self) -> None:
        """Derive the state from the provider's existing session.

        Safe to call more than once: later calls wait for the first run
        and never register a second provider subscription. Never raises.
        """
        if self._init_task is None:
            self._init_task = asyncio.get_running_loop().create_task(self._initialize())
        await self._init_task

    async def login(self, email: str, password: str) -> None:
        """Sign in with email and password, then load the profile.

        Raises:
            CredentialError: Bad credentials or unconfirmed email
            TransportError: Auth service unreachable
        """
        self._set(is_loading=True, error=None)
        try:
            session = await self.provider.sign_in_with_password(email, password)
        except Exception as e:
            self._log.error(f"Login error: {e}")
            self._set(error=_message(e, "Login failed"), is_loading=False)
            raise

        self._set(identity=session.identity, session=session, is_loading=False)
        await self.fetch_profile()

    async def signup(self, email: str, password: str, name: str) -> None:
        """Register a new identity.

        An identity that still has to confirm its email is not signed
        in; the store records an informational message instead.

        Raises:
            RegistrationError: Registration refused
            TransportError: Auth service unreachable
        """
        self._set(is_loading=True, error=None)
        try:
            result = await self.provider.sign_up(email, password, {"name": name})
        except Exception as e:
            self._log.error(f"Signup error: {e}")
            self._set(error=_message(e, "Signup failed"), is_loading=False)
            raise

        if not result.identity.is_confirmed:
            pending = RegistrationPendingError(email)
            self._log.info(f"Signup awaiting email confirmation: {result.identity.id}")
            self._set(error=pending.message, is_loading=False)
            return

        self._set(identity=result.identity, session=result.session, is_loading=False)

    async def logout(self) -> None:
        """Sign out and clear identity, profile and session.

        On failure the state is left as it was, with the error recorded.

        Raises:
            TransportError: Auth service unreachable
        """
        if self._state.identity is None and self._state.session is None:
            return

        self._set(is_loading=True, error=None)
        try:
            await self.provider.sign_out()
        except Exception as e:
            self._log.error(f"Logout error: {e}")
            self._set(error=_message(e, "Logout failed"), is_loading=False)
            raise

        self._set(identity=None, profile=None, session=None, is_loading=False)

    async def fetch_profile(self) -> None:
        """Load the current identity's profile, creating it if absent.

        Best effort: failures are logged and leave the profile and the
        error untouched. Never raises.
        """
        identity = self._state.identity
        if identity is None:
            return

        async with self._profile_lock(identity.id):
            try:
                profile = await self._load_or_create_profile(identity)
            except Exception as e:
                self._log.warning(f"Fetch profile error for {identity.id}: {e}")
                return

        if not self._is_current(identity.id):
            self._log.debug(f"Discarding profile for {identity.id}: identity changed")
            return
        self._set(profile=profile)

    async def update_profile(self, changes: dict[str, Any]) -> None:
        """Apply a partial update to the current profile.

        Raises:
            ValidationError: For fields that cannot be changed
            ProfileNotFoundError: If the profile does not exist remotely
            TransportError: Remote store unreachable
        """
        identity = self._state.identity
        if identity is None:
            return
        changes = validate_profile_changes(changes)

        self._set(is_loading=True, error=None)
        try:
            profile = await self.repository.update_by_id(identity.id, changes)
        except Exception as e:
            self._log.error(f"Update profile error for {identity.id}: {e}")
            self._set(error=_message(e, "Failed to update profile"), is_loading=False)
            raise

        if not self._is_current(identity.id):
            self._log.debug(f"Discarding profile update for {identity.id}: identity changed")
            self._set(is_loading=False)
            return
        self._set(profile=profile, is_loading=False)

    def clear_error(self) -> None:
        """Drop the error left by the last operation."""
        self._set(error=None)

    def hydrate(self, values: dict[str, Any]) -> None:
        """Restore persisted fields before ``initialize()`` runs.

        Only identity, profile, session and error are accepted; anything
        else, and any call after initialize() started, is ignored.
        """
        if self._init_task is not None or self._state.is_initialized:
            self._log.warning("Ignoring rehydration after initialize()")
            return
        accepted = {k: v for k, v in values.items() if k in HYDRATABLE_FIELDS}
        if accepted:
            self._set(**accepted)

    def close(self) -> None:
        """Stop listening to the identity provider."""
        if self._provider_unsubscribe is not None:
            self._provider_unsubscribe()
            self._provider_unsubscribe = None

    # -- internals ------------------------------------------------------------

    @asynccontextmanager
    async def _profile_lock(self, identity_id: str) -> AsyncIterator[None]:
        """Serialize profile loads per identity; the entry goes with its last user."""
        lock = self._profile_locks.setdefault(identity_id, asyncio.Lock())
        self._profile_lock_users[identity_id] = self._profile_lock_users.get(identity_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._profile_lock_users[identity_id] -= 1
            if not self._profile_lock_users[identity_id]:
                del self._profile_lock_users[identity_id]
                del self._profile_locks[identity_id]

    async def _initialize(self) -> None:
        try:
            if self._provider_unsubscribe is None:
                self._provider_unsubscribe = self.provider.on_identity_change(
                    self._handle_identity_change
                )
            session = await self.provider.get_session()
        except Exception as e:
            self._log.error(f"Auth initialization error: {e}")
            self._set(error=_message(e, "Initialization failed"), is_initialized=True)
            return

        if session is None:
            self._set(is_initialized=True)
            return

        self._set(identity=session.identity, session=session, is_initialized=True)
        await self.fetch_profile()

    async def _load_or_create_profile(self, identity: Identity) -> Profile:
        try:
            return await self.repository.get_by_id(identity.id)
        except ProfileNotFoundError:
            pass

        self._log.info(f"Creating profile for {identity.id}")
        try:
            return await self.repository.insert(Profile.seed_from(identity))
        except ProfileExistsError:
            # Created elsewhere between our read and insert
            return await self.repository.get_by_id(identity.id)

    async def _handle_identity_change(
        self, kind: IdentityEventKind, session: Session | None
    ) -> None:
        try:
            await self._apply_identity_change(kind, session)
        except Exception:
            self._log.exception(f"Identity change handling failed for {kind}")

    async def _apply_identity_change(
        self, kind: IdentityEventKind, session: Session | None
    ) -> None:
        if not isinstance(kind, IdentityEventKind):
            self._log.warning(f"Unexpected identity event kind: {kind!r}")
            kind = IdentityEventKind.OTHER
        if session is not None and not isinstance(session, Session):
            self._log.warning(f"Ignoring {kind.value} with unexpected payload: {session!r}")
            return

        self._log.debug(
            f"Identity changed: {kind.value} {session.identity.id if session else None}"
        )
        if session is None:
            self._set(identity=None, profile=None, session=None, error=None)
            return

        self._set(identity=session.identity, session=session, error=None)
        if kind in _PROFILE_FETCH_EVENTS:
            await self.fetch_profile()

    def _is_current(self, identity_id: str) -> bool:
        identity = self._state.identity
        return identity is not None and identity.id == identity_id

    def _set(self, **changes: Any) -> None:
        previous = self._state
        state = replace(previous, **changes)

        if previous.is_initialized and not state.is_initialized:
            state = replace(state, is_initialized=True)
        if state.identity is None:
            if state.profile is not None or state.session is not None:
                state = replace(state, profile=None, session=None)
        elif state.profile is not None and state.profile.id != state.identity.id:
            state = replace(state, profile=None)

        if state == previous:
            return
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state, previous)
            except Exception:
                self._log.exception("State listener failed")
