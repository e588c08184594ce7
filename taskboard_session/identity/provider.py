"""
Identity provider abstract interface.

Defines the contract that all identity providers must implement.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from .types import IdentityEventKind, Session, SignUpResult

logger = logging.getLogger(__name__)

IdentityChangeHandler = Callable[[IdentityEventKind, Session | None], Awaitable[None]]
Unsubscribe = Callable[[], None]


class IdentityProvider(ABC):
    """Abstract identity provider.

    Implementations talk to the remote auth service and own the durable
    session. The provider is responsible for:
    - Retrieving the current session (refreshing it if needed)
    - Password sign-in and registration
    - Sign out / credential clearing
    - Pushing identity-change notifications to subscribers

    Errors must be raised as the typed exceptions from
    ``taskboard_session.exceptions``; raw provider payloads never leave
    the provider.
    """

    @abstractmethod
    async def get_session(self) -> Session | None:
        """Get the current session, or None if signed out.

        Raises:
            TransportError: If the auth service is unreachable
        """
        ...

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> Session:
        """Sign in with email and password.

        Raises:
            CredentialError: If the credentials are rejected
            EmailNotConfirmedError: If the email is not confirmed yet
            TransportError: If the auth service is unreachable
        """
        ...

    @abstractmethod
    async def sign_up(
        self, email: str, password: str, metadata: dict[str, Any] | None = None
    ) -> SignUpResult:
        """Register a new identity.

        Returns a result without a session when the identity must
        confirm its email first.

        Raises:
            RegistrationError: If the registration is refused
            TransportError: If the auth service is unreachable
        """
        ...

    @abstractmethod
    async def sign_out(self) -> None:
        """Sign out and clear the durable session.

        Raises:
            TransportError: If the auth service is unreachable
        """
        ...

    @abstractmethod
    def on_identity_change(self, handler: IdentityChangeHandler) -> Unsubscribe:
        """Subscribe to identity-change notifications.

        The handler is scheduled independently of any explicit call.

        Returns:
            Callable that removes the subscription
        """
        ...

    async def close(self) -> None:
        """Release network resources. No-op by default."""
        return None


class IdentityChangeNotifier:
    """Fan-out helper for identity-change handlers.

    Each notification runs as its own task so handlers interleave with
    whatever explicit call is in flight, the way a remote push would.
    """

    def __init__(self) -> None:
        self._handlers: list[IdentityChangeHandler] = []
        self._pending: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: IdentityChangeHandler) -> Unsubscribe:
        """Add a handler; returns the matching unsubscribe callable."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def emit(self, kind: IdentityEventKind, session: Session | None) -> None:
        """Schedule delivery of a notification to every handler."""
        loop = asyncio.get_running_loop()
        for handler in list(self._handlers):
            task = loop.create_task(self._deliver(handler, kind, session))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def wait_idle(self) -> None:
        """Wait until every scheduled notification has been delivered."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver(
        self,
        handler: IdentityChangeHandler,
        kind: IdentityEventKind,
        session: Session | None,
    ) -> None:
        try:
            await handler(kind, session)
        except Exception:
            logger.exception(f"Identity change handler failed for {kind.value}")
