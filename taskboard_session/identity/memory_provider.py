"""
In-memory identity provider.

Keeps accounts and the current session in process memory for local
development, demos and tests. Behaves like the hosted provider: it
rejects bad credentials, holds back sessions for unconfirmed emails and
pushes identity-change notifications as independently scheduled tasks.
"""

import asyncio
import logging
import secrets
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from ..exceptions import CredentialError, EmailNotConfirmedError, RegistrationError
from .provider import (
    IdentityChangeHandler,
    IdentityChangeNotifier,
    IdentityProvider,
    Unsubscribe,
)
from .types import Identity, IdentityEventKind, Session, SignUpResult

logger = logging.getLogger(__name__)


class InMemoryIdentityProvider(IdentityProvider):
    """Identity provider backed by a dict of accounts.

    Example:
        >>> provider = InMemoryIdentityProvider(auto_confirm=True)
        >>> provider.add_account("alice@example.com", "secret", name="Alice")
        >>> session = await provider.sign_in_with_password("alice@example.com", "secret")
    """

    def __init__(self, auto_confirm: bool = False, session_ttl: timedelta = timedelta(hours=1)):
        """Initialize the provider.

        Args:
            auto_confirm: Confirm new registrations immediately
            session_ttl: Lifetime of issued access tokens
        """
        self.auto_confirm = auto_confirm
        self.session_ttl = session_ttl

        self._accounts: dict[str, dict[str, Any]] = {}
        self._session: Session | None = None
        self._notifier = IdentityChangeNotifier()
        self._failures: dict[str, list[Exception]] = {}

    # -- test and dev helpers -------------------------------------------------

    def add_account(
        self,
        email: str,
        password: str,
        name: str | None = None,
        confirmed: bool = True,
        user_id: str | None = None,
    ) -> Identity:
        """Register an account directly, bypassing sign-up."""
        identity = Identity(
            id=user_id or str(uuid.uuid4()),
            email=email,
            email_confirmed_at=datetime.now(UTC) if confirmed else None,
            user_metadata={"name": name} if name else {},
        )
        self._accounts[email.lower()] = {"password": password, "identity": identity}
        return identity

    def confirm_email(self, email: str) -> Identity:
        """Mark an account's email as confirmed."""
        account = self._accounts[email.lower()]
        old: Identity = account["identity"]
        account["identity"] = Identity(
            id=old.id,
            email=old.email,
            email_confirmed_at=datetime.now(UTC),
            user_metadata=old.user_metadata,
        )
        return account["identity"]

    def inject_failure(self, operation: str, error: Exception) -> None:
        """Make the next call of ``operation`` raise ``error``.

        Operations: get_session, sign_in, sign_up, sign_out.
        """
        self._failures.setdefault(operation, []).append(error)

    def emit(self, kind: IdentityEventKind, session: Session | None) -> None:
        """Push an identity-change notification to every subscriber."""
        self._notifier.emit(kind, session)

    async def refresh(self) -> Session:
        """Issue a fresh token for the current session (TOKEN_REFRESHED)."""
        if self._session is None:
            raise CredentialError("Session expired", code="session_expired")
        self._session = self._issue(self._session.identity)
        self.emit(IdentityEventKind.TOKEN_REFRESHED, self._session)
        return self._session

    async def wait_idle(self) -> None:
        """Wait until every scheduled notification has been delivered."""
        await self._notifier.wait_idle()

    @property
    def subscriber_count(self) -> int:
        return len(self._notifier)

    # -- IdentityProvider -----------------------------------------------------

    async def get_session(self) -> Session | None:
        self._maybe_fail("get_session")
        await asyncio.sleep(0)
        return self._session

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        self._maybe_fail("sign_in")
        await asyncio.sleep(0)
        account = self._accounts.get(email.lower())
        if account is None or not secrets.compare_digest(account["password"], password):
            raise CredentialError("Invalid login credentials", code="invalid_credentials")

        identity: Identity = account["identity"]
        if not identity.is_confirmed:
            raise EmailNotConfirmedError()

        self._session = self._issue(identity)
        self.emit(IdentityEventKind.SIGNED_IN, self._session)
        return self._session

    async def sign_up(
        self, email: str, password: str, metadata: dict[str, Any] | None = None
    ) -> SignUpResult:
        self._maybe_fail("sign_up")
        await asyncio.sleep(0)
        if email.lower() in self._accounts:
            raise RegistrationError("User already registered", code="user_already_exists")
        if len(password) < 6:
            raise RegistrationError(
                "Password should be at least 6 characters", code="weak_password"
            )

        identity = Identity(
            id=str(uuid.uuid4()),
            email=email,
            email_confirmed_at=datetime.now(UTC) if self.auto_confirm else None,
            user_metadata=dict(metadata or {}),
        )
        self._accounts[email.lower()] = {"password": password, "identity": identity}

        if not identity.is_confirmed:
            logger.info(f"Registration pending confirmation: {identity.id}")
            return SignUpResult(identity=identity)

        self._session = self._issue(identity)
        self.emit(IdentityEventKind.SIGNED_IN, self._session)
        return SignUpResult(identity=identity, session=self._session)

    async def sign_out(self) -> None:
        self._maybe_fail("sign_out")
        await asyncio.sleep(0)
        self._session = None
        self.emit(IdentityEventKind.SIGNED_OUT, None)

    def on_identity_change(self, handler: IdentityChangeHandler) -> Unsubscribe:
        return self._notifier.subscribe(handler)

    # -- internals ------------------------------------------------------------

    def _issue(self, identity: Identity) -> Session:
        return Session(
            identity=identity,
            access_token=secrets.token_urlsafe(24),
            refresh_token=secrets.token_urlsafe(24),
            expires_at=datetime.now(UTC) + self.session_ttl,
        )

    def _maybe_fail(self, operation: str) -> None:
        queue = self._failures.get(operation)
        if queue:
            raise queue.pop(0)
