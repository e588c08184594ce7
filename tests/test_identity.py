"""Tests for identity module."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from taskboard_session.exceptions import (
    EMAIL_NOT_CONFIRMED_MESSAGE,
    CredentialError,
    EmailNotConfirmedError,
    RegistrationError,
    TransportError,
)
from taskboard_session.identity import (
    AuthErrorKind,
    Identity,
    IdentityChangeNotifier,
    IdentityEventKind,
    InMemoryIdentityProvider,
    Session,
    auth_error_from_response,
    classify_auth_error,
)


class TestIdentityEventKind:
    """Tests for IdentityEventKind."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("SIGNED_IN", IdentityEventKind.SIGNED_IN),
            ("signed_out", IdentityEventKind.SIGNED_OUT),
            ("TOKEN_REFRESHED", IdentityEventKind.TOKEN_REFRESHED),
            ("USER_UPDATED", IdentityEventKind.OTHER),
            ("PASSWORD_RECOVERY", IdentityEventKind.OTHER),
        ],
    )
    def test_from_raw(self, raw: str, expected: IdentityEventKind) -> None:
        """Unrecognised provider events map to OTHER."""
        assert IdentityEventKind.from_raw(raw) is expected


class TestIdentity:
    """Tests for Identity dataclass."""

    def test_is_confirmed(self) -> None:
        """Confirmation follows email_confirmed_at."""
        assert not Identity(id="u1").is_confirmed
        assert Identity(id="u1", email_confirmed_at=datetime.now(UTC)).is_confirmed

    def test_from_hosted_user(self) -> None:
        """The hosted API user shape is accepted."""
        identity = Identity.from_dict(
            {
                "id": "u1",
                "email": "a@x.com",
                "confirmed_at": "2024-05-01T10:00:00Z",
                "user_metadata": {"name": "Alice"},
                "aud": "authenticated",
            }
        )

        assert identity.id == "u1"
        assert identity.email == "a@x.com"
        assert identity.email_confirmed_at == datetime(2024, 5, 1, 10, 0, tzinfo=UTC)
        assert identity.user_metadata == {"name": "Alice"}


class TestSession:
    """Tests for Session dataclass."""

    def test_is_expired(self) -> None:
        """Expiry compares expires_at with the current time."""
        now = datetime.now(UTC)
        identity = Identity(id="u1")

        assert Session(identity, "t", expires_at=now - timedelta(seconds=1)).is_expired()
        assert not Session(identity, "t", expires_at=now + timedelta(hours=1)).is_expired()
        assert not Session(identity, "t").is_expired()

    def test_to_dict_omits_tokens(self) -> None:
        """Tokens are only serialized on request."""
        session = Session(Identity(id="u1"), "access", "refresh")

        assert "access_token" not in session.to_dict()
        assert "refresh_token" not in session.to_dict()
        assert session.to_dict(include_tokens=True)["access_token"] == "access"

    def test_from_token_response(self) -> None:
        """expires_in from the token endpoint becomes an absolute expiry."""
        before = datetime.now(UTC)
        session = Session.from_dict(
            {
                "access_token": "access",
                "refresh_token": "refresh",
                "expires_in": 3600,
                "token_type": "bearer",
                "user": {"id": "u1", "email": "a@x.com"},
            }
        )

        assert session.identity.id == "u1"
        assert session.refresh_token == "refresh"
        assert session.expires_at is not None
        assert session.expires_at >= before + timedelta(seconds=3599)


class TestClassifyAuthError:
    """Tests for provider error classification."""

    @pytest.mark.parametrize(
        "status,payload,operation,expected",
        [
            (400, {"error_code": "invalid_credentials"}, "sign_in", AuthErrorKind.INVALID_CREDENTIALS),
            (400, {"error": "invalid_grant", "error_description": "Invalid login credentials"}, "sign_in", AuthErrorKind.INVALID_CREDENTIALS),
            (400, {"error_code": "email_not_confirmed", "msg": "Email not confirmed"}, "sign_in", AuthErrorKind.EMAIL_NOT_CONFIRMED),
            (400, {"msg": "Email not confirmed"}, "sign_in", AuthErrorKind.EMAIL_NOT_CONFIRMED),
            (400, {"error": "invalid_grant", "error_description": "Email not confirmed"}, "sign_in", AuthErrorKind.EMAIL_NOT_CONFIRMED),
            (403, {"code": 403, "error_code": "session_not_found"}, "sign_out", AuthErrorKind.SESSION_EXPIRED),
            (422, {"code": "user_already_exists", "msg": "User already registered"}, "sign_up", AuthErrorKind.REGISTRATION_REJECTED),
            (422, {"msg": "Password should be at least 6 characters"}, "sign_up", AuthErrorKind.REGISTRATION_REJECTED),
            (400, {"error_code": "refresh_token_not_found"}, "refresh", AuthErrorKind.SESSION_EXPIRED),
            (401, {}, "refresh", AuthErrorKind.SESSION_EXPIRED),
            (429, {"msg": "slow down"}, "sign_in", AuthErrorKind.RATE_LIMITED),
            (503, {}, "sign_in", AuthErrorKind.TRANSPORT),
            (404, None, "sign_out", AuthErrorKind.TRANSPORT),
        ],
    )
    def test_classification(
        self, status: int, payload: dict | None, operation: str, expected: AuthErrorKind
    ) -> None:
        """Raw payloads map to the right error kind."""
        assert classify_auth_error(status, payload, operation) is expected

    def test_email_not_confirmed_exception(self) -> None:
        """The unconfirmed kind carries the user-facing confirmation message."""
        error = auth_error_from_response(
            "https://auth.example/token", 400, {"error_code": "email_not_confirmed"}, "sign_in"
        )

        assert isinstance(error, EmailNotConfirmedError)
        assert error.message == EMAIL_NOT_CONFIRMED_MESSAGE

    def test_email_not_confirmed_grant_error(self) -> None:
        """A grant error whose message says unconfirmed is not a credential failure."""
        error = auth_error_from_response(
            "https://auth.example/token",
            400,
            {"error": "invalid_grant", "error_description": "Email not confirmed"},
            "sign_in",
        )

        assert isinstance(error, EmailNotConfirmedError)
        assert error.message == EMAIL_NOT_CONFIRMED_MESSAGE

    def test_credential_exception(self) -> None:
        """Invalid credentials keep the provider message."""
        error = auth_error_from_response(
            "https://auth.example/token",
            400,
            {"error": "invalid_grant", "error_description": "Invalid login credentials"},
            "sign_in",
        )

        assert type(error) is CredentialError
        assert error.message == "Invalid login credentials"

    def test_registration_exception(self) -> None:
        """Refused registrations become RegistrationError."""
        error = auth_error_from_response(
            "https://auth.example/signup", 422, {"msg": "User already registered"}, "sign_up"
        )

        assert isinstance(error, RegistrationError)
        assert error.message == "User already registered"

    def test_transport_exception_keeps_status(self) -> None:
        """Outages become TransportError with the HTTP status."""
        error = auth_error_from_response("https://auth.example/token", 502, {}, "sign_in")

        assert isinstance(error, TransportError)
        assert error.status == 502
        assert error.endpoint == "https://auth.example/token"


class TestIdentityChangeNotifier:
    """Tests for IdentityChangeNotifier."""

    @pytest.mark.asyncio
    async def test_delivers_to_every_handler(self) -> None:
        """Each subscribed handler receives the notification."""
        notifier = IdentityChangeNotifier()
        received = []

        async def first(kind, session):
            received.append(("first", kind))

        async def second(kind, session):
            received.append(("second", kind))

        notifier.subscribe(first)
        notifier.subscribe(second)
        notifier.emit(IdentityEventKind.SIGNED_OUT, None)
        await notifier.wait_idle()

        assert sorted(received) == [
            ("first", IdentityEventKind.SIGNED_OUT),
            ("second", IdentityEventKind.SIGNED_OUT),
        ]

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self) -> None:
        """A raising handler does not stop delivery to the others."""
        notifier = IdentityChangeNotifier()
        received = []

        async def broken(kind, session):
            raise RuntimeError("handler bug")

        async def healthy(kind, session):
            received.append(kind)

        notifier.subscribe(broken)
        notifier.subscribe(healthy)
        notifier.emit(IdentityEventKind.SIGNED_IN, None)
        await notifier.wait_idle()

        assert received == [IdentityEventKind.SIGNED_IN]

    @pytest.mark.asyncio
    async def test_unsubscribe(self) -> None:
        """Unsubscribed handlers are not called."""
        notifier = IdentityChangeNotifier()
        received = []

        async def handler(kind, session):
            received.append(kind)

        unsubscribe = notifier.subscribe(handler)
        unsubscribe()
        unsubscribe()
        notifier.emit(IdentityEventKind.SIGNED_IN, None)
        await notifier.wait_idle()

        assert received == []
        assert len(notifier) == 0


class TestInMemoryIdentityProvider:
    """Tests for InMemoryIdentityProvider."""

    @pytest.fixture
    def memory_provider(self) -> InMemoryIdentityProvider:
        provider = InMemoryIdentityProvider()
        provider.add_account("alice@example.com", "secret-pw", name="Alice", user_id="u-alice")
        return provider

    @pytest.mark.asyncio
    async def test_sign_in_emits_signed_in(self, memory_provider: InMemoryIdentityProvider) -> None:
        """Signing in stores the session and notifies subscribers."""
        events = []

        async def handler(kind, session):
            events.append((kind, session))

        memory_provider.on_identity_change(handler)
        session = await memory_provider.sign_in_with_password("Alice@Example.com", "secret-pw")
        await memory_provider.wait_idle()

        assert session.identity.id == "u-alice"
        assert await memory_provider.get_session() == session
        assert events == [(IdentityEventKind.SIGNED_IN, session)]

    @pytest.mark.asyncio
    async def test_bad_password(self, memory_provider: InMemoryIdentityProvider) -> None:
        """A wrong password raises CredentialError."""
        with pytest.raises(CredentialError):
            await memory_provider.sign_in_with_password("alice@example.com", "nope")

        assert await memory_provider.get_session() is None

    @pytest.mark.asyncio
    async def test_unconfirmed_sign_in(self, memory_provider: InMemoryIdentityProvider) -> None:
        """Unconfirmed accounts cannot sign in until confirmed."""
        memory_provider.add_account("bob@example.com", "secret-pw", confirmed=False)

        with pytest.raises(EmailNotConfirmedError):
            await memory_provider.sign_in_with_password("bob@example.com", "secret-pw")

        memory_provider.confirm_email("bob@example.com")
        session = await memory_provider.sign_in_with_password("bob@example.com", "secret-pw")
        assert session.identity.is_confirmed

    @pytest.mark.asyncio
    async def test_sign_up_pending(self, memory_provider: InMemoryIdentityProvider) -> None:
        """Without auto-confirm a registration carries no session."""
        result = await memory_provider.sign_up("new@example.com", "secret-pw", {"name": "New"})

        assert result.session is None
        assert not result.identity.is_confirmed
        assert result.identity.user_metadata == {"name": "New"}

    @pytest.mark.asyncio
    async def test_sign_up_weak_password(self, memory_provider: InMemoryIdentityProvider) -> None:
        """Short passwords are refused."""
        with pytest.raises(RegistrationError):
            await memory_provider.sign_up("new@example.com", "pw")

    @pytest.mark.asyncio
    async def test_sign_out(self, memory_provider: InMemoryIdentityProvider) -> None:
        """Signing out clears the session and notifies SIGNED_OUT."""
        events = []

        async def handler(kind, session):
            events.append((kind, session))

        await memory_provider.sign_in_with_password("alice@example.com", "secret-pw")
        memory_provider.on_identity_change(handler)
        await memory_provider.sign_out()
        await memory_provider.wait_idle()

        assert await memory_provider.get_session() is None
        assert events == [(IdentityEventKind.SIGNED_OUT, None)]

    @pytest.mark.asyncio
    async def test_injected_failure_is_consumed(
        self, memory_provider: InMemoryIdentityProvider
    ) -> None:
        """An injected failure affects only the next call."""
        memory_provider.inject_failure("get_session", TransportError("https://auth.example"))

        with pytest.raises(TransportError):
            await memory_provider.get_session()
        assert await memory_provider.get_session() is None
