"""
Hosted identity provider.

Talks to the hosted auth API (GoTrue style endpoints under /auth/v1)
over aiohttp. The provider owns the durable session: it is kept in a
private JSON file so a restarted process can pick it up again through
``get_session()`` without the store persisting any credentials.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import aiohttp

from ..exceptions import CredentialError, PersistenceIOError, TransportError
from ..file_ops import discard_document, read_document, write_private_document
from ..http_utils import read_payload, retry_after_seconds
from .errors import auth_error_from_response
from .provider import IdentityChangeHandler, IdentityChangeNotifier, IdentityProvider, Unsubscribe
from .types import Identity, IdentityEventKind, Session, SignUpResult

logger = logging.getLogger(__name__)

AUTH_PATH = "/auth/v1"


class HostedIdentityProvider(IdentityProvider):
    """Identity provider for the hosted auth API.

    Example:
        >>> provider = HostedIdentityProvider(
        ...     api_url="https://project.example.co",
        ...     api_key="anon-key",
        ...     session_path=Path("~/.taskboard/session.json").expanduser(),
        ... )
        >>> session = await provider.sign_in_with_password("a@x.com", "pw")
        >>> await provider.close()
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        session_path: Path | None = None,
        timeout: float = 10.0,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            api_url: Base URL of the hosted service
            api_key: Public API key sent with every request
            session_path: File holding the durable session (None keeps it in memory only)
            timeout: Total request timeout in seconds
            http_session: Optional shared aiohttp session (not closed by close())
        """
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.session_path = session_path
        self.timeout = timeout

        self._http = http_session
        self._owns_http = http_session is None
        self._session: Session | None = None
        self._loaded = False
        self._notifier = IdentityChangeNotifier()
        self._refresh_lock = asyncio.Lock()
        self._load_lock = asyncio.Lock()

    # -- IdentityProvider -----------------------------------------------------

    async def get_session(self) -> Session | None:
        """Return the durable session, refreshing an expired access token."""
        session = await self._load_session()
        if session is None or not session.is_expired():
            return session

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited
            if self._session is not None and not self._session.is_expired():
                return self._session
            return await self._refresh(session)

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        payload = await self._request(
            "POST",
            "/token",
            operation="sign_in",
            params={"grant_type": "password"},
            body={"email": email, "password": password},
        )
        session = Session.from_dict(payload)
        await self._store_session(session)
        logger.info(f"Signed in: {session.identity.id}")
        self._notifier.emit(IdentityEventKind.SIGNED_IN, session)
        return session

    async def sign_up(
        self, email: str, password: str, metadata: dict[str, Any] | None = None
    ) -> SignUpResult:
        payload = await self._request(
            "POST",
            "/signup",
            operation="sign_up",
            body={"email": email, "password": password, "data": metadata or {}},
        )

        # Auto-confirmed projects answer with a full session, others with the user only
        if payload.get("access_token"):
            session = Session.from_dict(payload)
            await self._store_session(session)
            self._notifier.emit(IdentityEventKind.SIGNED_IN, session)
            return SignUpResult(identity=session.identity, session=session)

        identity = Identity.from_dict(payload.get("user") or payload)
        logger.info(f"Registration pending confirmation: {identity.id}")
        return SignUpResult(identity=identity)

    async def sign_out(self) -> None:
        session = await self._load_session()
        if session is not None:
            try:
                await self._request(
                    "POST", "/logout", operation="sign_out", token=session.access_token
                )
            except CredentialError as e:
                # Session already revoked server side
                logger.debug(f"Remote sign out skipped: {e}")
            except TransportError as e:
                # Token already expired
                if e.status not in (401, 403, 404):
                    raise
                logger.debug(f"Remote sign out skipped: {e}")

        await self._store_session(None)
        logger.info("Signed out")
        self._notifier.emit(IdentityEventKind.SIGNED_OUT, None)

    def on_identity_change(self, handler: IdentityChangeHandler) -> Unsubscribe:
        return self._notifier.subscribe(handler)

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.close()
        self._http = None

    async def wait_idle(self) -> None:
        """Wait until every scheduled notification has been delivered."""
        await self._notifier.wait_idle()

    # -- session bookkeeping --------------------------------------------------

    async def _refresh(self, session: Session) -> Session | None:
        if not session.refresh_token:
            await self._expire()
            return None

        try:
            payload = await self._request(
                "POST",
                "/token",
                operation="refresh",
                params={"grant_type": "refresh_token"},
                body={"refresh_token": session.refresh_token},
            )
        except CredentialError as e:
            logger.warning(f"Session refresh rejected, signing out: {e}")
            await self._expire()
            return None

        refreshed = Session.from_dict(payload)
        await self._store_session(refreshed)
        logger.debug(f"Session refreshed: {refreshed.identity.id}")
        self._notifier.emit(IdentityEventKind.TOKEN_REFRESHED, refreshed)
        return refreshed

    async def _expire(self) -> None:
        await self._store_session(None)
        self._notifier.emit(IdentityEventKind.SIGNED_OUT, None)

    async def _load_session(self) -> Session | None:
        if self._loaded or self.session_path is None:
            return self._session

        async with self._load_lock:
            # Concurrent first callers wait for the same read
            if not self._loaded:
                self._session = await self._read_session_file(self.session_path)
                self._loaded = True
        return self._session

    async def _read_session_file(self, path: Path) -> Session | None:
        try:
            data = await read_document(path)
        except PersistenceIOError as e:
            logger.warning(f"Ignoring unreadable session file: {e}")
            return None
        if not data:
            return None

        try:
            return Session.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed session file {path}: {e}")
            return None

    async def _store_session(self, session: Session | None) -> None:
        self._session = session
        self._loaded = True
        if self.session_path is None:
            return
        if session is None:
            await discard_document(self.session_path)
        else:
            await write_private_document(self.session_path, session.to_dict(include_tokens=True))

    # -- HTTP -----------------------------------------------------------------

    def _client(self) -> aiohttp.ClientSession:
        if self._http is None:
            self._http = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_http = True
        return self._http

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
        token: str | None = None,
    ) -> dict[str, Any]:
        url = f"{self.api_url}{AUTH_PATH}{path}"
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token or self.api_key}",
        }
        try:
            async with self._client().request(
                method, url, params=params, json=body, headers=headers
            ) as response:
                payload = await read_payload(response)
                if response.status >= 400:
                    error = auth_error_from_response(url, response.status, payload, operation)
                    if isinstance(error, TransportError):
                        error.retry_after = retry_after_seconds(response)
                    raise error
                return payload
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(url, e) from e
