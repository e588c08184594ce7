"""
REST profile repository.

Reads and writes the profiles table through the hosted table API
(PostgREST style, under /rest/v1). Single-row requests ask for an
object response, so a missing row comes back as error code PGRST116,
which is mapped to ``ProfileNotFoundError``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp

from ..exceptions import (
    ProfileExistsError,
    ProfileNotFoundError,
    RepositoryError,
    SessionStoreError,
    TransportError,
)
from ..http_utils import read_payload, retry_after_seconds
from ..resilience import RetryConfig, retry_with_backoff
from .repository import ProfileRepository
from .types import Profile

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"
NOT_FOUND_CODE = "PGRST116"
UNIQUE_VIOLATION_CODE = "23505"
SINGLE_OBJECT = "application/vnd.pgrst.object+json"

TokenSource = Callable[[], Awaitable[str | None]]


class RestProfileRepository(ProfileRepository):
    """Profile repository for the hosted table API.

    Example:
        >>> repo = RestProfileRepository(
        ...     api_url="https://project.example.co",
        ...     api_key="anon-key",
        ...     token_source=provider_access_token,
        ... )
        >>> profile = await repo.get_by_id(user_id)
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        table: str = "profiles",
        token_source: TokenSource | None = None,
        timeout: float = 10.0,
        retry: RetryConfig | None = None,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            api_url: Base URL of the hosted service
            api_key: Public API key sent with every request
            table: Name of the profiles table
            token_source: Returns the signed-in user's access token, if any
            timeout: Total request timeout in seconds
            retry: Retry policy for reads
            http_session: Optional shared aiohttp session (not closed by close())
        """
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.table = table
        self.token_source = token_source
        self.timeout = timeout
        self.retry = retry or RetryConfig()

        self._http = http_session
        self._owns_http = http_session is None

    async def get_by_id(self, profile_id: str) -> Profile:
        row = await retry_with_backoff(
            self._request,
            "GET",
            "get",
            profile_id,
            params={"id": f"eq.{profile_id}", "select": "*"},
            config=self.retry,
            context_msg=profile_id,
        )
        return Profile.from_dict(row)

    async def insert(self, profile: Profile) -> Profile:
        row = await self._request(
            "POST",
            "insert",
            profile.id,
            body={"id": profile.id, "email": profile.email, "name": profile.name},
        )
        return Profile.from_dict(row)

    async def update_by_id(self, profile_id: str, changes: dict[str, Any]) -> Profile:
        row = await self._request(
            "PATCH",
            "update",
            profile_id,
            params={"id": f"eq.{profile_id}"},
            body=dict(changes),
        )
        return Profile.from_dict(row)

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.close()
        self._http = None

    def _client(self) -> aiohttp.ClientSession:
        if self._http is None:
            self._http = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_http = True
        return self._http

    async def _headers(self, method: str) -> dict[str, str]:
        token = await self.token_source() if self.token_source else None
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token or self.api_key}",
            "Accept": SINGLE_OBJECT,
        }
        if method in ("POST", "PATCH"):
            headers["Prefer"] = "return=representation"
        return headers

    async def _request(
        self,
        method: str,
        operation: str,
        profile_id: str,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.api_url}{REST_PATH}/{self.table}"
        headers = await self._headers(method)
        try:
            async with self._client().request(
                method, url, params=params, json=body, headers=headers
            ) as response:
                payload = await read_payload(response)
                if response.status >= 400:
                    error = _error_for(url, response.status, payload, operation, profile_id)
                    if isinstance(error, TransportError):
                        error.retry_after = retry_after_seconds(response)
                    raise error
                return payload
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(url, e) from e


def _error_for(
    url: str,
    status: int,
    payload: dict[str, Any],
    operation: str,
    profile_id: str,
) -> SessionStoreError:
    """Map a failed table API response onto the repository exceptions."""
    code = payload.get("code")
    reason = payload.get("message") or payload.get("details") or f"HTTP {status}"

    if code == NOT_FOUND_CODE or (status == 404 and operation != "insert"):
        return ProfileNotFoundError(profile_id, code=code)
    if code == UNIQUE_VIOLATION_CODE or status == 409:
        return ProfileExistsError(profile_id)
    if status == 429 or status >= 500:
        return TransportError(url, cause=Exception(reason), status=status)
    logger.debug(f"Profile {operation} rejected ({status}, {code}): {reason}")
    return RepositoryError(operation, str(reason), code=code)
