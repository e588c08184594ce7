"""
Application context.

Wires configuration, identity provider, profile repository, persistence
and the store together. Construct one at startup and pass it (or its
``store``) to whatever needs session state; there is no global instance.

Usage:
    config = SessionConfig.from_environment()
    async with AppContext.create(config) as ctx:
        await ctx.store.login("alice@example.com", "secret")
        print(ctx.store.state.profile)
"""

from __future__ import annotations

import logging
from types import TracebackType

from .config import SessionConfig
from .identity.hosted_provider import HostedIdentityProvider
from .identity.provider import IdentityProvider
from .logging_utils import configure_structured_logging
from .persistence import JsonFilePersistence, PersistenceAdapter, PersistPolicy, StatePersister
from .profiles.repository import ProfileRepository
from .profiles.rest_repository import RestProfileRepository, TokenSource
from .store import SessionStore

logger = logging.getLogger(__name__)


class AppContext:
    """Owns the session core's collaborators for one process."""

    def __init__(
        self,
        config: SessionConfig,
        provider: IdentityProvider,
        repository: ProfileRepository,
        store: SessionStore,
        persister: StatePersister,
    ) -> None:
        """Private constructor. Use create() instead."""
        self.config = config
        self.provider = provider
        self.repository = repository
        self.store = store
        self.persister = persister
        self._started = False
        self._closed = False

    @classmethod
    def create(
        cls,
        config: SessionConfig,
        provider: IdentityProvider | None = None,
        repository: ProfileRepository | None = None,
        persistence: PersistenceAdapter | None = None,
    ) -> AppContext:
        """Build a context from configuration.

        Collaborators that are not passed in are built from config: the
        hosted identity provider, the REST profile repository and file
        persistence.

        Args:
            config: Session configuration
            provider: Optional pre-configured identity provider (for testing)
            repository: Optional pre-configured profile repository (for testing)
            persistence: Optional persistence adapter

        Returns:
            The context, not yet started

        Raises:
            ValidationError: If config is incomplete for the adapters to build
        """
        config.validate(require_remote=provider is None or repository is None)
        policy = PersistPolicy.of(config.persist_fields)

        if provider is None:
            provider = HostedIdentityProvider(
                api_url=config.api_url or "",
                api_key=config.api_key or "",
                session_path=config.session_path,
                timeout=config.request_timeout,
            )
        if repository is None:
            repository = RestProfileRepository(
                api_url=config.api_url or "",
                api_key=config.api_key or "",
                table=config.profiles_table,
                token_source=_access_token_source(provider),
                timeout=config.request_timeout,
            )
        if persistence is None:
            persistence = JsonFilePersistence(config.persist_path)

        store = SessionStore(provider, repository)
        persister = StatePersister(store, persistence, policy=policy, key=config.persist_key)
        return cls(config, provider, repository, store, persister)

    def configure_logging(self) -> logging.Logger:
        """Send the package's logs through the structured JSON formatter."""
        return configure_structured_logging(self.config.log_level, "taskboard_session")

    async def start(self) -> None:
        """Rehydrate persisted state, then initialize the store."""
        if self._started:
            return
        self._started = True
        await self.persister.rehydrate()
        self.persister.attach()
        await self.store.initialize()
        logger.info(f"Session core started ({self.store.phase.value})")

    async def close(self) -> None:
        """Flush persistence and release subscriptions and HTTP sessions."""
        if self._closed:
            return
        self._closed = True
        self.store.close()
        await self.persister.flush()
        self.persister.detach()
        await self.repository.close()
        await self.provider.close()
        logger.debug("Session core closed")

    async def __aenter__(self) -> AppContext:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


def _access_token_source(provider: IdentityProvider) -> TokenSource:
    async def access_token() -> str | None:
        session = await provider.get_session()
        return session.access_token if session else None

    return access_token
