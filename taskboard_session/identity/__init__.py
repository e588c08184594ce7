"""
Identity management for the session store.

Provides the identity and session types, the provider interface, and
the in-memory and hosted provider implementations.
"""

from .errors import AuthErrorKind, auth_error_from_response, classify_auth_error
from .hosted_provider import HostedIdentityProvider
from .memory_provider import InMemoryIdentityProvider
from .provider import (
    IdentityChangeHandler,
    IdentityChangeNotifier,
    IdentityProvider,
    Unsubscribe,
)
from .types import Identity, IdentityEventKind, Session, SignUpResult

__all__ = [
    # Types
    "Identity",
    "IdentityEventKind",
    "Session",
    "SignUpResult",
    # Errors
    "AuthErrorKind",
    "auth_error_from_response",
    "classify_auth_error",
    # Providers
    "IdentityProvider",
    "IdentityChangeHandler",
    "IdentityChangeNotifier",
    "Unsubscribe",
    "InMemoryIdentityProvider",
    "HostedIdentityProvider",
]
