"""
Provider error classification.

The hosted auth API reports failures as loosely shaped JSON payloads.
This module is the single place that reads them: it tags each payload
with an ``AuthErrorKind`` and turns it into one of the typed exceptions,
so nothing past the provider boundary inspects provider error text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from ..exceptions import (
    CredentialError,
    EmailNotConfirmedError,
    RegistrationError,
    SessionStoreError,
    TransportError,
)


class AuthErrorKind(Enum):
    """Tag for a classified provider error."""

    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    REGISTRATION_REJECTED = "registration_rejected"
    SESSION_EXPIRED = "session_expired"
    RATE_LIMITED = "rate_limited"
    TRANSPORT = "transport"


# error_code values used by the hosted auth API
_CODE_KINDS: dict[str, AuthErrorKind] = {
    "invalid_credentials": AuthErrorKind.INVALID_CREDENTIALS,
    "invalid_grant": AuthErrorKind.INVALID_CREDENTIALS,
    "email_not_confirmed": AuthErrorKind.EMAIL_NOT_CONFIRMED,
    "user_already_exists": AuthErrorKind.REGISTRATION_REJECTED,
    "email_exists": AuthErrorKind.REGISTRATION_REJECTED,
    "weak_password": AuthErrorKind.REGISTRATION_REJECTED,
    "signup_disabled": AuthErrorKind.REGISTRATION_REJECTED,
    "validation_failed": AuthErrorKind.REGISTRATION_REJECTED,
    "refresh_token_not_found": AuthErrorKind.SESSION_EXPIRED,
    "refresh_token_already_used": AuthErrorKind.SESSION_EXPIRED,
    "session_not_found": AuthErrorKind.SESSION_EXPIRED,
    "over_request_rate_limit": AuthErrorKind.RATE_LIMITED,
    "over_email_send_rate_limit": AuthErrorKind.RATE_LIMITED,
}

# OAuth grant errors that older deployments refine only in the message
_GENERIC_CODES = frozenset({"invalid_grant", "invalid_request"})


def error_message(payload: dict[str, Any] | None) -> str:
    """Pick the human readable message out of a provider payload."""
    if not payload:
        return ""
    for key in ("msg", "message", "error_description", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def classify_auth_error(
    status: int,
    payload: dict[str, Any] | None,
    operation: str = "sign_in",
) -> AuthErrorKind:
    """Tag a provider error payload.

    Args:
        status: HTTP status code of the response
        payload: Decoded JSON body, if any
        operation: "sign_in", "sign_up", "refresh" or "sign_out"

    Returns:
        The error kind
    """
    payload = payload or {}
    code = payload.get("error_code") or payload.get("code") or payload.get("error")
    if not isinstance(code, str):
        code = None
    if code in _CODE_KINDS and code not in _GENERIC_CODES:
        return _CODE_KINDS[code]

    # Older deployments only carry the message
    message = error_message(payload).lower()
    if "email not confirmed" in message:
        return AuthErrorKind.EMAIL_NOT_CONFIRMED
    if "invalid login credentials" in message:
        return AuthErrorKind.INVALID_CREDENTIALS
    if "already registered" in message:
        return AuthErrorKind.REGISTRATION_REJECTED
    if code in _CODE_KINDS:
        return _CODE_KINDS[code]

    if status == 429:
        return AuthErrorKind.RATE_LIMITED
    if status >= 500 or status == 0:
        return AuthErrorKind.TRANSPORT
    if operation == "refresh" and status in (400, 401, 403):
        return AuthErrorKind.SESSION_EXPIRED
    if operation == "sign_up" and 400 <= status < 500:
        return AuthErrorKind.REGISTRATION_REJECTED
    if operation == "sign_in" and status in (400, 401):
        return AuthErrorKind.INVALID_CREDENTIALS
    return AuthErrorKind.TRANSPORT


def auth_error_from_response(
    endpoint: str,
    status: int,
    payload: dict[str, Any] | None,
    operation: str = "sign_in",
) -> SessionStoreError:
    """Build the typed exception for a failed provider response."""
    kind = classify_auth_error(status, payload, operation)
    message = error_message(payload)

    if kind is AuthErrorKind.EMAIL_NOT_CONFIRMED:
        return EmailNotConfirmedError()
    if kind is AuthErrorKind.INVALID_CREDENTIALS:
        return CredentialError(message or "Invalid login credentials", code=kind.value)
    if kind is AuthErrorKind.REGISTRATION_REJECTED:
        return RegistrationError(message or "Signup failed", code=kind.value)
    if kind is AuthErrorKind.SESSION_EXPIRED:
        return CredentialError(message or "Session expired", code=kind.value)
    return TransportError(endpoint, cause=Exception(message) if message else None, status=status)
