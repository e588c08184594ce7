"""
Identity types and data classes.

Defines the remote identity, the session tied to it, and the kinds of
identity-change events the provider pushes to the store.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class IdentityEventKind(Enum):
    """Kinds of identity-change notifications."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    OTHER = "OTHER"  # USER_UPDATED, PASSWORD_RECOVERY, ...

    @classmethod
    def from_raw(cls, raw: str) -> "IdentityEventKind":
        """Map a provider event name onto a known kind, OTHER if unknown."""
        try:
            return cls(raw.upper())
        except ValueError:
            return cls.OTHER


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value, UTC)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass(frozen=True)
class Identity:
    """The remote-authenticated principal.

    Only the identity provider creates or changes identities; the store
    treats them as read-only values.
    """

    id: str
    email: str | None = None
    email_confirmed_at: datetime | None = None
    user_metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_confirmed(self) -> bool:
        """True once the email address has been confirmed."""
        return self.email_confirmed_at is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "email": self.email,
            "email_confirmed_at": (
                self.email_confirmed_at.isoformat() if self.email_confirmed_at else None
            ),
            "user_metadata": dict(self.user_metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Identity":
        """Deserialize from dictionary (accepts the hosted API user shape)."""
        return cls(
            id=data["id"],
            email=data.get("email"),
            email_confirmed_at=_parse_timestamp(
                data.get("email_confirmed_at") or data.get("confirmed_at")
            ),
            user_metadata=dict(data.get("user_metadata") or {}),
        )


@dataclass(frozen=True)
class Session:
    """Time-bounded credential material tied to an identity."""

    identity: Identity
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the access token has expired."""
        if self.expires_at is None:
            return False
        return (now or datetime.now(UTC)) >= self.expires_at

    def to_dict(self, include_tokens: bool = False) -> dict[str, Any]:
        """Serialize to dictionary.

        Tokens are excluded unless explicitly requested.
        """
        data: dict[str, Any] = {
            "user": self.identity.to_dict(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
        if include_tokens:
            data["access_token"] = self.access_token
            data["refresh_token"] = self.refresh_token
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        """Deserialize from dictionary.

        Accepts both our own shape and the hosted token response, which
        carries ``expires_in`` seconds instead of ``expires_at``.
        """
        expires_at = _parse_timestamp(data.get("expires_at"))
        if expires_at is None and data.get("expires_in") is not None:
            expires_at = datetime.fromtimestamp(
                datetime.now(UTC).timestamp() + float(data["expires_in"]), UTC
            )
        return cls(
            identity=Identity.from_dict(data["user"]),
            access_token=data.get("access_token", ""),
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
        )


@dataclass(frozen=True)
class SignUpResult:
    """Outcome of a registration.

    ``session`` is None while the identity waits for email confirmation.
    """

    identity: Identity
    session: Session | None = None
