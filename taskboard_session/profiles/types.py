"""
Profile record.

The profile is the application's own, user-editable record for an
identity. Its id is always the identity id.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from ..identity.types import Identity

# Fields a caller may change through update_profile
EDITABLE_FIELDS = frozenset({"email", "name", "avatar_url"})
IMMUTABLE_FIELDS = frozenset({"id", "created_at", "updated_at"})


def _now() -> datetime:
    return datetime.now(UTC)


def _parse(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass(frozen=True)
class Profile:
    """Application profile for one identity."""

    id: str
    email: str
    name: str
    avatar_url: str | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @classmethod
    def seed_from(cls, identity: Identity) -> "Profile":
        """Build the initial profile for an identity that has none.

        The name comes from the registration metadata, then the local
        part of the email, then a generic placeholder.
        """
        email = identity.email or ""
        name = identity.user_metadata.get("name")
        if not isinstance(name, str) or not name.strip():
            name = email.split("@")[0] if email else ""
        return cls(id=identity.id, email=email, name=name or "User")

    def with_changes(self, changes: dict[str, Any]) -> "Profile":
        """Return a copy with editable fields changed and updated_at bumped."""
        return replace(self, **changes, updated_at=_now())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary (the remote row shape)."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "avatar_url": self.avatar_url,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Profile":
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            email=data.get("email") or "",
            name=data.get("name") or "",
            avatar_url=data.get("avatar_url"),
            created_at=_parse(data["created_at"]) if data.get("created_at") else _now(),
            updated_at=_parse(data["updated_at"]) if data.get("updated_at") else _now(),
        )
