"""Profile records and repositories."""

from .memory_repository import InMemoryProfileRepository
from .repository import ProfileRepository
from .rest_repository import NOT_FOUND_CODE, RestProfileRepository
from .types import EDITABLE_FIELDS, IMMUTABLE_FIELDS, Profile

__all__ = [
    "EDITABLE_FIELDS",
    "IMMUTABLE_FIELDS",
    "NOT_FOUND_CODE",
    "InMemoryProfileRepository",
    "Profile",
    "ProfileRepository",
    "RestProfileRepository",
]
