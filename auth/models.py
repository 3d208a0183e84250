"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in directory/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/ or directory/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLES = ("user", "admin")


@dataclass
class User:
    """A login identity.

    hashed_password is a bcrypt hash and must never leave the server -- route
    handlers map User to response models field by field and skip it.

    id is None before the record is written to the store.
    """

    username: str
    hashed_password: str
    role: str = "user"  # "user" | "admin"
    id: str | None = None
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass(frozen=True)
class Caller:
    """The authenticated identity derived from a verified token.

    Carries only what the token carries. Handlers never reload the User for
    authorization decisions -- the role in a valid token is authoritative
    until the token expires.
    """

    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
