"""
auth/tokens.py -- JWT issue/verify and password hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with Settings.secret_key and
       carry the user id (sub), role, issue time and expiry. Verification
       returns None on any failure -- the route layer decides which status
       that becomes (403 for a presented-but-invalid token).

  Passwords: bcrypt, used directly. Bcrypt is the right choice for
       low-entropy secrets (passwords) because its cost factor makes
       brute-force expensive. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether a username exists.

  No revocation list: a leaked token stays valid until it expires, which is
       why the default window is one hour.

Layer rule: no imports from api/ or directory/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import ROLES, Caller

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserRepository

logger = logging.getLogger("employee_portal.auth")

_ALGORITHM = "HS256"

# bcrypt input limit, in UTF-8 bytes.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt rejects passwords longer than MAX_PASSWORD_BYTES (UTF-8 bytes, not
    characters) with ValueError. Callers validate the length first:
    RegisterRequest for the API, _create_admin for the CLI.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("employee_portal_timing_dummy")


# ---------------------------------------------------------------------------
# Token service
# ---------------------------------------------------------------------------


class TokenService:
    """Issue and verify signed, time-limited session tokens.

    Usage:
        tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
        token = tokens.issue(user.id, user.role)
        caller = tokens.verify(token)   # Caller or None
    """

    def __init__(self, secret_key: str, expire_seconds: int = 3600) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, user_id: str, role: str, now: datetime | None = None) -> str:
        """Encode a signed JWT for the given identity.

        now is only overridden by tests that need an already-expired token.
        """
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "role": role,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.expire_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> Caller | None:
        """Decode and verify a JWT. Returns the Caller or None on any failure.

        Failure covers a bad signature, a malformed token, an elapsed validity
        window, and a payload missing sub/role or carrying an unknown role.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError:
            return None
        user_id = payload.get("sub")
        role = payload.get("role")
        if not isinstance(user_id, str) or not user_id or role not in ROLES:
            return None
        return Caller(user_id=user_id, role=role)


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserRepository, username: str, password: str) -> User | None:
    """Authenticate a username/password login with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown username: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure. Both failures look the
    same to the caller so the route can return one generic error.
    """
    user = store.get_by_username(username)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
