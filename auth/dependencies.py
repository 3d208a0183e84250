"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one auth method exists: an Authorization: Bearer <token> header. There is
no cookie or session state.

get_caller() maps the two failure modes to distinct statuses:
  - no token presented          -> 401 "Access denied"
  - token presented but invalid -> 403 "Invalid token" (bad signature,
                                   malformed, or expired)
require_admin() wraps get_caller() and raises 403 "Admin only" for non-admins.

Layer rule: no imports from directory/. auth/dependencies.py may import from
fastapi because this module is part of the dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Caller
from auth.tokens import TokenService


def _bearer_token(request: Request) -> str | None:
    """Extract the token from an Authorization: Bearer header, or None."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def get_caller(request: Request) -> Caller:
    """Require a valid bearer token and return the Caller it identifies.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(caller: Caller = Depends(get_caller)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(status_code=401, detail="Access denied")
    tokens: TokenService = request.app.state.tokens
    caller = tokens.verify(token)
    if caller is None:
        raise HTTPException(status_code=403, detail="Invalid token")
    return caller


def require_admin(request: Request) -> Caller:
    """Require an admin caller. 401/403 as get_caller(), then 403 if not admin."""
    caller = get_caller(request)
    if not caller.is_admin:
        raise HTTPException(status_code=403, detail="Admin only")
    return caller
