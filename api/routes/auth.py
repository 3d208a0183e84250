"""
api/routes/auth.py -- Registration and login REST endpoints.

Routes:
  POST /api/register  -- create a user, plus a linked employee profile when
                         name, email and department are all supplied
  POST /api/login     -- password login; returns a bearer token

Security:
  Both routes are rate-limited per client IP (api.limiter.auth_limit).
  @router.post must sit above @limiter.limit so FastAPI registers the
  limiting wrapper; the wrapper keeps the signature via functools.wraps.
  No `from __future__ import annotations` here: FastAPI resolves the
  wrapper's string annotations against slowapi's module globals.
  authenticate_user() provides timing equalization -- use it, never inline
  get_by_username() + verify_password().
  Cache-Control: no-store on login responses so tokens are never cached.
  Unknown username and wrong password produce byte-identical 401 bodies.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, Response

from api.limiter import auth_limit, limiter
from api.models import LoginRequest, LoginResponse, RegisterRequest, RegisterResponse
from auth.models import User
from auth.store import UserRepository
from auth.tokens import TokenService, authenticate_user, hash_password
from core.errors import DuplicateKeyError
from directory.models import Employee
from directory.store import EmployeeRepository

logger = logging.getLogger("employee_portal.auth")

# Auth policy:
# - POST /api/register: public -- anyone may create an account
# - POST /api/login:    public -- login endpoint must be unauthenticated
router = APIRouter()

_DUPLICATE_MESSAGES = {
    "username": "Username already exists",
    "email": "Email already exists",
}


@router.post("/register", response_model=RegisterResponse, status_code=201)
@limiter.limit(auth_limit)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create a user account and, optionally, its employee profile.

    The email pre-check rejects a taken email before the user row exists. If
    the profile insert fails for any reason (including losing a race on the
    email), the freshly created user is deleted again so a failed
    registration leaves nothing behind.
    """
    user_store: UserRepository = request.app.state.user_store
    employee_store: EmployeeRepository = request.app.state.employee_store

    if body.has_profile and employee_store.email_exists(body.email):
        raise HTTPException(status_code=400, detail=_DUPLICATE_MESSAGES["email"])

    user = User(username=body.username, hashed_password=hash_password(body.password), role=body.role.value)
    try:
        user_id = user_store.create_user(user)
    except DuplicateKeyError as exc:
        raise HTTPException(status_code=400, detail=_DUPLICATE_MESSAGES[exc.field]) from exc

    if body.has_profile:
        profile = Employee(name=body.name, email=body.email, department=body.department, user_id=user_id)
        try:
            employee_store.create_employee(profile)
        except DuplicateKeyError as exc:
            user_store.delete_user(user_id)
            raise HTTPException(status_code=400, detail=_DUPLICATE_MESSAGES[exc.field]) from exc
        except Exception:
            logger.error("Profile insert failed for %s; removing the new user", body.username)
            user_store.delete_user(user_id)
            raise

    logger.info("Registered user %s (role=%s, profile=%s)", body.username, user.role, body.has_profile)
    return RegisterResponse(message="User and profile created", user_id=user_id)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(auth_limit)
def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with username and password; return a bearer token.

    Returns the same generic error for wrong username and wrong password so
    the response never reveals which check failed.
    """
    user_store: UserRepository = request.app.state.user_store
    employee_store: EmployeeRepository = request.app.state.employee_store
    tokens: TokenService = request.app.state.tokens

    user = authenticate_user(user_store, body.username, body.password)
    if user is None:
        logger.info("Failed login for %r", body.username)
        raise HTTPException(
            status_code=401,
            detail="Invalid credentials",
            headers={"Cache-Control": "no-store"},
        )

    token = tokens.issue(user.id, user.role)
    employee = employee_store.get_by_owner(user.id)
    response.headers["Cache-Control"] = "no-store"
    logger.info("Successful login for %s", user.username)
    return LoginResponse(
        token=token,
        role=user.role,
        user_id=user.id,
        employee_id=employee.id if employee is not None else None,
    )
