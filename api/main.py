"""
api/main.py -- FastAPI application factory for the employee portal.

create_app(settings) builds a fully wired app from an explicit Settings
object. Nothing in the request path reads the process environment; asgi.py
and main.py are the only places that turn the environment into Settings.

Middleware stack (outermost to innermost):
  1. log_requests          -- one log line per request with latency
  2. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  3. CORSMiddleware        -- adds CORS headers for allowed browser origins
  4. security_headers      -- nosniff / frame / referrer / opener headers
  5. SlowAPIMiddleware     -- enforces default and per-route rate limits

Starlette wraps each newly added middleware around the existing stack, so
create_app() registers them innermost first.

Lifespan builds the user and employee stores (unless the caller injected
them) and closes what it built on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import configure_limiter, limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.employees import router as employees_router
from auth.store import InMemoryUserStore, UserRepository, UserStore
from auth.tokens import TokenService
from core.config import Settings, get_settings
from directory.store import EmployeeRepository, EmployeeStore, InMemoryEmployeeStore

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("employee_portal.api")

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
}


# ---------------------------------------------------------------------------
# Persistence selection
# ---------------------------------------------------------------------------


def build_stores(settings: Settings) -> tuple[UserRepository, EmployeeRepository]:
    """Return the (user store, employee store) pair for the configured backend.

    The only place persistence mode is inspected. Both SQL stores share one
    engine; the user store owns it and disposes it on close.
    """
    if settings.persistence == "memory":
        return InMemoryUserStore(), InMemoryEmployeeStore()
    user_store = UserStore(settings.database_url)
    return user_store, EmployeeStore(engine=user_store.engine)


def _error(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
        headers=headers,
    )


def _describe_validation_errors(exc: RequestValidationError) -> str:
    """Flatten pydantic errors into one line, e.g. "password: Field required"."""
    parts = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc)
        parts.append(f"{field}: {err.get('msg', 'invalid')}" if field else err.get("msg", "invalid"))
    return "; ".join(parts) or "Invalid request"


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Optional[Settings] = None,
    user_store: Optional[UserRepository] = None,
    employee_store: Optional[EmployeeRepository] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings:       Explicit configuration. Defaults to get_settings().
        user_store:     Pre-built credential store (tests). Must be passed
                        together with employee_store; the caller closes both.
        employee_store: Pre-built profile store (tests).
    """
    settings = settings or get_settings()
    injected = user_store is not None and employee_store is not None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Employee portal API starting up (persistence=%s)", settings.persistence)
        if injected:
            app.state.user_store, app.state.employee_store = user_store, employee_store
        else:
            app.state.user_store, app.state.employee_store = build_stores(settings)
        logger.info("Stores initialized")

        yield

        if not injected:
            app.state.employee_store.close()
            app.state.user_store.close()
        logger.info("Employee portal API shutdown complete")

    app = FastAPI(
        title="Employee Portal API",
        description="Authenticated employee directory with role-based access.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.tokens = TokenService(settings.secret_key, settings.token_expire_seconds)

    # -----------------------------------------------------------------------
    # Middleware -- registered innermost first (see module docstring).
    # -----------------------------------------------------------------------

    # SlowAPI looks for app.state.limiter by convention.
    configure_limiter(settings)
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in _SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            request.client.host if request.client else "unknown",
        )
        return response

    # -----------------------------------------------------------------------
    # Exception handlers -- every error body is {"error": "<message>"}.
    # -----------------------------------------------------------------------

    # Must stay sync: SlowAPIMiddleware calls this handler without awaiting it.
    @app.exception_handler(RateLimitExceeded)
    def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        retry_after = int(getattr(exc, "retry_after", 60))
        return _error(429, "Too many requests.", headers={"Retry-After": str(retry_after)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, _describe_validation_errors(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected failures.

        The traceback goes to the log only. The client gets a generic message
        so store errors and stack details never leak.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error(500, "Server error")

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------

    @app.get("/api/health", tags=["Health"])
    async def health() -> HealthResponse:
        """Return API liveness and current version. Public, not rate limited."""
        return HealthResponse(version=__version__)

    limiter.exempt(health)

    app.include_router(auth_router, prefix="/api", tags=["Auth"])
    app.include_router(employees_router, prefix="/api", tags=["Employees"])

    # Mounted last so API routes always win over files of the same name.
    if settings.static_dir:
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app
