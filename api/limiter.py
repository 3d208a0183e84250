"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and the route
modules (to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

Limit strings are resolved through callables so create_app() can apply the
values from its Settings object after the decorators have already run.

The limiter is process-wide. The route decorators bind to this one instance,
so the limits, the enabled flag and the counters belong to the process, not
to an app: the most recent create_app() call decides them for every app in
the process. One process serves one app in production (asgi.py); tests that
build several apps rely on each create_app() resetting the state.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import Settings

_limits: dict[str, str] = {
    "default": "100 per 15 minutes",
    "auth": "10/minute",
}


def default_limit() -> str:
    return _limits["default"]


def auth_limit() -> str:
    """Stricter limit for the credential endpoints (login, register)."""
    return _limits["auth"]


limiter = Limiter(key_func=get_remote_address, default_limits=[default_limit], storage_uri="memory://")


def configure_limiter(settings: Settings) -> None:
    """Apply rate limit settings process-wide. Called once per create_app().

    Overrides whatever an earlier create_app() configured, and clears the
    hit counters.
    """
    _limits["default"] = settings.default_rate_limit
    _limits["auth"] = settings.login_rate_limit
    limiter.enabled = settings.rate_limit_enabled
    limiter.reset()
