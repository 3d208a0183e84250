"""
tests/test_health.py -- Integration tests for GET /api/health and app-wide plumbing.

Covers:
  - 200 response with status and version, no authentication required
  - Security headers on every response
  - Unexpected exceptions -> 500 {"error": "Server error"} with no traceback leak
  - Unknown routes use the {"error": ...} envelope
  - Login rate limit -> 429 {"error": ...} with Retry-After
  - CORS preflight for an allowed origin
  - Lifespan builds and closes its own stores when none are injected
  - static_dir is served at / while /api routes keep priority
  - Rate limits are process-wide: the latest create_app() decides them
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from api.limiter import auth_limit, default_limit
from api.main import __version__, build_stores, create_app
from auth.store import InMemoryUserStore, UserStore
from directory.store import EmployeeStore, InMemoryEmployeeStore


def test_health_returns_200(client):
    """Health endpoint returns 200 with status and version."""
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": __version__}


def test_health_no_auth_required(client):
    resp = client.get("/api/health", headers={})
    assert resp.status_code == 200


def test_security_headers_present(client):
    resp = client.get("/api/health")
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-frame-options"] == "SAMEORIGIN"
    assert resp.headers["referrer-policy"] == "no-referrer"


def test_security_headers_on_error_responses(client):
    resp = client.get("/api/employees")
    assert resp.status_code == 401
    assert resp.headers["x-content-type-options"] == "nosniff"


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert set(resp.json()) == {"error"}


def test_unhandled_exception_is_generic_500(settings):
    app = create_app(settings, user_store=InMemoryUserStore(), employee_store=InMemoryEmployeeStore())

    @app.get("/api/boom")
    def boom():
        raise RuntimeError("database exploded: secret connection string")

    with TestClient(app, raise_server_exceptions=False) as test_client:
        resp = test_client.get("/api/boom")

    assert resp.status_code == 500
    assert resp.json() == {"error": "Server error"}
    assert "secret" not in resp.text


def test_login_rate_limit_returns_429(settings):
    limited = settings.model_copy(update={"rate_limit_enabled": True, "login_rate_limit": "2/minute"})
    app = create_app(limited, user_store=InMemoryUserStore(), employee_store=InMemoryEmployeeStore())
    body = {"username": "ghost", "password": "pw1"}

    with TestClient(app) as test_client:
        first = test_client.post("/api/login", json=body)
        second = test_client.post("/api/login", json=body)
        third = test_client.post("/api/login", json=body)
        health = test_client.get("/api/health")

    assert first.status_code == second.status_code == 401
    assert third.status_code == 429, f"Expected 429, got {third.status_code}: {third.text}"
    assert set(third.json()) == {"error"}
    assert "retry-after" in third.headers
    assert health.status_code == 200, "health must stay exempt from rate limiting"


def test_cors_preflight_allowed_origin(client):
    resp = client.options(
        "/api/employees",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "GET",
            "Access-Control-Request-Headers": "Authorization",
        },
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"


def test_untrusted_host_rejected(settings):
    strict = settings.model_copy(update={"allowed_hosts": ["api.example.com"]})
    app = create_app(strict, user_store=InMemoryUserStore(), employee_store=InMemoryEmployeeStore())
    with TestClient(app) as test_client:
        assert test_client.get("/api/health").status_code == 400
        assert test_client.get("/api/health", headers={"Host": "api.example.com"}).status_code == 200


def test_lifespan_builds_memory_stores(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        assert isinstance(app.state.user_store, InMemoryUserStore)
        assert isinstance(app.state.employee_store, InMemoryEmployeeStore)
        resp = test_client.post("/api/register", json={"username": "alice", "password": "pw1"})
        assert resp.status_code == 201


def test_build_stores_sql_shares_engine(settings, tmp_path):
    sql = settings.model_copy(update={"persistence": "sql", "database_url": f"sqlite:///{tmp_path / 'x.db'}"})
    user_store, employee_store = build_stores(sql)
    try:
        assert isinstance(user_store, UserStore)
        assert isinstance(employee_store, EmployeeStore)
        assert employee_store.engine is user_store.engine
    finally:
        employee_store.close()
        user_store.close()


def test_static_dir_served_at_root_without_shadowing_api(settings, tmp_path):
    (tmp_path / "index.html").write_text("<html><body>Employee Portal</body></html>", encoding="utf-8")
    with_static = settings.model_copy(update={"static_dir": str(tmp_path)})
    app = create_app(with_static, user_store=InMemoryUserStore(), employee_store=InMemoryEmployeeStore())

    with TestClient(app) as test_client:
        page = test_client.get("/")
        health = test_client.get("/api/health")
        missing = test_client.get("/api/employees")

    assert page.status_code == 200
    assert "<html>" in page.text
    assert page.headers["content-type"].startswith("text/html")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert missing.status_code == 401, "API routes must win over the static mount"


def test_latest_create_app_sets_process_wide_limits(settings):
    create_app(settings.model_copy(update={"login_rate_limit": "5/minute"}))
    assert auth_limit() == "5/minute"

    create_app(settings.model_copy(update={"login_rate_limit": "7/minute", "default_rate_limit": "50/minute"}))
    assert auth_limit() == "7/minute"
    assert default_limit() == "50/minute"
