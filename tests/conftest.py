"""
tests/conftest.py -- Shared test fixtures for the employee portal.

This module provides:
  - settings: explicit Settings with a fixed secret and rate limiting off
  - stores: (user_store, employee_store) pair, parametrized over the SQL and
    in-memory backends so every dependent test runs against both
  - client: TestClient over create_app(settings, stores) -- real routes,
    middleware and exception handlers, isolated data per test
  - api: small helper wrapping register/login/auth-header boilerplate

Design: the SQL backend uses a file DB under tmp_path rather than :memory:.
TestClient runs sync route handlers in a thread pool, and a plain :memory:
SQLite database is per-connection, so worker threads would see a blank schema.
"""

from __future__ import annotations

from collections.abc import Generator
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.store import InMemoryUserStore, UserStore
from core.config import Settings
from directory.store import EmployeeStore, InMemoryEmployeeStore

TEST_SECRET = "test-secret-key-that-is-long-enough-1234567890"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        secret_key=TEST_SECRET,
        persistence="memory",
        rate_limit_enabled=False,
        page_size=10,
    )


@pytest.fixture(params=["memory", "sql"])
def stores(request, tmp_path):
    """Yield a fresh (user_store, employee_store) pair for each backend."""
    if request.param == "memory":
        user_store, employee_store = InMemoryUserStore(), InMemoryEmployeeStore()
    else:
        user_store = UserStore(f"sqlite:///{tmp_path / 'portal.db'}")
        employee_store = EmployeeStore(engine=user_store.engine)
    yield user_store, employee_store
    employee_store.close()
    user_store.close()


@pytest.fixture
def client(settings: Settings, stores) -> Generator[TestClient, None, None]:
    user_store, employee_store = stores
    app = create_app(settings, user_store=user_store, employee_store=employee_store)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


class ApiHelper:
    """Thin wrapper for the register -> login -> call flow used by most tests."""

    def __init__(self, client: TestClient) -> None:
        self.client = client

    def register(self, username: str, password: str = "pw1", role: str = "user", **profile) -> dict:
        body = {"username": username, "password": password, "role": role, **profile}
        resp = self.client.post("/api/register", json=body)
        assert resp.status_code == 201, f"register {username}: {resp.status_code} {resp.text}"
        return resp.json()

    def login(self, username: str, password: str = "pw1") -> dict:
        resp = self.client.post("/api/login", json={"username": username, "password": password})
        assert resp.status_code == 200, f"login {username}: {resp.status_code} {resp.text}"
        return resp.json()

    def user_with_profile(self, username: str, role: str = "user", department: str = "Eng") -> dict:
        """Register a user with a linked profile and return the login payload."""
        self.register(
            username,
            role=role,
            name=username.capitalize(),
            email=f"{username}@example.com",
            department=department,
        )
        return self.login(username)

    @staticmethod
    def headers(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    def create_employee(self, admin_token: str, name: str, email: str, user_id: Optional[str] = None) -> dict:
        body = {"name": name, "email": email, "department": "Ops"}
        if user_id is not None:
            body["userId"] = user_id
        resp = self.client.post("/api/employees", json=body, headers=self.headers(admin_token))
        assert resp.status_code == 201, f"create {email}: {resp.status_code} {resp.text}"
        return resp.json()


@pytest.fixture
def api(client: TestClient) -> ApiHelper:
    return ApiHelper(client)
