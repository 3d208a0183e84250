"""
auth/store.py -- Persistence layer for User records (the credential store).

Pattern: Repository + Data Mapper (same as directory/store.py).
UserRepository is the interface route code depends on. Two implementations:

  UserStore          SQLAlchemy Core; SQLite by default, any SQLAlchemy URL works.
  InMemoryUserStore  dict-backed, for tests and throwaway demo instances.

Which one runs is decided once at startup (api.main.build_stores) and never
branched on inside handlers.

Security:
  All SQL queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or directory/. Import from core/ is allowed.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User
from core.errors import DuplicateKeyError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


def _configure_sqlite_connection(dbapi_conn, connection_record) -> None:
    """Per-connection SQLite setup: WAL journal mode and a casefold() function.

    Set per-connection because SQLite PRAGMAs and user functions are not
    inherited by new connections from the pool. In-memory databases silently
    keep their "memory" journal mode.

    SQLite's built-in lower() only folds ASCII, so case-insensitive search
    compares casefold(column) instead; that matches Python's str.casefold()
    used by the in-memory stores.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.create_function("casefold", 1, _casefold, deterministic=True)


def make_engine(db_url: str) -> Engine:
    """Create an Engine with the SQLite tweaks both stores need (see above)."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # FastAPI runs sync handlers in a thread pool, so a pooled SQLite
        # connection may be used from a thread other than its creator.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _configure_sqlite_connection)
    return engine


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class UserRepository(Protocol):
    def create_user(self, user: User) -> str: ...

    def get_by_id(self, user_id: str) -> User | None: ...

    def get_by_username(self, username: str) -> User | None: ...

    def delete_user(self, user_id: str) -> bool: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# SQL repository
# ---------------------------------------------------------------------------


class UserStore:
    """SQLAlchemy-backed User repository.

    Usage:
        store = UserStore("sqlite:///employee_portal.db")
        user_id = store.create_user(User(username="admin", role="admin", hashed_password=hash_password("secret")))
        user = store.get_by_username("admin")
        store.close()

    Pass engine= to share one connection pool with the EmployeeStore.
    """

    def __init__(self, db_url: str = "sqlite:///employee_portal.db", engine: Engine | None = None) -> None:
        self._owns_engine = engine is None
        self.engine: Engine = engine if engine is not None else make_engine(db_url)
        _metadata.create_all(self.engine)

    def create_user(self, user: User) -> str:
        """Insert a new user and return its assigned id.

        Raises DuplicateKeyError("username") if the username is taken. The
        UNIQUE constraint is the source of truth, so two concurrent
        registrations for the same name cannot both succeed.
        """
        user_id = _new_id()
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user_id,
                        username=user.username,
                        hashed_password=user.hashed_password,
                        role=user.role,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateKeyError("username") from exc
        return user_id

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def delete_user(self, user_id: str) -> bool:
        """Delete a user record. Returns True if deleted, False if not found.

        Only used to roll back a registration whose profile insert failed.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        if self._owns_engine:
            self.engine.dispose()


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------


class InMemoryUserStore:
    """Dict-backed User repository with the same contract as UserStore.

    A single lock makes the uniqueness check and the insert one atomic step.
    Returned objects are copies, so callers cannot mutate stored state.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}

    def create_user(self, user: User) -> str:
        with self._lock:
            if any(u.username == user.username for u in self._users.values()):
                raise DuplicateKeyError("username")
            user_id = _new_id()
            self._users[user_id] = replace(user, id=user_id, created_at=_now_iso())
        return user_id

    def get_by_id(self, user_id: str) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
        return replace(user) if user is not None else None

    def get_by_username(self, username: str) -> User | None:
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return replace(user)
        return None

    def delete_user(self, user_id: str) -> bool:
        with self._lock:
            return self._users.pop(user_id, None) is not None

    def close(self) -> None:
        with self._lock:
            self._users.clear()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        role=row.role,
        created_at=row.created_at,
    )
