"""
directory/store.py -- Persistence layer for Employee records (the profile store).

Uses SQLAlchemy Core (not ORM) so the dataclasses in directory/models.py stay
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. EmployeeRepository is the interface;
EmployeeStore (SQL) and InMemoryEmployeeStore implement it. _row_to_employee
is the mapper. Route handlers never touch SQL directly.

Listing semantics (both implementations):
  - search matches name OR email, case-insensitive substring using Unicode
    case folding ("émile" finds "Émile"). LIKE wildcards typed by the user
    are escaped, so "50%" matches the literal text.
  - owner_id narrows to one owner. The caller (auth.policy) decides whether
    that filter is the requested one or forced to the caller's own id.
  - newest first (created_at descending), fixed-size pages, plus the total
    count for the same filter.

Usage:
    store = EmployeeStore("sqlite:///employee_portal.db")
    emp_id = store.create_employee(Employee(name="Alice", email="a@x.com", department="Eng"))
    page = store.list_employees(EmployeeQuery(search="ali", page=1))
    store.close()
"""

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import Column, MetaData, String, Table, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.store import make_engine
from core.errors import DuplicateKeyError
from directory.models import Employee, EmployeePage, EmployeeQuery

# Fields an update may touch. id and created_at are immutable.
UPDATABLE_FIELDS = frozenset({"name", "email", "department", "user_id"})

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_employees = Table(
    "employees",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("department", String(255), nullable=False),
    Column("user_id", String(32), index=True),
    Column("created_at", String(32), nullable=False, index=True),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _check_fields(fields: dict) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown employee fields: {sorted(unknown)!r}")


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class EmployeeRepository(Protocol):
    def create_employee(self, employee: Employee) -> str: ...

    def get_employee(self, employee_id: str) -> Optional[Employee]: ...

    def get_by_owner(self, user_id: str) -> Optional[Employee]: ...

    def email_exists(self, email: str) -> bool: ...

    def list_employees(self, query: EmployeeQuery) -> EmployeePage: ...

    def update_employee(self, employee_id: str, **fields) -> Optional[Employee]: ...

    def delete_employee(self, employee_id: str) -> bool: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# SQL repository
# ---------------------------------------------------------------------------


class EmployeeStore:
    """SQLAlchemy-backed Employee repository.

    A shared engine= must come from auth.store.make_engine so SQLite
    connections carry the casefold() search function.
    """

    def __init__(self, db_url: str = "sqlite:///employee_portal.db", engine: Optional[Engine] = None) -> None:
        self._owns_engine = engine is None
        self.engine: Engine = engine if engine is not None else make_engine(db_url)
        metadata.create_all(self.engine)

    def create_employee(self, employee: Employee) -> str:
        """Insert a new employee and return its assigned id.

        created_at is set to now unless the caller provides one (imports).
        Raises DuplicateKeyError("email") if the email is already in use.
        """
        employee_id = uuid.uuid4().hex
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _employees.insert().values(
                        id=employee_id,
                        name=employee.name,
                        email=employee.email,
                        department=employee.department,
                        user_id=employee.user_id,
                        created_at=employee.created_at or _now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateKeyError("email") from exc
        return employee_id

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        """Fetch a single employee by id. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_employees.select().where(_employees.c.id == employee_id)).fetchone()
        return _row_to_employee(row) if row is not None else None

    def get_by_owner(self, user_id: str) -> Optional[Employee]:
        """Return the oldest employee record linked to user_id, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _employees.select().where(_employees.c.user_id == user_id).order_by(_employees.c.created_at).limit(1)
            ).fetchone()
        return _row_to_employee(row) if row is not None else None

    def email_exists(self, email: str) -> bool:
        with self.engine.connect() as conn:
            found = conn.execute(select(_employees.c.id).where(_employees.c.email == email)).first()
        return found is not None

    def _search_condition(self, term: str):
        """name OR email contains term, ignoring case (Unicode-aware).

        On SQLite this uses the casefold() function registered by make_engine;
        other databases get ILIKE, which folds case natively.
        """
        if self.engine.dialect.name == "sqlite":
            pattern = f"%{_escape_like(term.casefold())}%"
            return or_(
                func.casefold(_employees.c.name).like(pattern, escape="\\"),
                func.casefold(_employees.c.email).like(pattern, escape="\\"),
            )
        pattern = f"%{_escape_like(term)}%"
        return or_(
            _employees.c.name.ilike(pattern, escape="\\"),
            _employees.c.email.ilike(pattern, escape="\\"),
        )

    def list_employees(self, query: EmployeeQuery) -> EmployeePage:
        """Return one page of employees matching the query, newest first."""
        conditions = []
        if query.search:
            conditions.append(self._search_condition(query.search))
        if query.owner_id is not None:
            conditions.append(_employees.c.user_id == query.owner_id)

        offset = (query.page - 1) * query.page_size
        with self.engine.connect() as conn:
            rows = conn.execute(
                _employees.select()
                .where(*conditions)
                .order_by(_employees.c.created_at.desc())
                .limit(query.page_size)
                .offset(offset)
            ).fetchall()
            total = conn.execute(select(func.count()).select_from(_employees).where(*conditions)).scalar()
        return EmployeePage(
            items=[_row_to_employee(r) for r in rows],
            total=total or 0,
            page=query.page,
            page_size=query.page_size,
        )

    def update_employee(self, employee_id: str, **fields) -> Optional[Employee]:
        """Merge fields into an existing employee and return the updated record.

        Accepts any subset of UPDATABLE_FIELDS. Returns None if employee_id was
        not found. Raises DuplicateKeyError("email") if the new email is taken.
        """
        _check_fields(fields)
        if fields:
            try:
                with self.engine.connect() as conn:
                    conn.execute(_employees.update().where(_employees.c.id == employee_id).values(**fields))
                    conn.commit()
            except IntegrityError as exc:
                raise DuplicateKeyError("email") from exc
        return self.get_employee(employee_id)

    def delete_employee(self, employee_id: str) -> bool:
        """Delete an employee. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_employees.delete().where(_employees.c.id == employee_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        if self._owns_engine:
            self.engine.dispose()


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------


class InMemoryEmployeeStore:
    """Dict-backed Employee repository with the same contract as EmployeeStore."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._employees: dict[str, Employee] = {}

    def _email_taken(self, email: str, exclude_id: Optional[str] = None) -> bool:
        return any(e.email == email and e.id != exclude_id for e in self._employees.values())

    def create_employee(self, employee: Employee) -> str:
        with self._lock:
            if self._email_taken(employee.email):
                raise DuplicateKeyError("email")
            employee_id = uuid.uuid4().hex
            self._employees[employee_id] = replace(
                employee,
                id=employee_id,
                created_at=employee.created_at or _now_iso(),
            )
        return employee_id

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        with self._lock:
            employee = self._employees.get(employee_id)
        return replace(employee) if employee is not None else None

    def get_by_owner(self, user_id: str) -> Optional[Employee]:
        with self._lock:
            owned = [e for e in self._employees.values() if e.user_id == user_id]
        if not owned:
            return None
        return replace(min(owned, key=lambda e: e.created_at))

    def email_exists(self, email: str) -> bool:
        with self._lock:
            return self._email_taken(email)

    def list_employees(self, query: EmployeeQuery) -> EmployeePage:
        term = query.search.casefold()
        with self._lock:
            matches = [
                e
                for e in self._employees.values()
                if (not term or term in e.name.casefold() or term in e.email.casefold())
                and (query.owner_id is None or e.user_id == query.owner_id)
            ]
        matches.sort(key=lambda e: e.created_at, reverse=True)
        offset = (query.page - 1) * query.page_size
        return EmployeePage(
            items=[replace(e) for e in matches[offset : offset + query.page_size]],
            total=len(matches),
            page=query.page,
            page_size=query.page_size,
        )

    def update_employee(self, employee_id: str, **fields) -> Optional[Employee]:
        _check_fields(fields)
        with self._lock:
            current = self._employees.get(employee_id)
            if current is None:
                return None
            if "email" in fields and self._email_taken(fields["email"], exclude_id=employee_id):
                raise DuplicateKeyError("email")
            updated = replace(current, **fields)
            self._employees[employee_id] = updated
        return replace(updated)

    def delete_employee(self, employee_id: str) -> bool:
        with self._lock:
            return self._employees.pop(employee_id, None) is not None

    def close(self) -> None:
        with self._lock:
            self._employees.clear()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_employee(row) -> Employee:
    return Employee(
        id=row.id,
        name=row.name,
        email=row.email,
        department=row.department,
        user_id=row.user_id,
        created_at=row.created_at,
    )
