"""
api/routes/employees.py -- Employee CRUD routes.

Routes:
  GET    /api/employees        -- paginated list, scoped to the caller
  POST   /api/employees        -- create (admin only)
  GET    /api/employees/{id}   -- detail
  PUT    /api/employees/{id}   -- partial update
  DELETE /api/employees/{id}   -- delete

Authorization (auth/policy.py):
  Single-record routes load the record first (404 if absent), then apply
  can_access() against its owner (403 if forbidden). The 404 check comes
  first because ids are random and unguessable, so "exists" leaks nothing.
  The list route never checks records one by one; scope_owner_filter()
  narrows the query itself.

Owner population:
  Responses embed the owning user's {id, username, role}. Owners are looked
  up once per distinct id per request.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.models import (
    EmployeeCreate,
    EmployeeListResponse,
    EmployeeResponse,
    EmployeeUpdate,
    MessageResponse,
)
from auth.dependencies import get_caller, require_admin
from auth.models import Caller, User
from auth.policy import can_access, can_assign_owner, scope_owner_filter
from auth.store import UserRepository
from core.errors import DuplicateKeyError
from directory.models import Employee, EmployeeQuery
from directory.store import EmployeeRepository

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _stores(request: Request) -> tuple[UserRepository, EmployeeRepository]:
    return request.app.state.user_store, request.app.state.employee_store


def _to_responses(user_store: UserRepository, employees: list[Employee]) -> list[EmployeeResponse]:
    owners: dict[str, Optional[User]] = {}
    for emp in employees:
        if emp.user_id is not None and emp.user_id not in owners:
            owners[emp.user_id] = user_store.get_by_id(emp.user_id)
    return [EmployeeResponse.from_employee(emp, owners.get(emp.user_id) if emp.user_id else None) for emp in employees]


def _load_authorized(request: Request, employee_id: str, caller: Caller) -> Employee:
    """Return the employee if it exists and caller may touch it; 404/403 otherwise."""
    _, employee_store = _stores(request)
    employee = employee_store.get_employee(employee_id)
    if employee is None:
        raise HTTPException(status_code=404, detail="Employee not found")
    if not can_access(caller, employee.user_id):
        raise HTTPException(status_code=403, detail="Not authorized")
    return employee


def _require_known_owner(user_store: UserRepository, user_id: Optional[str]) -> None:
    if user_id is not None and user_store.get_by_id(user_id) is None:
        raise HTTPException(status_code=400, detail="Referenced user does not exist")


# ---------------------------------------------------------------------------
# GET /employees -- scoped, paginated list
# ---------------------------------------------------------------------------


@router.get("/employees", response_model=EmployeeListResponse)
def list_employees(
    request: Request,
    page: int = Query(default=1, ge=1),
    search: str = Query(default="", max_length=255),
    user_id: Optional[str] = Query(default=None, alias="userId", max_length=64),
    caller: Caller = Depends(get_caller),
) -> EmployeeListResponse:
    """Return one page of employees, newest first.

    search matches name or email (case-insensitive substring). userId filters
    by owner for admins; for everyone else the owner filter is always the
    caller's own id, whatever was requested.
    """
    user_store, employee_store = _stores(request)
    query = EmployeeQuery(
        search=search.strip(),
        owner_id=scope_owner_filter(caller, user_id),
        page=page,
        page_size=request.app.state.settings.page_size,
    )
    result = employee_store.list_employees(query)
    return EmployeeListResponse(
        employees=_to_responses(user_store, result.items),
        total_pages=result.total_pages,
        current_page=result.page,
    )


# ---------------------------------------------------------------------------
# POST /employees -- admin only
# ---------------------------------------------------------------------------


@router.post("/employees", response_model=EmployeeResponse, status_code=201)
def create_employee(
    request: Request,
    body: EmployeeCreate,
    caller: Caller = Depends(require_admin),
) -> EmployeeResponse:
    """Create an employee record. Admin only."""
    user_store, employee_store = _stores(request)
    _require_known_owner(user_store, body.user_id)
    employee = Employee(name=body.name, email=body.email, department=body.department, user_id=body.user_id)
    try:
        employee_id = employee_store.create_employee(employee)
    except DuplicateKeyError as exc:
        raise HTTPException(status_code=400, detail="Email already exists") from exc
    created = employee_store.get_employee(employee_id)
    if created is None:
        raise HTTPException(status_code=500, detail="Server error")
    return _to_responses(user_store, [created])[0]


# ---------------------------------------------------------------------------
# GET /employees/{employee_id}
# ---------------------------------------------------------------------------


@router.get("/employees/{employee_id}", response_model=EmployeeResponse)
def get_employee(
    request: Request,
    employee_id: str,
    caller: Caller = Depends(get_caller),
) -> EmployeeResponse:
    """Return a single employee the caller is allowed to see."""
    user_store, _ = _stores(request)
    employee = _load_authorized(request, employee_id, caller)
    return _to_responses(user_store, [employee])[0]


# ---------------------------------------------------------------------------
# PUT /employees/{employee_id} -- partial update
# ---------------------------------------------------------------------------


@router.put("/employees/{employee_id}", response_model=EmployeeResponse)
def update_employee(
    request: Request,
    employee_id: str,
    body: EmployeeUpdate,
    caller: Caller = Depends(get_caller),
) -> EmployeeResponse:
    """Merge the supplied fields into the employee and return the result.

    Fields missing from the body are left unchanged. Non-admins may not move
    a record to another owner.
    """
    user_store, employee_store = _stores(request)
    _load_authorized(request, employee_id, caller)

    changes = body.model_dump(exclude_unset=True)
    if "user_id" in changes:
        if not can_assign_owner(caller, changes["user_id"]):
            raise HTTPException(status_code=403, detail="Not authorized")
        _require_known_owner(user_store, changes["user_id"])

    try:
        updated = employee_store.update_employee(employee_id, **changes)
    except DuplicateKeyError as exc:
        raise HTTPException(status_code=400, detail="Email already exists") from exc
    if updated is None:
        # Deleted between the load and the write
        raise HTTPException(status_code=404, detail="Employee not found")
    return _to_responses(user_store, [updated])[0]


# ---------------------------------------------------------------------------
# DELETE /employees/{employee_id}
# ---------------------------------------------------------------------------


@router.delete("/employees/{employee_id}", response_model=MessageResponse)
def delete_employee(
    request: Request,
    employee_id: str,
    caller: Caller = Depends(get_caller),
) -> MessageResponse:
    """Delete an employee the caller is allowed to modify."""
    _, employee_store = _stores(request)
    _load_authorized(request, employee_id, caller)
    if not employee_store.delete_employee(employee_id):
        raise HTTPException(status_code=404, detail="Employee not found")
    return MessageResponse(message="Deleted")
