"""
API request and response models for the employee portal REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
directory/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format is camelCase (userId, createdAt, totalPages) for compatibility
with existing clients. Request models also accept the snake_case field names.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import User
from auth.tokens import MAX_PASSWORD_BYTES
from directory.models import Employee

# ---------------------------------------------------------------------------
# Shared config
# ---------------------------------------------------------------------------

_REQUEST_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    str_strip_whitespace=True,
    extra="ignore",
)

# Credentials are compared byte for byte, so no whitespace stripping.
_CREDENTIALS_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    extra="ignore",
)

_RESPONSE_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/register.

    The three profile fields are optional as a group: a linked employee
    record is created only when all of them are present and non-empty.
    """

    model_config = _CREDENTIALS_CONFIG

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)
    role: RoleEnum = RoleEnum.user
    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    department: Optional[str] = Field(default=None, max_length=255)

    @field_validator("password")
    @classmethod
    def _fits_bcrypt(cls, value: str) -> str:
        # bcrypt's limit is 72 bytes, not characters.
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
        return value

    @property
    def has_profile(self) -> bool:
        return bool(self.name and self.email and self.department)


class LoginRequest(BaseModel):
    """Request body for POST /api/login."""

    model_config = _CREDENTIALS_CONFIG

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class RegisterResponse(BaseModel):
    model_config = _RESPONSE_CONFIG

    message: str
    user_id: str


class LoginResponse(BaseModel):
    """Response for POST /api/login.

    employee_id is the caller's own profile record, returned so clients can
    jump straight to it. None when the user registered without a profile.
    """

    model_config = _RESPONSE_CONFIG

    token: str
    role: str
    user_id: str
    employee_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Employees -- request models
# ---------------------------------------------------------------------------


class EmployeeCreate(BaseModel):
    """Request body for POST /api/employees. Unknown fields are ignored."""

    model_config = _REQUEST_CONFIG

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=1, max_length=255)
    department: str = Field(min_length=1, max_length=255)
    user_id: Optional[str] = Field(default=None, max_length=64)


class EmployeeUpdate(BaseModel):
    """Request body for PUT /api/employees/{id}.

    Partial: only fields present in the body are applied (exclude_unset).
    name/email/department may be omitted but not set to null. user_id may be
    null to detach the record from its owner.
    """

    model_config = _REQUEST_CONFIG

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, min_length=1, max_length=255)
    department: Optional[str] = Field(default=None, min_length=1, max_length=255)
    user_id: Optional[str] = Field(default=None, max_length=64)

    @field_validator("name", "email", "department")
    @classmethod
    def _not_null(cls, value: Optional[str]) -> str:
        # Only runs for values actually supplied; omitted fields keep the default.
        if value is None:
            raise ValueError("must not be null")
        return value


# ---------------------------------------------------------------------------
# Employees -- response models
# ---------------------------------------------------------------------------


class OwnerSummary(BaseModel):
    """The populated owner of an employee record. Never includes the password hash."""

    model_config = _RESPONSE_CONFIG

    id: str
    username: str
    role: str

    @classmethod
    def from_user(cls, user: User) -> "OwnerSummary":
        return cls(id=user.id, username=user.username, role=user.role)


class EmployeeResponse(BaseModel):
    model_config = _RESPONSE_CONFIG

    id: str
    name: str
    email: str
    department: str
    user_id: Optional[str]
    created_at: str
    owner: Optional[OwnerSummary] = None

    @classmethod
    def from_employee(cls, employee: Employee, owner: Optional[User] = None) -> "EmployeeResponse":
        """Build a response from the domain dataclass and its (optional) owner."""
        return cls(
            id=employee.id,
            name=employee.name,
            email=employee.email,
            department=employee.department,
            user_id=employee.user_id,
            created_at=employee.created_at,
            owner=OwnerSummary.from_user(owner) if owner is not None else None,
        )


class EmployeeListResponse(BaseModel):
    """Response for GET /api/employees."""

    model_config = _RESPONSE_CONFIG

    employees: list[EmployeeResponse]
    total_pages: int
    current_page: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Envelope returned on every 4xx/5xx response: {"error": "<message>"}."""

    model_config = ConfigDict(frozen=True)

    error: str


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
