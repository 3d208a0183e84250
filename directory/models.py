"""
directory/models.py -- Domain dataclasses for the employee directory.

Pure data containers with zero logic. Query scoping lives in auth/policy.py;
filtering, sorting and paging live in directory/store.py.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Employee:
    """An employee profile, optionally linked to the User who owns it.

    user_id is the owner reference. A record without one can only be seen
    and changed by admins.

    id is None before the record is written to the store.
    """

    name: str
    email: str
    department: str
    user_id: Optional[str] = None
    id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert when empty


@dataclass
class EmployeeQuery:
    """Filter and paging parameters for EmployeeRepository.list_employees().

    search matches name OR email, case-insensitive substring.
    owner_id restricts to records linked to that user; None means any owner.
    page is 1-based.
    """

    search: str = ""
    owner_id: Optional[str] = None
    page: int = 1
    page_size: int = 10


@dataclass
class EmployeePage:
    """One page of results plus the total number of matching records."""

    items: list[Employee] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 10

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.page_size)
