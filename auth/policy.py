"""
auth/policy.py -- Record-level authorization rules.

Pure functions of the caller and the record owner. No I/O, no FastAPI, so the
rules can be tested exhaustively without a client.

Single-record access (read, update, delete):
    allowed iff the caller is an admin OR the record's owner is the caller.
    A record with no owner is admin-only.

Listing:
    not a per-record check but a query filter. A non-admin's owner filter is
    always forced to their own id, so totals and page counts never reveal how
    many records other users own.

Layer rule: no imports from api/ or directory/.
"""

from __future__ import annotations

from auth.models import Caller


def can_access(caller: Caller, owner_id: str | None) -> bool:
    """Return True if caller may read/modify a record owned by owner_id."""
    if caller.is_admin:
        return True
    return owner_id is not None and owner_id == caller.user_id


def scope_owner_filter(caller: Caller, requested_owner_id: str | None) -> str | None:
    """Return the owner filter a list query must use for this caller.

    Admins get what they asked for (None = every owner). Everyone else gets
    their own id, whatever they asked for.
    """
    if caller.is_admin:
        return requested_owner_id or None
    return caller.user_id


def can_assign_owner(caller: Caller, new_owner_id: str | None) -> bool:
    """Return True if caller may set a record's owner to new_owner_id.

    Without this a user could hand their own record to someone else (or
    detach it) through a partial update.
    """
    return caller.is_admin or new_owner_id == caller.user_id
