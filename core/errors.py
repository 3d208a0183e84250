"""
core/errors.py -- Store-level exceptions shared by every persistence backend.

Both the SQLAlchemy stores and the in-memory stores raise these, so route
handlers catch one exception type regardless of which backend was selected
at startup. HTTP mapping happens in the route layer, never here.
"""


class StoreError(Exception):
    """Base class for persistence failures the caller is expected to handle."""


class DuplicateKeyError(StoreError):
    """A unique field (username, email) already holds the given value."""

    def __init__(self, field: str) -> None:
        super().__init__(f"{field} already exists")
        self.field = field
