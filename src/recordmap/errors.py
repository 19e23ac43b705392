"""
Error types for recordmap.

Only programming errors are raised. Lookups that find nothing and writes
with nothing to persist are reported through ``recordmap.results.Signal``.
Storage failures propagate unchanged from the storage backend.
"""

from __future__ import annotations


class RecordMapError(Exception):
    """Base exception for all recordmap errors."""

    def __init__(self, message: str, *, detail: dict[str, object] | None = None):
        self.message = message
        self.detail = detail or {}
        super().__init__(message)


class InvalidArgumentError(RecordMapError, TypeError):
    """
    Raised when a caller passes a value of the wrong shape.

    Examples:
    - A non-mapping as record data
    - A non-record where a record is required
    - A record without a primary key value passed to update/delete/refresh
    """

    pass


class MalformedDeclarationError(RecordMapError):
    """
    Raised when static record or relation metadata is structurally invalid.

    Not a ``ValueError`` subclass, so pydantic validators let it through
    unwrapped.

    Examples:
    - A condition clause without an expression
    - A placeholder with no bound value
    - A relation name colliding with a field name
    """

    pass


class ManagerNotRegisteredError(RecordMapError, LookupError):
    """Raised when a registry is asked for a manager name it does not know."""

    pass
