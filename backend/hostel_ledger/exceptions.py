"""
Hostel Ledger Backend: Custom Exception Hierarchy
===================================================

What:  Defines application-specific exceptions for every way a ledger
       operation can be refused.
Why:   Each refusal carries a machine-readable tag (``code``) that callers can
       audit, plus a message safe to show to a coordinator.
How:   Each exception class carries a message, a tag and an optional context
       dict. Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by the ledger and the unit stores; caught by global handlers.
When:  During request processing when a recoverable error occurs.

Exception Hierarchy:
    HostelLedgerError (base)
    ├── ValidationError          → 400 Bad Request      (invalid_input)
    ├── NotFoundError            → 404 Not Found        (not_found)
    ├── AlreadyCheckedOutError   → 409 Conflict         (already_checked_out)
    ├── NotCheckedOutError       → 409 Conflict         (not_checked_out)
    └── PersistenceError         → 500 Internal Error   (persistence_error)

A failed operation never leaves a partial mutation behind: the ledger raises
before touching state, or rolls its change back before raising.
"""

from typing import Any, Dict, Optional


class HostelLedgerError(Exception):
    """
    Base exception for all Hostel Ledger application errors.

    Attributes:
        code:     Tag identifying the error kind (stable, used by clients)
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only for 4xx errors)
    """

    code = "ledger_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(HostelLedgerError):
    """
    Raised when caller input fails validation.

    When:    Blank holder, non-positive unit id, malformed duration.
    HTTP:    400 Bad Request
    """

    code = "invalid_input"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(HostelLedgerError):
    """
    Raised when a requested unit does not exist.

    The unit pool is fixed at provisioning, so an unknown id is always a
    caller mistake (stale UI, typo), never a race.
    """

    code = "not_found"

    def __init__(
        self,
        resource: str = "unit",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id is not None:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class AlreadyCheckedOutError(HostelLedgerError):
    """
    Raised when checking out a unit that somebody already holds.

    When:    The loser of a checkout race, or a client acting on stale state.
    HTTP:    409 Conflict
    """

    code = "already_checked_out"

    def __init__(self, unit_id: int, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["unit_id"] = unit_id
        super().__init__(
            message=f"Unit {unit_id} is already checked out",
            context=ctx,
        )
        self.unit_id = unit_id


class NotCheckedOutError(HostelLedgerError):
    """
    Raised when releasing a unit that is already available.

    Releasing a free unit is reported, not ignored, so an audit can tell a
    real return apart from a duplicate click.
    HTTP:    409 Conflict
    """

    code = "not_checked_out"

    def __init__(self, unit_id: int, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["unit_id"] = unit_id
        super().__init__(
            message=f"Unit {unit_id} is not currently checked out",
            context=ctx,
        )
        self.unit_id = unit_id


class PersistenceError(HostelLedgerError):
    """
    Raised when the unit store cannot load or save the unit set.

    What:    Disk full, permission denied, database unreachable, or a stored
             record that violates the unit invariants.
    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic. File paths and
        driver errors are logged server-side only.
    """

    code = "persistence_error"

    def __init__(
        self,
        message: str = "The unit ledger could not be persisted. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
