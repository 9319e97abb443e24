"""
Hostel Ledger Backend: Pydantic Request/Response Schemas
==========================================================

What:  Pydantic models for the HTTP contract and for stored unit records.
Why:   Strict input validation, automatic serialization, and OpenAPI docs.
How:   FastAPI validates request bodies against the *Request models and
       serializes ApiResponse[...] envelopes. The stores use UnitRecord to
       read and write one unit, which enforces the hold invariants on the way in.
Who:   Route handlers (API models) and both unit stores (UnitRecord).

Design Decision:
    The ledger's Unit/Hold dataclasses stay free of pydantic. Schemas
    translate at the edges, so a malformed stored record or request body
    never reaches ledger state.
"""

from datetime import datetime, timezone
from typing import Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt, field_validator, model_validator

from hostel_ledger.services.ledger import Hold, LedgerSummary, Unit, UnitStatus

T = TypeVar("T")


def sanitize_text(value):
    """Strip angle brackets and surrounding whitespace from free-text input."""
    if not isinstance(value, str):
        return value
    return value.replace("<", "").replace(">", "").strip()


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; every stored time is UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ══════════════════════════════════════════════════════════════════════════
# Persistence Record: one unit as stored by the JSON and SQL stores
# ══════════════════════════════════════════════════════════════════════════


class UnitRecord(BaseModel):
    """
    Flat stored form of a unit.

    Absent hold fields are null when the unit is available. Validation
    rejects any record where status and field presence disagree, or where
    due_at is not after checked_out_at.
    """

    unit_id: int = Field(ge=1)
    status: UnitStatus
    holder: Optional[str] = None
    checked_out_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    location: Optional[str] = None

    model_config = {"from_attributes": True}

    @field_validator("checked_out_at", "due_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @model_validator(mode="after")
    def check_hold_fields(self) -> "UnitRecord":
        hold_fields = {
            "holder": self.holder,
            "checked_out_at": self.checked_out_at,
            "due_at": self.due_at,
            "location": self.location,
        }
        if self.status is UnitStatus.AVAILABLE:
            present = sorted(name for name, value in hold_fields.items() if value is not None)
            if present:
                raise ValueError(
                    f"unit {self.unit_id} is available but has borrow fields: {present}"
                )
            return self

        missing = sorted(name for name, value in hold_fields.items() if value is None)
        if missing:
            raise ValueError(
                f"unit {self.unit_id} is checked out but missing borrow fields: {missing}"
            )
        if not self.holder.strip():
            raise ValueError(f"unit {self.unit_id} is checked out with a blank holder")
        if self.due_at <= self.checked_out_at:
            raise ValueError(f"unit {self.unit_id} has due_at not after checked_out_at")
        return self

    @classmethod
    def from_unit(cls, unit: Unit) -> "UnitRecord":
        return cls(
            unit_id=unit.unit_id,
            status=unit.status,
            holder=unit.holder,
            checked_out_at=unit.checked_out_at,
            due_at=unit.due_at,
            location=unit.location,
        )

    def to_unit(self) -> Unit:
        if self.status is UnitStatus.AVAILABLE:
            return Unit(unit_id=self.unit_id)
        return Unit(
            unit_id=self.unit_id,
            hold=Hold(
                holder=self.holder,
                checked_out_at=self.checked_out_at,
                due_at=self.due_at,
                location=self.location,
            ),
        )


class LedgerDocument(BaseModel):
    """Top-level JSON document written by JsonFileStore."""

    units: List[UnitRecord] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class CheckoutRequest(BaseModel):
    """
    Body of POST /api/iron-borrowing/borrow.

    Only the shape is checked here, strictly: JSON booleans and numeric
    strings are never coerced into ids or hours. Business rules (positive
    id, non-blank holder, duration fallback) belong to the ledger so they
    apply to every caller, not just HTTP.
    """

    unit_id: StrictInt = Field(description="Unit to borrow")
    holder: Optional[str] = Field(default=None, description="Borrower name")
    location: Optional[str] = Field(default="", description="Where the unit is going (room)")
    duration_hours: Optional[Union[StrictInt, StrictFloat]] = Field(
        default=None,
        description="Hold length in hours. Omitted or non-positive means 4 hours.",
    )

    @field_validator("holder", "location", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_text(v)


class ReleaseRequest(BaseModel):
    """Body of POST /api/iron-borrowing/return."""

    unit_id: StrictInt = Field(description="Unit being returned")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UnitResponse(BaseModel):
    """Snapshot of one unit, with the advisory overdue flag computed at response time."""

    unit_id: int
    status: UnitStatus
    holder: Optional[str] = None
    checked_out_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    location: Optional[str] = None
    is_overdue: bool = False

    @classmethod
    def from_unit(cls, unit: Unit, now: datetime) -> "UnitResponse":
        return cls(
            unit_id=unit.unit_id,
            status=unit.status,
            holder=unit.holder,
            checked_out_at=unit.checked_out_at,
            due_at=unit.due_at,
            location=unit.location,
            is_overdue=unit.is_overdue(now),
        )


class LedgerSummaryResponse(BaseModel):
    total: int = Field(description="Units in the pool (never changes)")
    available_count: int
    checked_out_count: int
    overdue_count: int = Field(description="Checked-out units past their due time")

    @classmethod
    def from_summary(cls, summary: LedgerSummary) -> "LedgerSummaryResponse":
        return cls(
            total=summary.total,
            available_count=summary.available_count,
            checked_out_count=summary.checked_out_count,
            overdue_count=summary.overdue_count,
        )


class UnitListData(LedgerSummaryResponse):
    """Summary over the whole pool plus the (optionally filtered) unit list."""

    units: List[UnitResponse]


class ApiResponse(BaseModel, Generic[T]):
    """
    Success envelope shared by every ledger endpoint.

    Example:
        {
            "success": true,
            "message": "Iron borrowed successfully",
            "data": {...},
            "timestamp": "2024-01-15T12:00:00Z"
        }
    """

    success: bool = True
    message: str = "Success"
    data: T
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ErrorResponse(BaseModel):
    """
    Standardized error body.

    Fields:
        error: Tag of the error kind (e.g. "already_checked_out")
        message: Human-readable description
        details: Extra context for client errors (omitted for 5xx)
        request_id: Correlation ID for tracing this error in server logs
    """

    success: bool = False
    error: str
    message: str
    details: Optional[dict] = None
    request_id: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str
    store: str = Field(description="Store backend in use: json or database")
    store_status: str = Field(description="available or unavailable")
    ledger_loaded: bool
    uptime_seconds: float
