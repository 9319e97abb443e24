"""
Hostel Ledger Backend: Iron Borrowing Route Handlers
======================================================

What:  HTTP bindings for the checkout ledger.
How:   Each handler unpacks the request, calls one ledger operation and wraps
       the result in the success envelope. Refusals raised by the ledger are
       turned into error responses by the global handlers in main.py.
Who:   Called by the coordinator dashboard.

Routes:
    GET  /api/iron-borrowing              summary + unit list (?status= filter)
    GET  /api/iron-borrowing/{unit_id}    one unit
    POST /api/iron-borrowing/borrow       checkout
    POST /api/iron-borrowing/return       release

Caller authentication happens upstream of this service; the ledger trusts
the holder name it is given.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from hostel_ledger.dependencies import get_ledger
from hostel_ledger.schemas.unit import (
    ApiResponse,
    CheckoutRequest,
    ErrorResponse,
    ReleaseRequest,
    UnitListData,
    UnitResponse,
)
from hostel_ledger.services.ledger import CheckoutLedger, UnitStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/iron-borrowing", tags=["Iron Borrowing"])


@router.get(
    "",
    response_model=ApiResponse[UnitListData],
    summary="Iron borrowing status",
    description=(
        "Returns pool-wide counts (total, available, checked out, overdue) and the "
        "unit list in ascending unit id, optionally filtered by status."
    ),
)
async def list_units(
    status: Optional[UnitStatus] = Query(
        default=None,
        description="Only list units in this state: 'available' or 'checked_out'",
    ),
    ledger: CheckoutLedger = Depends(get_ledger),
) -> ApiResponse[UnitListData]:
    units = ledger.list_units(status)
    summary = ledger.summarize()
    now = ledger.now()

    data = UnitListData(
        total=summary.total,
        available_count=summary.available_count,
        checked_out_count=summary.checked_out_count,
        overdue_count=summary.overdue_count,
        units=[UnitResponse.from_unit(unit, now) for unit in units],
    )
    return ApiResponse[UnitListData](
        message="Iron borrowing status retrieved successfully",
        data=data,
    )


@router.get(
    "/{unit_id}",
    response_model=ApiResponse[UnitResponse],
    responses={404: {"description": "Unit not found", "model": ErrorResponse}},
    summary="Get a single unit",
)
async def get_unit(
    unit_id: int,
    ledger: CheckoutLedger = Depends(get_ledger),
) -> ApiResponse[UnitResponse]:
    unit = ledger.get_unit(unit_id)
    return ApiResponse[UnitResponse](
        message="Unit retrieved successfully",
        data=UnitResponse.from_unit(unit, ledger.now()),
    )


@router.post(
    "/borrow",
    response_model=ApiResponse[UnitResponse],
    responses={
        400: {"description": "Invalid input", "model": ErrorResponse},
        404: {"description": "Unit not found", "model": ErrorResponse},
        409: {"description": "Unit already checked out", "model": ErrorResponse},
        500: {"description": "Ledger could not be saved", "model": ErrorResponse},
    },
    summary="Borrow an iron",
    description=(
        "Checks a unit out to a borrower for `duration_hours` (default 4). "
        "Fails with 409 if someone already holds it; the first borrower wins."
    ),
)
async def borrow_unit(
    body: CheckoutRequest,
    ledger: CheckoutLedger = Depends(get_ledger),
) -> ApiResponse[UnitResponse]:
    unit = await ledger.checkout(
        unit_id=body.unit_id,
        holder=body.holder,
        location=body.location,
        duration_hours=body.duration_hours,
    )
    return ApiResponse[UnitResponse](
        message="Iron borrowed successfully",
        data=UnitResponse.from_unit(unit, ledger.now()),
    )


@router.post(
    "/return",
    response_model=ApiResponse[UnitResponse],
    responses={
        400: {"description": "Invalid input", "model": ErrorResponse},
        404: {"description": "Unit not found", "model": ErrorResponse},
        409: {"description": "Unit is not checked out", "model": ErrorResponse},
        500: {"description": "Ledger could not be saved", "model": ErrorResponse},
    },
    summary="Return an iron",
)
async def return_unit(
    body: ReleaseRequest,
    ledger: CheckoutLedger = Depends(get_ledger),
) -> ApiResponse[UnitResponse]:
    unit = await ledger.release(body.unit_id)
    return ApiResponse[UnitResponse](
        message="Iron returned successfully",
        data=UnitResponse.from_unit(unit, ledger.now()),
    )
