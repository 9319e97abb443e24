"""
Hostel Ledger Backend: Health Check Route
===========================================

What:  Liveness/readiness probe for Docker and load balancers.
How:   Reports whether the ledger finished loading and whether the unit
       store is reachable.

Status levels:
    - healthy:   ledger loaded and store reachable
    - degraded:  ledger loaded but the store is not writable right now
                 (reads still work, borrow/return will fail)
    - unhealthy: ledger not loaded
"""

import logging
import time

from fastapi import APIRouter, Request

from hostel_ledger import __version__
from hostel_ledger.schemas.unit import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request) -> HealthResponse:
    ledger = getattr(request.app.state, "ledger", None)
    loaded = bool(ledger and ledger.is_open)

    store_name = "unknown"
    store_status = "unavailable"
    if ledger is not None:
        store_name = ledger.store.backend_name
        if await ledger.store.health_check():
            store_status = "available"
        else:
            logger.warning("Health check: %s store unavailable", store_name)

    if not loaded:
        overall = "unhealthy"
    elif store_status != "available":
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        version=__version__,
        store=store_name,
        store_status=store_status,
        ledger_loaded=loaded,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
