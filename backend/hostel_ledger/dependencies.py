"""
Hostel Ledger Backend: FastAPI Dependencies
=============================================

The ledger is owned by the application instance (app.state.ledger), not by
a module global, so each app built by create_app() (one per test) has its
own isolated pool.
"""

from fastapi import Request

from hostel_ledger.services.ledger import CheckoutLedger


def get_ledger(request: Request) -> CheckoutLedger:
    """
    Provide the app's CheckoutLedger to a route handler.

    Usage:
        @router.get("/api/iron-borrowing")
        async def list_units(ledger: CheckoutLedger = Depends(get_ledger)):
            ...
    """
    ledger = getattr(request.app.state, "ledger", None)
    if ledger is None:
        raise RuntimeError("CheckoutLedger is not configured on this application")
    return ledger
