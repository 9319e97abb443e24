"""
Hostel Ledger Backend: FastAPI Application Factory
====================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires settings, the unit store, the CheckoutLedger,
       middleware, exception handlers and routes, and returns the app.
Who:   Called by uvicorn (uvicorn hostel_ledger.main:app) and by tests.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware: Request ID → Logging → Rate Limit      │
    │              → GZip → CORS                          │
    │                                                     │
    │  Routes:  /api/iron-borrowing[...]   /health        │
    │                                                     │
    │  app.state.ledger ──▶ CheckoutLedger ──▶ UnitStore  │
    │                                (json | database)    │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Build the configured store (create the units table if needed)
    3. Open the ledger (load, or provision the pool on first start)

    Shutdown:
    1. Flush a final ledger snapshot
    2. Close the store (dispose database connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from hostel_ledger import __version__
from hostel_ledger.config import Settings, get_settings
from hostel_ledger.exceptions import (
    AlreadyCheckedOutError,
    HostelLedgerError,
    NotCheckedOutError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from hostel_ledger.middleware.logging import RequestLoggingMiddleware
from hostel_ledger.middleware.rate_limit import RateLimitMiddleware
from hostel_ledger.middleware.request_id import RequestIDMiddleware, request_id_var
from hostel_ledger.routes import health, units
from hostel_ledger.services.ledger import CheckoutLedger
from hostel_ledger.services.store_base import UnitStore

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(app_settings: Settings) -> None:
    """
    Configure the root logger once at startup.

    Format: 2024-01-15T12:00:00 [INFO] hostel_ledger.services.ledger: message
    """
    logging.basicConfig(
        level=getattr(logging, app_settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Store & Ledger Construction
# ══════════════════════════════════════════════════════════════════════════

async def build_store(app_settings: Settings) -> UnitStore:
    """Instantiate the store selected by ``store_backend``."""
    retry_options = {
        "retry_attempts": app_settings.store_retry_attempts,
        "retry_min_wait": app_settings.store_retry_min_wait,
        "retry_max_wait": app_settings.store_retry_max_wait,
    }

    if app_settings.store_backend == "database":
        from hostel_ledger.database import build_engine
        from hostel_ledger.services.sql_store import SqlUnitStore

        store = SqlUnitStore(build_engine(app_settings.database_url, app_settings), **retry_options)
        if app_settings.database_auto_create:
            await store.create_schema()
        return store

    from hostel_ledger.services.json_store import JsonFileStore

    return JsonFileStore(app_settings.ledger_path, **retry_options)


def build_ledger(store: UnitStore, app_settings: Settings) -> CheckoutLedger:
    return CheckoutLedger(
        store,
        unit_count=app_settings.unit_count,
        default_duration_hours=app_settings.default_duration_hours,
    )


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    exc: HostelLedgerError,
    include_details: bool = True,
) -> JSONResponse:
    content = {
        "success": False,
        "error": exc.code,
        "message": exc.message,
        "request_id": request_id_var.get(""),
    }
    if include_details and exc.context:
        content["details"] = exc.context
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map ledger refusals to HTTP responses.

    Handler hierarchy:
        ValidationError / malformed body  → 400 invalid_input
        NotFoundError                     → 404 not_found
        AlreadyCheckedOutError            → 409 already_checked_out
        NotCheckedOutError                → 409 not_checked_out
        PersistenceError                  → 500 persistence_error (no details)
        Exception (fallback)              → 500 internal_server_error

    5xx bodies never contain internal context; it is logged server-side.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        """Malformed JSON body or query parameter: same shape as a ledger validation error."""
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body") or None
        wrapped = ValidationError(
            message=first.get("msg", "Invalid request"),
            field=field,
            context={"error_count": len(errors)},
        )
        logger.warning("[%s] Request validation error: %s", request_id_var.get(""), wrapped.message)
        return _error_response(400, wrapped)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, exc)

    @app.exception_handler(AlreadyCheckedOutError)
    async def handle_already_checked_out(request: Request, exc: AlreadyCheckedOutError):
        return _error_response(409, exc)

    @app.exception_handler(NotCheckedOutError)
    async def handle_not_checked_out(request: Request, exc: NotCheckedOutError):
        return _error_response(409, exc)

    @app.exception_handler(PersistenceError)
    async def handle_persistence_error(request: Request, exc: PersistenceError):
        rid = request_id_var.get("")
        logger.error("[%s] Persistence error: %s | Context: %s", rid, exc.message, exc.context)
        return _error_response(500, exc, include_details=False)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    app_settings: Optional[Settings] = None,
    ledger: Optional[CheckoutLedger] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_settings: Settings override (tests); defaults to the env settings.
        ledger: A pre-built ledger (tests). When omitted, the lifespan builds
            the configured store and ledger on startup.

    Returns:
        Fully configured FastAPI instance. The ledger is reachable as
        app.state.ledger once it exists.
    """
    app_settings = app_settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging(app_settings)
        logger.info("=" * 60)
        logger.info("Hostel Ledger backend starting up...")

        if getattr(app.state, "ledger", None) is None:
            store = await build_store(app_settings)
            app.state.ledger = build_ledger(store, app_settings)
        active: CheckoutLedger = app.state.ledger
        if not active.is_open:
            await active.open()

        logger.info("Unit store: %s", active.store.backend_name)
        logger.info("Server ready at http://%s:%d", app_settings.backend_host, app_settings.backend_port)
        logger.info("=" * 60)

        yield

        logger.info("Hostel Ledger backend shutting down...")
        try:
            await active.flush()
        except PersistenceError as e:
            logger.error("Final ledger flush failed: %s | Context: %s", e.message, e.context)
        await active.store.close()
        logger.info("Shutdown complete.")

    app = FastAPI(
        title="Hostel Ledger API",
        description=(
            "Shared-appliance borrowing ledger for hostel dormitory coordinators. "
            "Tracks which iron is checked out, to whom, where, and until when."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    if ledger is not None:
        app.state.ledger = ledger

    # Middleware executes in REVERSE order of addition (last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=app_settings.rate_limit_requests,
        window_seconds=app_settings.rate_limit_window,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(units.router)
    app.include_router(health.router)

    return app


# uvicorn entry point: `uvicorn hostel_ledger.main:app`
app = create_app()
