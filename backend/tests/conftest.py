"""
Hostel Ledger Backend: Test Configuration (conftest.py)
=========================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (in-memory store, controllable
       clock, opened ledger, API client).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── clock: FixedClock pinned to 2024-01-15T10:00:00Z
    ├── make_store: MemoryUnitStore factory
    ├── memory_store: MemoryUnitStore (no disk, failures on demand)
    ├── ledger: opened CheckoutLedger with 3 units
    ├── test_settings: Settings with a generous rate limit
    └── test_client: HTTPX AsyncClient bound to an app holding `ledger`
"""

import asyncio
import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Set BEFORE any hostel_ledger import: settings are read at import time
os.environ["HOSTEL_DATA_DIR"] = tempfile.mkdtemp(prefix="hostel_ledger_test_")
os.environ["HOSTEL_STORE_BACKEND"] = "json"
os.environ["HOSTEL_LOG_LEVEL"] = "WARNING"

from hostel_ledger.config import Settings  # noqa: E402
from hostel_ledger.exceptions import PersistenceError  # noqa: E402
from hostel_ledger.services.ledger import CheckoutLedger, Unit  # noqa: E402
from hostel_ledger.services.store_base import UnitStore  # noqa: E402

START = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


# ══════════════════════════════════════════════════════════════════════════
# Test Doubles
# ══════════════════════════════════════════════════════════════════════════

class FixedClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, start: datetime = START):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class MemoryUnitStore(UnitStore):
    """
    UnitStore kept in a Python list.

    Knobs:
        save_errors:  exceptions raised by the next save() calls, in order
        yield_on_save: await once inside save() so concurrent callers interleave
        healthy:      value returned by health_check()
    """

    backend_name = "memory"

    def __init__(self, units: List[Unit] = None, **retry_options):
        retry_options.setdefault("retry_attempts", 1)
        retry_options.setdefault("retry_min_wait", 0)
        retry_options.setdefault("retry_max_wait", 0)
        super().__init__(**retry_options)
        self.units: List[Unit] = list(units or [])
        self.save_calls = 0
        self.save_errors: List[Exception] = []
        self.yield_on_save = False
        self.healthy = True
        self.closed = False

    async def load(self) -> List[Unit]:
        return list(self.units)

    async def save(self, units: List[Unit]) -> None:
        self.save_calls += 1
        if self.yield_on_save:
            await asyncio.sleep(0)
        if self.save_errors:
            raise self.save_errors.pop(0)
        self.units = list(units)

    async def health_check(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True

    def stored(self, unit_id: int) -> Unit:
        return next(unit for unit in self.units if unit.unit_id == unit_id)


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def make_store():
    """
    Factory for MemoryUnitStore instances with custom contents or retries.

    Usage:
        store = make_store(units=[Unit(unit_id=1)], retry_attempts=3)
    """
    return MemoryUnitStore


@pytest.fixture
def memory_store(make_store):
    return make_store()


@pytest.fixture
def failing_save():
    """A PersistenceError ready to be queued on MemoryUnitStore.save_errors."""
    return PersistenceError(context={"backend": "memory", "operation": "save"})


@pytest_asyncio.fixture
async def ledger(memory_store, clock):
    """
    Provides an opened 3-unit ledger over the in-memory store.

    Usage:
        async def test_checkout(ledger):
            unit = await ledger.checkout(1, "Alice")
    """
    instance = CheckoutLedger(memory_store, unit_count=3, clock=clock)
    await instance.open()
    return instance


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        data_dir=str(tmp_path),
        rate_limit_requests=1000,
        rate_limit_window=60,
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def test_client(ledger, test_settings):
    """
    Provides an async HTTP test client for endpoint testing.

    ASGITransport does not run the lifespan, so the app receives the
    already-opened `ledger` fixture directly.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from hostel_ledger.main import create_app

    app = create_app(app_settings=test_settings, ledger=ledger)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
