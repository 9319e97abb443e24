"""
Hostel Ledger Backend: Checkout Ledger
========================================

What:  Owns the fixed pool of shared appliance units (irons) and grants
       exclusive, time-boxed holds on them.
Why:   This is the only stateful part of the hostel backend: a unit must never
       be handed to two borrowers at once, and every accepted checkout or
       return must survive a restart.
How:   Units are immutable values; a mutation swaps one unit for a new value
       under that unit's lock, persists the full unit set through the injected
       UnitStore, and swaps the old value back if persistence fails.
Who:   Created by the app factory (main.py) and injected into route handlers.
When:  Opened once at startup; called for every borrow/return/list request.

Unit lifecycle:
    ┌───────────┐   checkout(holder, location, hours)   ┌─────────────┐
    │ AVAILABLE │ ─────────────────────────────────────▶ │ CHECKED_OUT │
    │ (no hold) │ ◀───────────────────────────────────── │ (has Hold)  │
    └───────────┘               release()               └─────────────┘

    There is no third state. A passed due time only makes the unit
    "overdue" (advisory); it stays CHECKED_OUT until an explicit release.

Concurrency Model:
    - One asyncio.Lock per unit: checkout/release on the same unit are
      serialized, including the persistence await, so the check-then-mutate
      step can never interleave with another caller on that unit.
    - One write lock around "snapshot + save": the snapshot is taken inside
      the lock, so the last durable snapshot always contains every mutation
      acknowledged so far, whatever order the writers arrive in.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from hostel_ledger.exceptions import (
    AlreadyCheckedOutError,
    NotCheckedOutError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from hostel_ledger.services.store_base import UnitStore

logger = logging.getLogger(__name__)

DEFAULT_DURATION_HOURS = 4.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ══════════════════════════════════════════════════════════════════════════
# Unit Values
# ══════════════════════════════════════════════════════════════════════════

class UnitStatus(str, Enum):
    AVAILABLE = "available"
    CHECKED_OUT = "checked_out"


@dataclass(frozen=True)
class Hold:
    """
    The borrow record attached to a checked-out unit.

    A unit either has a Hold (all four fields present) or none (all absent),
    so the field-presence invariant cannot be violated by construction.
    The due time must be strictly after the checkout time.
    """

    holder: str
    checked_out_at: datetime
    due_at: datetime
    location: str = ""

    def __post_init__(self) -> None:
        if not self.holder or not self.holder.strip():
            raise ValueError("hold requires a non-empty holder")
        if self.due_at <= self.checked_out_at:
            raise ValueError(
                f"due_at ({self.due_at.isoformat()}) must be after "
                f"checked_out_at ({self.checked_out_at.isoformat()})"
            )


@dataclass(frozen=True)
class Unit:
    """One appliance in the pool. Status is derived from the presence of a hold."""

    unit_id: int
    hold: Optional[Hold] = None

    @property
    def status(self) -> UnitStatus:
        return UnitStatus.AVAILABLE if self.hold is None else UnitStatus.CHECKED_OUT

    @property
    def holder(self) -> Optional[str]:
        return self.hold.holder if self.hold else None

    @property
    def checked_out_at(self) -> Optional[datetime]:
        return self.hold.checked_out_at if self.hold else None

    @property
    def due_at(self) -> Optional[datetime]:
        return self.hold.due_at if self.hold else None

    @property
    def location(self) -> Optional[str]:
        return self.hold.location if self.hold else None

    def is_overdue(self, now: datetime) -> bool:
        """True when the unit is held past its due time. Advisory only."""
        return self.hold is not None and now > self.hold.due_at


@dataclass(frozen=True)
class LedgerSummary:
    total: int
    available_count: int
    checked_out_count: int
    overdue_count: int


# ══════════════════════════════════════════════════════════════════════════
# Checkout Ledger
# ══════════════════════════════════════════════════════════════════════════

class CheckoutLedger:
    """
    In-memory owner of the unit pool, backed by a UnitStore.

    Responsibilities:
        - open(): load the pool, provisioning it on first start
        - checkout() / release(): the only two state transitions
        - list_units() / get_unit() / summarize(): pure reads
        - flush(): write a final snapshot (called on shutdown)

    Error Handling Strategy:
        Input and state checks raise before anything is touched. A store
        failure after the in-memory swap is undone before PersistenceError
        propagates, so every failed call leaves the ledger unchanged.
    """

    def __init__(
        self,
        store: UnitStore,
        *,
        unit_count: int = 20,
        default_duration_hours: float = DEFAULT_DURATION_HOURS,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            store: Persistence collaborator providing load/save of the unit set
            unit_count: Units provisioned when the store is empty
            default_duration_hours: Hold length used when none (or a
                non-positive one) is requested
            clock: Returns the current timezone-aware time (overridden in tests)
        """
        if unit_count < 1:
            raise ValueError("unit_count must be at least 1")
        self._store = store
        self._unit_count = unit_count
        self._default_duration_hours = default_duration_hours
        self._clock = clock
        self._units: Dict[int, Unit] = {}
        self._locks: Dict[int, asyncio.Lock] = {}
        self._write_lock = asyncio.Lock()
        self._opened = False

    @property
    def store(self) -> UnitStore:
        return self._store

    @property
    def is_open(self) -> bool:
        return self._opened

    def now(self) -> datetime:
        return self._clock()

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def open(self) -> None:
        """
        Load the unit pool from the store, provisioning it if the store is empty.

        Provisioning creates unit ids 1..unit_count, all available, and saves
        them before the ledger accepts any call. An existing pool is used as
        stored; units are never added or removed after provisioning.

        Raises:
            PersistenceError: The store could not be read, holds duplicate
                unit ids, or the initial pool could not be saved.
        """
        units = await self._store.fetch()

        if not units:
            units = [Unit(unit_id=i) for i in range(1, self._unit_count + 1)]
            await self._store.persist(units)
            logger.info(
                "Provisioned %d units in %s store", len(units), self._store.backend_name
            )
        else:
            ids = [unit.unit_id for unit in units]
            if len(set(ids)) != len(ids):
                raise PersistenceError(
                    message="Stored unit ledger contains duplicate unit ids",
                    context={"unit_ids": sorted(ids)},
                )
            if len(units) != self._unit_count:
                logger.warning(
                    "Store holds %d units but unit_count is %d; keeping the stored pool",
                    len(units),
                    self._unit_count,
                )

        self._units = {unit.unit_id: unit for unit in units}
        self._locks = {unit_id: asyncio.Lock() for unit_id in self._units}
        self._opened = True

        summary = self.summarize()
        logger.info(
            "Ledger opened: %d units (%d available, %d checked out, %d overdue)",
            summary.total,
            summary.available_count,
            summary.checked_out_count,
            summary.overdue_count,
        )

    async def flush(self) -> None:
        """Persist the current pool (no-op before open)."""
        if not self._opened:
            return
        await self._persist()
        logger.info("Ledger flushed %d units", len(self._units))

    # ── Mutations ─────────────────────────────────────────────────────────

    async def checkout(
        self,
        unit_id: int,
        holder: Optional[str],
        location: Optional[str] = "",
        duration_hours: Optional[float] = None,
    ) -> Unit:
        """
        Grant an exclusive hold on an available unit.

        Args:
            unit_id: Positive id of an existing unit
            holder: Borrower identifier (must not be blank)
            location: Where the unit is going; may be empty (None means empty)
            duration_hours: Hold length; absent or non-positive falls back to
                the default (4h)

        Returns:
            The unit snapshot with its new hold.

        Raises:
            ValidationError: Bad unit id, blank holder, malformed duration
            NotFoundError: No unit with this id
            AlreadyCheckedOutError: The unit is held (first caller wins)
            PersistenceError: The store rejected the write (state rolled back)
        """
        self._validate_unit_id(unit_id)
        holder = self._validate_holder(holder)
        location = self._validate_location(location)
        hours = self._resolve_duration(duration_hours)
        lock = self._lock_for(unit_id)

        async with lock:
            current = self._units[unit_id]
            if current.hold is not None:
                logger.warning(
                    "Checkout of unit %d refused: held by %s until %s",
                    unit_id,
                    current.hold.holder,
                    current.hold.due_at.isoformat(),
                )
                raise AlreadyCheckedOutError(
                    unit_id,
                    context={"due_at": current.hold.due_at.isoformat()},
                )

            now = self._clock()
            try:
                due_at = now + timedelta(hours=hours)
            except OverflowError:
                raise ValidationError(
                    message="Duration is too large.",
                    field="duration_hours",
                    context={"duration_hours": duration_hours},
                )
            if due_at <= now:
                raise ValidationError(
                    message="Duration is too short.",
                    field="duration_hours",
                    context={"duration_hours": duration_hours},
                )

            updated = Unit(
                unit_id=unit_id,
                hold=Hold(holder=holder, checked_out_at=now, due_at=due_at, location=location),
            )
            await self._commit(current, updated)

        logger.info(
            "Unit %d checked out to %s (location=%r) until %s",
            unit_id,
            holder,
            location,
            due_at.isoformat(),
        )
        return updated

    async def release(self, unit_id: int) -> Unit:
        """
        Return a checked-out unit to the pool.

        Raises:
            ValidationError: Bad unit id
            NotFoundError: No unit with this id
            NotCheckedOutError: The unit is already available
            PersistenceError: The store rejected the write (state rolled back)
        """
        self._validate_unit_id(unit_id)
        lock = self._lock_for(unit_id)

        async with lock:
            current = self._units[unit_id]
            if current.hold is None:
                logger.warning("Release of unit %d refused: not checked out", unit_id)
                raise NotCheckedOutError(unit_id)

            updated = Unit(unit_id=unit_id)
            await self._commit(current, updated)

        logger.info("Unit %d released by %s", unit_id, current.hold.holder)
        return updated

    # ── Reads ─────────────────────────────────────────────────────────────

    def list_units(self, status: Optional[UnitStatus] = None) -> List[Unit]:
        """Snapshot of the pool in ascending unit id, optionally filtered by status."""
        units = sorted(self._units.values(), key=lambda unit: unit.unit_id)
        if status is None:
            return units
        status = UnitStatus(status)
        return [unit for unit in units if unit.status is status]

    def get_unit(self, unit_id: int) -> Unit:
        self._validate_unit_id(unit_id)
        unit = self._units.get(unit_id)
        if unit is None:
            raise NotFoundError(resource="unit", resource_id=unit_id)
        return unit

    def summarize(self) -> LedgerSummary:
        """
        Counts derived from list_units() on every call.

        Never cached: available + checked_out always equals total because
        both are counted from the same snapshot.
        """
        units = self.list_units()
        now = self._clock()
        checked_out = [unit for unit in units if unit.hold is not None]
        return LedgerSummary(
            total=len(units),
            available_count=len(units) - len(checked_out),
            checked_out_count=len(checked_out),
            overdue_count=sum(1 for unit in checked_out if unit.is_overdue(now)),
        )

    def is_overdue(self, unit: Unit, now: Optional[datetime] = None) -> bool:
        return unit.is_overdue(now or self._clock())

    # ── Internals ─────────────────────────────────────────────────────────

    async def _commit(self, previous: Unit, updated: Unit) -> None:
        """
        Swap in the new unit value and persist.

        The swap is undone if the save fails or the calling task is cancelled
        mid-save; the caller never saw a success in either case.
        """
        self._units[updated.unit_id] = updated
        try:
            await self._persist()
        except PersistenceError as e:
            self._units[previous.unit_id] = previous
            logger.error(
                "Persisting unit %d failed, change rolled back: %s | Context: %s",
                updated.unit_id,
                e.message,
                e.context,
            )
            raise
        except BaseException:
            self._units[previous.unit_id] = previous
            logger.warning("Persisting unit %d interrupted, change rolled back", updated.unit_id)
            raise

    async def _persist(self) -> None:
        async with self._write_lock:
            await self._store.persist(self.list_units())

    def _lock_for(self, unit_id: int) -> asyncio.Lock:
        lock = self._locks.get(unit_id)
        if lock is None:
            raise NotFoundError(resource="unit", resource_id=unit_id)
        return lock

    @staticmethod
    def _validate_unit_id(unit_id: int) -> None:
        if isinstance(unit_id, bool) or not isinstance(unit_id, int) or unit_id < 1:
            raise ValidationError(
                message="Unit ID must be a positive integer.",
                field="unit_id",
                context={"unit_id": repr(unit_id)},
            )

    @staticmethod
    def _validate_holder(holder: Optional[str]) -> str:
        if not isinstance(holder, str) or not holder.strip():
            raise ValidationError(
                message="Borrower name is required.",
                field="holder",
            )
        return holder.strip()

    @staticmethod
    def _validate_location(location: Optional[str]) -> str:
        if location is None:
            return ""
        if not isinstance(location, str):
            raise ValidationError(
                message="Location must be text.",
                field="location",
                context={"location": repr(location)},
            )
        return location.strip()

    def _resolve_duration(self, duration_hours: Optional[float]) -> float:
        if duration_hours is None:
            return self._default_duration_hours
        if isinstance(duration_hours, bool) or not isinstance(duration_hours, (int, float)):
            raise ValidationError(
                message="Duration must be a number of hours.",
                field="duration_hours",
                context={"duration_hours": repr(duration_hours)},
            )
        if not math.isfinite(duration_hours):
            raise ValidationError(
                message="Duration must be a finite number of hours.",
                field="duration_hours",
                context={"duration_hours": repr(duration_hours)},
            )
        if duration_hours <= 0:
            return self._default_duration_hours
        return float(duration_hours)
