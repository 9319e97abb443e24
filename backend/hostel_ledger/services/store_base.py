"""
Hostel Ledger Backend: Abstract Unit Store Interface
======================================================

What:  Abstract base class defining the persistence contract the ledger
       depends on: load the whole unit set, save the whole unit set.
Why:   The ledger never knows whether units live in a JSON file or a
       database table. Swapping one for the other touches no ledger code.
How:   Concrete stores implement load(), save() and health_check(). The base
       class wraps them in fetch()/persist(), which retry transient failures
       with tenacity and translate everything else into PersistenceError.
Who:   Called by CheckoutLedger on open, after every mutation, and on flush.

Implementations:
    - JsonFileStore: single JSON document, atomic replace (json_store.py)
    - SqlUnitStore:  async SQLAlchemy `units` table (sql_store.py)
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Tuple, Type

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from hostel_ledger.exceptions import PersistenceError

if TYPE_CHECKING:
    from hostel_ledger.services.ledger import Unit

logger = logging.getLogger(__name__)


class UnitStore(ABC):
    """
    Durable home of the unit set.

    Contract:
        - load() returns every stored unit (empty list when nothing is stored)
        - save() replaces the stored set with the given units, all or nothing
        - Records that break the unit invariants raise PersistenceError on
          load; they are never repaired silently
        - Exceptions listed in ``transient_errors`` are retried by
          fetch()/persist(); any other failure surfaces at once
    """

    backend_name = "abstract"
    transient_errors: Tuple[Type[BaseException], ...] = (OSError,)

    def __init__(
        self,
        *,
        retry_attempts: int = 3,
        retry_min_wait: float = 0.1,
        retry_max_wait: float = 2.0,
    ):
        self.retry_attempts = retry_attempts
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait

    @abstractmethod
    async def load(self) -> List["Unit"]:
        """
        Read the stored unit set.

        Returns:
            Units in any order; the ledger sorts them.

        Raises:
            PersistenceError: Stored data is unreadable or violates the unit
                invariants.
        """
        ...

    @abstractmethod
    async def save(self, units: List["Unit"]) -> None:
        """Atomically replace the stored unit set with ``units``."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True if the store is reachable and writable. Never raises."""
        ...

    async def close(self) -> None:
        """Release connections or handles. Default: nothing to release."""

    # ── Retrying wrappers used by the ledger ──────────────────────────────

    async def fetch(self) -> List["Unit"]:
        return await self._with_retry("load", self.load)

    async def persist(self, units: List["Unit"]) -> None:
        await self._with_retry("save", self.save, units)

    async def _with_retry(self, operation: str, func, *args):
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(self.transient_errors),
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential_jitter(
                multiplier=self.retry_min_wait,
                max=self.retry_max_wait,
                jitter=self.retry_min_wait,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await func(*args)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(
                "%s store %s failed after %d attempts: %s",
                self.backend_name,
                operation,
                self.retry_attempts,
                str(e),
            )
            raise PersistenceError(
                context={
                    "backend": self.backend_name,
                    "operation": operation,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            ) from e
