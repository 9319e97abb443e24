"""
Hostel Ledger Backend: SQL Unit Store
=======================================

What:  Stores the unit set in the `units` table through async SQLAlchemy.
Why:   Deployments that already run a database can keep the ledger there
       instead of in a JSON file.
How:   save() upserts every unit inside one transaction (commit or nothing);
       load() selects all rows and validates them through UnitRecord.
Who:   Created by the app factory when store_backend == "database".

Query plan:
    load: SELECT * FROM units ORDER BY unit_id  (primary key scan)
    save: one MERGE-style upsert per unit in a single transaction
"""

import logging
from typing import List

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine

from hostel_ledger.database import Base, build_session_factory, dispose_engine
from hostel_ledger.exceptions import PersistenceError
from hostel_ledger.models.unit import UnitRow
from hostel_ledger.schemas.unit import UnitRecord
from hostel_ledger.services.ledger import Unit
from hostel_ledger.services.store_base import UnitStore

logger = logging.getLogger(__name__)


class SqlUnitStore(UnitStore):
    """
    Unit store backed by a relational table.

    Transient errors: OperationalError (connection dropped, database locked)
    and OSError are retried by the base class. Constraint violations are not.
    """

    backend_name = "database"
    transient_errors = (OperationalError, OSError)

    def __init__(self, engine: AsyncEngine, **retry_options):
        super().__init__(**retry_options)
        self.engine = engine
        self._sessions = build_session_factory(engine)

    async def create_schema(self) -> None:
        """Create the units table if it does not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Units table ready")

    async def load(self) -> List[Unit]:
        async with self._sessions() as session:
            result = await session.execute(select(UnitRow).order_by(UnitRow.unit_id))
            rows = list(result.scalars().all())

        units = []
        for row in rows:
            try:
                units.append(UnitRecord.model_validate(row).to_unit())
            except PydanticValidationError as e:
                logger.error("Unit row %s is corrupted: %s", row.unit_id, str(e))
                raise PersistenceError(
                    message="Stored unit ledger is corrupted.",
                    context={"unit_id": row.unit_id, "errors": e.error_count()},
                )
        return units

    async def save(self, units: List[Unit]) -> None:
        async with self._sessions() as session:
            async with session.begin():
                for unit in units:
                    await session.merge(
                        UnitRow(
                            unit_id=unit.unit_id,
                            status=unit.status.value,
                            holder=unit.holder,
                            checked_out_at=unit.checked_out_at,
                            due_at=unit.due_at,
                            location=unit.location,
                        )
                    )
        logger.debug("Saved %d units to units table", len(units))

    async def health_check(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database health check failed: %s", str(e))
            return False

    async def close(self) -> None:
        await dispose_engine(self.engine)
