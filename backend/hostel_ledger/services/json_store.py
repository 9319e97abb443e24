"""
Hostel Ledger Backend: JSON File Unit Store
=============================================

What:  Stores the unit set as a single JSON document on disk.
Why:   Zero-infrastructure default: a hostel office machine needs no database
       server to run the ledger.
How:   Each save serializes the full set, writes and fsyncs a temp file in
       the same directory, then os.replace()s it over the ledger file. Readers
       see either the old or the new document, never a half-written one.
Who:   Created by the app factory when store_backend == "json".

Document layout:
    {
      "units": [
        {"unit_id": 1, "status": "available", "holder": null,
         "checked_out_at": null, "due_at": null, "location": null},
        {"unit_id": 2, "status": "checked_out", "holder": "Alice",
         "checked_out_at": "2024-01-15T10:00:00Z",
         "due_at": "2024-01-15T12:00:00Z", "location": "Room 101"}
      ]
    }
"""

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import List, Union

import aiofiles
import aiofiles.os
from pydantic import ValidationError as PydanticValidationError

from hostel_ledger.exceptions import PersistenceError
from hostel_ledger.schemas.unit import LedgerDocument, UnitRecord
from hostel_ledger.services.ledger import Unit
from hostel_ledger.services.store_base import UnitStore

logger = logging.getLogger(__name__)


class JsonFileStore(UnitStore):
    """
    Unit store backed by one JSON file.

    A missing file means "nothing stored yet" and loads as an empty set,
    which makes the ledger provision a fresh pool on first start.
    """

    backend_name = "json"
    transient_errors = (OSError,)

    def __init__(self, path: Union[str, Path], **retry_options):
        super().__init__(**retry_options)
        self.path = Path(path).resolve()
        logger.info("JsonFileStore initialized with path=%s", self.path)

    async def load(self) -> List[Unit]:
        if not self.path.exists():
            logger.info("Ledger file %s not found; starting empty", self.path.name)
            return []

        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            raw = await f.read()

        try:
            document = LedgerDocument.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.error("Ledger file %s is corrupted: %s", self.path, str(e))
            raise PersistenceError(
                message="Stored unit ledger is corrupted.",
                context={"path": str(self.path), "errors": e.error_count()},
            )

        return [record.to_unit() for record in document.units]

    async def save(self, units: List[Unit]) -> None:
        document = LedgerDocument(units=[UnitRecord.from_unit(unit) for unit in units])
        payload = document.model_dump_json(indent=2)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.tmp")

        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
                await f.flush()
                # aiofiles.os has no fsync wrapper
                await asyncio.to_thread(os.fsync, f.fileno())
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError:
            await self._discard(tmp_path)
            raise

        logger.debug("Saved %d units to %s", len(units), self.path.name)

    async def health_check(self) -> bool:
        directory = self.path.parent
        if not directory.exists():
            return os.access(directory.parent, os.W_OK)
        return os.access(directory, os.W_OK)

    @staticmethod
    async def _discard(tmp_path: Path) -> None:
        try:
            await aiofiles.os.remove(tmp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove temp file %s: %s", tmp_path.name, str(e))
