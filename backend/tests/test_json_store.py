"""
Hostel Ledger Backend: JSON File Store Tests
==============================================

What:  Tests for JsonFileStore load/save against a temporary directory.
Why:   The JSON document is the default durable copy of the ledger; a
       half-written or inconsistent file must never become ledger state.
How:   Real files under pytest's tmp_path; aiofiles.os.replace is patched
       to simulate a failed rename.
"""

import json
import os
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import aiofiles.os
import pytest

from hostel_ledger.exceptions import PersistenceError
from hostel_ledger.services.json_store import JsonFileStore
from hostel_ledger.services.ledger import CheckoutLedger, Hold, Unit, UnitStatus


@pytest.fixture
def ledger_path(tmp_path):
    return tmp_path / "data" / "iron_borrowing.json"


@pytest.fixture
def json_store(ledger_path):
    return JsonFileStore(ledger_path, retry_attempts=1, retry_min_wait=0, retry_max_wait=0)


def held_unit(clock, unit_id=2, hours=2):
    now = clock()
    return Unit(
        unit_id=unit_id,
        hold=Hold(
            holder="Alice",
            checked_out_at=now,
            due_at=now + timedelta(hours=hours),
            location="Room 101",
        ),
    )


def write_document(path, units):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"units": units}), encoding="utf-8")


class TestJsonFileStoreLoad:

    @pytest.mark.asyncio
    async def test_missing_file_loads_empty(self, json_store):
        assert await json_store.fetch() == []

    @pytest.mark.asyncio
    async def test_saved_units_load_back(self, json_store, clock):
        units = [Unit(unit_id=1), held_unit(clock)]
        await json_store.persist(units)

        loaded = await json_store.fetch()
        assert loaded == units
        assert loaded[1].due_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_naive_timestamps_read_as_utc(self, json_store, ledger_path, clock):
        write_document(ledger_path, [{
            "unit_id": 1,
            "status": "checked_out",
            "holder": "Bob",
            "checked_out_at": "2024-01-15T10:00:00",
            "due_at": "2024-01-15T14:00:00",
            "location": "",
        }])

        [unit] = await json_store.fetch()
        assert unit.checked_out_at == clock()
        assert unit.due_at == clock() + timedelta(hours=4)

    @pytest.mark.asyncio
    async def test_corrupted_json_rejected(self, json_store, ledger_path):
        ledger_path.parent.mkdir(parents=True)
        ledger_path.write_text("{\"units\": [", encoding="utf-8")

        with pytest.raises(PersistenceError, match="corrupted"):
            await json_store.fetch()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "record",
        [
            # Available but still carrying a borrower
            {"unit_id": 1, "status": "available", "holder": "Ghost",
             "checked_out_at": None, "due_at": None, "location": None},
            # Checked out with no borrower
            {"unit_id": 1, "status": "checked_out", "holder": None,
             "checked_out_at": "2024-01-15T10:00:00Z",
             "due_at": "2024-01-15T12:00:00Z", "location": ""},
            # Due before checkout
            {"unit_id": 1, "status": "checked_out", "holder": "Alice",
             "checked_out_at": "2024-01-15T10:00:00Z",
             "due_at": "2024-01-15T09:00:00Z", "location": ""},
            # Unknown status
            {"unit_id": 1, "status": "lost"},
            # Non-positive id
            {"unit_id": 0, "status": "available"},
        ],
    )
    async def test_inconsistent_record_rejected(self, json_store, ledger_path, record):
        write_document(ledger_path, [record])

        with pytest.raises(PersistenceError):
            await json_store.fetch()


class TestJsonFileStoreSave:

    @pytest.mark.asyncio
    async def test_document_layout(self, json_store, ledger_path, clock):
        await json_store.persist([Unit(unit_id=1), held_unit(clock)])

        document = json.loads(ledger_path.read_text(encoding="utf-8"))
        available, borrowed = document["units"]
        assert available == {
            "unit_id": 1,
            "status": "available",
            "holder": None,
            "checked_out_at": None,
            "due_at": None,
            "location": None,
        }
        assert borrowed["status"] == "checked_out"
        assert borrowed["holder"] == "Alice"
        assert borrowed["location"] == "Room 101"

    @pytest.mark.asyncio
    async def test_no_temp_files_left_behind(self, json_store, ledger_path):
        await json_store.persist([Unit(unit_id=1)])
        await json_store.persist([Unit(unit_id=1), Unit(unit_id=2)])

        assert list(ledger_path.parent.glob(".*.tmp")) == []
        assert len(await json_store.fetch()) == 2

    @pytest.mark.asyncio
    async def test_failed_replace_keeps_previous_document(self, json_store, ledger_path):
        await json_store.persist([Unit(unit_id=1)])
        before = ledger_path.read_text(encoding="utf-8")

        with patch(
            "hostel_ledger.services.json_store.aiofiles.os.replace",
            new=AsyncMock(side_effect=OSError("rename failed")),
        ):
            with pytest.raises(PersistenceError) as exc_info:
                await json_store.persist([Unit(unit_id=1), Unit(unit_id=2)])

        assert exc_info.value.context["backend"] == "json"
        assert exc_info.value.context["operation"] == "save"
        assert ledger_path.read_text(encoding="utf-8") == before
        assert list(ledger_path.parent.glob(".*.tmp")) == []

    @pytest.mark.asyncio
    async def test_temp_file_synced_before_replace(self, json_store, ledger_path):
        calls = []
        real_fsync = os.fsync
        real_replace = aiofiles.os.replace

        def tracking_fsync(fd):
            calls.append("fsync")
            real_fsync(fd)

        async def tracking_replace(src, dst):
            calls.append("replace")
            await real_replace(src, dst)

        with patch("hostel_ledger.services.json_store.os.fsync", new=tracking_fsync), patch(
            "hostel_ledger.services.json_store.aiofiles.os.replace", new=tracking_replace
        ):
            await json_store.persist([Unit(unit_id=1)])

        assert calls == ["fsync", "replace"]
        assert json.loads(ledger_path.read_text(encoding="utf-8"))["units"][0]["unit_id"] == 1

    @pytest.mark.asyncio
    async def test_health_check_writable_directory(self, json_store):
        assert await json_store.health_check() is True


class TestLedgerOverJsonStore:
    """Accepted changes survive a restart."""

    @pytest.mark.asyncio
    async def test_state_survives_reopen(self, ledger_path, clock):
        first = CheckoutLedger(JsonFileStore(ledger_path), unit_count=3, clock=clock)
        await first.open()
        await first.checkout(2, "Alice", "Room 101", 2)
        await first.checkout(3, "Bob")
        await first.release(3)

        second = CheckoutLedger(JsonFileStore(ledger_path), unit_count=3, clock=clock)
        await second.open()

        assert second.get_unit(2).holder == "Alice"
        assert second.get_unit(2).due_at == clock() + timedelta(hours=2)
        assert second.get_unit(3).status is UnitStatus.AVAILABLE
        assert second.summarize().checked_out_count == 1
