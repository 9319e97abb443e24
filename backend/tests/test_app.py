"""
Hostel Ledger Backend: Settings & Application Lifecycle Tests
===============================================================

What:  Tests for Settings validation and the create_app() lifespan.
How:   The lifespan context is entered directly (ASGITransport skips it),
       against temporary JSON and SQLite stores.
"""

import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from hostel_ledger.config import Settings
from hostel_ledger.main import create_app
from hostel_ledger.services.json_store import JsonFileStore
from hostel_ledger.services.sql_store import SqlUnitStore


class TestSettings:

    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOSTEL_UNIT_COUNT", "12")
        monkeypatch.setenv("HOSTEL_STORE_BACKEND", "DATABASE")

        app_settings = Settings(data_dir=str(tmp_path))

        assert app_settings.unit_count == 12
        assert app_settings.store_backend == "database"

    def test_ledger_path(self, tmp_path):
        app_settings = Settings(data_dir=str(tmp_path), ledger_file="irons.json")
        assert app_settings.ledger_path == tmp_path.resolve() / "irons.json"

    def test_cors_origins_list(self):
        app_settings = Settings(cors_origins="http://a.test, http://b.test,")
        assert app_settings.cors_origins_list == ["http://a.test", "http://b.test"]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"store_backend": "redis"},
            {"log_level": "LOUD"},
            {"unit_count": 0},
            {"default_duration_hours": 0},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(PydanticValidationError):
            Settings(**overrides)

    def test_log_level_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"


class TestLifespan:

    @pytest.mark.asyncio
    async def test_json_backend_provisions_and_flushes(self, tmp_path):
        app_settings = Settings(data_dir=str(tmp_path), unit_count=5, log_level="WARNING")
        app = create_app(app_settings=app_settings)

        async with app.router.lifespan_context(app):
            ledger = app.state.ledger
            assert isinstance(ledger.store, JsonFileStore)
            assert ledger.is_open
            assert ledger.summarize().total == 5
            await ledger.checkout(3, "Alice", "Room 4")

        document = json.loads(app_settings.ledger_path.read_text(encoding="utf-8"))
        assert len(document["units"]) == 5
        assert document["units"][2]["holder"] == "Alice"

    @pytest.mark.asyncio
    async def test_database_backend_creates_schema(self, tmp_path):
        app_settings = Settings(
            data_dir=str(tmp_path),
            store_backend="database",
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
            unit_count=4,
            log_level="WARNING",
        )
        app = create_app(app_settings=app_settings)

        async with app.router.lifespan_context(app):
            ledger = app.state.ledger
            assert isinstance(ledger.store, SqlUnitStore)
            assert [unit.unit_id for unit in ledger.list_units()] == [1, 2, 3, 4]
            assert await ledger.store.health_check() is True

    @pytest.mark.asyncio
    async def test_injected_ledger_is_used(self, ledger, memory_store, test_settings):
        app = create_app(app_settings=test_settings, ledger=ledger)

        async with app.router.lifespan_context(app):
            assert app.state.ledger is ledger

        assert memory_store.closed is True
