"""
Hostel Ledger Backend: Application Configuration
==================================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a module-level `settings` object.
Who:   Imported by main.py, the middleware and the store factory.
When:  Loaded once at module import time; validated before the app starts.
"""

from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have defaults suitable for a single-hostel deployment.
    Attributes are grouped by concern for readability.
    """

    # ── Unit Store ────────────────────────────────────────────────────────
    # What: Which persistence backend holds the unit set
    # Values: "json" (single JSON document on disk) or "database" (SQLAlchemy)
    store_backend: str = Field(default="json")

    # What: Directory holding the JSON ledger file (and the default SQLite db)
    data_dir: str = Field(default="./data")
    ledger_file: str = Field(default="iron_borrowing.json")

    # What: Async SQLAlchemy URL, used when store_backend == "database"
    # Format: sqlite+aiosqlite:///path or postgresql+asyncpg://user:pw@host/db
    database_url: str = Field(default="sqlite+aiosqlite:///./data/hostel_ledger.db")
    db_pool_size: int = Field(default=5, ge=1, le=100)
    db_max_overflow: int = Field(default=10, ge=0, le=50)
    db_pool_pre_ping: bool = Field(default=True)

    # What: Create the units table on startup if it is missing
    database_auto_create: bool = Field(default=True)

    # ── Ledger ────────────────────────────────────────────────────────────
    # What: Number of units provisioned when the store is empty
    # Fixed for the lifetime of the store; changing it later only logs a warning.
    unit_count: int = Field(default=20, ge=1, le=10_000)

    # What: Hold length applied when a checkout omits a positive duration
    default_duration_hours: float = Field(default=4.0, gt=0)

    # ── Store Retry Configuration ─────────────────────────────────────────
    # What: Tenacity retry settings for transient store write failures
    store_retry_attempts: int = Field(default=3, ge=1, le=10)
    store_retry_min_wait: float = Field(default=0.1, ge=0, le=10)
    store_retry_max_wait: float = Field(default=2.0, ge=0, le=60)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Format: Comma-separated URLs
    cors_origins: str = Field(default="http://localhost:3000,http://127.0.0.1:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    # ── Rate Limiting ─────────────────────────────────────────────────────
    # Default: 100 requests per 15 minutes per IP
    rate_limit_requests: int = Field(default=100, ge=1, le=10000)
    rate_limit_window: int = Field(default=900, ge=1, le=86400)  # seconds

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_prefix": "HOSTEL_",
    }

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        valid = {"json", "database"}
        lower = v.lower()
        if lower not in valid:
            raise ValueError(f"Invalid store_backend '{v}'. Must be one of: {valid}")
        return lower

    @property
    def ledger_path(self) -> Path:
        """Absolute path of the JSON ledger document."""
        return Path(self.data_dir).resolve() / self.ledger_file


settings = Settings()


def get_settings() -> Settings:
    """Returns the module-level settings (patched in tests)."""
    return settings
