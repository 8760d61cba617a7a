"""
config.py — pydantic-settings Settings class.

All environment variables for the lmiadata platform are declared here.
The pipeline imports `settings` from this module at its entry points and
hands explicit values (e.g. FetcherConfig) to the components it builds.

Usage:
    from lmiadata_shared.config import settings
    print(settings.download_dir)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Record store
    # -------------------------------------------------------------------------
    record_store: Literal["duckdb", "supabase"] = Field(default="duckdb")
    duckdb_path: str = Field(default="./data/lmia.duckdb")
    supabase_url: str = Field(default="http://localhost:54321")
    supabase_anon_key: str = Field(default="")
    supabase_service_key: str = Field(default="")

    # -------------------------------------------------------------------------
    # open.canada.ca catalog
    # -------------------------------------------------------------------------
    catalog_base_url: str = Field(default="https://open.canada.ca/data/api/3")
    catalog_query: str = Field(default="lmia")
    catalog_rows: int = Field(default=100, ge=1)
    catalog_max_attempts: int = Field(default=3, ge=1)
    catalog_base_delay: float = Field(default=2.0, ge=0)
    retry_backoff_factor: float = Field(default=1.5, ge=1.0)

    # -------------------------------------------------------------------------
    # Downloads
    # -------------------------------------------------------------------------
    download_dir: str = Field(default="./data/lmia")
    download_concurrency: int = Field(default=10, ge=1)
    download_queue_capacity: int = Field(default=100, ge=1)
    download_max_attempts: int = Field(default=3, ge=1)
    download_base_delay: float = Field(default=1.0, ge=0)
    http_timeout: float = Field(default=60.0, gt=0)
    http_user_agent: str = Field(default="lmiadata-pipeline/0.1 (+https://open.canada.ca)")

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------
    ingest_timeout_s: float = Field(default=1800.0, gt=0)

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    @field_validator("supabase_url", "catalog_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton — import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
