"""
lmiadata_pipeline.loaders — record stores.

  DuckDBRecordStore    — local DuckDB file (default)
  SupabaseRecordStore  — hosted Postgres via PostgREST
"""

from __future__ import annotations

from lmiadata_shared.config import settings
from lmiadata_shared.constants import RecordStoreBackend
from lmiadata_pipeline.loaders.base import RecordStore
from lmiadata_pipeline.loaders.duckdb_store import DuckDBRecordStore
from lmiadata_pipeline.loaders.supabase_store import SupabaseRecordStore


def build_record_store(backend: RecordStoreBackend | None = None) -> RecordStore:
    """Return the store selected by *backend* (default: settings.record_store)."""
    backend = backend or settings.record_store
    if backend == "supabase":
        return SupabaseRecordStore()
    if backend == "duckdb":
        return DuckDBRecordStore()
    raise ValueError(f"unknown record store backend: {backend!r}")


__all__ = ["DuckDBRecordStore", "RecordStore", "SupabaseRecordStore", "build_record_store"]
