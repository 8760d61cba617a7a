"""
loaders/supabase_store.py — Supabase (PostgREST) record store.

A file's batch is sent as one insert request. PostgREST executes a single
request as one statement, so the batch is all-or-nothing. Batches larger than
max_batch_rows are refused instead of being split, since splitting would
break that guarantee.

Usage:
    store = SupabaseRecordStore()          # service-role client
    store.save_batch(records)
    store.count()
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any

import polars as pl
import structlog
from supabase import Client

from lmiadata_shared.db import get_supabase_client
from lmiadata_shared.models.lmia import LmiaRecord
from lmiadata_shared.noc import NocFamily
from lmiadata_pipeline.errors import StoreError
from lmiadata_pipeline.loaders.base import RECORDS_TABLE, records_to_frame

log = structlog.get_logger(__name__)

MAX_BATCH_ROWS = 5000


def escape_like(value: str) -> str:
    """
    Escape LIKE wildcards for ilike().

    PostgREST also reads "*" as "%" and offers no escape for it, so a pattern
    built from a name containing "*" can over-match; callers confirm hits.
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def frame_to_rows(df: pl.DataFrame) -> list[dict[str, Any]]:
    """
    Convert a record frame to JSON-serialisable dicts.

    Date columns become ISO strings; null values are omitted so database
    defaults apply.
    """
    cast_exprs = [
        pl.col(name).cast(pl.String).alias(name)
        for name, dtype in zip(df.columns, df.dtypes)
        if dtype == pl.Date
    ]
    if cast_exprs:
        df = df.with_columns(cast_exprs)
    return [{k: v for k, v in row.items() if v is not None} for row in df.to_dicts()]


class SupabaseRecordStore:
    """RecordStore backed by the Supabase lmia_records table."""

    def __init__(self, client: Client | None = None, *, max_batch_rows: int = MAX_BATCH_ROWS) -> None:
        self._client = client if client is not None else get_supabase_client(service_role=True)
        self._max_batch_rows = max_batch_rows

    def exists_by_identity(
        self,
        employer: str,
        noc_code: str,
        decision_date: date,
        source_file: str,
    ) -> bool:
        wanted = employer.strip()
        result = (
            self._client.table(RECORDS_TABLE)
            .select("id, employer")
            .ilike("employer", escape_like(wanted))
            .eq("noc_code", noc_code)
            .eq("decision_date", decision_date.isoformat())
            .eq("source_file", source_file)
            .execute()
        )
        wanted = wanted.lower()
        return any((row.get("employer") or "").strip().lower() == wanted for row in result.data or [])

    def save_batch(self, records: Sequence[LmiaRecord]) -> int:
        if not records:
            return 0
        if len(records) > self._max_batch_rows:
            raise StoreError(
                f"batch of {len(records)} rows exceeds max_batch_rows={self._max_batch_rows}"
            )

        rows = frame_to_rows(records_to_frame(records))
        try:
            self._client.table(RECORDS_TABLE).insert(rows).execute()
        except Exception as exc:
            raise StoreError(f"insert into {RECORDS_TABLE} failed: {exc}") from exc

        log.debug("supabase_batch_saved", rows=len(rows))
        return len(rows)

    def count(self) -> int:
        result = self._client.table(RECORDS_TABLE).select("id", count="exact").limit(1).execute()
        return result.count or 0

    def count_by_noc_family(self, family: NocFamily) -> int:
        if not family:
            return 0

        # "_" matches exactly one character: a 4-digit prefix reaches 5-digit codes only
        filters: list[str] = []
        if family.exact_codes:
            filters.append(f"noc_code.in.({','.join(family.exact_codes)})")
        filters.extend(f"noc_code.like.{prefix}_" for prefix in family.prefixes)

        result = (
            self._client.table(RECORDS_TABLE)
            .select("id", count="exact")
            .or_(",".join(filters))
            .limit(1)
            .execute()
        )
        return result.count or 0
