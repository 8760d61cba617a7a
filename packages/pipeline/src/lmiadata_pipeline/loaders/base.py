"""
loaders/base.py — The persistence boundary for LMIA records.

Every store answers the duplicate check for one identity tuple and writes a
whole file's batch as a single unit of work: either every record of the batch
becomes visible or none does.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any, Protocol, runtime_checkable

import polars as pl

from lmiadata_shared.models.lmia import LmiaRecord
from lmiadata_shared.noc import NocFamily

RECORDS_TABLE = "lmia_records"

# Column order shared by both stores
RECORD_COLUMNS: tuple[str, ...] = (
    "employer",
    "province",
    "stream",
    "city",
    "postal_code",
    "noc_code",
    "noc_title",
    "positions_approved",
    "status",
    "decision_date",
    "source_file",
    "website_url",
)

RECORD_SCHEMA: dict[str, Any] = {
    "employer": pl.String,
    "province": pl.String,
    "stream": pl.String,
    "city": pl.String,
    "postal_code": pl.String,
    "noc_code": pl.String,
    "noc_title": pl.String,
    "positions_approved": pl.Int32,
    "status": pl.String,
    "decision_date": pl.Date,
    "source_file": pl.String,
    "website_url": pl.String,
}


@runtime_checkable
class RecordStore(Protocol):
    def exists_by_identity(
        self,
        employer: str,
        noc_code: str,
        decision_date: date,
        source_file: str,
    ) -> bool: ...

    def save_batch(self, records: Sequence[LmiaRecord]) -> int: ...

    def count(self) -> int: ...

    def count_by_noc_family(self, family: NocFamily) -> int: ...


def records_to_frame(records: Sequence[LmiaRecord]) -> pl.DataFrame:
    """Lay a batch out as a polars DataFrame in RECORD_COLUMNS order."""
    rows = [record.model_dump(include=set(RECORD_COLUMNS)) for record in records]
    return pl.DataFrame(rows, schema=RECORD_SCHEMA)
