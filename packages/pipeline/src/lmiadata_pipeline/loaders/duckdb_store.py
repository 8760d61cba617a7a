"""
loaders/duckdb_store.py — Local DuckDB record store.

The default backend: a single lmia_records table in the DuckDB file at
settings.duckdb_path (":memory:" works for tests). Batches are written from a
registered polars frame inside an explicit transaction, so a failure anywhere
in the batch leaves the table exactly as it was.

Usage:
    store = DuckDBRecordStore()
    if not store.exists_by_identity("Acme Ltd", "0211", date(2021, 5, 15), "tfwp.csv"):
        store.save_batch([record])
    store.count_by_noc_family(noc_family("0211"))
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date

import duckdb
import structlog

from lmiadata_shared.db import get_duckdb_connection
from lmiadata_shared.models.lmia import LmiaRecord
from lmiadata_shared.noc import NocFamily
from lmiadata_pipeline.errors import StoreError
from lmiadata_pipeline.loaders.base import RECORD_COLUMNS, RECORDS_TABLE, records_to_frame

log = structlog.get_logger(__name__)

_BATCH_VIEW = "_lmia_batch"

_SCHEMA_DDL = (
    f"CREATE SEQUENCE IF NOT EXISTS {RECORDS_TABLE}_id_seq START 1",
    f"""
    CREATE TABLE IF NOT EXISTS {RECORDS_TABLE} (
        id                  BIGINT PRIMARY KEY DEFAULT nextval('{RECORDS_TABLE}_id_seq'),
        employer            VARCHAR NOT NULL,
        province            VARCHAR NOT NULL,
        stream              VARCHAR NOT NULL,
        city                VARCHAR,
        postal_code         VARCHAR,
        noc_code            VARCHAR NOT NULL,
        noc_title           VARCHAR,
        positions_approved  INTEGER NOT NULL,
        status              VARCHAR NOT NULL,
        decision_date       DATE NOT NULL,
        source_file         VARCHAR NOT NULL,
        website_url         VARCHAR,
        created_at          TIMESTAMP DEFAULT current_timestamp
    )
    """,
    f"""
    CREATE INDEX IF NOT EXISTS {RECORDS_TABLE}_identity_idx
        ON {RECORDS_TABLE} (noc_code, decision_date, source_file)
    """,
)


class DuckDBRecordStore:
    """RecordStore backed by a DuckDB connection."""

    def __init__(self, connection: duckdb.DuckDBPyConnection | None = None) -> None:
        self._conn = connection if connection is not None else get_duckdb_connection()
        self.ensure_schema()

    def ensure_schema(self) -> None:
        for statement in _SCHEMA_DDL:
            self._conn.execute(statement)

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Unit of work: COMMIT on normal exit, ROLLBACK on any exception."""
        self._conn.execute("BEGIN TRANSACTION")
        try:
            yield self._conn
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        self._conn.execute("COMMIT")

    # ------------------------------------------------------------------
    # RecordStore
    # ------------------------------------------------------------------

    def exists_by_identity(
        self,
        employer: str,
        noc_code: str,
        decision_date: date,
        source_file: str,
    ) -> bool:
        row = self._conn.execute(
            f"""
            SELECT 1 FROM {RECORDS_TABLE}
            WHERE lower(employer) = lower(?)
              AND noc_code = ?
              AND decision_date = ?
              AND source_file = ?
            LIMIT 1
            """,
            [employer.strip(), noc_code, decision_date, source_file],
        ).fetchone()
        return row is not None

    def save_batch(self, records: Sequence[LmiaRecord]) -> int:
        """Insert all *records* in one transaction and return how many were written."""
        if not records:
            return 0

        frame = records_to_frame(records)
        columns = ", ".join(RECORD_COLUMNS)
        try:
            with self.transaction() as conn:
                conn.register(_BATCH_VIEW, frame)
                try:
                    conn.execute(
                        f"INSERT INTO {RECORDS_TABLE} ({columns}) SELECT {columns} FROM {_BATCH_VIEW}"
                    )
                finally:
                    conn.unregister(_BATCH_VIEW)
        except duckdb.Error as exc:
            raise StoreError(f"batch insert into {RECORDS_TABLE} failed: {exc}") from exc

        log.debug("duckdb_batch_saved", rows=len(records))
        return len(records)

    def count(self) -> int:
        row = self._conn.execute(f"SELECT count(*) FROM {RECORDS_TABLE}").fetchone()
        return int(row[0]) if row else 0

    def count_by_noc_family(self, family: NocFamily) -> int:
        """Count records whose NOC code belongs to *family*."""
        if not family:
            return 0

        clauses: list[str] = []
        params: list[object] = []
        if family.exact_codes:
            placeholders = ", ".join("?" for _ in family.exact_codes)
            clauses.append(f"noc_code IN ({placeholders})")
            params.extend(family.exact_codes)
        for prefix in family.prefixes:
            clauses.append("(starts_with(noc_code, ?) AND length(noc_code) = ?)")
            params.extend([prefix, len(prefix) + 1])

        row = self._conn.execute(
            f"SELECT count(*) FROM {RECORDS_TABLE} WHERE {' OR '.join(clauses)}",
            params,
        ).fetchone()
        return int(row[0]) if row else 0
