"""
lmiadata_shared.models — Pydantic models matching each database table.

All models provide:
  .from_db_row(row: dict) -> Model
  .to_insert_dict() -> dict
"""

from lmiadata_shared.models.lmia import LmiaRecord, RecordIdentity

__all__ = [
    "LmiaRecord",
    "RecordIdentity",
]
