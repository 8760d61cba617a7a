"""
models/lmia.py — Pydantic model for the lmia_records table.
"""

from __future__ import annotations

from datetime import date
from typing import Any, NamedTuple

from pydantic import BaseModel, Field, field_validator

from lmiadata_shared.constants import (
    DEFAULT_NOC_CODE,
    UNKNOWN_PROVINCE,
    UNKNOWN_STREAM,
    DecisionStatus,
)


class RecordIdentity(NamedTuple):
    """Logical key used for duplicate detection."""

    employer: str
    noc_code: str
    decision_date: date
    source_file: str


class LmiaRecord(BaseModel):
    """One employer/occupation decision row from a published LMIA file."""

    id: int | None = None
    employer: str = Field(min_length=1)
    province: str = UNKNOWN_PROVINCE
    stream: str = UNKNOWN_STREAM
    city: str | None = None
    postal_code: str | None = None
    noc_code: str = Field(default=DEFAULT_NOC_CODE, pattern=r"^\d{4,6}$")
    noc_title: str | None = None
    positions_approved: int = Field(default=1, ge=1)
    status: DecisionStatus = "approved"
    decision_date: date
    source_file: str
    website_url: str | None = None

    @field_validator("employer", mode="before")
    @classmethod
    def strip_employer(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @property
    def identity(self) -> RecordIdentity:
        """Identity tuple with the employer folded to lower case."""
        return RecordIdentity(
            employer=self.employer.lower(),
            noc_code=self.noc_code,
            decision_date=self.decision_date,
            source_file=self.source_file,
        )

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "LmiaRecord":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        return {
            "employer": self.employer,
            "province": self.province,
            "stream": self.stream,
            "city": self.city,
            "postal_code": self.postal_code,
            "noc_code": self.noc_code,
            "noc_title": self.noc_title,
            "positions_approved": self.positions_approved,
            "status": self.status,
            "decision_date": self.decision_date.isoformat(),
            "source_file": self.source_file,
            "website_url": self.website_url,
        }
