"""
constants.py — shared constants used across the pipeline.

Province names and postal abbreviations, NOC code lengths, and typed
literals are defined here so they stay in sync between modules.
"""

from __future__ import annotations

from typing import Final, Literal

# ---------------------------------------------------------------------------
# Provinces and territories: SGC code -> name
# ---------------------------------------------------------------------------
PROVINCES: Final[dict[str, str]] = {
    "10": "Newfoundland and Labrador",
    "11": "Prince Edward Island",
    "12": "Nova Scotia",
    "13": "New Brunswick",
    "24": "Quebec",
    "35": "Ontario",
    "46": "Manitoba",
    "47": "Saskatchewan",
    "48": "Alberta",
    "59": "British Columbia",
    "60": "Yukon",
    "61": "Northwest Territories",
    "62": "Nunavut",
}

PROVINCE_ABBREVIATIONS: Final[dict[str, str]] = {
    "10": "NL",
    "11": "PE",
    "12": "NS",
    "13": "NB",
    "24": "QC",
    "35": "ON",
    "46": "MB",
    "47": "SK",
    "48": "AB",
    "59": "BC",
    "60": "YT",
    "61": "NT",
    "62": "NU",
}

# Reverse maps
ABBREVIATION_TO_NAME: Final[dict[str, str]] = {
    abbr: PROVINCES[code] for code, abbr in PROVINCE_ABBREVIATIONS.items()
}
PROVINCE_NAMES: Final[tuple[str, ...]] = tuple(PROVINCES.values())

UNKNOWN_PROVINCE: Final[str] = "Unknown"
UNKNOWN_STREAM: Final[str] = "Unknown"

# ---------------------------------------------------------------------------
# NOC
# ---------------------------------------------------------------------------
NOC_2011_LENGTH: Final[int] = 4
NOC_2021_LENGTH: Final[int] = 5
NOC_MAX_LENGTH: Final[int] = 6
DEFAULT_NOC_CODE: Final[str] = "0000"

# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------
SUPPORTED_FORMATS: Final[frozenset[str]] = frozenset({"csv", "xlsx", "xls"})

# ---------------------------------------------------------------------------
# Typed literals
# ---------------------------------------------------------------------------
DecisionStatus = Literal["approved", "denied"]
RecordStoreBackend = Literal["duckdb", "supabase"]
FileOutcome = Literal["saved", "failed", "unparseable"]
