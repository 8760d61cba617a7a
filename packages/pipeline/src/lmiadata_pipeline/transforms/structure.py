"""
transforms/structure.py — Heuristic layout detection for LMIA files.

Published LMIA files do not share a layout. Depending on the year:
  - a title block of one to several lines precedes the header row;
  - the province is either a column or a standalone line ("Ontario")
    just above the header or above each section;
  - multi-section files repeat the header row further down.

detect_structure() finds the first header row in the opening lines and the
ambient province right above it. The predicates are also used while
scanning the body of the file (see transforms/extract.py).

Usage:
    structure = detect_structure(lines)
    if structure is None:
        ...  # no header in the first 15 non-empty lines, skip the file
    structure.columns        # ("Province/Territory", "Stream", "Employer", ...)
    structure.province       # "Ontario" or None
"""

from __future__ import annotations

import csv
from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from lmiadata_shared.geo import find_province_name, province_from_abbreviation

log = structlog.get_logger(__name__)

HEADER_SCAN_LIMIT = 15

# A header mentions the employer plus at least one of these
_HEADER_COMPANION_KEYWORDS = ("address", "noc", "province", "positions", "stream")

# Longer comma-separated lines are data rows, never province markers
_MARKER_MAX_LENGTH = 50
_ABBREVIATION_MAX_LENGTH = 3


@dataclass(frozen=True)
class FileStructure:
    """Layout detected at the top of a file."""

    header_row_index: int
    columns: tuple[str, ...]
    province: str | None = None


def split_fields(line: str) -> list[str]:
    """Parse one CSV line into its raw fields."""
    return next(csv.reader([line]), [])


def is_header_row(line: str) -> bool:
    lower = line.lower()
    return "employer" in lower and any(k in lower for k in _HEADER_COMPANION_KEYWORDS)


def parse_header(line: str) -> tuple[str, ...]:
    return tuple(field.strip() for field in split_fields(line))


def detect_province_marker(line: str | None) -> str | None:
    """
    Return the province named by a standalone marker line, else None.

    A marker is a line whose only non-empty field is a province name (or a
    short text containing one) or a 2–3 letter abbreviation.
    """
    if line is None or not line.strip():
        return None

    # Spreadsheet rows carry empty cells out to the sheet width
    trimmed = line.strip().rstrip(",").strip()
    if "," in trimmed and len(trimmed) > _MARKER_MAX_LENGTH:
        return None

    values = [v.strip() for v in split_fields(trimmed) if v.strip()]
    if len(values) != 1:
        return None

    value = values[0]
    if len(value) <= _ABBREVIATION_MAX_LENGTH:
        return province_from_abbreviation(value)
    if len(value) > _MARKER_MAX_LENGTH:
        return None
    return find_province_name(value)


def detect_structure(lines: Sequence[str]) -> FileStructure | None:
    """
    Locate the header row within the first HEADER_SCAN_LIMIT non-empty lines.

    Returns None when no header candidate is found.
    """
    scanned = 0
    previous: str | None = None

    for index, line in enumerate(lines):
        if not line or not line.strip():
            continue
        scanned += 1
        if scanned > HEADER_SCAN_LIMIT:
            break

        if is_header_row(line):
            columns = parse_header(line)
            province = detect_province_marker(previous)
            log.debug(
                "header_detected",
                line=index + 1,
                columns=list(columns),
                province=province,
            )
            return FileStructure(header_row_index=index, columns=columns, province=province)

        previous = line

    return None
