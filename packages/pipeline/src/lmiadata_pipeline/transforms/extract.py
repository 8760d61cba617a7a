"""
transforms/extract.py — Field extraction and normalization for LMIA lines.

After detect_structure() has found the header, the remaining lines are folded
one by one through an ExtractionState (active columns + ambient province):

  blank line            -> ignored
  province marker line  -> ambient province replaced
  repeated header line  -> active columns replaced
  anything else         -> data line, turned into an LmiaRecord or skipped

Per-record normalization:
  - employer: required, a blank employer drops the line;
  - NOC: "0211 - Engineering managers" -> code "0211", title "Engineering managers";
    only 4–6 digit codes are kept, everything else falls back to "0000";
  - address: "25 Trinity St, St. John's, NL A1E 2M3" -> city, province, postal code;
  - province: column > address > ambient province > "Unknown";
  - positions: digits only, anything absent or <= 0 reads as 1;
  - decision date and status: derived from the file name
    ("tfwp_2021q2_positive_en.csv" -> 2021-05-15, approved).

Usage:
    extractor = RecordExtractor(website_resolver=SearchUrlWebsiteResolver())
    result = extractor.parse_file(Path("data/lmia/tfwp_2021q2_positive_en.csv"))
    result.records         # list[LmiaRecord]
    result.skipped_lines   # data lines that produced no record
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import NamedTuple

import structlog

from lmiadata_shared.constants import (
    DEFAULT_NOC_CODE,
    NOC_2011_LENGTH,
    NOC_MAX_LENGTH,
    UNKNOWN_PROVINCE,
    UNKNOWN_STREAM,
    DecisionStatus,
)
from lmiadata_shared.geo import (
    POSTAL_CODE,
    normalize_postal_code,
    province_from_abbreviation,
)
from lmiadata_shared.models.lmia import LmiaRecord
from lmiadata_pipeline.transforms.readers import load_lines
from lmiadata_pipeline.transforms.structure import (
    FileStructure,
    detect_province_marker,
    detect_structure,
    is_header_row,
    parse_header,
    split_fields,
)
from lmiadata_pipeline.transforms.website import WebsiteResolver

log = structlog.get_logger(__name__)

MIN_DATA_FIELDS = 6

# ---------------------------------------------------------------------------
# Column aliases, in priority order
# ---------------------------------------------------------------------------
PROVINCE_ALIASES = ("Province/Territory", "Province")
STREAM_ALIASES = ("Stream", "Program Stream")
EMPLOYER_ALIASES = ("Employer", "Employer Name")
ADDRESS_ALIASES = ("Address",)
NOC_ALIASES = (
    "Occupations under NOC 2011",
    "Occupations under NOC 2021",
    "Occupations under NOC 2026",
    "NOC 2011",
    "NOC 2021",
    "NOC 2026",
    "NOC",
    "NOC Code",
    "National Occupational Classification",
)
POSITIONS_ALIASES = ("Positions Approved", "Approved Positions", "Positions", "Positions requested")

_NOC_PATTERN = re.compile(r"(\d{4,})[\s-]+(.+)")
_ADDRESS_PATTERN = re.compile(rf"(.+?),\s*([^,]+),\s*([A-Z]{{2}})\s+({POSTAL_CODE})")
_PROVINCE_POSTAL_PATTERN = re.compile(rf"([A-Z]{{2}})\s+({POSTAL_CODE})")
_QUARTER_TOKEN = re.compile(r"(\d{4})[qQ](\d)")
_NON_NUMERIC = re.compile(r"[^\d-]")

# Quarter -> month of the mid-quarter decision date
_QUARTER_MONTH = {1: 2, 2: 5, 3: 8, 4: 11}
_DECISION_DAY = 15

_DENIED_MARKERS = ("negative", "denied")


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------


class ParsedNoc(NamedTuple):
    code: str
    title: str | None


class ParsedAddress(NamedTuple):
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None


def lookup_field(
    values: Sequence[str],
    columns: Sequence[str],
    aliases: Sequence[str],
    *,
    contains: str | None = None,
) -> str | None:
    """
    Return the value under the first column matching one of *aliases*.

    Column names are compared case-insensitively. When *contains* is given,
    a column whose name merely contains it also matches. A blank value reads
    as absent.
    """
    for alias in aliases:
        wanted = alias.lower()
        for index, column in enumerate(columns):
            name = column.lower()
            if name == wanted or (contains is not None and contains in name):
                if index >= len(values):
                    return None
                value = values[index].strip()
                return value or None
    return None


def parse_noc(value: str | None) -> ParsedNoc:
    """
    Split "0211 - Engineering managers" into code and title.

    Values without a code-and-title shape, or whose digit run is not 4-6
    long, give the default code and no title.
    """
    if not value:
        return ParsedNoc(DEFAULT_NOC_CODE, None)
    match = _NOC_PATTERN.search(value.strip())
    if match is None:
        return ParsedNoc(DEFAULT_NOC_CODE, None)
    code, title = match.group(1), match.group(2).strip()
    if not NOC_2011_LENGTH <= len(code) <= NOC_MAX_LENGTH:
        return ParsedNoc(DEFAULT_NOC_CODE, None)
    return ParsedNoc(code, title or None)


def parse_address(value: str | None) -> ParsedAddress:
    """
    Pull city, province and postal code out of a free-text address.

    Tries the "street, city, XX A1A 1A1" form first, then falls back to a
    comma split where the second-to-last part is the city.
    """
    if not value or not value.strip():
        return ParsedAddress()

    match = _ADDRESS_PATTERN.search(value)
    if match is not None:
        return ParsedAddress(
            city=match.group(2).strip() or None,
            province=province_from_abbreviation(match.group(3)),
            postal_code=normalize_postal_code(match.group(4)),
        )

    parts = [p.strip() for p in value.split(",")]
    if len(parts) < 2:
        return ParsedAddress()

    city = parts[-2] or None
    trailing = parts[-1]
    province = postal_code = None
    tail_match = _PROVINCE_POSTAL_PATTERN.fullmatch(trailing)
    if tail_match is not None:
        province = province_from_abbreviation(tail_match.group(1))
        postal_code = normalize_postal_code(tail_match.group(2))
    elif len(trailing) == 2:
        province = province_from_abbreviation(trailing)
    return ParsedAddress(city=city, province=province, postal_code=postal_code)


def parse_positions(value: str | None) -> int:
    """Digits-only position count; absent, unparsable or <= 0 reads as 1."""
    if not value:
        return 1
    try:
        positions = int(_NON_NUMERIC.sub("", value))
    except ValueError:
        return 1
    return positions if positions > 0 else 1


def decision_date_from_filename(filename: str, today: date | None = None) -> date:
    """
    Map a "<year>q<quarter>" token in the file name to the 15th of the
    quarter's middle month. Without a usable token, today's date is used.
    """
    today = today or date.today()
    match = _QUARTER_TOKEN.search(filename)
    if match is None:
        return today

    year, quarter = int(match.group(1)), int(match.group(2))
    month = _QUARTER_MONTH.get(quarter)
    if month is None:
        log.warning("invalid_quarter_in_filename", file=filename, quarter=quarter)
        return today
    try:
        return date(year, month, _DECISION_DAY)
    except ValueError:
        log.warning("invalid_date_in_filename", file=filename, year=year, quarter=quarter)
        return today


def decision_status_from_filename(filename: str) -> DecisionStatus:
    lower = filename.lower()
    return "denied" if any(marker in lower for marker in _DENIED_MARKERS) else "approved"


# ---------------------------------------------------------------------------
# Fold state and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExtractionState:
    """Columns and ambient province in effect for the next data line."""

    columns: tuple[str, ...]
    province: str | None = None

    @classmethod
    def from_structure(cls, structure: FileStructure) -> "ExtractionState":
        return cls(columns=structure.columns, province=structure.province)


@dataclass
class ParseResult:
    """Outcome of parsing one file."""

    source_file: str
    structure: FileStructure | None
    records: list[LmiaRecord] = field(default_factory=list)
    skipped_lines: int = 0

    @property
    def parseable(self) -> bool:
        return self.structure is not None


class _FileFacts(NamedTuple):
    decision_date: date
    status: DecisionStatus


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class RecordExtractor:
    """
    Converts detected LMIA lines into LmiaRecord values.

    The extractor holds no per-file state apart from a cache of the facts
    derived from each file name; the fold state is passed in explicitly.
    """

    def __init__(
        self,
        website_resolver: WebsiteResolver | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._website_resolver = website_resolver
        self._today = today
        self._facts: dict[str, _FileFacts] = {}

    def _file_facts(self, source_file: str) -> _FileFacts:
        facts = self._facts.get(source_file)
        if facts is None:
            facts = _FileFacts(
                decision_date=decision_date_from_filename(source_file, self._today()),
                status=decision_status_from_filename(source_file),
            )
            self._facts[source_file] = facts
        return facts

    def _resolve_website(self, employer: str, city: str | None, province: str) -> str | None:
        if self._website_resolver is None:
            return None
        try:
            return self._website_resolver(employer, city, province)
        except Exception as exc:
            log.warning("website_lookup_failed", employer=employer, error=str(exc))
            return None

    def _build_record(self, line: str, state: ExtractionState, source_file: str) -> LmiaRecord | None:
        values = split_fields(line)
        if len(values) < min(MIN_DATA_FIELDS, len(state.columns)):
            return None

        columns = state.columns
        employer = lookup_field(values, columns, EMPLOYER_ALIASES)
        if employer is None:
            return None

        noc = parse_noc(lookup_field(values, columns, NOC_ALIASES, contains="noc"))
        address = parse_address(lookup_field(values, columns, ADDRESS_ALIASES))

        province_column = lookup_field(values, columns, PROVINCE_ALIASES)
        if province_column is not None:
            province_column = province_from_abbreviation(province_column) or province_column
        province = province_column or address.province or state.province or UNKNOWN_PROVINCE

        stream = lookup_field(values, columns, STREAM_ALIASES) or UNKNOWN_STREAM
        positions = parse_positions(lookup_field(values, columns, POSITIONS_ALIASES))
        facts = self._file_facts(source_file)

        return LmiaRecord(
            employer=employer,
            province=province,
            stream=stream,
            city=address.city,
            postal_code=address.postal_code,
            noc_code=noc.code,
            noc_title=noc.title,
            positions_approved=positions,
            status=facts.status,
            decision_date=facts.decision_date,
            source_file=source_file,
            website_url=self._resolve_website(employer, address.city, province),
        )

    def extract_line(
        self,
        line: str,
        state: ExtractionState,
        source_file: str,
        line_number: int | None = None,
    ) -> LmiaRecord | None:
        """
        Turn one data line into a record, or None when the line is skipped.

        Never raises: a failure on the line is logged and reads as a skip.
        """
        try:
            return self._build_record(line, state, source_file)
        except Exception as exc:
            log.warning(
                "line_extraction_failed",
                file=source_file,
                line=line_number,
                error=str(exc),
            )
            return None

    def parse_lines(self, lines: Sequence[str], source_file: str) -> ParseResult:
        """Detect the layout of *lines* and fold the rest into records."""
        structure = detect_structure(lines)
        result = ParseResult(source_file=source_file, structure=structure)
        if structure is None:
            log.warning("no_header_detected", file=source_file)
            return result

        state = ExtractionState.from_structure(structure)
        for index in range(structure.header_row_index + 1, len(lines)):
            line = lines[index]
            if not line or not line.strip():
                continue

            province = detect_province_marker(line)
            if province is not None:
                state = ExtractionState(columns=state.columns, province=province)
                continue

            if is_header_row(line):
                state = ExtractionState(columns=parse_header(line), province=state.province)
                continue

            record = self.extract_line(line, state, source_file, line_number=index + 1)
            if record is None:
                result.skipped_lines += 1
            else:
                result.records.append(record)

        log.info(
            "file_parsed",
            file=source_file,
            records=len(result.records),
            skipped_lines=result.skipped_lines,
        )
        return result

    def parse_file(self, path: Path | str) -> ParseResult:
        path = Path(path)
        return self.parse_lines(load_lines(path), path.name)
