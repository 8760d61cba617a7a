"""
tests/test_transforms/test_extract.py — Unit tests for RecordExtractor and its field parsers.

Tests cover:
  - NOC, address, positions, date and status parsing
  - Column alias lookup
  - Province precedence (column > address > ambient > Unknown)
  - The line fold: province markers, repeated headers, short and blank lines
  - Website enrichment and per-line error containment
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from pathlib import Path

import pytest

from lmiadata_shared.constants import DEFAULT_NOC_CODE, UNKNOWN_PROVINCE, UNKNOWN_STREAM
from lmiadata_pipeline.transforms.extract import (
    EMPLOYER_ALIASES,
    NOC_ALIASES,
    ExtractionState,
    ParsedAddress,
    RecordExtractor,
    decision_date_from_filename,
    decision_status_from_filename,
    lookup_field,
    parse_address,
    parse_noc,
    parse_positions,
)
from lmiadata_pipeline.transforms.website import SearchUrlWebsiteResolver

SOURCE = "tfwp_2021q2_positive_en.csv"
COLUMNS = ("Province/Territory", "Program Stream", "Employer", "Address", "Occupations under NOC 2011", "Positions Approved")
HEADER = ",".join(COLUMNS)
STATE = ExtractionState(columns=COLUMNS)


def _line(
    province: str = "Ontario",
    stream: str = "High-wage",
    employer: str = "Acme Robotics Inc.",
    address: str = "123 King St W, Toronto, ON M5H 2N2",
    noc: str = "2174-Computer programmers",
    positions: str = "3",
) -> str:
    return f'{province},{stream},{employer},"{address}",{noc},{positions}'


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------

class TestParseNoc:
    def test_four_digit_with_dash(self):
        noc = parse_noc("0211-Engineering managers")
        assert noc.code == "0211"
        assert noc.title == "Engineering managers"

    def test_five_digit_with_spaced_dash(self):
        noc = parse_noc("12104 - Employment insurance officers")
        assert noc.code == "12104"
        assert noc.title == "Employment insurance officers"

    def test_six_digit(self):
        assert parse_noc("212110 Future code").code == "212110"

    def test_nine_digit_code_is_not_extracted(self):
        noc = parse_noc("123456789 - Something")
        assert noc == (DEFAULT_NOC_CODE, None)

    @pytest.mark.parametrize("value", ["Engineering managers", "21211", " 0211 "])
    def test_unmatched_value_has_no_title(self, value):
        assert parse_noc(value) == (DEFAULT_NOC_CODE, None)

    def test_missing(self):
        assert parse_noc(None) == (DEFAULT_NOC_CODE, None)


class TestParseAddress:
    def test_full_address(self):
        address = parse_address("25 Trinity Street, St. John's, NL A1E 2M3")
        assert address == ParsedAddress(
            city="St. John's",
            province="Newfoundland and Labrador",
            postal_code="A1E2M3",
        )

    def test_street_with_extra_commas(self):
        address = parse_address("Unit 5, 25 Trinity Street, St. John's, NL A1E2M3")
        assert address.city == "St. John's"
        assert address.postal_code == "A1E2M3"

    def test_city_and_postal_only(self):
        address = parse_address("Toronto, ON M5H 2N2")
        assert address == ParsedAddress(city="Toronto", province="Ontario", postal_code="M5H2N2")

    def test_trailing_province_code(self):
        address = parse_address("12 Main St, Victoria, BC")
        assert address == ParsedAddress(city="Victoria", province="British Columbia")

    def test_no_commas(self):
        assert parse_address("Banff") == ParsedAddress()

    def test_blank(self):
        assert parse_address("  ") == ParsedAddress()


class TestParsePositions:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("3", 3),
            (" 12 ", 12),
            ("1,200", 1200),
            ("0", 1),
            ("-4", 1),
            ("abc", 1),
            ("", 1),
            (None, 1),
        ],
    )
    def test_positions(self, value, expected):
        assert parse_positions(value) == expected


class TestFilenameFacts:
    def test_quarter_to_mid_quarter_date(self):
        assert decision_date_from_filename("tfwp_2021q2_positive_en.csv") == date(2021, 5, 15)
        assert decision_date_from_filename("tfwp_2019Q1_positive_en.csv") == date(2019, 2, 15)
        assert decision_date_from_filename("tfwp_2019q3_positive_en.csv") == date(2019, 8, 15)
        assert decision_date_from_filename("tfwp_2019q4_positive_en.csv") == date(2019, 11, 15)

    def test_invalid_quarter_falls_back_to_today(self):
        before = datetime.now() - timedelta(seconds=5)
        result = decision_date_from_filename("tfwp_2021q0_positive_en.csv")
        assert result >= before.date()

    def test_no_token_uses_given_today(self):
        assert decision_date_from_filename("employers.csv", today=date(2024, 1, 2)) == date(2024, 1, 2)

    def test_year_zero_falls_back(self):
        assert decision_date_from_filename("x_0000q1.csv", today=date(2024, 1, 2)) == date(2024, 1, 2)

    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("tfwp_2021q2_positive_en.csv", "approved"),
            ("tfwp_2021q2_negative_en.csv", "denied"),
            ("LMIA_Denied_2020.xlsx", "denied"),
        ],
    )
    def test_status(self, filename, expected):
        assert decision_status_from_filename(filename) == expected


class TestLookupField:
    def test_case_insensitive_exact_match(self):
        assert lookup_field(["x", "Acme"], ["stream", "EMPLOYER"], EMPLOYER_ALIASES) == "Acme"

    def test_noc_substring_fallback(self):
        columns = ["Employer", "2021 NOC code & title"]
        assert lookup_field(["Acme", "0211-X"], columns, NOC_ALIASES, contains="noc") == "0211-X"

    def test_blank_value_is_absent(self):
        assert lookup_field(["  "], ["Employer"], EMPLOYER_ALIASES) is None

    def test_missing_column(self):
        assert lookup_field(["a"], ["Stream"], EMPLOYER_ALIASES) is None

    def test_short_row(self):
        assert lookup_field(["a"], ["Stream", "Employer"], EMPLOYER_ALIASES) is None


# ---------------------------------------------------------------------------
# extract_line
# ---------------------------------------------------------------------------

class TestExtractLine:
    def test_well_formed_line(self):
        record = RecordExtractor().extract_line(_line(), STATE, SOURCE)

        assert record is not None
        assert record.employer == "Acme Robotics Inc."
        assert record.province == "Ontario"
        assert record.stream == "High-wage"
        assert record.city == "Toronto"
        assert record.postal_code == "M5H2N2"
        assert record.noc_code == "2174"
        assert record.noc_title == "Computer programmers"
        assert record.positions_approved == 3
        assert record.status == "approved"
        assert record.decision_date == date(2021, 5, 15)
        assert record.source_file == SOURCE
        assert record.website_url is None

    @pytest.mark.parametrize("employer", ["", "   "])
    def test_blank_employer_is_dropped(self, employer: str):
        assert RecordExtractor().extract_line(_line(employer=employer), STATE, SOURCE) is None

    def test_short_line_is_skipped(self):
        assert RecordExtractor().extract_line("Ontario,High-wage,Acme", STATE, SOURCE) is None

    def test_nine_digit_noc_defaults(self):
        record = RecordExtractor().extract_line(_line(noc="123456789 - Something"), STATE, SOURCE)
        assert record.noc_code == DEFAULT_NOC_CODE
        assert record.noc_title is None

    def test_province_column_wins_over_address(self):
        record = RecordExtractor().extract_line(
            _line(province="Quebec", address="1 Main St, Ottawa, ON K1A 0A6"), STATE, SOURCE
        )
        assert record.province == "Quebec"

    def test_province_column_abbreviation_is_expanded(self):
        record = RecordExtractor().extract_line(_line(province="MB"), STATE, SOURCE)
        assert record.province == "Manitoba"

    def test_address_wins_over_ambient(self):
        state = ExtractionState(columns=COLUMNS, province="Alberta")
        record = RecordExtractor().extract_line(_line(province=""), state, SOURCE)
        assert record.province == "Ontario"

    def test_ambient_province_used_last(self):
        state = ExtractionState(columns=COLUMNS, province="Alberta")
        record = RecordExtractor().extract_line(_line(province="", address="Banff"), state, SOURCE)
        assert record.province == "Alberta"

    def test_unknown_defaults(self):
        record = RecordExtractor().extract_line(
            _line(province="", stream="", address="", noc="", positions=""), STATE, SOURCE
        )
        assert record.province == UNKNOWN_PROVINCE
        assert record.stream == UNKNOWN_STREAM
        assert record.noc_code == DEFAULT_NOC_CODE
        assert record.positions_approved == 1

    def test_denied_file(self):
        record = RecordExtractor().extract_line(_line(), STATE, "tfwp_2021q2_negative_en.csv")
        assert record.status == "denied"

    def test_website_resolver_is_called(self):
        calls = []

        def resolver(employer, city, province):
            calls.append((employer, city, province))
            return "https://acme.example"

        record = RecordExtractor(website_resolver=resolver).extract_line(_line(), STATE, SOURCE)

        assert record.website_url == "https://acme.example"
        assert calls == [("Acme Robotics Inc.", "Toronto", "Ontario")]

    def test_website_resolver_failure_leaves_url_empty(self):
        def resolver(employer, city, province):
            raise RuntimeError("lookup service down")

        record = RecordExtractor(website_resolver=resolver).extract_line(_line(), STATE, SOURCE)

        assert record is not None
        assert record.website_url is None

    def test_search_url_resolver(self):
        record = RecordExtractor(website_resolver=SearchUrlWebsiteResolver()).extract_line(
            _line(), STATE, SOURCE
        )
        assert record.website_url.startswith("https://www.google.com/search?q=")
        assert "%22Acme+Robotics+Inc.%22+Toronto+Ontario+Canada+website" in record.website_url

    def test_unexpected_error_is_contained(self, monkeypatch):
        extractor = RecordExtractor()

        def boom(*args, **kwargs):
            raise ValueError("bad line")

        monkeypatch.setattr(extractor, "_build_record", boom)

        assert extractor.extract_line(_line(), STATE, SOURCE, line_number=7) is None

    def test_injected_today(self):
        extractor = RecordExtractor(today=lambda: date(2023, 3, 1))
        record = extractor.extract_line(_line(), STATE, "employers_en.csv")
        assert record.decision_date == date(2023, 3, 1)


# ---------------------------------------------------------------------------
# parse_lines / parse_file
# ---------------------------------------------------------------------------

class TestParseLines:
    def test_one_good_line_one_short_line(self):
        lines = [HEADER, _line(), "Ontario,High-wage,Acme,Toronto,2174"]

        result = RecordExtractor().parse_lines(lines, SOURCE)

        assert result.parseable
        assert len(result.records) == 1
        assert result.skipped_lines == 1

    def test_no_header(self):
        result = RecordExtractor().parse_lines(["nothing", "to see"], SOURCE)

        assert not result.parseable
        assert result.records == []

    def test_province_marker_updates_ambient(self):
        lines = [
            "Alberta",
            "Stream,Employer,Address,NOC,Positions",
            "High-wage,Lodge A,Banff,6513-Servers,1",
            "",
            "Saskatchewan",
            "High-wage,Lodge B,Regina,6513-Servers,1",
        ]

        result = RecordExtractor().parse_lines(lines, SOURCE)

        assert [r.province for r in result.records] == ["Alberta", "Saskatchewan"]
        assert result.skipped_lines == 0

    def test_repeated_header_replaces_columns(self):
        lines = [
            "Stream,Employer,Address,NOC,Positions",
            "High-wage,Lodge A,Banff,6513-Servers,2",
            "Employer,Positions,NOC,Stream,Address",
            "Lodge B,7,6513-Servers,Low-wage,Jasper",
        ]

        result = RecordExtractor().parse_lines(lines, SOURCE)

        assert [(r.employer, r.positions_approved, r.stream) for r in result.records] == [
            ("Lodge A", 2, "High-wage"),
            ("Lodge B", 7, "Low-wage"),
        ]

    def test_header_with_fewer_columns_lowers_minimum(self):
        lines = ["Employer,NOC", "Acme,0211-Engineering managers"]

        result = RecordExtractor().parse_lines(lines, SOURCE)

        assert len(result.records) == 1
        assert result.records[0].noc_code == "0211"

    def test_fixture_with_province_column(self, fixture_path: Path):
        result = RecordExtractor().parse_file(fixture_path / "tfwp_2021q2_positive_en.csv")

        assert len(result.records) == 4
        assert result.skipped_lines == 1
        by_employer = {r.employer: r for r in result.records}
        nordic = by_employer["Nordic Software"]
        assert nordic.province == "Quebec"
        assert nordic.city == "Montréal"
        assert nordic.noc_code == "21231"
        assert nordic.stream == "Global Talent Stream"
        assert by_employer["Harbour Fisheries"].positions_approved == 1
        assert all(r.decision_date == date(2021, 5, 15) for r in result.records)

    def test_fixture_with_ambient_province(self, fixture_path: Path):
        result = RecordExtractor().parse_file(fixture_path / "tfwp_2015q1_positive_en.csv")

        assert len(result.records) == 5
        assert result.skipped_lines == 2
        assert result.structure.province == "Alberta"
        provinces = {r.employer: r.province for r in result.records}
        assert provinces["Rocky Mountain Lodge"] == "Alberta"
        assert provinces["Coastal Timber Co"] == "British Columbia"
        assert provinces["Island Cafe"] == "British Columbia"
        assert all(r.decision_date == date(2015, 2, 15) for r in result.records)
