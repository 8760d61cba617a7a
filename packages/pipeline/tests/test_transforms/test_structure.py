"""
tests/test_transforms/test_structure.py — Header and province-marker detection.
"""

from __future__ import annotations

import pytest

from lmiadata_pipeline.transforms.structure import (
    HEADER_SCAN_LIMIT,
    detect_province_marker,
    detect_structure,
    is_header_row,
    parse_header,
)

HEADER = "Province/Territory,Program Stream,Employer,Address,Occupations under NOC 2011,Positions Approved"


class TestHeaderPredicate:
    @pytest.mark.parametrize(
        "line",
        [
            HEADER,
            "Stream,Employer,Address,NOC,Positions",
            "EMPLOYER,ADDRESS",
            "employer name,positions requested",
        ],
    )
    def test_header_lines(self, line: str):
        assert is_header_row(line)

    @pytest.mark.parametrize(
        "line",
        [
            "Positive LMIA Employers List 2015 Q1",
            "Province,Stream,Address",
            "Ontario,High-wage,Acme Inc.,Toronto,2174-Programmers,3",
        ],
    )
    def test_non_header_lines(self, line: str):
        assert not is_header_row(line)

    def test_parse_header_trims_columns(self):
        assert parse_header(" Stream , Employer ,NOC") == ("Stream", "Employer", "NOC")


class TestProvinceMarker:
    @pytest.mark.parametrize(
        "line, expected",
        [
            ("Ontario", "Ontario"),
            ("  british columbia  ", "British Columbia"),
            ("Ontario,,,,", "Ontario"),
            ("Manitoba" + "," * 60, "Manitoba"),
            ('"Quebec",,', "Quebec"),
            ("Province: Alberta", "Alberta"),
            ("BC", "British Columbia"),
            ("NL", "Newfoundland and Labrador"),
            ("PEI", "Prince Edward Island"),
        ],
    )
    def test_markers(self, line: str, expected: str | None):
        assert detect_province_marker(line) == expected

    @pytest.mark.parametrize(
        "line",
        [
            "",
            "   ",
            "Ontario,High-wage",
            "XY",
            "April to June 2021",
            "Ontario,High-wage,Acme Robotics Inc.,123 King St W Toronto ON,2174,3",
            "A very long explanatory line that happens to mention Ontario somewhere in it",
        ],
    )
    def test_non_markers(self, line: str):
        assert detect_province_marker(line) is None

    def test_none_line(self):
        assert detect_province_marker(None) is None


class TestDetectStructure:
    def test_header_after_title_block(self):
        lines = [
            "Positive Labour Market Impact Assessment (LMIA) Employers List",
            "April to June 2021,,,,,",
            HEADER,
            "Ontario,High-wage,Acme,x,2174-Programmers,3",
        ]

        structure = detect_structure(lines)

        assert structure is not None
        assert structure.header_row_index == 2
        assert structure.columns[2] == "Employer"
        assert len(structure.columns) == 6
        assert structure.province is None

    def test_ambient_province_from_preceding_line(self):
        lines = ["Title", "", "Alberta", "", "Stream,Employer,Address,NOC,Positions"]

        structure = detect_structure(lines)

        assert structure is not None
        assert structure.header_row_index == 4
        assert structure.province == "Alberta"

    def test_first_header_wins(self):
        lines = ["Stream,Employer,NOC", "Ontario", "Province,Employer,Address"]

        structure = detect_structure(lines)

        assert structure.header_row_index == 0
        assert structure.columns == ("Stream", "Employer", "NOC")

    def test_no_header_returns_none(self):
        assert detect_structure(["just", "some", "notes"]) is None
        assert detect_structure([]) is None

    def test_header_beyond_scan_limit_is_not_found(self):
        lines = [f"title line {i}" for i in range(HEADER_SCAN_LIMIT)] + [HEADER]

        assert detect_structure(lines) is None

    def test_blank_lines_do_not_count_towards_limit(self):
        lines = [""] * 40 + [f"title {i}" for i in range(HEADER_SCAN_LIMIT - 1)] + [HEADER]

        structure = detect_structure(lines)

        assert structure is not None
        assert structure.header_row_index == len(lines) - 1
