"""
geo.py — Province and postal-code helpers.

LMIA files name provinces inconsistently: a full name on a line of its own
("Ontario"), a two-letter postal abbreviation inside an address
("..., Toronto, ON M5H 2N2"), or a standalone abbreviation ("BC").
These helpers resolve those forms to the full English province name.

Usage:
    from lmiadata_shared.geo import province_from_abbreviation, find_province_name

    province_from_abbreviation("nl")            # "Newfoundland and Labrador"
    find_province_name("Province: Ontario")     # "Ontario"
    normalize_postal_code("a1e 2m3")            # "A1E2M3"
"""

from __future__ import annotations

import re

from lmiadata_shared.constants import ABBREVIATION_TO_NAME, PROVINCE_NAMES

# Canadian postal code: letter-digit-letter, optional space, digit-letter-digit
POSTAL_CODE = r"[A-Z]\d[A-Z]\s?\d[A-Z]\d"

_POSTAL_CODE_RE = re.compile(rf"^{POSTAL_CODE}$")
_WHITESPACE = re.compile(r"\s+")

# Short forms seen in older files, lower-cased
_PROVINCE_ALIASES: dict[str, str] = {
    **{abbr.lower(): name for abbr, name in ABBREVIATION_TO_NAME.items()},
    "nfl": "Newfoundland and Labrador",
    "pei": "Prince Edward Island",
    "que": "Quebec",
    "ont": "Ontario",
    "man": "Manitoba",
    "nwt": "Northwest Territories",
    "nun": "Nunavut",
}


def province_from_abbreviation(abbreviation: str | None) -> str | None:
    """
    Map a province/territory abbreviation ("NL", "ont", "P.E.I.") to its
    full name.

    Returns None when the abbreviation is unknown.
    """
    if not abbreviation:
        return None
    key = abbreviation.strip().lower().replace(".", "")
    return _PROVINCE_ALIASES.get(key)


def find_province_name(text: str | None) -> str | None:
    """
    Return the province whose full name equals or appears in *text*.

    Matching is case-insensitive; the canonical spelling is returned.
    """
    if not text:
        return None
    lowered = text.strip().lower()
    for name in PROVINCE_NAMES:
        if lowered == name.lower():
            return name
    for name in PROVINCE_NAMES:
        if name.lower() in lowered:
            return name
    return None


def is_postal_code(value: str | None) -> bool:
    """True for a Canadian postal code such as "A1E 2M3" or "A1E2M3"."""
    if not value:
        return False
    return bool(_POSTAL_CODE_RE.match(value.strip()))


def normalize_postal_code(value: str | None) -> str | None:
    """Upper-case a postal code and drop all whitespace."""
    if not value:
        return None
    return _WHITESPACE.sub("", value).upper() or None
