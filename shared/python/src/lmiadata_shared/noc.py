"""
noc.py — Equivalence between NOC 2011, NOC 2021 and future NOC codes.

The National Occupational Classification changed from 4-digit codes
(NOC 2011) to 5-digit codes (NOC 2021), and 6-digit codes may follow.
A lookup for one code therefore has to be widened to the family of codes
that denote the same occupation in other versions:

  4-digit "0211"    -> {"0211", "0211%"}          (every 5-digit child)
  5-digit "21211"   -> {"21211", "2121"}          (its NOC 2011 parent)
  6-digit "212110"  -> {"212110", "2121", "21211"}

Members ending in "%" are prefix patterns (SQL LIKE semantics), all others
are exact codes. The family is computed on demand and never stored.

Usage:
    from lmiadata_shared.noc import noc_family

    family = noc_family("0211")
    family.members            # frozenset({"0211", "0211%"})
    family.matches("02112")   # True
    family.exact_codes        # ("0211",)
    family.prefixes           # ("0211",)
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from lmiadata_shared.constants import NOC_2011_LENGTH, NOC_2021_LENGTH, NOC_MAX_LENGTH

log = structlog.get_logger(__name__)

PREFIX_WILDCARD = "%"


@dataclass(frozen=True)
class NocFamily:
    """The set of codes and prefix patterns equivalent to one NOC code."""

    code: str
    members: frozenset[str]

    @property
    def exact_codes(self) -> tuple[str, ...]:
        return tuple(sorted(m for m in self.members if not m.endswith(PREFIX_WILDCARD)))

    @property
    def prefixes(self) -> tuple[str, ...]:
        return tuple(
            sorted(m[: -len(PREFIX_WILDCARD)] for m in self.members if m.endswith(PREFIX_WILDCARD))
        )

    def matches(self, candidate: str | None) -> bool:
        """Evaluate the family pattern against a concrete stored code."""
        if not candidate:
            return False
        candidate = candidate.strip()
        if candidate in self.exact_codes:
            return True
        # A prefix token stands for the next NOC generation only (4 -> 5 digits)
        return any(
            candidate.startswith(prefix) and len(candidate) == len(prefix) + 1
            for prefix in self.prefixes
        )

    def __bool__(self) -> bool:
        return bool(self.members)


def noc_family(code: str | None) -> NocFamily:
    """
    Return the equivalence family for a NOC code of any era.

    Blank input yields an empty family. Codes of other lengths map to
    themselves only.
    """
    if code is None or not code.strip():
        return NocFamily(code="", members=frozenset())

    trimmed = code.strip()
    members = {trimmed}

    if len(trimmed) == NOC_2011_LENGTH:
        members.add(trimmed + PREFIX_WILDCARD)
    elif len(trimmed) == NOC_2021_LENGTH:
        members.add(trimmed[:NOC_2011_LENGTH])
    elif len(trimmed) == NOC_MAX_LENGTH:
        members.add(trimmed[:NOC_2011_LENGTH])
        members.add(trimmed[:NOC_2021_LENGTH])

    family = NocFamily(code=trimmed, members=frozenset(members))
    log.debug("noc_family", code=trimmed, members=sorted(family.members))
    return family


def is_noc_2011(code: str | None) -> bool:
    return code is not None and len(code.strip()) == NOC_2011_LENGTH


def is_noc_2021(code: str | None) -> bool:
    return code is not None and len(code.strip()) == NOC_2021_LENGTH
