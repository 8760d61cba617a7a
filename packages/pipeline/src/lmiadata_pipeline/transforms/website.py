"""
transforms/website.py — Employer website enrichment boundary.

The extractor calls a WebsiteResolver once per record. The real lookup
service lives outside this repository; SearchUrlWebsiteResolver is the
placeholder shipped here. It never touches the network and returns a
search-engine URL for the employer instead of the site itself.
"""

from __future__ import annotations

from typing import Protocol
from urllib.parse import quote_plus


class WebsiteResolver(Protocol):
    def __call__(self, employer: str, city: str | None, province: str | None) -> str | None: ...


class SearchUrlWebsiteResolver:
    """Build a web-search URL such as https://www.google.com/search?q=%22Acme%22+Toronto+..."""

    def __init__(self, search_url: str = "https://www.google.com/search?q=") -> None:
        self._search_url = search_url

    def __call__(self, employer: str, city: str | None, province: str | None) -> str | None:
        if not employer or not employer.strip():
            return None
        terms = [f'"{employer.strip()}"']
        if city:
            terms.append(city)
        if province:
            terms.append(province)
        terms.extend(["Canada", "website"])
        return self._search_url + quote_plus(" ".join(terms))
