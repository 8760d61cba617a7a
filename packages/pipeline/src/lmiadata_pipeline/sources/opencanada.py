"""
sources/opencanada.py — CKAN catalog client for the LMIA datasets on open.canada.ca.

The Temporary Foreign Worker Program publishes one dataset per topic with
dozens of resources: quarterly CSV/XLSX files, in English and French, for
positive and negative decisions, by NOC or by program stream. This module
runs the catalog search and keeps only the resources the pipeline can
ingest.

CKAN API base: https://open.canada.ca/data/api/3
  /action/package_search — search for datasets by keyword

A resource is accepted when it is
  - tabular: declared format (or URL extension) is csv, xlsx or xls;
  - English: name or URL carries an English marker and neither carries a
    French marker (French wins when both appear);
  - on topic: name or URL mentions one of the configured topic keywords.

Usage:
    catalog = OpenCanadaCatalog(FetcherConfig.from_settings(settings))
    urls = await catalog.resolve_resource_urls("lmia")
"""

from __future__ import annotations

import re
from typing import Any

import httpx
import structlog

from lmiadata_shared.constants import SUPPORTED_FORMATS
from lmiadata_pipeline.errors import CatalogPayloadError, CatalogUnreachableError
from lmiadata_pipeline.sources.base import FetcherConfig, RawResource, format_from_url
from lmiadata_pipeline.utils.retry import with_retry

log = structlog.get_logger(__name__)

_FRENCH_MARKER = re.compile(r"(?<![a-z])(fr|fra|fre|french|francais|français)(?![a-z])")
_ENGLISH_MARKER = re.compile(r"(?<![a-z])(en|eng|english|anglais)(?![a-z])")


def is_english(name: str, url: str) -> bool:
    """English marker present and no French marker in either name or URL."""
    haystacks = (name.lower(), url.lower())
    if any(_FRENCH_MARKER.search(h) for h in haystacks):
        return False
    return any(_ENGLISH_MARKER.search(h) for h in haystacks)


def is_on_topic(name: str, url: str, keywords: tuple[str, ...]) -> bool:
    haystacks = (name.lower(), url.lower())
    for keyword in keywords:
        pattern = re.compile(rf"(?<![a-z]){re.escape(keyword.lower())}(?![a-z])")
        if any(pattern.search(h) for h in haystacks):
            return True
    return False


def resource_format(resource: dict[str, Any]) -> str:
    """Declared CKAN format, falling back to the URL extension."""
    declared = str(resource.get("format") or "").strip().lower().lstrip(".")
    return declared or format_from_url(str(resource.get("url") or ""))


class OpenCanadaCatalog:
    """Resolves the downloadable LMIA resources advertised by the catalog."""

    name = "OpenCanada"

    def __init__(self, config: FetcherConfig) -> None:
        self._config = config
        self._log = log.bind(source_name=self.name)

    # ------------------------------------------------------------------
    # Low-level CKAN API call
    # ------------------------------------------------------------------

    async def _search_once(self, query: str) -> list[dict[str, Any]]:
        """One package_search request; returns the raw dataset entries."""
        url = f"{self._config.catalog_base_url}/action/package_search"
        params = {"q": query, "rows": self._config.catalog_rows}
        self._log.debug("catalog_search", url=url, params=params)

        async with httpx.AsyncClient(
            timeout=self._config.timeout,
            headers=self._config.headers(accept="application/json"),
            follow_redirects=True,
        ) as client:
            response = await client.get(url, params=params)
            response.raise_for_status()

        try:
            data = response.json()
        except ValueError as exc:
            raise CatalogPayloadError(f"catalog returned non-JSON body: {exc}") from exc

        if not isinstance(data, dict) or not data.get("success"):
            raise CatalogPayloadError("catalog returned success=false")
        result = data.get("result")
        if not isinstance(result, dict) or not isinstance(result.get("results"), list):
            raise CatalogPayloadError("catalog payload has no result.results list")
        return result["results"]

    async def search(self, query: str) -> list[dict[str, Any]]:
        """
        Run the catalog search with retry and multiplicative backoff.

        Raises:
            CatalogUnreachableError: every attempt failed.
        """
        search = with_retry(
            max_attempts=self._config.catalog_max_attempts,
            base_delay=self._config.catalog_base_delay,
            backoff_factor=self._config.backoff_factor,
            max_delay=self._config.max_delay,
            retry_on=(httpx.HTTPError, CatalogPayloadError),
        )(self._search_once)
        try:
            return await search(query)
        except (httpx.HTTPError, CatalogPayloadError) as exc:
            self._log.error(
                "catalog_unreachable",
                query=query,
                attempts=self._config.catalog_max_attempts,
                error=str(exc),
            )
            raise CatalogUnreachableError(
                f"catalog search {query!r} failed after "
                f"{self._config.catalog_max_attempts} attempts: {exc}"
            ) from exc

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def accepts(self, resource: dict[str, Any]) -> bool:
        name = str(resource.get("name") or "")
        url = str(resource.get("url") or "")
        if not url:
            return False
        if resource_format(resource) not in SUPPORTED_FORMATS:
            return False
        if not is_english(name, url):
            return False
        return is_on_topic(name, url, self._config.topic_keywords)

    def select_resources(self, datasets: list[dict[str, Any]]) -> list[RawResource]:
        """Filter the resources of every dataset entry, de-duplicating URLs."""
        selected: list[RawResource] = []
        seen: set[str] = set()
        for dataset in datasets:
            for resource in dataset.get("resources") or []:
                if not isinstance(resource, dict) or not self.accepts(resource):
                    continue
                url = str(resource["url"])
                if url in seen:
                    continue
                seen.add(url)
                selected.append(
                    RawResource(
                        name=str(resource.get("name") or ""),
                        url=url,
                        format=resource_format(resource),
                    )
                )
        return selected

    # ------------------------------------------------------------------
    # High-level helpers
    # ------------------------------------------------------------------

    async def list_resources(self, query: str) -> list[RawResource]:
        datasets = await self.search(query)
        resources = self.select_resources(datasets)
        self._log.info(
            "catalog_resources_selected",
            query=query,
            datasets=len(datasets),
            selected=len(resources),
        )
        return resources

    async def resolve_resource_urls(self, query: str) -> list[str]:
        """
        Return the download URLs of every ingestible resource for *query*.

        Raises:
            CatalogUnreachableError: the catalog could not be queried.
        """
        return [r.url for r in await self.list_resources(query)]
