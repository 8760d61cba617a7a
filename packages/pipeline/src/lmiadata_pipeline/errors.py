"""
errors.py — Exception hierarchy for the LMIA pipeline.

Only CatalogUnreachableError is allowed to abort a run. Every other error is
contained by the unit that raised it (one URL, one file, one line) and
surfaces in the FetchResult / IngestResult counters.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class CatalogUnreachableError(PipelineError):
    """The open.canada.ca catalog could not be queried after all retries."""


class CatalogPayloadError(PipelineError):
    """The catalog answered with a payload that is not a CKAN search result."""


class ResourceFetchError(PipelineError):
    """A single resource could not be downloaded."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url


class TransientHTTPError(ResourceFetchError):
    """A retryable HTTP status (429 or 5xx)."""

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(url, f"HTTP {status_code}")
        self.status_code = status_code


class UnsupportedFileError(PipelineError):
    """A local file has an extension the extractor cannot read."""


class StoreError(PipelineError):
    """The record store rejected an operation."""
