"""
sources/base.py — Shared value types for the open.canada.ca sources.

FetcherConfig carries every network knob (base URL, timeouts, retry policy,
pool size) as an explicit immutable value. Components receive it through
their constructor; nothing reads or mutates process-wide HTTP defaults, so
concurrent fetch batches and tests cannot interfere with each other.

Usage:
    from lmiadata_shared.config import settings
    from lmiadata_pipeline.sources.base import FetcherConfig

    config = FetcherConfig.from_settings(settings)
    fast = config.model_copy(update={"download_base_delay": 0.0})
"""

from __future__ import annotations

from pathlib import PurePosixPath
from urllib.parse import unquote, urlsplit

from pydantic import BaseModel, ConfigDict, Field

from lmiadata_shared.config import Settings


class FetcherConfig(BaseModel):
    """Network behaviour of the catalog client and downloader."""

    model_config = ConfigDict(frozen=True)

    catalog_base_url: str = "https://open.canada.ca/data/api/3"
    catalog_rows: int = Field(default=100, ge=1)
    catalog_max_attempts: int = Field(default=3, ge=1)
    catalog_base_delay: float = Field(default=2.0, ge=0)
    backoff_factor: float = Field(default=1.5, ge=1.0)
    max_delay: float = Field(default=60.0, ge=0)

    download_concurrency: int = Field(default=10, ge=1)
    download_queue_capacity: int = Field(default=100, ge=1)
    download_max_attempts: int = Field(default=3, ge=1)
    download_base_delay: float = Field(default=1.0, ge=0)

    timeout: float = Field(default=60.0, gt=0)
    user_agent: str = "lmiadata-pipeline/0.1"

    topic_keywords: tuple[str, ...] = ("national occupational classification", "noc")

    @classmethod
    def from_settings(cls, settings: Settings) -> "FetcherConfig":
        return cls(
            catalog_base_url=settings.catalog_base_url,
            catalog_rows=settings.catalog_rows,
            catalog_max_attempts=settings.catalog_max_attempts,
            catalog_base_delay=settings.catalog_base_delay,
            backoff_factor=settings.retry_backoff_factor,
            download_concurrency=settings.download_concurrency,
            download_queue_capacity=settings.download_queue_capacity,
            download_max_attempts=settings.download_max_attempts,
            download_base_delay=settings.download_base_delay,
            timeout=settings.http_timeout,
            user_agent=settings.http_user_agent,
        )

    def headers(self, accept: str = "*/*") -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": accept,
            "Cache-Control": "no-cache",
        }


class RawResource(BaseModel):
    """A downloadable file advertised by the catalog."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    format: str


def filename_from_url(url: str) -> str:
    """
    Local file name for a resource URL: the last path segment, URL-decoded,
    with the query string and fragment dropped.

    Returns "" when the URL has no usable path segment.
    """
    path = urlsplit(url).path
    return unquote(PurePosixPath(path).name)


def format_from_url(url: str) -> str:
    """File extension of the URL path, lower-cased, without the dot."""
    suffix = PurePosixPath(urlsplit(url).path).suffix
    return suffix.lstrip(".").lower()
