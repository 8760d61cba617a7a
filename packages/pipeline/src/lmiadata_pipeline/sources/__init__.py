"""
lmiadata_pipeline.sources — open.canada.ca adapters.

  OpenCanadaCatalog  — CKAN package_search + LMIA resource filtering
  ResourceDownloader — bounded worker pool that fetches resources to disk
"""

from lmiadata_pipeline.sources.base import FetcherConfig, RawResource
from lmiadata_pipeline.sources.downloader import FetchResult, ResourceDownloader
from lmiadata_pipeline.sources.opencanada import OpenCanadaCatalog

__all__ = [
    "FetcherConfig",
    "RawResource",
    "FetchResult",
    "OpenCanadaCatalog",
    "ResourceDownloader",
]
