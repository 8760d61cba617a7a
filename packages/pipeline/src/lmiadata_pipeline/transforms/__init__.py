"""
lmiadata_pipeline.transforms — from raw LMIA files to LmiaRecord values.

  readers    — load csv/xlsx/xls files as CSV lines
  structure  — header and province-marker detection
  extract    — RecordExtractor and field normalization
  website    — employer website enrichment boundary
"""

from lmiadata_pipeline.transforms.extract import ExtractionState, ParseResult, RecordExtractor
from lmiadata_pipeline.transforms.readers import load_lines
from lmiadata_pipeline.transforms.structure import FileStructure, detect_structure
from lmiadata_pipeline.transforms.website import SearchUrlWebsiteResolver, WebsiteResolver

__all__ = [
    "ExtractionState",
    "FileStructure",
    "ParseResult",
    "RecordExtractor",
    "SearchUrlWebsiteResolver",
    "WebsiteResolver",
    "detect_structure",
    "load_lines",
]
