"""
lmiadata_pipeline — LMIA dataset ingestion worker.

Architecture:
  sources/     — open.canada.ca catalog client and bounded-concurrency downloader
  transforms/  — file readers, structure detection, record extraction
  loaders/     — record stores (DuckDB, Supabase) with per-batch transactions
  pipelines/   — ingest orchestrator and the end-to-end run()
  utils/       — structlog configuration, exponential-backoff retry decorator

Quick start:
    from lmiadata_pipeline.pipelines.lmia import run
    import asyncio
    result = asyncio.run(run(only_if_empty=True))

CLI:
    lmia-pipeline run
    lmia-pipeline noc 21211

Shared code from lmiadata_shared:
    from lmiadata_shared.config import settings
    from lmiadata_shared.db import get_supabase_client, get_duckdb_connection
    from lmiadata_shared.models import LmiaRecord
    from lmiadata_shared.noc import noc_family
"""

__version__ = "0.1.0"
