"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  fixture_path()          — resolves paths to tests/fixtures/
  mock_supabase_client()  — MagicMock of the Supabase client (prevents real DB calls)
  mock_supabase()         — patches get_supabase_client() to return the mock
  duckdb_store()          — DuckDBRecordStore over a fresh in-memory database
  fetcher_config()        — FetcherConfig with zero retry delays
  catalog_payload()       — parsed CKAN package_search fixture
  mock_http               — configured respx router for faking HTTP responses
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import duckdb
import pytest
import respx

from lmiadata_pipeline.loaders.duckdb_store import DuckDBRecordStore
from lmiadata_pipeline.sources.base import FetcherConfig

FIXTURES_DIR = Path(__file__).parent / "fixtures"

CATALOG_URL = "https://open.canada.ca/data/api/3"


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def fixture_path() -> Path:
    return FIXTURES_DIR


# ---------------------------------------------------------------------------
# Supabase client mock
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_supabase_client() -> MagicMock:
    """
    A MagicMock that simulates the supabase.Client interface.

    Every query chain used by SupabaseRecordStore ends in an execute() that
    returns empty data and a zero count by default.
    Override in individual tests: mock_supabase_client.table.return_value...
    """
    client = MagicMock()

    default_result = MagicMock()
    default_result.data = []
    default_result.count = 0

    table = client.table.return_value
    (
        table.select.return_value
        .ilike.return_value
        .eq.return_value
        .eq.return_value
        .eq.return_value
        .execute.return_value
    ) = default_result

    table.select.return_value.limit.return_value.execute.return_value = default_result
    table.select.return_value.or_.return_value.limit.return_value.execute.return_value = default_result
    table.insert.return_value.execute.return_value = default_result

    return client


@pytest.fixture
def mock_supabase(mock_supabase_client: MagicMock):
    """
    Patch get_supabase_client() to return the mock client.
    Yields the mock so tests can inspect calls.
    """
    with patch(
        "lmiadata_pipeline.loaders.supabase_store.get_supabase_client",
        return_value=mock_supabase_client,
    ) as patched:
        yield patched


# ---------------------------------------------------------------------------
# Stores and configuration
# ---------------------------------------------------------------------------

@pytest.fixture
def duckdb_store():
    conn = duckdb.connect(":memory:")
    try:
        yield DuckDBRecordStore(conn)
    finally:
        conn.close()


@pytest.fixture
def fetcher_config() -> FetcherConfig:
    """Production defaults with all backoff delays removed."""
    return FetcherConfig(
        catalog_base_url=CATALOG_URL,
        catalog_base_delay=0.0,
        download_base_delay=0.0,
        download_concurrency=4,
        download_queue_capacity=100,
    )


@pytest.fixture
def catalog_payload() -> dict:
    """Parsed CKAN package_search response with mixed resources."""
    return json.loads((FIXTURES_DIR / "opencanada_package_search.json").read_text())


# ---------------------------------------------------------------------------
# respx HTTP mock router
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_http():
    """
    Activate the respx mock router for all httpx requests.

    Usage in tests:
        def test_something(mock_http):
            mock_http.get("https://...").mock(return_value=httpx.Response(200, json={...}))
    """
    with respx.mock(assert_all_called=False) as router:
        yield router
