"""
cli.py — Click CLI entrypoint for the LMIA pipeline.

Usage:
    lmia-pipeline fetch
    lmia-pipeline ingest --dir data/lmia
    lmia-pipeline run --if-empty --timeout 1800
    lmia-pipeline noc 0211
    lmia-pipeline status
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from lmiadata_shared.config import settings
from lmiadata_shared.noc import noc_family
from lmiadata_pipeline.errors import CatalogUnreachableError
from lmiadata_pipeline.loaders import build_record_store
from lmiadata_pipeline.pipelines import lmia
from lmiadata_pipeline.sources import FetcherConfig, OpenCanadaCatalog, ResourceDownloader
from lmiadata_pipeline.transforms.extract import RecordExtractor
from lmiadata_pipeline.transforms.website import SearchUrlWebsiteResolver
from lmiadata_pipeline.utils.logging import configure_logging

_STORE_CHOICE = click.Choice(["duckdb", "supabase"])


def _resolver(enabled: bool) -> SearchUrlWebsiteResolver | None:
    return SearchUrlWebsiteResolver() if enabled else None


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default=settings.log_format,
    type=click.Choice(["json", "console"]),
    help="Log renderer",
)
def main(log_level: str, log_format: str) -> None:
    """LMIA dataset ingestion pipeline."""
    configure_logging(log_level=log_level, log_format=log_format)


@main.command()
@click.option("--query", default=settings.catalog_query, show_default=True, help="Catalog search query")
@click.option("--dir", "directory", default=settings.download_dir, show_default=True, type=click.Path())
def fetch(query: str, directory: str) -> None:
    """Download every LMIA resource listed in the catalog."""
    config = FetcherConfig.from_settings(settings)

    async def _fetch():
        urls = await OpenCanadaCatalog(config).resolve_resource_urls(query)
        return await ResourceDownloader(config).fetch_all(urls, Path(directory))

    try:
        result = asyncio.run(_fetch())
    except CatalogUnreachableError as exc:
        click.echo(f"Catalog unreachable: {exc}", err=True)
        raise SystemExit(1) from exc

    click.echo(
        f"Downloaded {result.downloaded}, skipped {result.skipped}, failed {result.failed}"
    )
    for url in result.failed_urls:
        click.echo(f"  ✗ {url}")


@main.command()
@click.option("--dir", "directory", default=settings.download_dir, show_default=True, type=click.Path())
@click.option("--store", "backend", default=settings.record_store, type=_STORE_CHOICE, show_default=True)
@click.option("--websites/--no-websites", default=False, help="Attach employer search URLs")
def ingest(directory: str, backend: str, websites: bool) -> None:
    """Parse the download directory and save new records."""
    store = build_record_store(backend)  # type: ignore[arg-type]
    orchestrator = lmia.IngestOrchestrator(store, RecordExtractor(_resolver(websites)))
    result = asyncio.run(orchestrator.ingest_all(lmia.list_local_files(directory)))

    click.echo(
        f"Files {result.files_processed} "
        f"(errors {result.files_with_errors}, unparseable {result.files_unparseable}), "
        f"records parsed {result.records_parsed}, saved {result.records_saved}, "
        f"duplicates {result.duplicates_skipped}"
    )


@main.command()
@click.option("--if-empty", is_flag=True, help="Skip when the store already has records")
@click.option("--timeout", "timeout_s", default=settings.ingest_timeout_s, show_default=True, type=float)
@click.option("--store", "backend", default=settings.record_store, type=_STORE_CHOICE, show_default=True)
@click.option("--websites/--no-websites", default=False, help="Attach employer search URLs")
def run(if_empty: bool, timeout_s: float, backend: str, websites: bool) -> None:
    """Fetch then ingest in one go."""
    store = build_record_store(backend)  # type: ignore[arg-type]
    try:
        result = asyncio.run(
            lmia.run(
                store=store,
                website_resolver=_resolver(websites),
                only_if_empty=if_empty,
                timeout_s=timeout_s,
            )
        )
    except CatalogUnreachableError as exc:
        click.echo(f"Catalog unreachable: {exc}", err=True)
        raise SystemExit(1) from exc

    if result.skipped:
        click.echo(f"Store already holds {result.total_records} records, nothing to do.")
        return
    if result.timed_out:
        click.echo(f"Timed out after {timeout_s:.0f}s", err=True)
    if result.fetch is not None:
        click.echo(
            f"Downloaded {result.fetch.downloaded}, skipped {result.fetch.skipped}, "
            f"failed {result.fetch.failed}"
        )
    if result.ingest is not None:
        click.echo(
            f"Saved {result.ingest.records_saved} new records "
            f"({result.ingest.duplicates_skipped} duplicates, "
            f"{result.ingest.files_with_errors} files with errors)"
        )
    click.echo(f"Total records: {result.total_records}")


@main.command()
@click.argument("code")
@click.option("--store", "backend", default=None, type=_STORE_CHOICE, help="Also count matching records")
def noc(code: str, backend: str | None) -> None:
    """Show the NOC codes equivalent to CODE across NOC versions."""
    family = noc_family(code)
    if not family:
        click.echo("No NOC code given.", err=True)
        raise SystemExit(2)

    click.echo(f"NOC {family.code}:")
    for member in sorted(family.members):
        click.echo(f"  {member}")
    if backend:
        count = build_record_store(backend).count_by_noc_family(family)  # type: ignore[arg-type]
        click.echo(f"Matching records: {count}")


@main.command()
@click.option("--store", "backend", default=settings.record_store, type=_STORE_CHOICE, show_default=True)
def status(backend: str) -> None:
    """Show how many records the store holds."""
    try:
        store = build_record_store(backend)  # type: ignore[arg-type]
        click.echo(f"{backend}: {store.count()} records")
    except Exception as exc:
        click.echo(f"  Error fetching status: {exc}", err=True)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
