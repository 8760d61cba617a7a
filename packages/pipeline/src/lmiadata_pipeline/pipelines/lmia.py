"""
pipelines/lmia.py — LMIA ingestion: catalog -> download directory -> record store.

Stages:
  1. resolve resource URLs from the open.canada.ca catalog;
  2. download them into settings.download_dir (existing files are skipped);
  3. parse every local file and save its new records as one batch.

Each file moves through unprocessed -> extracting -> saved | failed. A file
without a detectable header is reported as unparseable. Duplicate records,
whether already stored or repeated inside the same file, are dropped before
the batch is written, so running the pipeline twice over the same directory
stores nothing new the second time.

Usage:
    from lmiadata_pipeline.pipelines.lmia import run
    result = await run()                     # full run
    result = await run(only_if_empty=True)   # first-start initialization

    orchestrator = IngestOrchestrator(DuckDBRecordStore())
    ingest = await orchestrator.ingest_all(list_local_files(Path("data/lmia")))
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from lmiadata_shared.config import settings
from lmiadata_shared.constants import FileOutcome
from lmiadata_shared.models.lmia import LmiaRecord, RecordIdentity
from lmiadata_pipeline.loaders import RecordStore, build_record_store
from lmiadata_pipeline.sources import FetcherConfig, FetchResult, OpenCanadaCatalog, ResourceDownloader
from lmiadata_pipeline.transforms.extract import RecordExtractor
from lmiadata_pipeline.transforms.readers import is_supported
from lmiadata_pipeline.transforms.website import WebsiteResolver
log = structlog.get_logger(__name__)


@dataclass
class FileIngestResult:
    """What happened to one local file."""

    file: str
    outcome: FileOutcome
    records_parsed: int = 0
    records_saved: int = 0
    duplicates_skipped: int = 0
    lines_skipped: int = 0
    error: str | None = None


@dataclass
class IngestResult:
    """Totals over one ingest_all() call."""

    files_processed: int = 0
    records_parsed: int = 0
    records_saved: int = 0
    duplicates_skipped: int = 0
    lines_skipped: int = 0
    files_with_errors: int = 0
    files_unparseable: int = 0
    outcomes: dict[str, FileOutcome] = field(default_factory=dict)
    duration_ms: int = 0

    def add(self, file_result: FileIngestResult) -> None:
        self.files_processed += 1
        self.records_parsed += file_result.records_parsed
        self.records_saved += file_result.records_saved
        self.duplicates_skipped += file_result.duplicates_skipped
        self.lines_skipped += file_result.lines_skipped
        if file_result.outcome == "failed":
            self.files_with_errors += 1
        elif file_result.outcome == "unparseable":
            self.files_unparseable += 1
        self.outcomes[file_result.file] = file_result.outcome

    @property
    def status(self) -> str:
        if self.files_with_errors == 0:
            return "success"
        if self.files_with_errors < self.files_processed:
            return "partial_failure"
        return "failure"


@dataclass
class PipelineResult:
    """Result of run(). fetch/ingest are None for stages that did not finish."""

    fetch: FetchResult | None = None
    ingest: IngestResult | None = None
    total_records: int = 0
    skipped: bool = False
    timed_out: bool = False


def list_local_files(directory: Path | str) -> list[Path]:
    """Supported files directly inside *directory*, sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.is_file() and is_supported(p))


class IngestOrchestrator:
    """Parses local files and saves each file's new records in one batch."""

    def __init__(self, store: RecordStore, extractor: RecordExtractor | None = None) -> None:
        self._store = store
        self._extractor = extractor or RecordExtractor()

    def _new_records(self, records: list[LmiaRecord]) -> tuple[list[LmiaRecord], int]:
        batch: list[LmiaRecord] = []
        seen: set[RecordIdentity] = set()
        duplicates = 0
        for record in records:
            identity = record.identity
            if identity in seen or self._store.exists_by_identity(
                record.employer,
                record.noc_code,
                record.decision_date,
                record.source_file,
            ):
                duplicates += 1
                continue
            seen.add(identity)
            batch.append(record)
        return batch, duplicates

    def ingest_file(self, path: Path) -> FileIngestResult:
        """Extract one file and persist its new records atomically."""
        file_log = log.bind(file=path.name)
        try:
            parsed = self._extractor.parse_file(path)
        except Exception as exc:
            file_log.error("file_extraction_failed", error=str(exc), exc_info=True)
            return FileIngestResult(file=path.name, outcome="failed", error=str(exc))

        if not parsed.parseable:
            file_log.warning("file_unparseable")
            return FileIngestResult(file=path.name, outcome="unparseable")

        result = FileIngestResult(
            file=path.name,
            outcome="saved",
            records_parsed=len(parsed.records),
            lines_skipped=parsed.skipped_lines,
        )
        try:
            batch, result.duplicates_skipped = self._new_records(parsed.records)
            result.records_saved = self._store.save_batch(batch)
        except Exception as exc:
            file_log.error("file_save_failed", error=str(exc), exc_info=True)
            result.outcome = "failed"
            result.records_saved = 0
            result.error = str(exc)
            return result

        file_log.info(
            "file_ingested",
            records_parsed=result.records_parsed,
            records_saved=result.records_saved,
            duplicates_skipped=result.duplicates_skipped,
            lines_skipped=result.lines_skipped,
        )
        return result

    async def ingest_all(
        self,
        paths: Iterable[Path],
        result: IngestResult | None = None,
    ) -> IngestResult:
        """
        Ingest *paths* one after another in name order.

        Unsupported extensions are ignored. Cancellation takes effect
        between files; a file's batch is either fully saved or not at all.
        Pass *result* to keep the totals of a run that gets cancelled.
        """
        result = result if result is not None else IngestResult()
        t0 = time.monotonic()

        files = sorted((Path(p) for p in paths), key=lambda p: p.name)
        for path in files:
            if not is_supported(path):
                log.debug("file_ignored", file=path.name)
                continue
            result.add(self.ingest_file(path))
            await asyncio.sleep(0)

        result.duration_ms = int((time.monotonic() - t0) * 1000)
        log.info(
            "ingest_complete",
            files_processed=result.files_processed,
            records_parsed=result.records_parsed,
            records_saved=result.records_saved,
            duplicates_skipped=result.duplicates_skipped,
            files_with_errors=result.files_with_errors,
            files_unparseable=result.files_unparseable,
            status=result.status,
        )
        return result


async def run(
    *,
    query: str | None = None,
    download_dir: Path | str | None = None,
    store: RecordStore | None = None,
    config: FetcherConfig | None = None,
    website_resolver: WebsiteResolver | None = None,
    only_if_empty: bool = False,
    timeout_s: float | None = None,
) -> PipelineResult:
    """
    Fetch every LMIA resource and ingest the download directory.

    Args:
        query:            Catalog search query (default settings.catalog_query).
        download_dir:     Where files are stored (default settings.download_dir).
        store:            Record store (default build_record_store()).
        config:           Network settings (default from settings).
        website_resolver: Employer website enrichment, disabled when None.
        only_if_empty:    Skip the run when the store already has records.
        timeout_s:        Overall deadline (default settings.ingest_timeout_s).

    Raises:
        CatalogUnreachableError: the catalog could not be queried.
    """
    run_log = log.bind(pipeline="lmia")
    store = store if store is not None else build_record_store()
    if only_if_empty:
        existing = store.count()
        if existing > 0:
            run_log.info("store_not_empty_skipping", records=existing)
            return PipelineResult(total_records=existing, skipped=True)

    config = config or FetcherConfig.from_settings(settings)
    directory = Path(download_dir or settings.download_dir)
    deadline = timeout_s if timeout_s is not None else settings.ingest_timeout_s
    result = PipelineResult(ingest=IngestResult())

    run_log.info("lmia_pipeline_start", directory=str(directory), timeout_s=deadline)
    try:
        async with asyncio.timeout(deadline):
            urls = await OpenCanadaCatalog(config).resolve_resource_urls(
                query or settings.catalog_query
            )
            result.fetch = await ResourceDownloader(config).fetch_all(urls, directory)
            orchestrator = IngestOrchestrator(store, RecordExtractor(website_resolver))
            await orchestrator.ingest_all(list_local_files(directory), result.ingest)
    except TimeoutError:
        run_log.error("lmia_pipeline_timeout", timeout_s=deadline)
        result.timed_out = True

    result.total_records = store.count()
    run_log.info(
        "lmia_pipeline_complete",
        total_records=result.total_records,
        timed_out=result.timed_out,
    )
    return result
