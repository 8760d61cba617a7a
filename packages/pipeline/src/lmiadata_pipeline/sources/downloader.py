"""
sources/downloader.py — Bounded-concurrency downloader for catalog resources.

Downloads are spread over a fixed pool of asyncio workers fed by a bounded
queue. Each download runs its own retry loop, so a slow or flaky server only
stalls the worker handling it. The call returns once every URL has been
resolved as downloaded, skipped or failed; the counters always add up to the
number of URLs passed in.

Rules:
  - the local file name is the URL's last path segment (query stripped);
  - a file that already exists is skipped without a network call;
  - bodies are streamed to "<name>.part" and renamed when complete;
    a failed attempt removes its ".part" before the next retry;
  - transport errors, 429 and 5xx are retried; other non-2xx fail at once;
  - a URL that finds the queue full is recorded as failed.

Usage:
    downloader = ResourceDownloader(FetcherConfig.from_settings(settings))
    result = await downloader.fetch_all(urls, Path("data/lmia"))
    print(result.downloaded, result.skipped, result.failed)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import httpx
import structlog

from lmiadata_pipeline.errors import ResourceFetchError, TransientHTTPError
from lmiadata_pipeline.sources.base import FetcherConfig, filename_from_url
from lmiadata_pipeline.utils.retry import with_retry

log = structlog.get_logger(__name__)

DownloadOutcome = Literal["downloaded", "skipped"]

PART_SUFFIX = ".part"
CHUNK_SIZE = 256 * 1024


@dataclass
class FetchResult:
    """Summary of one fetch_all() call."""

    downloaded: int = 0
    skipped: int = 0
    failed: int = 0
    failed_urls: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def total(self) -> int:
        return self.downloaded + self.skipped + self.failed

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "success"
        if self.downloaded or self.skipped:
            return "partial_failure"
        return "failure"

    def record(self, outcome: DownloadOutcome) -> None:
        if outcome == "downloaded":
            self.downloaded += 1
        else:
            self.skipped += 1

    def record_failure(self, url: str) -> None:
        self.failed += 1
        self.failed_urls.append(url)


class ResourceDownloader:
    """Fetches resource files into a local directory with a worker pool."""

    def __init__(self, config: FetcherConfig) -> None:
        self._config = config

    # ------------------------------------------------------------------
    # Single download
    # ------------------------------------------------------------------

    async def _stream_to_part(self, client: httpx.AsyncClient, url: str, part: Path) -> int:
        """Stream one response body into *part*; the file is removed if the attempt fails."""
        written = 0
        try:
            async with client.stream("GET", url) as response:
                if response.status_code == 429 or response.status_code >= 500:
                    raise TransientHTTPError(url, response.status_code)
                if not response.is_success:
                    raise ResourceFetchError(url, f"HTTP {response.status_code}")
                with part.open("wb") as fh:
                    async for chunk in response.aiter_bytes(chunk_size=CHUNK_SIZE):
                        fh.write(chunk)
                        written += len(chunk)
        except Exception:
            part.unlink(missing_ok=True)
            raise
        return written

    async def _download_one(
        self,
        client: httpx.AsyncClient,
        url: str,
        destination_dir: Path,
    ) -> DownloadOutcome:
        name = filename_from_url(url)
        if not name:
            raise ResourceFetchError(url, "URL has no file name")

        target = destination_dir / name
        if target.exists():
            log.debug("download_skipped_existing", url=url, file=name)
            return "skipped"

        fetch = with_retry(
            max_attempts=self._config.download_max_attempts,
            base_delay=self._config.download_base_delay,
            backoff_factor=self._config.backoff_factor,
            max_delay=self._config.max_delay,
            retry_on=(httpx.TransportError, TransientHTTPError),
        )(self._stream_to_part)
        part = target.with_name(target.name + PART_SUFFIX)
        size = await fetch(client, url, part)

        part.replace(target)
        log.info("download_complete", url=url, file=name, bytes=size)
        return "downloaded"

    # ------------------------------------------------------------------
    # Worker pool
    # ------------------------------------------------------------------

    async def _worker(
        self,
        worker_id: int,
        queue: asyncio.Queue[str],
        client: httpx.AsyncClient,
        destination_dir: Path,
        result: FetchResult,
    ) -> None:
        while True:
            url = await queue.get()
            try:
                outcome = await self._download_one(client, url, destination_dir)
                result.record(outcome)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                log.warning("download_failed", url=url, worker=worker_id, error=str(exc))
                result.record_failure(url)
            finally:
                queue.task_done()

    async def fetch_all(self, urls: list[str], destination_dir: Path | str) -> FetchResult:
        """
        Download every URL into *destination_dir*.

        Blocks until all URLs are resolved. Cancelling the calling task
        cancels in-flight downloads and backoff waits; already renamed files
        stay, ".part" leftovers are ignored on the next run.
        """
        destination = Path(destination_dir)
        destination.mkdir(parents=True, exist_ok=True)

        result = FetchResult()
        t0 = time.monotonic()
        if not urls:
            return result

        fetch_log = log.bind(urls=len(urls), destination=str(destination))
        fetch_log.info(
            "fetch_start",
            concurrency=self._config.download_concurrency,
            queue_capacity=self._config.download_queue_capacity,
        )

        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self._config.download_queue_capacity)
        limits = httpx.Limits(max_connections=self._config.download_concurrency)

        async with httpx.AsyncClient(
            timeout=self._config.timeout,
            headers=self._config.headers(),
            follow_redirects=True,
            limits=limits,
        ) as client:
            workers = [
                asyncio.create_task(self._worker(i, queue, client, destination, result))
                for i in range(self._config.download_concurrency)
            ]
            # Let every worker park on queue.get() before producing
            await asyncio.sleep(0)
            try:
                for url in urls:
                    try:
                        queue.put_nowait(url)
                    except asyncio.QueueFull:
                        fetch_log.warning("download_rejected_queue_full", url=url)
                        result.record_failure(url)
                        continue
                    await asyncio.sleep(0)
                await queue.join()
            finally:
                for worker in workers:
                    worker.cancel()
                await asyncio.gather(*workers, return_exceptions=True)

        result.duration_ms = int((time.monotonic() - t0) * 1000)
        fetch_log.info(
            "fetch_complete",
            downloaded=result.downloaded,
            skipped=result.skipped,
            failed=result.failed,
            duration_ms=result.duration_ms,
            status=result.status,
        )
        return result
