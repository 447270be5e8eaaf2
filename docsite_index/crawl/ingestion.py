"""Parallel fetch, extract and store of discovered pages."""

import logging
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from tqdm import tqdm

from ..exceptions import FetchError
from ..extractor import ContentExtractor
from ..models import Page
from ..store import IndexedStore
from .discovery import ProgressCallback
from .failures import FailureRecord
from .fetcher import PageFetcher, RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """Paths that reached the store and paths that did not, for one pass."""

    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed)


class IngestionScheduler:
    """Fetches, extracts and stores pages in fixed-size concurrent batches.

    Worker threads only fetch and extract. The scheduling thread writes each
    finished page to the store before counting it done, so the store has a
    single writer and a page is durable as soon as it is reported.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        extractor: ContentExtractor,
        store: IndexedStore,
        failures: FailureRecord,
        batch_size: int = 5,
        delay_ms: int = 100,
        show_progress: bool = True,
        on_progress: ProgressCallback | None = None,
    ):
        """Initialize the scheduler.

        Args:
            fetcher: Fetch engine
            extractor: Content extractor
            store: Store that receives each successful page
            failures: Failure record for the current run
            batch_size: Pages fetched concurrently per batch
            delay_ms: Sleep between batches in milliseconds
            show_progress: Show a tqdm progress bar on stderr
            on_progress: Called as ``(discovered, completed, failed)`` after each batch
        """
        self.fetcher = fetcher
        self.extractor = extractor
        self.store = store
        self.failures = failures
        self.batch_size = max(1, batch_size)
        self.delay_ms = delay_ms
        self.show_progress = show_progress
        self.on_progress = on_progress

        # path -> force_refresh flag of the pass that failed it
        self._retry_queue: dict[str, bool] = {}

    @property
    def pending_retries(self) -> list[str]:
        return list(self._retry_queue)

    def ingest(self, paths: list[str], force_refresh: bool = False) -> IngestionResult:
        """Ingest ``paths``; per-page failures are recorded and never abort the batch.

        Raises:
            StoreError: If a successful page cannot be written
        """
        if not paths:
            return IngestionResult()

        logger.info(f"[INGEST] Ingesting {len(paths)} pages (batch size {self.batch_size})")
        result = self._run(
            [(path, force_refresh) for path in paths],
            batch_size=self.batch_size,
            delay_ms=self.delay_ms,
            policy=None,
            queue_retries=True,
            desc="Ingesting pages",
        )
        logger.info(f"[INGEST] Ingested {len(result.succeeded)} pages ({len(result.failed)} failed)")
        return result

    def retry_failed(self) -> IngestionResult:
        """Give every queued retryable failure one more attempt at half concurrency.

        The queue is empty afterwards whatever the outcome.
        """
        queued = list(self._retry_queue.items())
        self._retry_queue.clear()
        if not queued:
            return IngestionResult()

        batch_size = max(1, self.batch_size // 2)
        policy = RetryPolicy(
            max_retries=0,
            base_delay_ms=self.fetcher.default_policy.base_delay_ms,
            max_delay_ms=self.fetcher.default_policy.max_delay_ms,
        )

        logger.info(f"[INGEST] Retrying {len(queued)} failed pages (batch size {batch_size})")
        result = self._run(
            queued,
            batch_size=batch_size,
            delay_ms=self.delay_ms * 2,
            policy=policy,
            queue_retries=False,
            desc="Retrying pages",
        )
        logger.info(f"[INGEST] Retry pass recovered {len(result.succeeded)} of {len(queued)} pages")
        return result

    def _run(
        self,
        items: list[tuple[str, bool]],
        batch_size: int,
        delay_ms: int,
        policy: RetryPolicy | None,
        queue_retries: bool,
        desc: str,
    ) -> IngestionResult:
        result = IngestionResult()
        batches = [items[i : i + batch_size] for i in range(0, len(items), batch_size)]

        with (
            tqdm(
                total=len(items),
                desc=desc,
                unit="page",
                disable=not self.show_progress,
                file=sys.stderr,
            ) as pbar,
            ThreadPoolExecutor(max_workers=batch_size) as executor,
        ):
            for index, batch in enumerate(batches):
                future_to_item = {
                    executor.submit(self._fetch_and_extract, path, force_refresh, policy): (path, force_refresh)
                    for path, force_refresh in batch
                }

                for future in as_completed(future_to_item):
                    path, force_refresh = future_to_item[future]
                    try:
                        page = future.result()
                    except FetchError as e:
                        logger.warning(f"[INGEST] Failed to fetch {path}: {e.message}")
                        self.failures.record(path, e.message)
                        result.failed.append(path)
                        if e.retryable and queue_retries:
                            self._retry_queue[path] = force_refresh
                        continue
                    except Exception as e:
                        logger.warning(f"[INGEST] Failed to extract {path}: {e}")
                        self.failures.record(path, str(e))
                        result.failed.append(path)
                        continue

                    # Durable before it counts as done
                    self.store.upsert_pages([page])
                    self.failures.clear(path)
                    result.succeeded.append(path)

                pbar.update(len(batch))
                pbar.set_postfix_str(f"failed={len(result.failed)}", refresh=True)
                if self.on_progress:
                    self.on_progress(len(items), len(result.succeeded), len(result.failed))

                if delay_ms and index < len(batches) - 1:
                    time.sleep(delay_ms / 1000)

        return result

    def _fetch_and_extract(self, path: str, force_refresh: bool, policy: RetryPolicy | None) -> Page:
        fetched = self.fetcher.fetch(path, force_refresh=force_refresh, policy=policy)
        return self.extractor.extract(path, fetched.html, fetched.url)
