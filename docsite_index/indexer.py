"""Crawl-and-index orchestration for one documentation site."""

import logging
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path

import requests

from .config import CrawlConfig
from .crawl.changes import ChangeDetector
from .crawl.discovery import DiscoveryScheduler, ProgressCallback
from .crawl.failures import FailureRecord
from .crawl.fetcher import PageFetcher, RetryPolicy
from .crawl.ingestion import IngestionScheduler
from .crawl.links import LinkExtractor
from .extractor import ContentExtractor
from .models import FailureStats, Page, ScrapeReport, SearchResult, StoreStats
from .store import IndexedStore, store_filename
from .text import TextProcessor

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "docsite_index"


class DocSiteIndexer:
    """Keeps a local, searchable copy of one documentation site current.

    The first run discovers and ingests the whole site. Later runs re-check
    stored pages and re-ingest only the ones whose content changed; once the
    store is older than ``cache_ttl_hours`` discovery also re-runs to pick up
    new pages.
    """

    # Debug log files already attached to the package logger
    _debug_log_files: set[str] = set()

    def __init__(
        self,
        config: CrawlConfig,
        session: requests.Session | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        """Initialize the indexer and open its store.

        Args:
            config: Crawl configuration
            session: Optional pre-built requests session (tests inject a fake here)
            on_progress: Called as ``(discovered, completed, failed)`` after each batch of every phase

        Raises:
            StoreError: If the store file cannot be opened
        """
        self.config = config
        if config.debug:
            self._setup_debug_logging()

        # Create cache directory
        self.cache_dir = Path(config.cache_dir)
        self.cache_dir.mkdir(exist_ok=True, parents=True)

        self.text_processor = TextProcessor()
        self.store = IndexedStore(self.cache_dir / store_filename(config.base_url), self.text_processor)
        self.failures = FailureRecord()

        self.fetcher = PageFetcher(
            base_url=config.base_url,
            request_timeout_ms=config.request_timeout_ms,
            max_retries=config.max_retries,
            retry_base_delay_ms=config.retry_base_delay_ms,
            retry_max_delay_ms=config.retry_max_delay_ms,
            user_agent=config.user_agent,
            pool_size=max(10, config.max_concurrent_requests),
            session=session,
        )
        self.extractor = ContentExtractor(
            text_processor=self.text_processor,
            valid_languages=config.valid_languages,
            section_map=config.section_map,
            title_suffix=config.title_suffix,
        )

        self.discovery = DiscoveryScheduler(
            fetcher=self.fetcher,
            link_extractor=LinkExtractor(config.base_url, config.static_asset_patterns),
            max_concurrent=config.max_concurrent_requests,
            max_pages=config.max_pages,
            show_progress=config.show_progress,
            on_progress=on_progress,
        )
        self.ingestion = IngestionScheduler(
            fetcher=self.fetcher,
            extractor=self.extractor,
            store=self.store,
            failures=self.failures,
            batch_size=config.max_concurrent_requests,
            delay_ms=config.scraping_delay_ms,
            show_progress=config.show_progress,
            on_progress=on_progress,
        )
        self.change_detector = ChangeDetector(
            fetcher=self.fetcher,
            extractor=self.extractor,
            policy=RetryPolicy(
                max_retries=config.change_check_retries,
                base_delay_ms=config.change_check_backoff_ms,
                max_delay_ms=config.retry_max_delay_ms,
            ),
            batch_size=config.max_concurrent_requests,
            delay_ms=config.scraping_delay_ms,
            show_progress=config.show_progress,
            on_progress=on_progress,
        )

    def _setup_debug_logging(self):
        """Attach a rotating debug log file to the package logger (once per file)."""
        log_file = Path(self.config.log_file)
        if str(log_file.absolute()) in DocSiteIndexer._debug_log_files:
            return

        # Use RotatingFileHandler for automatic log rotation
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=self.config.log_max_bytes,
            backupCount=self.config.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )

        package_logger = logging.getLogger(PACKAGE_LOGGER)
        package_logger.setLevel(logging.DEBUG)
        package_logger.addHandler(file_handler)
        DocSiteIndexer._debug_log_files.add(str(log_file.absolute()))

        max_mb = self.config.log_max_bytes / (1024 * 1024)
        logger.info(
            f"[INDEXER] Debug logging enabled: {log_file.absolute()} "
            f"({max_mb:.1f}MB max, {self.config.log_backup_count} backups)"
        )

    def needs_update(self) -> bool:
        """True if the store is empty or older than ``cache_ttl_hours``."""
        if self.store.page_count() == 0:
            logger.info("[INDEXER] No stored pages, needs initial crawl")
            return True
        if not self.store.is_fresh(self.config.cache_ttl_hours):
            logger.info(f"[INDEXER] Store older than {self.config.cache_ttl_hours}h, needs rediscovery")
            return True
        return False

    def scrape_all(self) -> ScrapeReport:
        """Bring the store up to date with the live site.

        Returns:
            ScrapeReport describing what this run did

        Raises:
            StoreError: If the store cannot be read or written
        """
        self.failures.reset()
        start_time = time.time()

        logger.info("[INDEXER] " + "=" * 70)
        logger.info(f"[INDEXER] Updating index for {self.config.base_url}")
        logger.info("[INDEXER] " + "=" * 70)

        if self.store.page_count() == 0:
            report = self._full_crawl()
        else:
            report = self._incremental_update()

        report.page_count = self.store.page_count()
        report.failures = self.failures.stats()

        logger.info(f"[INDEXER] Run complete in {time.time() - start_time:.1f}s ({report.mode})")
        logger.info(f"[INDEXER] Total pages: {report.page_count}, ingested this run: {report.ingested}")
        if report.failures.failed_paths:
            logger.info(
                f"[INDEXER] Failures: {len(report.failures.failed_paths)} pages, "
                f"{report.failures.total_retry_attempts} failed attempts"
            )
        if report.page_count == 0:
            logger.warning("[INDEXER] " + "!" * 70)
            logger.warning(f"[INDEXER] No pages indexed for {self.config.base_url}, check the URL and network access")
            logger.warning("[INDEXER] " + "!" * 70)
        return report

    def _full_crawl(self) -> ScrapeReport:
        logger.info("[INDEXER] Phase 1/2: Discovering pages")
        discovered = self.discovery.discover()

        logger.info(f"[INDEXER] Phase 2/2: Ingesting {len(discovered)} pages")
        ingested = self.ingestion.ingest(discovered)
        retried = self.ingestion.retry_failed()

        self.store.set_last_updated()
        return ScrapeReport(
            mode="full",
            page_count=0,
            discovered=len(discovered),
            ingested=len(ingested.succeeded) + len(retried.succeeded),
        )

    def _incremental_update(self) -> ScrapeReport:
        stored = self.get_content()
        stale = not self.store.is_fresh(self.config.cache_ttl_hours)

        logger.info(f"[INDEXER] Phase 1/2: Checking {len(stored)} stored pages for changes")
        changes = self.change_detector.detect(stored)
        self.store.mark_checked(changes.checked)

        logger.info(f"[INDEXER] Phase 2/2: Re-ingesting {len(changes.changed)} changed pages")
        succeeded = len(self.ingestion.ingest(changes.changed, force_refresh=True).succeeded)

        discovered = 0
        if stale:
            logger.info("[INDEXER] Store is stale, rediscovering to find new pages")
            paths = self.discovery.discover()
            discovered = len(paths)
            new_paths = [path for path in paths if path not in stored]
            logger.info(f"[INDEXER] Found {len(new_paths)} new pages")
            succeeded += len(self.ingestion.ingest(new_paths).succeeded)

        succeeded += len(self.ingestion.retry_failed().succeeded)

        if stale:
            self.store.set_last_updated()

        return ScrapeReport(
            mode="incremental",
            page_count=0,
            discovered=discovered,
            ingested=succeeded,
            changed=changes.changed,
            skipped=changes.skipped,
        )

    def get_content(self) -> dict[str, Page]:
        """Snapshot of every stored page keyed by path."""
        return {page.path: page for page in self.store.all_pages()}

    def get_failure_stats(self) -> FailureStats:
        """Failed paths and failed attempts for the most recent run."""
        return self.failures.stats()

    # Store surface

    def get_page(self, path: str) -> Page | None:
        return self.store.get_page(path)

    def search(self, query: str, limit: int = 20, offset: int = 0) -> list[SearchResult]:
        return self.store.search(query, limit=limit, offset=offset)

    def search_count(self, query: str) -> int:
        return self.store.search_count(query)

    def pages_by_section(self, section: str) -> list[Page]:
        return self.store.pages_by_section(section)

    def all_sections(self) -> list[str]:
        return self.store.all_sections()

    def page_count(self) -> int:
        return self.store.page_count()

    def sample_random_pages(self, n: int = 20) -> list[Page]:
        return self.store.sample_random_pages(n)

    def get_stats(self) -> StoreStats:
        return self.store.get_stats()

    def close(self):
        """Close the HTTP session and the store."""
        self.fetcher.close()
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
