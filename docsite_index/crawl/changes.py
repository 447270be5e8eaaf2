"""Fingerprint comparison of stored pages against the live site."""

import logging
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime

from tqdm import tqdm

from ..exceptions import FetchError
from ..extractor import ContentExtractor
from ..models import Page
from .discovery import ProgressCallback
from .fetcher import PageFetcher, RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class ChangeReport:
    """Outcome of one change detection pass.

    Attributes:
        changed: Paths whose live fingerprint differs from the stored one
        checked: Check time for every path fetched successfully, changed or not
        skipped: Paths that could not be fetched; their stored data is left alone
    """

    changed: list[str] = field(default_factory=list)
    checked: dict[str, datetime] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)


class ChangeDetector:
    """Re-fetches stored pages and reports which ones changed.

    Never writes page content: the caller persists ``checked`` timestamps and
    re-ingests ``changed`` paths.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        extractor: ContentExtractor,
        policy: RetryPolicy,
        batch_size: int = 5,
        delay_ms: int = 100,
        show_progress: bool = True,
        on_progress: ProgressCallback | None = None,
    ):
        self.fetcher = fetcher
        self.extractor = extractor
        self.policy = policy
        self.batch_size = max(1, batch_size)
        self.delay_ms = delay_ms
        self.show_progress = show_progress
        self.on_progress = on_progress

    def detect(self, pages: dict[str, Page]) -> ChangeReport:
        """Compare each stored page's fingerprint with a fresh fetch.

        Args:
            pages: Stored pages keyed by path

        Returns:
            ChangeReport with changed, checked and skipped paths
        """
        report = ChangeReport()
        paths = sorted(pages)
        batches = [paths[i : i + self.batch_size] for i in range(0, len(paths), self.batch_size)]

        logger.info(f"[CHANGES] Checking {len(paths)} pages for changes")

        with (
            tqdm(
                total=len(paths),
                desc="Checking for changes",
                unit="page",
                disable=not self.show_progress,
                file=sys.stderr,
            ) as pbar,
            ThreadPoolExecutor(max_workers=self.batch_size) as executor,
        ):
            for index, batch in enumerate(batches):
                future_to_path = {executor.submit(self._live_fingerprint, path): path for path in batch}

                for future in as_completed(future_to_path):
                    path = future_to_path[future]
                    try:
                        fingerprint = future.result()
                    except FetchError as e:
                        logger.warning(f"[CHANGES] Skipping {path}: {e.message}")
                        report.skipped.append(path)
                        continue
                    except Exception as e:
                        logger.warning(f"[CHANGES] Skipping {path}, could not fingerprint: {e}")
                        report.skipped.append(path)
                        continue

                    report.checked[path] = datetime.now()
                    if fingerprint != pages[path].content_fingerprint:
                        logger.debug(f"[CHANGES] Content changed: {path}")
                        report.changed.append(path)

                pbar.update(len(batch))
                pbar.set_postfix_str(f"changed={len(report.changed)}, skipped={len(report.skipped)}", refresh=True)
                if self.on_progress:
                    self.on_progress(len(paths), len(report.checked), len(report.skipped))

                if self.delay_ms and index < len(batches) - 1:
                    time.sleep(self.delay_ms / 1000)

        report.changed.sort()
        report.skipped.sort()
        logger.info(
            f"[CHANGES] {len(report.changed)} changed, {len(report.checked) - len(report.changed)} unchanged, "
            f"{len(report.skipped)} skipped"
        )
        return report

    def _live_fingerprint(self, path: str) -> str:
        fetched = self.fetcher.fetch(path, force_refresh=True, policy=self.policy)
        return self.extractor.fingerprint_html(fetched.html)
