"""Breadth-first discovery of every page reachable from the site root."""

import logging
import sys
from collections import deque
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed

from tqdm import tqdm

from ..exceptions import FetchError
from .fetcher import PageFetcher
from .links import LinkExtractor

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, int], None]


class DiscoveryScheduler:
    """Walks the site's link graph from ``/`` in fixed-size concurrent batches.

    A page that fails to fetch contributes no links; discovery carries on with
    the rest of the queue.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        link_extractor: LinkExtractor,
        max_concurrent: int = 5,
        max_pages: int | None = None,
        show_progress: bool = True,
        on_progress: ProgressCallback | None = None,
    ):
        """Initialize the scheduler.

        Args:
            fetcher: Fetch engine (its default retry policy applies)
            link_extractor: Link filter for the crawl target
            max_concurrent: Pages fetched per batch
            max_pages: Stop enqueuing new paths once this many are known (None = unlimited)
            show_progress: Show a tqdm progress bar on stderr
            on_progress: Called as ``(discovered, completed, failed)`` after each batch
        """
        self.fetcher = fetcher
        self.link_extractor = link_extractor
        self.max_concurrent = max(1, max_concurrent)
        self.max_pages = max_pages
        self.show_progress = show_progress
        self.on_progress = on_progress

    def discover(self) -> list[str]:
        """Run discovery to completion.

        Returns:
            Sorted list of every visited path, root included
        """
        seen: set[str] = {"/"}
        queue: deque[str] = deque(["/"])
        visited: list[str] = []
        failed = 0

        logger.info(f"[CRAWLER] Starting discovery from {self.fetcher.url_for('/')}")

        with (
            tqdm(
                desc="Discovering pages",
                unit="page",
                disable=not self.show_progress,
                file=sys.stderr,
                total=self.max_pages,
            ) as pbar,
            ThreadPoolExecutor(max_workers=self.max_concurrent) as executor,
        ):
            while queue:
                batch = [queue.popleft() for _ in range(min(self.max_concurrent, len(queue)))]
                future_to_path = {executor.submit(self._links_from, path): path for path in batch}

                for future in as_completed(future_to_path):
                    path = future_to_path[future]
                    visited.append(path)
                    try:
                        links = future.result()
                    except Exception as e:
                        logger.warning(f"[CRAWLER] Failed to parse links on {path}: {e}")
                        links = None

                    if links is None:
                        failed += 1
                        continue

                    for link in sorted(links - seen):
                        if self.max_pages and len(seen) >= self.max_pages:
                            break
                        seen.add(link)
                        queue.append(link)

                pbar.update(len(batch))
                pbar.set_postfix_str(f"queue={len(queue)}, failed={failed}", refresh=True)
                if self.on_progress:
                    self.on_progress(len(seen), len(visited), failed)

        if self.max_pages and len(seen) >= self.max_pages:
            logger.info(f"[CRAWLER] Stopped enqueuing at max_pages={self.max_pages}")
        logger.info(f"[CRAWLER] Discovery complete: {len(visited)} pages ({failed} failed)")
        return sorted(visited)

    def _links_from(self, path: str) -> set[str] | None:
        """Fetch one page and return its links, or None if the fetch failed."""
        try:
            result = self.fetcher.fetch(path)
        except FetchError as e:
            logger.warning(f"[CRAWLER] Failed to crawl {path}: {e}")
            return None
        return self.link_extractor.extract(result.html, path, page_url=result.url)
