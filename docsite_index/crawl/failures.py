"""Per-run failure tracking."""

import logging

from ..models import FailureStats

logger = logging.getLogger(__name__)


class FailureRecord:
    """Ephemeral map of path -> retry count for pages that have not succeeded this run.

    Lives only as long as one crawl or update run; never persisted.
    """

    def __init__(self):
        self._counts: dict[str, int] = {}
        self._errors: dict[str, str] = {}

    def record(self, path: str, error: str):
        """Count one more failed ingestion attempt for ``path``."""
        self._counts[path] = self._counts.get(path, 0) + 1
        self._errors[path] = error
        logger.debug(f"[INGEST] {path} failure count: {self._counts[path]} ({error})")

    def clear(self, path: str):
        """Forget ``path`` after it succeeds."""
        self._counts.pop(path, None)
        self._errors.pop(path, None)

    def reset(self):
        self._counts.clear()
        self._errors.clear()

    def count(self, path: str) -> int:
        return self._counts.get(path, 0)

    def last_error(self, path: str) -> str | None:
        return self._errors.get(path)

    def __contains__(self, path: str) -> bool:
        return path in self._counts

    def __len__(self) -> int:
        return len(self._counts)

    def stats(self) -> FailureStats:
        """Snapshot the failed paths and total retry attempts."""
        return FailureStats(failed_paths=sorted(self._counts), total_retry_attempts=sum(self._counts.values()))
