"""Crawl phases: discovery, fetching, ingestion and change detection."""

from .changes import ChangeDetector, ChangeReport
from .discovery import DiscoveryScheduler
from .failures import FailureRecord
from .fetcher import FetchResult, FetchStats, PageFetcher, RetryPolicy
from .ingestion import IngestionResult, IngestionScheduler
from .links import LinkExtractor, normalize_path

__all__ = [
    "ChangeDetector",
    "ChangeReport",
    "DiscoveryScheduler",
    "FailureRecord",
    "FetchResult",
    "FetchStats",
    "IngestionResult",
    "IngestionScheduler",
    "LinkExtractor",
    "PageFetcher",
    "RetryPolicy",
    "normalize_path",
]
