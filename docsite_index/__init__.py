"""DocSite Index - crawl a documentation site into a local, searchable SQLite store."""

from .config import CrawlConfig
from .exceptions import FetchError, PermanentFetchError, RetryableFetchError, StoreError
from .extractor import ContentExtractor
from .indexer import DocSiteIndexer
from .models import CodeBlock, FailureStats, Page, ScrapeReport, SearchResult, StoreStats
from .store import IndexedStore
from .text import TextProcessor

__version__ = "0.1.0"
__all__ = [
    "CodeBlock",
    "ContentExtractor",
    "CrawlConfig",
    "DocSiteIndexer",
    "FailureStats",
    "FetchError",
    "IndexedStore",
    "Page",
    "PermanentFetchError",
    "RetryableFetchError",
    "ScrapeReport",
    "SearchResult",
    "StoreError",
    "StoreStats",
    "TextProcessor",
]
