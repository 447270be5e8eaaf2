"""Crawl target configuration dataclass."""

from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from .policy import DEFAULT_SECTION_MAP, DEFAULT_STATIC_ASSET_PATTERNS, DEFAULT_VALID_LANGUAGES

# Default user agent for crawling
DEFAULT_USER_AGENT = "DocSiteIndex/1.0 (Documentation indexer; static HTML only)"


@dataclass
class CrawlConfig:
    """Configuration for crawling and indexing one documentation site.

    Attributes:
        base_url: Root URL of the documentation site (e.g., "https://docs.example.com")
        cache_dir: Directory holding the SQLite store for this crawl target

        # Freshness
        cache_ttl_hours: Hours before the store is considered stale and discovery re-runs (default: 1)

        # Fetching settings
        scraping_delay_ms: Sleep between ingestion batches in milliseconds (default: 100)
        max_retries: Engine-level retries per request after the first attempt (default: 3)
        request_timeout_ms: Per-request timeout in milliseconds (default: 30000)
        max_concurrent_requests: Batch size and worker count for every phase (default: 5)
        retry_base_delay_ms: Base for exponential backoff (default: 1000)
        retry_max_delay_ms: Backoff ceiling (default: 10000)
        change_check_retries: Quick retries used by change detection (default: 2)
        change_check_backoff_ms: Base backoff for change detection retries (default: 500)
        max_pages: Stop discovery after this many paths (None = unlimited)
        user_agent: User agent string for requests

        # Extraction settings
        title_suffix: Site-name suffix stripped from page titles (e.g., " - Acme Docs")
        static_asset_patterns: Regexes for paths skipped during discovery
        valid_languages: Allow-list for code block language metadata
        section_map: First path segment -> canonical section name

        # Logging
        show_progress: Show tqdm progress bars on stderr
        debug: Attach a rotating debug log file to the package logger
        log_file: Debug log file path
        log_max_bytes: Rotate the debug log after this many bytes
        log_backup_count: Rotated debug logs to keep
    """

    # Core settings
    base_url: str
    cache_dir: str | Path = "./.docsite_cache"

    # Freshness
    cache_ttl_hours: float = 1

    # Fetching settings
    scraping_delay_ms: int = 100
    max_retries: int = 3
    request_timeout_ms: int = 30000
    max_concurrent_requests: int = 5
    retry_base_delay_ms: int = 1000
    retry_max_delay_ms: int = 10000
    change_check_retries: int = 2
    change_check_backoff_ms: int = 500
    max_pages: int | None = None
    user_agent: str = DEFAULT_USER_AGENT

    # Extraction settings
    title_suffix: str | None = None
    static_asset_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_STATIC_ASSET_PATTERNS))
    valid_languages: set[str] = field(default_factory=lambda: set(DEFAULT_VALID_LANGUAGES))
    section_map: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SECTION_MAP))

    # Logging
    show_progress: bool = True
    debug: bool = False
    log_file: str = "docsite_index.log"
    log_max_bytes: int = 10 * 1024 * 1024  # 10MB default
    log_backup_count: int = 5

    def __post_init__(self):
        """Normalize base_url and convert cache_dir to Path."""
        self.base_url = self.base_url.rstrip("/")
        self.cache_dir = Path(self.cache_dir)

    def validate(self):
        """Check value ranges.

        The crawl core trusts its configuration; loaders call this before handing it over.

        Raises:
            ValueError: If any setting is out of range
        """
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid base URL: {self.base_url!r}")
        if self.cache_ttl_hours < 0:
            raise ValueError("cache_ttl_hours must be non-negative")
        if self.scraping_delay_ms < 0:
            raise ValueError("scraping_delay_ms must be non-negative")
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.request_timeout_ms < 1000:
            raise ValueError("request_timeout_ms must be at least 1000ms")
        if self.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")

    @classmethod
    def from_env(cls, env_prefix: str = "", **overrides):
        """Create config from environment variables with optional prefix.

        Args:
            env_prefix: Prefix for environment variables (e.g., "ACME_")
            **overrides: Explicit values that win over the environment

        Returns:
            CrawlConfig instance populated from environment
        """
        import os

        from dotenv import load_dotenv

        load_dotenv()

        # Helper to get env var with prefix
        def get_env(name: str, default):
            # Try with prefix first, then without
            prefixed = os.getenv(f"{env_prefix}{name}", None)
            if prefixed is not None:
                return prefixed
            return os.getenv(name, default)

        def get_bool(name: str, default: bool) -> bool:
            value = get_env(name, None)
            if value is None:
                return default
            return value.lower() in ("true", "1", "yes")

        max_pages = get_env("MAX_PAGES", None)
        title_suffix = get_env("TITLE_SUFFIX", None)

        values = {
            "base_url": get_env("DOCSITE_URL", ""),
            "cache_dir": get_env("CACHE_DIR", "./.docsite_cache"),
            "cache_ttl_hours": float(get_env("CACHE_TTL_HOURS", "1")),
            "scraping_delay_ms": int(get_env("SCRAPING_DELAY_MS", "100")),
            "max_retries": int(get_env("MAX_RETRIES", "3")),
            "request_timeout_ms": int(get_env("REQUEST_TIMEOUT_MS", "30000")),
            "max_concurrent_requests": int(get_env("MAX_CONCURRENT_REQUESTS", "5")),
            "retry_base_delay_ms": int(get_env("RETRY_BASE_DELAY_MS", "1000")),
            "retry_max_delay_ms": int(get_env("RETRY_MAX_DELAY_MS", "10000")),
            "change_check_retries": int(get_env("CHANGE_CHECK_RETRIES", "2")),
            "change_check_backoff_ms": int(get_env("CHANGE_CHECK_BACKOFF_MS", "500")),
            "max_pages": int(max_pages) if max_pages else None,
            "user_agent": get_env("USER_AGENT", DEFAULT_USER_AGENT),
            "title_suffix": title_suffix or None,
            "show_progress": get_bool("SHOW_PROGRESS", True),
            "debug": get_bool("DEBUG", False),
            "log_file": get_env("LOG_FILE", "docsite_index.log"),
            "log_max_bytes": int(get_env("LOG_MAX_BYTES", str(10 * 1024 * 1024))),
            "log_backup_count": int(get_env("LOG_BACKUP_COUNT", "5")),
        }
        values.update(overrides)
        return cls(**values)
