"""HTTP fetching with timeout, failure classification and exponential backoff."""

import logging
import threading
import time
from dataclasses import dataclass

import requests

from ..exceptions import FetchError, PermanentFetchError, RetryableFetchError

logger = logging.getLogger(__name__)

# Status codes worth another attempt besides 5xx
RETRYABLE_STATUS_CODES = {408, 429}

# Network-level errors worth another attempt
RETRYABLE_EXCEPTIONS = (
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry ceiling and backoff curve for one kind of fetch."""

    max_retries: int
    base_delay_ms: int
    max_delay_ms: int

    def delay_for(self, attempt: int) -> float:
        """Backoff in seconds before retry number ``attempt + 1``."""
        return min(self.base_delay_ms * (2**attempt), self.max_delay_ms) / 1000


@dataclass
class FetchResult:
    """A successfully fetched HTML page."""

    path: str
    url: str
    html: str
    status_code: int
    attempts: int


@dataclass
class FetchStats:
    """Running totals of fetch outcomes for one fetcher."""

    succeeded: int = 0
    failed: int = 0
    retries: int = 0


class PageFetcher:
    """Fetch engine shared by discovery, ingestion and change detection.

    One ``requests.Session`` is kept per crawl target so connections are pooled
    across batches. The retry loop is explicit and bounded: a request is sent at
    most ``policy.max_retries + 1`` times.
    """

    def __init__(
        self,
        base_url: str,
        request_timeout_ms: int = 30000,
        max_retries: int = 3,
        retry_base_delay_ms: int = 1000,
        retry_max_delay_ms: int = 10000,
        user_agent: str | None = None,
        pool_size: int = 10,
        session: requests.Session | None = None,
    ):
        """Initialize the fetcher.

        Args:
            base_url: Root URL of the crawl target
            request_timeout_ms: Per-request timeout in milliseconds
            max_retries: Default retries after the first attempt
            retry_base_delay_ms: Default backoff base
            retry_max_delay_ms: Default backoff ceiling
            user_agent: User agent header value
            pool_size: Connection pool size (at least the batch size)
            session: Optional pre-built session (tests inject a fake here)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = request_timeout_ms / 1000
        self.default_policy = RetryPolicy(max_retries, retry_base_delay_ms, retry_max_delay_ms)
        self.stats = FetchStats()
        self._stats_lock = threading.Lock()

        if session is None:
            session = requests.Session()
            adapter = requests.adapters.HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session
        self.headers = {"User-Agent": user_agent} if user_agent else {}

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{path}" if path != "/" else f"{self.base_url}/"

    def fetch(self, path: str, force_refresh: bool = False, policy: RetryPolicy | None = None) -> FetchResult:
        """Fetch one page, retrying transient failures with exponential backoff.

        Args:
            path: Site-relative path
            force_refresh: Ask intermediaries not to serve a cached copy
            policy: Retry policy for this call (defaults to the fetcher's policy)

        Returns:
            FetchResult with the page HTML

        Raises:
            RetryableFetchError: Transient failure persisted through every retry
            PermanentFetchError: Non-retryable failure, raised on first occurrence
        """
        policy = policy or self.default_policy
        url = self.url_for(path)
        headers = dict(self.headers)
        if force_refresh:
            headers["Cache-Control"] = "no-cache"
            headers["Pragma"] = "no-cache"

        last_error: FetchError | None = None
        for attempt in range(policy.max_retries + 1):
            if attempt > 0:
                delay = policy.delay_for(attempt - 1)
                logger.debug(f"[FETCH] Retrying {path} in {delay:.2f}s (attempt {attempt + 1}/{policy.max_retries + 1})")
                self._count("retries")
                time.sleep(delay)

            try:
                result = self._fetch_once(path, url, headers, attempt + 1)
            except PermanentFetchError:
                self._count("failed")
                raise
            except RetryableFetchError as e:
                last_error = e
                logger.debug(f"[FETCH] Transient failure for {path}: {e.message}")
                continue

            self._count("succeeded")
            return result

        self._count("failed")
        raise RetryableFetchError(
            path,
            f"gave up after {policy.max_retries + 1} attempts: {last_error.message}",
            status_code=last_error.status_code,
            attempts=policy.max_retries + 1,
        )

    def _fetch_once(self, path: str, url: str, headers: dict[str, str], attempt: int) -> FetchResult:
        """Send a single request and classify the outcome."""
        logger.debug(f"[FETCH] GET {url}")
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except RETRYABLE_EXCEPTIONS as e:
            raise RetryableFetchError(path, f"{type(e).__name__}: {e}", attempts=attempt) from e
        except requests.exceptions.RequestException as e:
            raise PermanentFetchError(path, f"{type(e).__name__}: {e}", attempts=attempt) from e

        status = response.status_code
        if status >= 500 or status in RETRYABLE_STATUS_CODES:
            raise RetryableFetchError(path, f"HTTP {status}", status_code=status, attempts=attempt)
        if status >= 400:
            raise PermanentFetchError(path, f"HTTP {status}", status_code=status, attempts=attempt)

        # Verify final URL is still within the crawl target (blocks redirects to external sites)
        final_url = getattr(response, "url", None) or url
        if final_url != self.base_url and not final_url.startswith(self.base_url + "/"):
            raise PermanentFetchError(
                path, f"redirected off-site to {final_url}", status_code=status, attempts=attempt
            )

        # Only process HTML content
        content_type = response.headers.get("content-type", "")
        if "text/html" not in content_type and "application/xhtml" not in content_type:
            raise PermanentFetchError(
                path, f"non-HTML content type: {content_type or 'unknown'}", status_code=status, attempts=attempt
            )

        return FetchResult(path=path, url=final_url, html=response.text, status_code=status, attempts=attempt)

    def _count(self, name: str):
        with self._stats_lock:
            setattr(self.stats, name, getattr(self.stats, name) + 1)

    def close(self):
        """Close the underlying session."""
        self.session.close()
