"""Error taxonomy for the crawl core."""


class FetchError(Exception):
    """A page could not be fetched."""

    retryable = False

    def __init__(self, path: str, message: str, status_code: int | None = None, attempts: int = 0):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message
        self.status_code = status_code
        self.attempts = attempts


class RetryableFetchError(FetchError):
    """Transient failure (timeout, connection reset, 5xx) that outlived its retries."""

    retryable = True


class PermanentFetchError(FetchError):
    """Failure that retrying cannot fix (4xx, non-HTML content, off-site redirect)."""


class StoreError(Exception):
    """The persisted store could not be opened, read or written."""
