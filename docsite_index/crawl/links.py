"""Same-site link extraction for discovery."""

import logging
import re
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_SKIP_SCHEMES = ("mailto:", "tel:", "javascript:", "data:", "#")


class LinkExtractor:
    """Extracts same-site page paths worth visiting from one page's HTML.

    Paths are site-relative to ``base_url``: for a base of
    ``https://example.com/docs`` the page ``https://example.com/docs/a/b`` has
    path ``/a/b``. Links leaving the host or the base path are ignored.
    """

    def __init__(self, base_url: str, static_asset_patterns: list[str] | None = None):
        self.base_url = base_url.rstrip("/")
        parsed = urlparse(self.base_url)
        self.netloc = parsed.netloc.lower()
        self.base_path = parsed.path.rstrip("/")

        # Compile static asset patterns
        self.static_asset_patterns = [re.compile(p, re.IGNORECASE) for p in (static_asset_patterns or [])]

    def url_for(self, path: str) -> str:
        """Build the absolute URL for a site-relative path."""
        return f"{self.base_url}{path}" if path != "/" else f"{self.base_url}/"

    def extract(self, html: str, current_path: str = "/", page_url: str | None = None) -> set[str]:
        """Return the set of same-site, non-asset paths linked from ``html``.

        Args:
            html: Raw page HTML
            current_path: Path of the page the HTML came from (for relative links)
            page_url: URL the HTML was actually served from, if known. Takes
                precedence over ``current_path`` so that trailing slashes and
                redirects resolve relative links the way a browser would.

        Returns:
            Set of normalized paths
        """
        soup = BeautifulSoup(html, "html.parser")
        page_url = page_url or self.url_for(current_path)

        paths = set()
        for link in soup.find_all("a", href=True):
            path = self.to_path(link["href"], page_url)
            if path is None:
                continue
            if self.is_static_asset(path):
                logger.debug(f"[CRAWLER] Skipping static asset link: {path}")
                continue
            paths.add(path)
        return paths

    def to_path(self, href: str, page_url: str) -> str | None:
        """Resolve ``href`` against ``page_url`` and return its site-relative path.

        Returns:
            Normalized path, or None for external, non-http or fragment-only links
        """
        href = href.strip()
        if not href or href.lower().startswith(_SKIP_SCHEMES):
            return None

        absolute = urljoin(page_url, href)
        parsed = urlparse(absolute)
        if parsed.scheme not in ("http", "https") or parsed.netloc.lower() != self.netloc:
            return None

        url_path = parsed.path
        if self.base_path:
            if url_path != self.base_path and not url_path.startswith(self.base_path + "/"):
                return None
            url_path = url_path[len(self.base_path) :]

        return normalize_path(url_path)

    def is_static_asset(self, path: str) -> bool:
        """Check if a path matches any static asset pattern."""
        return any(pattern.search(path) for pattern in self.static_asset_patterns)


def normalize_path(path: str) -> str:
    """Normalize a path: drop query and fragment, ensure leading slash, drop trailing slash."""
    path = path.split("?")[0].split("#")[0]
    path = re.sub(r"/{2,}", "/", path)
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/")
    return path
