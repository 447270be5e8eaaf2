"""Shared pytest fixtures for DocSite Index tests."""

import threading

import pytest
import requests

from docsite_index.config import CrawlConfig

BASE_URL = "https://docs.example.com"


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests with no network access")


def html_page(title: str, body: str) -> str:
    """Wrap body markup in a minimal documentation page layout."""
    return (
        f"<html><head><title>{title}</title></head><body>"
        f"<nav><a href='/'>Home</a></nav>"
        f"<main>{body}</main>"
        f"<footer>Copyright Example</footer>"
        f"</body></html>"
    )


class FakeResponse:
    """The subset of ``requests.Response`` the fetcher reads."""

    def __init__(self, url: str, status_code: int = 200, text: str = "", content_type: str = "text/html; charset=utf-8"):
        self.url = url
        self.status_code = status_code
        self.text = text
        self.headers = {"content-type": content_type}


class FakeSession:
    """In-memory stand-in for ``requests.Session`` serving a fixture site.

    ``pages`` maps path -> HTML and can be edited between runs. ``errors`` maps
    path -> HTTP status or exception instance returned on every request, and
    ``flaky`` maps path -> number of leading requests that fail with a
    connection error before the page is served normally.
    """

    def __init__(self, pages: dict[str, str] | None = None, base_url: str = BASE_URL):
        self.base_url = base_url
        self.pages = dict(pages or {})
        self.errors: dict[str, int | Exception] = {}
        self.flaky: dict[str, int] = {}
        self.content_types: dict[str, str] = {}
        self.redirects: dict[str, str] = {}
        self.requests: list[tuple[str, dict]] = []
        self._lock = threading.Lock()

    def path_of(self, url: str) -> str:
        return url[len(self.base_url) :].rstrip("/") or "/"

    def count(self, path: str) -> int:
        with self._lock:
            return sum(1 for url, _ in self.requests if self.path_of(url) == path)

    def get(self, url, headers=None, timeout=None):
        path = self.path_of(url)
        with self._lock:
            self.requests.append((url, dict(headers or {})))
            remaining = self.flaky.get(path, 0)
            if remaining:
                self.flaky[path] = remaining - 1

        if remaining:
            raise requests.exceptions.ConnectionError(f"connection reset for {path}")

        error = self.errors.get(path)
        if isinstance(error, Exception):
            raise error
        if error is not None:
            return FakeResponse(url, status_code=error, text="error")

        if path in self.redirects:
            return FakeResponse(self.redirects[path], text=self.pages.get(path, ""))

        if path not in self.pages:
            return FakeResponse(url, status_code=404, text="not found")

        content_type = self.content_types.get(path, "text/html; charset=utf-8")
        return FakeResponse(url, text=self.pages[path], content_type=content_type)

    def close(self):
        pass


@pytest.fixture
def config(tmp_path):
    """CrawlConfig for the fixture site with every delay disabled."""
    return CrawlConfig(
        base_url=BASE_URL,
        cache_dir=tmp_path / "cache",
        cache_ttl_hours=24,
        scraping_delay_ms=0,
        max_retries=3,
        retry_base_delay_ms=0,
        retry_max_delay_ms=0,
        change_check_backoff_ms=0,
        max_concurrent_requests=2,
        show_progress=False,
    )


@pytest.fixture
def discovery_site():
    """Small site with nested links, a stylesheet link and an external link."""
    return FakeSession(
        {
            "/": html_page(
                "Home",
                "<h1>Home</h1><a href='/a'>A</a> <a href='/c/'>C</a> "
                "<link rel='stylesheet' href='/assets/style.css'><a href='/assets/style.css'>css</a>",
            ),
            "/a": html_page("A", "<h1>A</h1><a href='/a/b'>B</a> <a href='/'>Home</a>"),
            "/a/b": html_page(
                "B", "<h1>B</h1><a href='../c#top'>C</a> <a href='https://other.example.org/x'>External</a>"
            ),
            "/c": html_page("C", "<h1>C</h1><a href='mailto:docs@example.com'>Mail</a>"),
            "/assets/style.css": "body { color: red; }",
        }
    )


@pytest.fixture
def guide_site():
    """Three-page site: root, a guide and an API reference."""
    return FakeSession(
        {
            "/": html_page("Welcome", "<h1>Welcome</h1><p>Start here.</p><a href='/guide'>Guide</a> <a href='/api'>API</a>"),
            "/guide": html_page(
                "Installation Guide",
                "<h1>Installation Guide</h1><p>Install the widget toolkit with pip.</p>"
                "<pre><code class='language-bash'>pip install widgets</code></pre>",
            ),
            "/api": html_page(
                "API Reference",
                "<h1>API Reference</h1><p>The client exposes a connect method.</p>"
                "<pre><code class='language-python'>client.connect()</code></pre>",
            ),
        }
    )
