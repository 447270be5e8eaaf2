"""Tests for breadth-first page discovery."""

import pytest

from docsite_index.crawl.discovery import DiscoveryScheduler
from docsite_index.crawl.fetcher import PageFetcher
from docsite_index.crawl.links import LinkExtractor
from docsite_index.policy import DEFAULT_STATIC_ASSET_PATTERNS
from tests.conftest import BASE_URL, FakeSession, html_page


def make_scheduler(session, **kwargs):
    fetcher = PageFetcher(BASE_URL, max_retries=1, retry_base_delay_ms=0, retry_max_delay_ms=0, session=session)
    return DiscoveryScheduler(
        fetcher,
        LinkExtractor(BASE_URL, DEFAULT_STATIC_ASSET_PATTERNS),
        max_concurrent=2,
        show_progress=False,
        **kwargs,
    )


@pytest.mark.unit
class TestDiscoveryScheduler:
    """Test discovery completeness and failure handling."""

    def test_discovers_every_reachable_page(self, discovery_site):
        paths = make_scheduler(discovery_site).discover()

        assert paths == ["/", "/a", "/a/b", "/c"]
        assert discovery_site.count("/assets/style.css") == 0

    def test_each_page_fetched_once(self, discovery_site):
        make_scheduler(discovery_site).discover()

        for path in ["/", "/a", "/a/b", "/c"]:
            assert discovery_site.count(path) == 1

    def test_failed_page_contributes_no_links(self, discovery_site):
        discovery_site.errors["/a"] = 500

        paths = make_scheduler(discovery_site).discover()

        # /a was visited but its child /a/b is unreachable
        assert paths == ["/", "/a", "/c"]

    def test_missing_page_is_still_visited(self, discovery_site):
        discovery_site.pages["/"] += "<a href='/gone'>Gone</a>"

        paths = make_scheduler(discovery_site).discover()

        assert "/gone" in paths
        assert discovery_site.count("/gone") == 1

    def test_max_pages_cap(self, discovery_site):
        paths = make_scheduler(discovery_site, max_pages=2).discover()

        assert len(paths) == 2
        assert paths[0] == "/"

    def test_progress_observer(self, discovery_site):
        calls = []

        make_scheduler(discovery_site, on_progress=lambda *args: calls.append(args)).discover()

        assert calls
        discovered, completed, failed = calls[-1]
        assert (discovered, completed, failed) == (4, 4, 0)

    def test_root_only_site(self):
        session = FakeSession({"/": html_page("Only", "<p>No links.</p>")})

        assert make_scheduler(session).discover() == ["/"]

    def test_relative_links_resolve_against_served_url(self):
        """Test that a page redirected to a trailing-slash URL resolves ``href='install'`` beneath it."""
        session = FakeSession(
            {
                "/": html_page("Home", "<a href='/guide'>Guide</a>"),
                "/guide": html_page("Guide", "<a href='install'>Install</a>"),
                "/guide/install": html_page("Install", "<p>Steps.</p>"),
            }
        )
        session.redirects["/guide"] = f"{BASE_URL}/guide/"

        paths = make_scheduler(session).discover()

        assert paths == ["/", "/guide", "/guide/install"]
        assert session.count("/install") == 0
