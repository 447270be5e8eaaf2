"""Tests for same-site link extraction."""

import pytest

from docsite_index.crawl.links import LinkExtractor, normalize_path
from docsite_index.policy import DEFAULT_STATIC_ASSET_PATTERNS


@pytest.fixture
def extractor():
    return LinkExtractor("https://docs.example.com", DEFAULT_STATIC_ASSET_PATTERNS)


@pytest.mark.unit
class TestNormalizePath:
    """Test path normalization."""

    def test_strips_query_and_fragment(self):
        assert normalize_path("/guide?tab=1#install") == "/guide"

    def test_strips_trailing_slash(self):
        assert normalize_path("/guide/") == "/guide"

    def test_root_keeps_slash(self):
        assert normalize_path("/") == "/"
        assert normalize_path("") == "/"

    def test_collapses_double_slashes(self):
        assert normalize_path("//guide//install") == "/guide/install"


@pytest.mark.unit
class TestLinkExtractor:
    """Test link filtering and resolution."""

    def test_extracts_absolute_and_relative_links(self, extractor):
        html = "<a href='/a'>A</a><a href='b'>B</a><a href='https://docs.example.com/c/'>C</a>"

        assert extractor.extract(html, "/guide/") == {"/a", "/guide/b", "/c"}

    def test_ignores_external_and_special_links(self, extractor):
        html = (
            "<a href='https://other.example.org/a'>ext</a>"
            "<a href='mailto:x@example.com'>mail</a>"
            "<a href='javascript:void(0)'>js</a>"
            "<a href='#section'>anchor</a>"
            "<a href='tel:123'>tel</a>"
        )

        assert extractor.extract(html) == set()

    def test_skips_static_assets(self, extractor):
        html = (
            "<a href='/assets/style.css'>css</a>"
            "<a href='/images/logo.png'>png</a>"
            "<a href='/sitemap.xml'>sitemap</a>"
            "<a href='/docs/setup'>page</a>"
        )

        assert extractor.extract(html) == {"/docs/setup"}

    def test_respects_base_path(self):
        extractor = LinkExtractor("https://example.com/docs", DEFAULT_STATIC_ASSET_PATTERNS)
        html = "<a href='/docs/intro'>in</a><a href='/blog/post'>out</a><a href='/docs'>root</a>"

        assert extractor.extract(html) == {"/intro", "/"}

    def test_host_comparison_is_case_insensitive(self, extractor):
        assert extractor.to_path("https://DOCS.example.com/Guide", "https://docs.example.com/") == "/Guide"

    def test_url_for_round_trip(self, extractor):
        assert extractor.url_for("/") == "https://docs.example.com/"
        assert extractor.url_for("/a/b") == "https://docs.example.com/a/b"

    def test_served_url_takes_precedence_over_path(self, extractor):
        html = "<a href='install'>Install</a>"

        assert extractor.extract(html, "/guide") == {"/install"}
        assert extractor.extract(html, "/guide", page_url="https://docs.example.com/guide/") == {"/guide/install"}
