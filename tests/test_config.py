"""Tests for CrawlConfig defaults, validation and environment loading."""

from pathlib import Path

import pytest

from docsite_index.config import CrawlConfig
from docsite_index.policy import DEFAULT_SECTION_MAP


@pytest.mark.unit
class TestCrawlConfig:
    """Test configuration defaults and validation."""

    def test_defaults(self):
        config = CrawlConfig(base_url="https://docs.example.com/")

        assert config.base_url == "https://docs.example.com"
        assert config.cache_dir == Path("./.docsite_cache")
        assert config.cache_ttl_hours == 1
        assert config.scraping_delay_ms == 100
        assert config.max_retries == 3
        assert config.request_timeout_ms == 30000
        assert config.max_concurrent_requests == 5
        assert config.max_pages is None
        assert config.section_map == DEFAULT_SECTION_MAP

    def test_policy_tables_are_copies(self):
        first = CrawlConfig(base_url="https://a.example.com")
        second = CrawlConfig(base_url="https://b.example.com")

        first.section_map["ops"] = "Operations"
        first.static_asset_patterns.append(r"\.wasm$")

        assert "ops" not in second.section_map
        assert "ops" not in DEFAULT_SECTION_MAP
        assert r"\.wasm$" not in second.static_asset_patterns

    def test_validate_accepts_defaults(self):
        CrawlConfig(base_url="https://docs.example.com").validate()

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"base_url": "docs.example.com"}, "Invalid base URL"),
            ({"base_url": "ftp://docs.example.com"}, "Invalid base URL"),
            ({"cache_ttl_hours": -1}, "cache_ttl_hours"),
            ({"scraping_delay_ms": -5}, "scraping_delay_ms"),
            ({"max_retries": -1}, "max_retries"),
            ({"request_timeout_ms": 500}, "request_timeout_ms"),
            ({"max_concurrent_requests": 0}, "max_concurrent_requests"),
        ],
    )
    def test_validate_rejects_bad_values(self, overrides, message):
        values = {"base_url": "https://docs.example.com", **overrides}

        with pytest.raises(ValueError, match=message):
            CrawlConfig(**values).validate()


@pytest.mark.unit
class TestFromEnv:
    """Test environment variable loading."""

    @pytest.fixture(autouse=True)
    def isolated_env(self, monkeypatch, tmp_path):
        # Keep a developer's .env out of the tests
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("dotenv.load_dotenv", lambda *args, **kwargs: False)
        for name in ["DOCSITE_URL", "MAX_RETRIES", "SHOW_PROGRESS", "MAX_PAGES", "ACME_DOCSITE_URL", "ACME_MAX_RETRIES"]:
            monkeypatch.delenv(name, raising=False)

    def test_reads_bare_variables(self, monkeypatch):
        monkeypatch.setenv("DOCSITE_URL", "https://docs.example.com")
        monkeypatch.setenv("MAX_RETRIES", "5")
        monkeypatch.setenv("SHOW_PROGRESS", "false")
        monkeypatch.setenv("MAX_PAGES", "50")

        config = CrawlConfig.from_env()

        assert config.base_url == "https://docs.example.com"
        assert config.max_retries == 5
        assert config.show_progress is False
        assert config.max_pages == 50

    def test_prefixed_variables_win(self, monkeypatch):
        monkeypatch.setenv("DOCSITE_URL", "https://bare.example.com")
        monkeypatch.setenv("ACME_DOCSITE_URL", "https://acme.example.com")
        monkeypatch.setenv("MAX_RETRIES", "1")

        config = CrawlConfig.from_env("ACME_")

        assert config.base_url == "https://acme.example.com"
        assert config.max_retries == 1

    def test_overrides_win_over_environment(self, monkeypatch):
        monkeypatch.setenv("DOCSITE_URL", "https://docs.example.com")

        config = CrawlConfig.from_env(max_concurrent_requests=9, show_progress=False)

        assert config.max_concurrent_requests == 9
        assert config.show_progress is False
