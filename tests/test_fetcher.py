"""Tests for the fetch-and-retry engine."""

import pytest
import requests

from docsite_index.crawl.fetcher import PageFetcher, RetryPolicy
from docsite_index.exceptions import PermanentFetchError, RetryableFetchError
from tests.conftest import BASE_URL, FakeSession, html_page


def make_fetcher(session, max_retries=3):
    return PageFetcher(
        BASE_URL,
        max_retries=max_retries,
        retry_base_delay_ms=0,
        retry_max_delay_ms=0,
        user_agent="test-agent",
        session=session,
    )


@pytest.mark.unit
class TestRetryPolicy:
    """Test backoff calculation."""

    def test_exponential_backoff(self):
        policy = RetryPolicy(max_retries=3, base_delay_ms=1000, max_delay_ms=10000)

        assert [policy.delay_for(n) for n in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]


@pytest.mark.unit
class TestPageFetcher:
    """Test fetch outcomes and failure classification."""

    def test_successful_fetch(self):
        session = FakeSession({"/guide": html_page("Guide", "<p>x</p>")})

        result = make_fetcher(session).fetch("/guide")

        assert result.status_code == 200
        assert result.url == f"{BASE_URL}/guide"
        assert result.attempts == 1
        assert "<p>x</p>" in result.html
        assert session.requests[0][1]["User-Agent"] == "test-agent"

    def test_retry_ceiling(self):
        """Test that a persistent 503 is requested exactly max_retries + 1 times."""
        session = FakeSession()
        session.errors["/down"] = 503
        fetcher = make_fetcher(session, max_retries=3)

        with pytest.raises(RetryableFetchError) as exc_info:
            fetcher.fetch("/down")

        assert session.count("/down") == 4
        assert exc_info.value.attempts == 4
        assert exc_info.value.status_code == 503
        assert fetcher.stats.retries == 3
        assert fetcher.stats.failed == 1

    def test_recovers_from_transient_errors(self):
        session = FakeSession({"/flaky": html_page("Flaky", "<p>ok</p>")})
        session.flaky["/flaky"] = 2

        result = make_fetcher(session).fetch("/flaky")

        assert result.attempts == 3
        assert session.count("/flaky") == 3

    def test_not_found_is_permanent(self):
        """Test that a 404 short-circuits without retries."""
        session = FakeSession()

        with pytest.raises(PermanentFetchError) as exc_info:
            make_fetcher(session).fetch("/missing")

        assert exc_info.value.status_code == 404
        assert session.count("/missing") == 1

    @pytest.mark.parametrize("status", [408, 429, 500, 502])
    def test_retryable_statuses(self, status):
        session = FakeSession()
        session.errors["/x"] = status

        with pytest.raises(RetryableFetchError):
            make_fetcher(session, max_retries=1).fetch("/x")

        assert session.count("/x") == 2

    def test_timeout_is_retryable(self):
        session = FakeSession()
        session.errors["/slow"] = requests.exceptions.Timeout("read timed out")

        with pytest.raises(RetryableFetchError):
            make_fetcher(session, max_retries=2).fetch("/slow")

        assert session.count("/slow") == 3

    def test_non_html_is_permanent(self):
        session = FakeSession({"/data": "{}"})
        session.content_types["/data"] = "application/json"

        with pytest.raises(PermanentFetchError, match="non-HTML"):
            make_fetcher(session).fetch("/data")

        assert session.count("/data") == 1

    def test_off_site_redirect_is_permanent(self):
        session = FakeSession({"/moved": html_page("Moved", "<p>x</p>")})
        session.redirects["/moved"] = "https://elsewhere.example.org/moved"

        with pytest.raises(PermanentFetchError, match="off-site"):
            make_fetcher(session).fetch("/moved")

    def test_policy_override(self):
        session = FakeSession()
        session.errors["/down"] = 500

        with pytest.raises(RetryableFetchError):
            make_fetcher(session, max_retries=3).fetch("/down", policy=RetryPolicy(0, 0, 0))

        assert session.count("/down") == 1

    def test_force_refresh_sends_no_cache_headers(self):
        session = FakeSession({"/": html_page("Home", "<p>x</p>")})

        make_fetcher(session).fetch("/", force_refresh=True)

        headers = session.requests[0][1]
        assert headers["Cache-Control"] == "no-cache"
        assert headers["Pragma"] == "no-cache"
