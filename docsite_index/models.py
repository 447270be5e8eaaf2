"""Result and record types shared across the crawl core."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class CodeBlock:
    """A code example extracted from a page."""

    language: str
    code: str
    title: str | None = None
    has_line_numbers: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CodeBlock":
        return cls(
            language=data.get("language", "text"),
            code=data.get("code", ""),
            title=data.get("title"),
            has_line_numbers=bool(data.get("has_line_numbers", False)),
        )


@dataclass
class Page:
    """One indexed documentation page.

    ``plain_text``, ``markdown`` and ``raw_content_html`` are three renderings of
    the same content container and always come from a single fetch.
    ``content_fingerprint`` hashes ``(plain_text, title)`` and is only recomputed
    when the page is re-extracted.
    """

    path: str
    title: str
    section: str
    plain_text: str
    markdown: str
    raw_content_html: str
    content_fingerprint: str
    source_url: str
    last_fetched_at: datetime
    last_checked_at: datetime
    searchable_text: str
    subsection: str | None = None
    code_blocks: list[CodeBlock] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible types."""
        data = asdict(self)
        data["last_fetched_at"] = self.last_fetched_at.isoformat()
        data["last_checked_at"] = self.last_checked_at.isoformat()
        return data


@dataclass
class SearchResult:
    """A ranked search hit with a snippet around the first matching term."""

    page: Page
    score: float
    snippet: str


@dataclass
class FailureStats:
    """Aggregate failure report for one crawl or update run."""

    failed_paths: list[str] = field(default_factory=list)
    total_retry_attempts: int = 0


@dataclass
class StoreStats:
    """Summary of a crawl target's store."""

    total_pages: int
    sections: int
    last_updated: datetime | None
    avg_content_age_hours: float


@dataclass
class ScrapeReport:
    """Outcome of ``DocSiteIndexer.scrape_all``."""

    mode: str  # "full" or "incremental"
    page_count: int
    discovered: int = 0
    ingested: int = 0
    changed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: FailureStats = field(default_factory=FailureStats)
