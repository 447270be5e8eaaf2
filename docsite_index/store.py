"""SQLite-backed page store with FTS5 full-text search.

Layout of one store file (one per crawl target):

- ``pages``: one row per path with every Page field
- ``pages_fts``: external-content FTS5 index over title, searchable text,
  section and subsection, kept in sync by triggers so a record and its index
  entry are always written in the same transaction
- ``metadata``: cache bookkeeping (``last_updated``, ``page_count``,
  ``domain_info``)
"""

import json
import logging
import re
import sqlite3
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from .exceptions import StoreError
from .models import CodeBlock, Page, SearchResult, StoreStats
from .text import TextProcessor

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"

# Search results are cached briefly; any write clears the cache
SEARCH_CACHE_TTL_SECONDS = 5 * 60

SNIPPET_LENGTH = 300
SNIPPET_LEAD = 50

_SCHEMA = """
CREATE TABLE IF NOT EXISTS pages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL,
    section TEXT NOT NULL,
    subsection TEXT,
    plain_text TEXT NOT NULL,
    markdown TEXT NOT NULL,
    raw_content_html TEXT NOT NULL,
    code_blocks TEXT NOT NULL, -- JSON array
    content_fingerprint TEXT NOT NULL,
    source_url TEXT NOT NULL,
    last_fetched_at TEXT NOT NULL,
    last_checked_at TEXT NOT NULL,
    searchable_text TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_pages_section ON pages(section);

CREATE VIRTUAL TABLE IF NOT EXISTS pages_fts USING fts5(
    title,
    searchable_text,
    section,
    subsection,
    content='pages',
    content_rowid='id',
    tokenize='porter unicode61'
);

CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TRIGGER IF NOT EXISTS pages_ai AFTER INSERT ON pages BEGIN
    INSERT INTO pages_fts(rowid, title, searchable_text, section, subsection)
    VALUES (new.id, new.title, new.searchable_text, new.section, new.subsection);
END;

CREATE TRIGGER IF NOT EXISTS pages_ad AFTER DELETE ON pages BEGIN
    INSERT INTO pages_fts(pages_fts, rowid, title, searchable_text, section, subsection)
    VALUES ('delete', old.id, old.title, old.searchable_text, old.section, old.subsection);
END;

-- Only indexed columns re-index; timestamp bumps leave the FTS table alone
CREATE TRIGGER IF NOT EXISTS pages_au AFTER UPDATE OF title, searchable_text, section, subsection ON pages BEGIN
    INSERT INTO pages_fts(pages_fts, rowid, title, searchable_text, section, subsection)
    VALUES ('delete', old.id, old.title, old.searchable_text, old.section, old.subsection);
    INSERT INTO pages_fts(rowid, title, searchable_text, section, subsection)
    VALUES (new.id, new.title, new.searchable_text, new.section, new.subsection);
END;
"""

_UPSERT = """
INSERT INTO pages (
    path, title, section, subsection, plain_text, markdown, raw_content_html, code_blocks,
    content_fingerprint, source_url, last_fetched_at, last_checked_at, searchable_text
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(path) DO UPDATE SET
    title = excluded.title,
    section = excluded.section,
    subsection = excluded.subsection,
    plain_text = excluded.plain_text,
    markdown = excluded.markdown,
    raw_content_html = excluded.raw_content_html,
    code_blocks = excluded.code_blocks,
    content_fingerprint = excluded.content_fingerprint,
    source_url = excluded.source_url,
    last_fetched_at = excluded.last_fetched_at,
    last_checked_at = excluded.last_checked_at,
    searchable_text = excluded.searchable_text
"""

# bm25 column weights: title, searchable_text, section, subsection
_RANK = "bm25(pages_fts, 10.0, 1.0, 2.0, 2.0)"


def store_filename(base_url: str) -> str:
    """Derive the store file name for a crawl target from its URL.

    ``https://docs.example.com/v2/`` -> ``docsite-docs-example-com-v2.db``
    """
    parsed = urlparse(base_url)
    hostname = re.sub(r"[^a-zA-Z0-9-]", "-", parsed.hostname or "local")
    pathname = re.sub(r"[^a-zA-Z0-9-]", "-", parsed.path).strip("-") or "root"
    return f"docsite-{hostname}-{pathname}.db"


class IndexedStore:
    """Durable path -> Page map with full-text search and metadata."""

    def __init__(self, db_path: str | Path, text_processor: TextProcessor | None = None):
        """Open (and create if needed) the store file.

        Args:
            db_path: SQLite file path, or ":memory:"
            text_processor: Used to expand search queries

        Raises:
            StoreError: If the file cannot be opened or the schema cannot be created
        """
        self.db_path = str(db_path)
        self.text_processor = text_processor or TextProcessor()
        self._lock = threading.RLock()
        self._search_cache: dict[tuple[str, int, int], tuple[float, list[SearchResult]]] = {}

        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.executescript(_SCHEMA)
            self.conn.commit()
        except (sqlite3.Error, OSError) as e:
            logger.error(f"[STORE] Failed to open store {self.db_path}: {e}")
            raise StoreError(f"Cannot open store {self.db_path}: {e}") from e

        logger.debug(f"[STORE] Opened {self.db_path}")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_pages(self, pages: list[Page]):
        """Insert or update pages in one transaction.

        The FTS index is maintained by triggers inside the same transaction, so
        a record is never visible without its index entry or vice versa.

        Raises:
            StoreError: If the write fails (the transaction is rolled back)
        """
        if not pages:
            return

        rows = [
            (
                page.path,
                page.title,
                page.section,
                page.subsection,
                page.plain_text,
                page.markdown,
                page.raw_content_html,
                json.dumps([vars(block) for block in page.code_blocks]),
                page.content_fingerprint,
                page.source_url,
                page.last_fetched_at.isoformat(),
                page.last_checked_at.isoformat(),
                page.searchable_text,
            )
            for page in pages
        ]

        with self._lock:
            try:
                with self.conn:
                    self.conn.executemany(_UPSERT, rows)
                    self._set_metadata("page_count", str(self._count()))
            except sqlite3.Error as e:
                logger.error(f"[STORE] Failed to write {len(pages)} pages: {e}")
                raise StoreError(f"Failed to write pages: {e}") from e
            self._search_cache.clear()

        logger.debug(f"[STORE] Upserted {len(pages)} pages")

    def mark_checked(self, checked: dict[str, datetime]):
        """Bump ``last_checked_at`` for pages verified live without re-extracting them."""
        if not checked:
            return

        with self._lock:
            try:
                with self.conn:
                    self.conn.executemany(
                        "UPDATE pages SET last_checked_at = ? WHERE path = ?",
                        [(when.isoformat(), path) for path, when in checked.items()],
                    )
            except sqlite3.Error as e:
                raise StoreError(f"Failed to update check timestamps: {e}") from e
            self._search_cache.clear()

    def set_last_updated(self, when: datetime | None = None):
        """Record that the crawl target was fully populated at ``when``."""
        self.set_metadata("last_updated", (when or datetime.now()).isoformat())

    def set_metadata(self, key: str, value: str):
        with self._lock:
            try:
                with self.conn:
                    self._set_metadata(key, value)
            except sqlite3.Error as e:
                raise StoreError(f"Failed to write metadata {key}: {e}") from e

    def _set_metadata(self, key: str, value: str):
        self.conn.execute(
            "INSERT OR REPLACE INTO metadata (key, value, updated_at) VALUES (?, ?, ?)",
            (key, value, datetime.now().isoformat()),
        )

    def set_domain_info(self, domain_info: Any):
        """Cache the domain classifier's output. Opaque to the store."""
        self.set_metadata("domain_info", json.dumps(domain_info))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_metadata(self, key: str) -> str | None:
        row = self._query_one("SELECT value FROM metadata WHERE key = ?", (key,))
        return row["value"] if row else None

    def get_domain_info(self) -> Any | None:
        cached = self.get_metadata("domain_info")
        return json.loads(cached) if cached else None

    def get_last_updated(self) -> datetime | None:
        value = self.get_metadata("last_updated")
        return datetime.fromisoformat(value) if value else None

    def is_fresh(self, ttl_hours: float) -> bool:
        """True if the store was fully populated less than ``ttl_hours`` ago."""
        last_updated = self.get_last_updated()
        if last_updated is None:
            return False
        age_hours = (datetime.now() - last_updated).total_seconds() / 3600
        return age_hours < ttl_hours

    def get_page(self, path: str) -> Page | None:
        row = self._query_one("SELECT * FROM pages WHERE path = ?", (path,))
        return self._row_to_page(row) if row else None

    def all_pages(self) -> list[Page]:
        return [self._row_to_page(row) for row in self._query("SELECT * FROM pages ORDER BY path")]

    def pages_by_section(self, section: str) -> list[Page]:
        rows = self._query("SELECT * FROM pages WHERE section = ? ORDER BY path", (section,))
        return [self._row_to_page(row) for row in rows]

    def all_sections(self) -> list[str]:
        return [row["section"] for row in self._query("SELECT DISTINCT section FROM pages ORDER BY section")]

    def page_count(self) -> int:
        return self._query_one("SELECT COUNT(*) AS count FROM pages")["count"]

    def _count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM pages").fetchone()[0]

    def sample_random_pages(self, n: int = 20) -> list[Page]:
        """Return up to ``n`` random pages without loading the whole corpus."""
        rows = self._query("SELECT * FROM pages ORDER BY RANDOM() LIMIT ?", (n,))
        return [self._row_to_page(row) for row in rows]

    def get_stats(self) -> StoreStats:
        """Page count, section count, last full population and mean content age."""
        row = self._query_one("SELECT COUNT(*) AS pages, COUNT(DISTINCT section) AS sections FROM pages")
        fetched = [r["last_fetched_at"] for r in self._query("SELECT last_fetched_at FROM pages")]

        now = datetime.now()
        ages = [(now - datetime.fromisoformat(value)).total_seconds() / 3600 for value in fetched]
        return StoreStats(
            total_pages=row["pages"],
            sections=row["sections"],
            last_updated=self.get_last_updated(),
            avg_content_age_hours=sum(ages) / len(ages) if ages else 0.0,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query: str, limit: int = 20, offset: int = 0) -> list[SearchResult]:
        """Full-text search ranked by bm25, with a snippet per hit.

        Args:
            query: Free-text query
            limit: Maximum results to return
            offset: Results to skip (for pagination)

        Returns:
            Ranked results; empty if the query has no usable terms
        """
        cache_key = (query, limit, offset)
        with self._lock:
            cached = self._search_cache.get(cache_key)
            if cached and time.monotonic() - cached[0] < SEARCH_CACHE_TTL_SECONDS:
                return list(cached[1])

        match = self._build_match(query)
        if not match:
            return []

        rows = self._query(
            f"""
            SELECT pages.*, {_RANK} AS bm25_rank
            FROM pages_fts
            JOIN pages ON pages.id = pages_fts.rowid
            WHERE pages_fts MATCH ?
            ORDER BY bm25_rank, pages.path
            LIMIT ? OFFSET ?
            """,
            (match, limit, offset),
        )

        results = []
        for row in rows:
            page = self._row_to_page(row)
            snippet = generate_snippet(page.plain_text, query)
            results.append(SearchResult(page=page, score=-(row["bm25_rank"] or 0.0), snippet=snippet))

        with self._lock:
            self._search_cache[cache_key] = (time.monotonic(), list(results))
        return results

    def search_count(self, query: str) -> int:
        """Total number of pages matching ``query``."""
        match = self._build_match(query)
        if not match:
            return 0
        row = self._query_one("SELECT COUNT(*) AS count FROM pages_fts WHERE pages_fts MATCH ?", (match,))
        return row["count"]

    def _build_match(self, query: str) -> str:
        """Quote every query term and its expansions, OR-joined.

        Quoting keeps FTS5 from reading punctuation as query syntax.
        """
        terms = self.text_processor.expand_query(query)
        return " OR ".join('"{}"'.format(term.replace('"', '""')) for term in terms)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"Query failed: {e}") from e

    def _query_one(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        rows = self._query(sql, params)
        return rows[0] if rows else None

    @staticmethod
    def _row_to_page(row: sqlite3.Row) -> Page:
        return Page(
            path=row["path"],
            title=row["title"],
            section=row["section"],
            subsection=row["subsection"],
            plain_text=row["plain_text"],
            markdown=row["markdown"],
            raw_content_html=row["raw_content_html"],
            code_blocks=[CodeBlock.from_dict(block) for block in json.loads(row["code_blocks"] or "[]")],
            content_fingerprint=row["content_fingerprint"],
            source_url=row["source_url"],
            last_fetched_at=datetime.fromisoformat(row["last_fetched_at"]),
            last_checked_at=datetime.fromisoformat(row["last_checked_at"]),
            searchable_text=row["searchable_text"],
        )

    def close(self):
        with self._lock:
            self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def generate_snippet(content: str, query: str, max_length: int = SNIPPET_LENGTH) -> str:
    """Cut a snippet around the first occurrence of any query word.

    Falls back to the leading ``max_length`` characters when no word occurs verbatim.
    """
    words = [w for w in query.lower().split() if w]
    lower_content = content.lower()

    # Find first occurrence of any query word
    best_index = -1
    for word in words:
        index = lower_content.find(word)
        if index != -1 and (best_index == -1 or index < best_index):
            best_index = index

    if best_index == -1:
        return content[:max_length] + ("..." if len(content) > max_length else "")

    start = max(0, best_index - SNIPPET_LEAD)
    end = min(len(content), start + max_length)
    return ("..." if start > 0 else "") + content[start:end] + ("..." if end < len(content) else "")
